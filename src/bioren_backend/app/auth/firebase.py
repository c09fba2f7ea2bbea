# src/bioren_backend/app/auth/firebase.py
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

import jwt
from jwt import PyJWKClient

from bioren_backend.app.core.config import FIREBASE_JWKS_URI
from bioren_backend.app.core.logging import auth_trace

# ------------------------
# Constants
# ------------------------
SECURETOKEN_ISS_PREFIX = "https://securetoken.google.com/"
ALGO                   = "RS256"
LEEWAY_SEC             = 60
JWKS_TIMEOUT_SEC       = 10.0


class VerificationFailure(Exception):
    """Token rejected by the identity provider. The reason is traced, never exposed."""


@dataclass(frozen=True)
class VerifiedIdentity:
    subject_id: str
    email: Optional[str] = None
    role: Optional[str] = None  # custom claim; read but not acted upon
    claims: Dict[str, Any] = field(default_factory=dict)


class TokenVerifier(Protocol):
    async def verify(self, token: str) -> VerifiedIdentity: ...


def _decode_without_sig(token: str) -> Dict[str, Any]:
    """Emulator helper: the Auth emulator signs nothing (alg=none)."""
    return jwt.decode(
        token,
        options={"verify_signature": False, "verify_aud": False, "verify_exp": False},
    )


def identity_from_claims(claims: Dict[str, Any]) -> VerifiedIdentity:
    role = claims.get("role")
    return VerifiedIdentity(
        subject_id=claims["sub"],
        email=claims.get("email"),
        role=str(role) if role is not None else None,
        claims=dict(claims),
    )


class FirebaseTokenVerifier:
    """
    Verifies Firebase Authentication ID tokens.

    Rules (same as the Admin SDKs):
      - header alg RS256, kid resolved against the securetoken JWKS
      - aud == project id, iss == https://securetoken.google.com/<project id>
      - exp / iat present and valid, sub a non-empty string
      - auth_time, when present, not in the future

    With an Auth emulator configured the signature step is skipped; the
    claim checks still run.
    """

    def __init__(
        self,
        project_id: str,
        *,
        jwks_uri: str = FIREBASE_JWKS_URI,
        jwks_client: Optional[Any] = None,
        emulated: bool = False,
        leeway: int = LEEWAY_SEC,
        timeout: float = JWKS_TIMEOUT_SEC,
    ):
        if not project_id:
            raise RuntimeError("FIREBASE_PROJECT_ID is required to verify Firebase ID tokens")
        self.project_id = project_id
        self.issuer = SECURETOKEN_ISS_PREFIX + project_id
        self.emulated = emulated
        self.leeway = leeway
        self._jwk = jwks_client or PyJWKClient(jwks_uri, timeout=timeout)

    async def verify(self, token: str) -> VerifiedIdentity:
        mode = "EMULATOR" if self.emulated else "LIVE"
        try:
            claims = await self._decode(token)
        except jwt.ExpiredSignatureError:
            auth_trace("firebase.verify.expired", mode=mode)
            raise VerificationFailure("token expired")
        except jwt.InvalidAudienceError:
            auth_trace("firebase.verify.aud_mismatch", mode=mode, want_aud=self.project_id)
            raise VerificationFailure("audience mismatch")
        except jwt.InvalidIssuerError:
            auth_trace("firebase.verify.iss_mismatch", mode=mode, want_iss=self.issuer)
            raise VerificationFailure("issuer mismatch")
        except jwt.PyJWTError as ex:
            auth_trace("firebase.verify.jwt_error", mode=mode, err=type(ex).__name__)
            raise VerificationFailure(str(ex)) from ex

        sub = claims.get("sub")
        if not isinstance(sub, str) or not sub:
            auth_trace("firebase.verify.bad_sub", mode=mode)
            raise VerificationFailure("token has no subject")

        auth_time = claims.get("auth_time")
        if auth_time is not None and (
            not isinstance(auth_time, (int, float)) or auth_time > time.time() + self.leeway
        ):
            auth_trace("firebase.verify.bad_auth_time", mode=mode, auth_time=auth_time)
            raise VerificationFailure("auth_time in the future")

        auth_trace("firebase.verify.ok", mode=mode, sub=sub, exp=claims.get("exp"))
        return identity_from_claims(claims)

    async def _decode(self, token: str) -> Dict[str, Any]:
        if self.emulated:
            claims = _decode_without_sig(token)
            if claims.get("aud") != self.project_id:
                raise jwt.InvalidAudienceError("audience mismatch")
            if claims.get("iss") != self.issuer:
                raise jwt.InvalidIssuerError("issuer mismatch")
            exp = claims.get("exp")
            if not isinstance(exp, (int, float)) or exp + self.leeway < time.time():
                raise jwt.ExpiredSignatureError("token expired")
            return claims

        hdr = jwt.get_unverified_header(token)
        if hdr.get("alg") != ALGO:
            raise jwt.InvalidAlgorithmError(f"unexpected alg: {hdr.get('alg')}")
        # PyJWKClient fetches with blocking urllib; keep it off the event loop
        signing_key = await asyncio.to_thread(self._jwk.get_signing_key_from_jwt, token)
        key = signing_key.key
        return jwt.decode(
            token,
            key=key,
            algorithms=[ALGO],
            audience=self.project_id,
            issuer=self.issuer,
            options={"require": ["exp", "iat", "aud", "iss", "sub"]},
            leeway=self.leeway,
        )
