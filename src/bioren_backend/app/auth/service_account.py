# src/bioren_backend/app/auth/service_account.py
from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
import jwt

from bioren_backend.app.core.errors import StorageError
from bioren_backend.app.core.logging import auth_trace

DATASTORE_SCOPE = "https://www.googleapis.com/auth/datastore"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ASSERTION_TTL = 3600
REFRESH_MARGIN = 60

_log = logging.getLogger("bioren.credentials")


class ServiceAccountCredentials:
    """
    OAuth2 access tokens for a Google service account (JWT-bearer grant).

    The key file is the one downloaded from the Firebase console
    ("Project settings -> Service accounts -> Generate new private key").
    """

    def __init__(
        self,
        info: Dict[str, Any],
        *,
        scope: str = DATASTORE_SCOPE,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        missing = [k for k in ("client_email", "private_key") if not info.get(k)]
        if missing:
            raise RuntimeError(f"service account key is missing fields: {', '.join(missing)}")
        self.client_email: str = info["client_email"]
        self.project_id: Optional[str] = info.get("project_id")
        self.token_uri: str = info.get("token_uri") or GOOGLE_TOKEN_URI
        self.scope = scope
        self._private_key: str = info["private_key"]
        self._key_id: Optional[str] = info.get("private_key_id")
        self._timeout = timeout
        self._client = client
        self._token: Optional[str] = None
        self._expires_at: float = 0.0

    @classmethod
    def from_file(cls, path: str | Path, **kwargs: Any) -> "ServiceAccountCredentials":
        p = Path(path)
        if not p.is_file():
            raise RuntimeError(f"service account key not found: {p}")
        try:
            info = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, ValueError) as ex:
            raise RuntimeError(f"unreadable service account key {p}: {ex}") from ex
        return cls(info, **kwargs)

    def _assertion(self, now: int) -> str:
        payload = {
            "iss": self.client_email,
            "sub": self.client_email,
            "aud": self.token_uri,
            "scope": self.scope,
            "iat": now,
            "exp": now + ASSERTION_TTL,
        }
        headers = {"kid": self._key_id} if self._key_id else None
        return jwt.encode(payload, self._private_key, algorithm="RS256", headers=headers)

    async def access_token(self) -> str:
        """Return a cached access token, minting a new one shortly before expiry."""
        now = int(time.time())
        if self._token and now < self._expires_at - REFRESH_MARGIN:
            return self._token

        data = {"grant_type": JWT_BEARER_GRANT, "assertion": self._assertion(now)}
        own = self._client or httpx.AsyncClient(timeout=self._timeout)
        try:
            r = await own.post(self.token_uri, data=data, headers={"Accept": "application/json"})
        except httpx.HTTPError as ex:
            _log.error("token endpoint unreachable: %s", ex)
            raise StorageError("could not obtain access token") from ex
        finally:
            if self._client is None:
                await own.aclose()

        if r.status_code != 200:
            _log.error("token endpoint returned %s: %s", r.status_code, r.text[:200])
            raise StorageError("could not obtain access token")

        try:
            body = r.json()
            token = body["access_token"]
            expires_in = int(body.get("expires_in", ASSERTION_TTL))
        except (ValueError, KeyError, TypeError) as ex:
            _log.error("token endpoint sent an unusable body: %s", r.text[:200])
            raise StorageError("could not obtain access token") from ex
        if not isinstance(token, str) or not token:
            _log.error("token endpoint sent an empty access_token")
            raise StorageError("could not obtain access token")

        self._token = token
        self._expires_at = now + expires_in
        auth_trace("service_account.token_issued", account=self.client_email, expires_in=body.get("expires_in"))
        return self._token
