# src/bioren_backend/app/auth/bearer.py
from __future__ import annotations

from typing import Optional

from bioren_backend.app.core.errors import MalformedAuthorization

BEARER_PREFIX = "Bearer "


def parse_bearer(authorization: Optional[str]) -> str:
    """
    Extract the raw token from an Authorization header value.

    The prefix is matched literally and case-sensitively ("bearer x" is rejected).
    Whatever follows it is trimmed; an empty remainder is rejected too, so callers
    never hand a blank string to the verifier.
    """
    if not authorization:
        raise MalformedAuthorization("missing Authorization header")
    if not authorization.startswith(BEARER_PREFIX):
        raise MalformedAuthorization("Authorization header must start with 'Bearer '")
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise MalformedAuthorization("empty bearer token")
    return token
