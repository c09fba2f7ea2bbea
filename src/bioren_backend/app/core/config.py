# src/bioren_backend/app/core/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

# ------------------------
# Defaults
# ------------------------
FIREBASE_JWKS_URI = "https://www.googleapis.com/service_accounts/v1/jwk/securetoken@system.gserviceaccount.com"
USERS_COLLECTION  = "usuarios"


def _opt(var: str) -> Optional[str]:
    val = (os.getenv(var) or "").strip()
    return val or None


@dataclass(frozen=True)
class Settings:
    """
    Runtime configuration, read from the environment (after load_dotenv()).

      FIREBASE_PROJECT_ID         : Firebase/GCP project; token audience + Firestore project
      FIREBASE_CREDENTIALS        : path to a service-account JSON key (Firestore access)
      FIREBASE_JWKS_URI           : securetoken signing keys (override for tests/mirrors)
      FIREBASE_AUTH_EMULATOR_HOST : host:port of the Auth emulator -> unsigned tokens accepted
      FIRESTORE_EMULATOR_HOST     : host:port of the Firestore emulator -> no OAuth needed
      FIRESTORE_DATABASE          : Firestore database id, "(default)" unless multi-db
      USERS_COLLECTION            : collection holding user profiles
      STORE_BACKEND               : "firestore" (default) or "memory" (local dev only)
      HTTP_TIMEOUT_SEC            : timeout for outbound calls to Google
      CORS_ORIGINS                : comma-separated allowed origins ("*" by default)
    """
    project_id: Optional[str] = None
    credentials_path: Optional[str] = None
    jwks_uri: str = FIREBASE_JWKS_URI
    auth_emulator_host: Optional[str] = None
    firestore_emulator_host: Optional[str] = None
    firestore_database: str = "(default)"
    users_collection: str = USERS_COLLECTION
    store_backend: str = "firestore"
    http_timeout: float = 10.0
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @property
    def auth_emulated(self) -> bool:
        return bool(self.auth_emulator_host)

    @classmethod
    def from_env(cls) -> "Settings":
        origins = [o.strip() for o in (os.getenv("CORS_ORIGINS") or "*").split(",") if o.strip()]
        return cls(
            project_id=_opt("FIREBASE_PROJECT_ID") or _opt("GOOGLE_CLOUD_PROJECT"),
            credentials_path=_opt("FIREBASE_CREDENTIALS") or _opt("GOOGLE_APPLICATION_CREDENTIALS"),
            jwks_uri=_opt("FIREBASE_JWKS_URI") or FIREBASE_JWKS_URI,
            auth_emulator_host=_opt("FIREBASE_AUTH_EMULATOR_HOST"),
            firestore_emulator_host=_opt("FIRESTORE_EMULATOR_HOST"),
            firestore_database=_opt("FIRESTORE_DATABASE") or "(default)",
            users_collection=_opt("USERS_COLLECTION") or USERS_COLLECTION,
            store_backend=(_opt("STORE_BACKEND") or "firestore").lower(),
            http_timeout=float(os.getenv("HTTP_TIMEOUT_SEC", "10")),
            cors_origins=origins or ["*"],
        )
