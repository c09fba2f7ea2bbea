# src/bioren_backend/app/deps.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Request

from bioren_backend.app.auth.firebase import FirebaseTokenVerifier
from bioren_backend.app.auth.service_account import ServiceAccountCredentials
from bioren_backend.app.core.config import Settings
from bioren_backend.app.services.directory import UserDirectoryService
from bioren_backend.app.services.store import DocumentStore, FirestoreDocumentStore, InMemoryDocumentStore

_log = logging.getLogger("bioren.deps")


def build_store(settings: Settings) -> DocumentStore:
    if settings.store_backend == "memory":
        _log.warning("STORE_BACKEND=memory: profiles live in process memory only")
        return InMemoryDocumentStore()
    if settings.store_backend != "firestore":
        raise RuntimeError(f"Unsupported STORE_BACKEND: {settings.store_backend}")

    credentials: Optional[ServiceAccountCredentials] = None
    if not settings.firestore_emulator_host:
        if not settings.credentials_path:
            raise RuntimeError("Set FIREBASE_CREDENTIALS (service-account JSON) or FIRESTORE_EMULATOR_HOST")
        credentials = ServiceAccountCredentials.from_file(settings.credentials_path, timeout=settings.http_timeout)

    return FirestoreDocumentStore(
        settings.project_id or "",
        credentials=credentials,
        database=settings.firestore_database,
        emulator_host=settings.firestore_emulator_host,
        timeout=settings.http_timeout,
    )


def build_directory(settings: Settings) -> UserDirectoryService:
    """Wire the Firebase verifier and the configured store into a directory service."""
    verifier = FirebaseTokenVerifier(
        settings.project_id or "",
        jwks_uri=settings.jwks_uri,
        emulated=settings.auth_emulated,
        timeout=settings.http_timeout,
    )
    if settings.auth_emulated:
        _log.warning("FIREBASE_AUTH_EMULATOR_HOST set: token signatures are NOT verified")
    return UserDirectoryService(verifier, build_store(settings), collection=settings.users_collection)


def get_directory(request: Request) -> UserDirectoryService:
    """
    FastAPI dependency. Uses the service injected into create_app(), else builds
    one from settings on first use and keeps it on app.state.
    """
    state = request.app.state
    if state.directory is None:
        state.directory = build_directory(state.settings)
    return state.directory
