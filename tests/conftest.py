# tests/conftest.py
from __future__ import annotations

import os
from typing import Any, Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from bioren_backend.app.auth.firebase import VerificationFailure, VerifiedIdentity
from bioren_backend.app.core.config import Settings
from bioren_backend.app.core.errors import StorageError
from bioren_backend.app.main import create_app
from bioren_backend.app.services.directory import UserDirectoryService
from bioren_backend.app.services.store import InMemoryDocumentStore

# ---------- Known tokens ----------
ALICE_TOKEN = "token-alice"
BOB_TOKEN   = "token-bob"
BAD_TOKEN   = "token-expired"

IDENTITIES: Dict[str, VerifiedIdentity] = {
    ALICE_TOKEN: VerifiedIdentity(subject_id="u1", email="a@x.com", role="admin", claims={"sub": "u1", "role": "admin"}),
    BOB_TOKEN:   VerifiedIdentity(subject_id="u2", email="b@x.com"),
}


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ---------- Fakes ----------
class FakeVerifier:
    """Stands in for Firebase: known tokens verify, anything else fails."""

    def __init__(self, identities: Optional[Dict[str, VerifiedIdentity]] = None):
        self.identities = dict(IDENTITIES if identities is None else identities)
        self.calls: List[str] = []

    async def verify(self, token: str) -> VerifiedIdentity:
        self.calls.append(token)
        try:
            return self.identities[token]
        except KeyError:
            raise VerificationFailure("unknown token")


class RecordingStore(InMemoryDocumentStore):
    def __init__(self) -> None:
        super().__init__()
        self.writes: List[Tuple[str, str]] = []
        self.reads: List[Tuple[str, str]] = []

    @property
    def accesses(self) -> int:
        return len(self.writes) + len(self.reads)

    async def upsert(self, collection: str, doc_id: str, document: Dict[str, Any]) -> None:
        self.writes.append((collection, doc_id))
        await super().upsert(collection, doc_id, document)

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        self.reads.append((collection, doc_id))
        return await super().get(collection, doc_id)


class BrokenStore:
    async def upsert(self, collection: str, doc_id: str, document: Dict[str, Any]) -> None:
        raise StorageError("connection reset")

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        raise StorageError("connection reset")


# ---------- Fixtures ----------
@pytest.fixture
def verifier() -> FakeVerifier:
    return FakeVerifier()


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def directory(verifier: FakeVerifier, store: RecordingStore) -> UserDirectoryService:
    return UserDirectoryService(verifier, store)


@pytest.fixture
def client(directory: UserDirectoryService) -> TestClient:
    return TestClient(create_app(directory=directory, settings=Settings()))


# ---------- Emulator gating ----------
AUTH_EMULATOR      = (os.getenv("FIREBASE_AUTH_EMULATOR_HOST") or "").strip()
FIRESTORE_EMULATOR = (os.getenv("FIRESTORE_EMULATOR_HOST") or "").strip()
ENABLE_EMULATOR_TESTS = (os.getenv("ENABLE_EMULATOR_TESTS", "")).lower() in ("1", "true", "yes", "on")


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--enable-emulator-tests",
        action="store_true",
        default=False,
        help="Run tests marked with @pytest.mark.emulator against the Firebase emulators.",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "emulator: tests that need the Firebase Auth + Firestore emulators")


def pytest_collection_modifyitems(config: pytest.Config, items: List[pytest.Item]) -> None:
    """Gate @emulator tests unless explicitly enabled and both emulator hosts are set."""
    enabled = config.getoption("--enable-emulator-tests") or ENABLE_EMULATOR_TESTS
    if enabled and AUTH_EMULATOR and FIRESTORE_EMULATOR:
        return

    skip_emulator = pytest.mark.skip(
        reason=("Skipping @emulator tests. Enable with --enable-emulator-tests or "
                "ENABLE_EMULATOR_TESTS=true, and set FIREBASE_AUTH_EMULATOR_HOST + FIRESTORE_EMULATOR_HOST.")
    )
    for item in items:
        if "emulator" in item.keywords:
            item.add_marker(skip_emulator)
