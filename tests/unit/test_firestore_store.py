"""Firestore REST store against mocked endpoints (pytest-httpx)."""
import asyncio
import json

import httpx
import pytest

from bioren_backend.app.core.errors import StorageError
from bioren_backend.app.services.store import (
    FirestoreDocumentStore,
    InMemoryDocumentStore,
    decode_fields,
    encode_fields,
)

PROJECT = "demo-bioren"
EMULATOR = "localhost:8080"
EMU_DOC = f"http://{EMULATOR}/v1/projects/{PROJECT}/databases/(default)/documents/usuarios/u1"
LIVE_DOC = f"https://firestore.googleapis.com/v1/projects/{PROJECT}/databases/(default)/documents/usuarios/u1"

PROFILE = {"subjectId": "u1", "displayName": "Alice", "phone": None, "email": "a@x.com"}
PROFILE_FIELDS = {
    "subjectId": {"stringValue": "u1"},
    "displayName": {"stringValue": "Alice"},
    "phone": {"nullValue": None},
    "email": {"stringValue": "a@x.com"},
}


class _StaticCredentials:
    async def access_token(self):
        return "ya29.test-token"


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def emulated():
    return FirestoreDocumentStore(PROJECT, emulator_host=EMULATOR)


def test_encode_profile_fields():
    assert encode_fields(PROFILE) == PROFILE_FIELDS


def test_encode_decode_nested_values():
    doc = {"n": 3, "ok": True, "ratio": 0.5, "tags": ["a", 1], "meta": {"k": None}}
    fields = encode_fields(doc)
    assert fields["n"] == {"integerValue": "3"}
    assert fields["ok"] == {"booleanValue": True}
    assert fields["tags"] == {"arrayValue": {"values": [{"stringValue": "a"}, {"integerValue": "1"}]}}
    assert decode_fields(fields) == doc


def test_decode_empty_containers_and_timestamps():
    fields = {
        "empty_map": {"mapValue": {}},
        "empty_list": {"arrayValue": {}},
        "created": {"timestampValue": "2024-05-01T10:00:00Z"},
    }
    assert decode_fields(fields) == {"empty_map": {}, "empty_list": [], "created": "2024-05-01T10:00:00Z"}


def test_encode_rejects_unknown_types():
    with pytest.raises(TypeError):
        encode_fields({"x": object()})


def test_upsert_patches_whole_document(httpx_mock, emulated):
    httpx_mock.add_response(url=EMU_DOC, method="PATCH", json={"name": "...", "fields": PROFILE_FIELDS})

    run(emulated.upsert("usuarios", "u1", PROFILE))

    req = httpx_mock.get_request()
    assert req.method == "PATCH"
    assert "updateMask" not in str(req.url)
    assert req.headers["Authorization"] == "Bearer owner"
    assert json.loads(req.content) == {"fields": PROFILE_FIELDS}


def test_get_decodes_document(httpx_mock, emulated):
    httpx_mock.add_response(url=EMU_DOC, method="GET", json={"name": "...", "fields": PROFILE_FIELDS})
    assert run(emulated.get("usuarios", "u1")) == PROFILE


def test_get_missing_document_is_none(httpx_mock, emulated):
    httpx_mock.add_response(url=EMU_DOC, method="GET", status_code=404, json={"error": {"code": 404}})
    assert run(emulated.get("usuarios", "u1")) is None


def test_get_server_error_raises(httpx_mock, emulated):
    httpx_mock.add_response(url=EMU_DOC, method="GET", status_code=503, text="unavailable")
    with pytest.raises(StorageError):
        run(emulated.get("usuarios", "u1"))


def test_upsert_permission_denied_raises(httpx_mock, emulated):
    httpx_mock.add_response(url=EMU_DOC, method="PATCH", status_code=403, json={"error": {"status": "PERMISSION_DENIED"}})
    with pytest.raises(StorageError):
        run(emulated.upsert("usuarios", "u1", PROFILE))


def test_transport_error_raises(httpx_mock, emulated):
    httpx_mock.add_exception(httpx.ConnectError("connection refused"))
    with pytest.raises(StorageError):
        run(emulated.get("usuarios", "u1"))


def test_live_requests_carry_oauth_token(httpx_mock):
    store = FirestoreDocumentStore(PROJECT, credentials=_StaticCredentials())
    httpx_mock.add_response(url=LIVE_DOC, method="GET", status_code=404, json={})

    assert run(store.get("usuarios", "u1")) is None
    assert httpx_mock.get_request().headers["Authorization"] == "Bearer ya29.test-token"


def test_document_ids_are_path_escaped(httpx_mock, emulated):
    url = f"http://{EMULATOR}/v1/projects/{PROJECT}/databases/(default)/documents/usuarios/a%2Fb"
    httpx_mock.add_response(url=url, method="GET", status_code=404, json={})
    assert run(emulated.get("usuarios", "a/b")) is None


def test_requires_project_and_auth():
    with pytest.raises(RuntimeError):
        FirestoreDocumentStore("", emulator_host=EMULATOR)
    with pytest.raises(RuntimeError):
        FirestoreDocumentStore(PROJECT)


def test_in_memory_store_copies_documents():
    store = InMemoryDocumentStore()
    doc = {"subjectId": "u1", "displayName": "Alice"}
    run(store.upsert("usuarios", "u1", doc))
    doc["displayName"] = "changed"

    got = run(store.get("usuarios", "u1"))
    assert got["displayName"] == "Alice"
    assert run(store.get("usuarios", "nobody")) is None
    assert run(store.get("other", "u1")) is None
