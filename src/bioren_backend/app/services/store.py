# src/bioren_backend/app/services/store.py
from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Optional, Protocol
from urllib.parse import quote

import httpx

from bioren_backend.app.auth.service_account import ServiceAccountCredentials
from bioren_backend.app.core.errors import StorageError

_log = logging.getLogger("bioren.store")

FIRESTORE_BASE = "https://firestore.googleapis.com/v1"


class DocumentStore(Protocol):
    async def upsert(self, collection: str, doc_id: str, document: Dict[str, Any]) -> None: ...

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]: ...


# ------------------------
# In-memory (dev / tests)
# ------------------------
class InMemoryDocumentStore:
    """Process-local store: {collection: {doc_id: document}}. Not shared between workers."""

    def __init__(self) -> None:
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}

    async def upsert(self, collection: str, doc_id: str, document: Dict[str, Any]) -> None:
        self.collections.setdefault(collection, {})[doc_id] = copy.deepcopy(document)

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        doc = self.collections.get(collection, {}).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None


# ------------------------
# Firestore typed values
# ------------------------
def encode_value(value: Any) -> Dict[str, Any]:
    if value is None:
        return {"nullValue": None}
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value)}}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    raise TypeError(f"unsupported Firestore value type: {type(value).__name__}")


def encode_fields(document: Dict[str, Any]) -> Dict[str, Any]:
    return {k: encode_value(v) for k, v in document.items()}


def decode_value(value: Dict[str, Any]) -> Any:
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return value["booleanValue"]
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields", {}))
    if "arrayValue" in value:
        return [decode_value(v) for v in value["arrayValue"].get("values", [])]
    for kind in ("stringValue", "timestampValue", "referenceValue", "bytesValue"):
        if kind in value:
            return value[kind]
    raise ValueError(f"unsupported Firestore value: {sorted(value)}")


def decode_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {k: decode_value(v) for k, v in fields.items()}


# ------------------------
# Firestore REST
# ------------------------
class FirestoreDocumentStore:
    """
    Cloud Firestore over the v1 REST API.

    upsert -> PATCH documents/{collection}/{id} without an updateMask, which
              replaces the whole document (creating it if needed)
    get    -> GET documents/{collection}/{id}; 404 means absent

    Against the emulator (FIRESTORE_EMULATOR_HOST) requests go over plain http
    with the "owner" bearer, which bypasses security rules.
    """

    def __init__(
        self,
        project_id: str,
        *,
        credentials: Optional[ServiceAccountCredentials] = None,
        database: str = "(default)",
        emulator_host: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not project_id:
            raise RuntimeError("FIREBASE_PROJECT_ID is required for the Firestore store")
        if credentials is None and not emulator_host:
            raise RuntimeError("Firestore needs FIREBASE_CREDENTIALS or FIRESTORE_EMULATOR_HOST")
        base = f"http://{emulator_host}/v1" if emulator_host else FIRESTORE_BASE
        self.documents_url = f"{base}/projects/{project_id}/databases/{database}/documents"
        self.emulated = bool(emulator_host)
        self._credentials = credentials
        self._timeout = timeout
        self._client = client

    def _doc_url(self, collection: str, doc_id: str) -> str:
        return f"{self.documents_url}/{quote(collection, safe='')}/{quote(doc_id, safe='')}"

    async def _headers(self) -> Dict[str, str]:
        if self.emulated:
            return {"Authorization": "Bearer owner"}
        token = await self._credentials.access_token()
        return {"Authorization": f"Bearer {token}"}

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        headers = await self._headers()
        own = self._client or httpx.AsyncClient(timeout=self._timeout)
        try:
            return await own.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as ex:
            _log.error("firestore %s %s failed: %s", method, url, ex)
            raise StorageError("document store unreachable") from ex
        finally:
            if self._client is None:
                await own.aclose()

    async def upsert(self, collection: str, doc_id: str, document: Dict[str, Any]) -> None:
        url = self._doc_url(collection, doc_id)
        r = await self._request("PATCH", url, json={"fields": encode_fields(document)})
        if r.status_code != 200:
            _log.error("firestore upsert %s/%s -> %s: %s", collection, doc_id, r.status_code, r.text[:200])
            raise StorageError(f"upsert failed with status {r.status_code}")

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        url = self._doc_url(collection, doc_id)
        r = await self._request("GET", url)
        if r.status_code == 404:
            return None
        if r.status_code != 200:
            _log.error("firestore get %s/%s -> %s: %s", collection, doc_id, r.status_code, r.text[:200])
            raise StorageError(f"read failed with status {r.status_code}")
        try:
            return decode_fields(r.json().get("fields", {}))
        except ValueError as ex:
            raise StorageError("undecodable document") from ex

