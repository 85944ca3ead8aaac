"""Cloud Firestore record store over the public REST API.

REST endpoint layout:
    https://firestore.googleapis.com/v1/projects/{project}/databases/(default)/documents/{collection}

- GET    {collection}?pageSize=N&pageToken=T   list (paginated via nextPageToken)
- GET    {collection}/{id}                     single document
- POST   {collection}                          create, server assigns the id
- PATCH  {collection}/{id}?updateMask...       partial update
- DELETE {collection}/{id}                     delete

Documents travel as typed values ({"stringValue": ...}, {"integerValue": "3"},
{"mapValue": {"fields": ...}} ...); encode_fields/decode_fields convert
between those and plain Python values.

Authentication: the web API key goes in the ``key`` query parameter; an
optional Firebase ID token is sent as a bearer token when security rules
require a signed-in user.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ..config import Settings
from ..utils import (
    async_request_with_retries,
    parse_dt_iso,
    request_with_retries,
    serialize_dt,
)
from .base import (
    Document,
    RecordNotFoundError,
    RecordStore,
    StoreHTTPError,
    StoreParseError,
    ensure_setting,
)

logger = logging.getLogger(__name__)

FIRESTORE_BASE = "https://firestore.googleapis.com/v1"
PAGE_SIZE = 300
USER_AGENT = "warehousetracker/0.1"


def decode_value(value: Dict[str, Any]) -> Any:
    """Convert one Firestore typed value to a plain Python value."""
    if not isinstance(value, dict):
        raise StoreParseError(f"Unexpected Firestore value: {value!r}")
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        try:
            return int(value["integerValue"])
        except (TypeError, ValueError) as exc:
            raise StoreParseError(f"Bad integerValue: {value['integerValue']!r}") from exc
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "timestampValue" in value:
        return parse_dt_iso(value["timestampValue"])
    if "stringValue" in value:
        return value["stringValue"]
    if "bytesValue" in value:
        return value["bytesValue"]
    if "referenceValue" in value:
        return value["referenceValue"]
    if "geoPointValue" in value:
        return dict(value["geoPointValue"])
    if "arrayValue" in value:
        return [decode_value(v) for v in (value["arrayValue"] or {}).get("values", [])]
    if "mapValue" in value:
        return decode_fields((value["mapValue"] or {}).get("fields", {}))
    raise StoreParseError(f"Unsupported Firestore value type: {sorted(value)}")


def decode_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {k: decode_value(v) for k, v in (fields or {}).items()}


def encode_value(value: Any) -> Dict[str, Any]:
    """Convert a plain Python value to a Firestore typed value."""
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, datetime):
        return {"timestampValue": serialize_dt(value)}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value)}}
    return {"stringValue": str(value)}


def encode_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    return {str(k): encode_value(v) for k, v in data.items()}


def document_id(name: str) -> str:
    """Last path segment of a full document resource name."""
    return name.rsplit("/", 1)[-1]


def parse_document(doc: Dict[str, Any]) -> Document:
    name = doc.get("name")
    if not name:
        raise StoreParseError("Firestore document without a name")
    return document_id(name), decode_fields(doc.get("fields", {}))


def parse_list_response(payload: Dict[str, Any]) -> Tuple[List[Document], Optional[str]]:
    """Split one list page into documents and the next page token (if any)."""
    if not isinstance(payload, dict):
        raise StoreParseError("Firestore list response is not an object")
    docs = [parse_document(d) for d in payload.get("documents", []) or []]
    return docs, payload.get("nextPageToken") or None


class FirestoreStore(RecordStore):
    """RecordStore backed by a Firestore collection."""

    name = "firestore"

    def __init__(
        self,
        settings: Settings,
        *,
        client: Optional[httpx.Client] = None,
        async_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.settings = settings
        self.project_id = ensure_setting(settings, "project_id", "FIREBASE_PROJECT_ID")
        self.client = client
        self.async_client = async_client
        self.collection_url = (
            f"{FIRESTORE_BASE}/projects/{self.project_id}/databases/(default)"
            f"/documents/{settings.collection}"
        )

    # --- Helpers ---
    def build_headers(self) -> Dict[str, str]:
        headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
        if self.settings.id_token:
            headers["Authorization"] = f"Bearer {self.settings.id_token}"
        return headers

    def build_params(self, *pairs: Tuple[str, Any]) -> List[Tuple[str, Any]]:
        params = [p for p in pairs if p[1] is not None]
        if self.settings.api_key:
            params.append(("key", self.settings.api_key))
        return params

    def document_url(self, doc_id: str) -> str:
        return f"{self.collection_url}/{doc_id}"

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return request_with_retries(
                method,
                url,
                headers=self.build_headers(),
                timeout=self.settings.timeout,
                client=self.client,
                **kwargs,
            )
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                raise RecordNotFoundError(url) from exc
            raise

    @staticmethod
    def _json(resp: httpx.Response) -> Dict[str, Any]:
        try:
            return resp.json()
        except ValueError as exc:
            raise StoreHTTPError(
                f"Firestore returned non-JSON content (HTTP {resp.status_code})"
            ) from exc

    # --- RecordStore contract ---
    def list_documents(self) -> List[Document]:
        documents: List[Document] = []
        token: Optional[str] = None
        while True:
            params = self.build_params(("pageSize", PAGE_SIZE), ("pageToken", token))
            resp = self._request("GET", self.collection_url, params=params)
            page, token = parse_list_response(self._json(resp))
            documents.extend(page)
            logger.debug("Fetched %d documents (next page: %s)", len(page), bool(token))
            if not token:
                return documents

    async def alist_documents(self) -> List[Document]:
        documents: List[Document] = []
        token: Optional[str] = None
        while True:
            params = self.build_params(("pageSize", PAGE_SIZE), ("pageToken", token))
            resp = await async_request_with_retries(
                "GET",
                self.collection_url,
                params=params,
                headers=self.build_headers(),
                timeout=self.settings.timeout,
                client=self.async_client,
            )
            page, token = parse_list_response(self._json(resp))
            documents.extend(page)
            if not token:
                return documents

    def get_document(self, doc_id: str) -> Dict[str, Any]:
        resp = self._request("GET", self.document_url(doc_id), params=self.build_params())
        _, fields = parse_document(self._json(resp))
        return fields

    def create_document(self, data: Dict[str, Any]) -> str:
        data = dict(data)
        if not any(k in data for k in ("timestamp", "createdAt")):
            data["timestamp"] = datetime.now(timezone.utc)
        # No retries: a retried POST could create the entry twice
        resp = self._request(
            "POST",
            self.collection_url,
            params=self.build_params(),
            json={"fields": encode_fields(data)},
            max_attempts=1,
        )
        doc_id, _ = parse_document(self._json(resp))
        logger.info("Created document %s", doc_id)
        return doc_id

    def update_document(self, doc_id: str, changes: Dict[str, Any]) -> None:
        if not changes:
            return
        mask = [("updateMask.fieldPaths", field) for field in changes]
        params = self.build_params(*mask, ("currentDocument.exists", "true"))
        self._request(
            "PATCH",
            self.document_url(doc_id),
            params=params,
            json={"fields": encode_fields(changes)},
        )
        logger.info("Updated document %s (%s)", doc_id, ", ".join(changes))

    def delete_document(self, doc_id: str) -> None:
        self._request("DELETE", self.document_url(doc_id), params=self.build_params())
        logger.info("Deleted document %s", doc_id)
