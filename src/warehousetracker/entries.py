"""Creating, editing and deleting warehouse entries in the record store.

Documents are written in the store's camelCase shape (the same shape the
normalizer reads back). Creating an entry with images uploads every image
first, concurrently, and only writes the document once all uploads
succeeded; a single failed upload fails the whole operation.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from .models import ShipmentStatus
from .normalizer import normalize_status
from .store.base import RecordStore
from .store.storage import BlobStorage, BlobUpload
from .utils import coerce_float, coerce_int, parse_date_like, serialize_dt

logger = logging.getLogger(__name__)

# python field name -> document key
DOCUMENT_KEYS: Dict[str, str] = {
    "sender_name": "senderName",
    "receiver_name": "receiverName",
    "carrier_name": "carrierName",
    "origin": "origin",
    "destination": "destination",
    "mode": "mode",
    "weight": "weight",
    "piece_count": "pieces",
    "dimensions": "dimensions",
    "description": "description",
    "status": "status",
    "tracking_number": "trackingNumber",
    "delivery_days": "deliveryTime",
    "arrival_date": "arrivalDate",
    "departure_date": "departureDate",
    "items": "items",
    "images": "images",
}


def _document_value(field: str, value: Any) -> Any:
    if field in ("weight", "delivery_days"):
        return coerce_float(value)
    if field == "piece_count":
        return coerce_int(value)
    if field == "status":
        return normalize_status(value).value
    if field == "dimensions":
        dims = value if isinstance(value, dict) else {}
        return {k: coerce_float(dims.get(k)) for k in ("length", "width", "height")}
    if field in ("arrival_date", "departure_date"):
        dt = parse_date_like(value)
        return serialize_dt(dt) if dt else ""
    return value


def build_document(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Map python-named entry fields to a store document.

    Unknown field names raise KeyError so typos don't silently vanish.
    """
    doc: Dict[str, Any] = {}
    for field, value in fields.items():
        if field not in DOCUMENT_KEYS:
            raise KeyError(f"Unknown entry field: {field}")
        doc[DOCUMENT_KEYS[field]] = _document_value(field, value)
    return doc


async def create_entry(
    store: RecordStore,
    fields: Dict[str, Any],
    *,
    images: Sequence[BlobUpload] = (),
    storage: Optional[BlobStorage] = None,
) -> str:
    """Upload images (all or nothing), then create the document. Returns its id."""
    doc = build_document(fields)
    doc.setdefault("status", ShipmentStatus.PENDING.value)
    if images:
        if storage is None:
            raise ValueError("Blob storage is required to upload images")
        paths: List[str] = await storage.upload_all(images)
        doc["images"] = list(doc.get("images") or []) + paths
    doc_id = await asyncio.to_thread(store.create_document, doc)
    logger.info("Created entry %s with %d images", doc_id, len(images))
    return doc_id


def update_entry(store: RecordStore, doc_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    """Apply an edit; returns the document changes that were written.

    A partial ``dimensions`` dict is merged into the stored one, since the
    store replaces map fields wholesale.
    """
    fields = dict(fields)
    if isinstance(fields.get("dimensions"), dict):
        current = store.get_document(doc_id).get("dimensions")
        current = current if isinstance(current, dict) else {}
        fields["dimensions"] = {**current, **fields["dimensions"]}
    changes = build_document(fields)
    store.update_document(doc_id, changes)
    return changes


def delete_entry(store: RecordStore, doc_id: str) -> None:
    store.delete_document(doc_id)
