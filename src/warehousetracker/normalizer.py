"""
Record normalization: loosely-typed store documents -> ShipmentRecord.

Documents written by different versions of the entry form disagree on field
names (``pieces`` vs ``numberOfPieces``, ``status`` vs ``shipmentStatus`` ...).
Each logical field has an ordered list of candidate source keys; the first
candidate holding a usable value wins. Resolution happens per field, so a
document mixing old and new names is still read completely.

normalize() is total: it never raises for dict input, whatever it contains.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

from .models import Dimensions, ImageRef, LineItem, ShipmentRecord, ShipmentStatus
from .utils import coerce_float, coerce_int, coerce_str, parse_date_like


# Ordered candidate keys per logical field, first match wins.
FIELD_CANDIDATES: Dict[str, Tuple[str, ...]] = {
    "sender_name": ("senderName", "sender"),
    "receiver_name": ("receiverName", "receiver"),
    "carrier_name": ("carrierName", "carrier"),
    "origin": ("origin", "originCity"),
    "destination": ("destination", "destinationCity", "destinationAddress", "city"),
    "mode": ("mode", "transportMode"),
    "weight": ("weight", "totalWeight", "Weight"),
    "piece_count": ("pieces", "numberOfPieces"),
    "dimensions": ("dimensions",),
    "description": ("description",),
    "status": ("status", "Status", "shipmentStatus"),
    "tracking_number": ("trackingNumber", "tracking"),
    "delivery_days": ("deliveryTime", "deliveryDays", "estimatedDeliveryTime"),
    "arrival_date": ("arrivalDate",),
    "departure_date": ("departureDate",),
    "created_at": ("createdAt", "timestamp", "dateCreated"),
    "items": ("items",),
    "images": ("images",),
}

ITEM_FIELD_CANDIDATES: Dict[str, Tuple[str, ...]] = {
    "item_name": ("itemName", "name"),
    "weight": ("weight",),
    "dimensions": ("dimensions",),
    "quantity": ("quantity", "qty"),
    "value": ("value",),
    "description": ("description",),
}


class NormalizerDefaults(BaseModel):
    """Fallback values used when a document lacks a field.

    Immutable; pass a custom instance to normalize() rather than changing
    module state.
    """

    tracking_placeholder: str = "-"
    status: ShipmentStatus = ShipmentStatus.PENDING
    placeholder_image: str = "/placeholder.svg"

    model_config = ConfigDict(frozen=True)


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def resolve_field(raw: Mapping[str, Any], candidates: Sequence[str]) -> Any:
    """Return the value of the first candidate key present with a usable value."""
    for key in candidates:
        value = raw.get(key)
        if not _is_missing(value):
            return value
    return None


def _status_token(text: str) -> str:
    return " ".join(text.replace("_", " ").replace("-", " ").split()).lower()


_STATUS_BY_TOKEN = {_status_token(s.value): s for s in ShipmentStatus}


def normalize_status(value: Any, default: ShipmentStatus = ShipmentStatus.PENDING) -> ShipmentStatus:
    """Map a stored status to one of the fixed statuses; unknown -> default."""
    if isinstance(value, ShipmentStatus):
        return value
    if not isinstance(value, str):
        return default
    return _STATUS_BY_TOKEN.get(_status_token(value), default)


def normalize_dimensions(value: Any) -> Dimensions:
    """Default each dimension independently; a partial dict keeps what it has."""
    if not isinstance(value, Mapping):
        return Dimensions()
    return Dimensions(
        length=coerce_float(value.get("length")),
        width=coerce_float(value.get("width")),
        height=coerce_float(value.get("height")),
    )


def normalize_item(raw: Any) -> LineItem:
    if not isinstance(raw, Mapping):
        return LineItem()
    return LineItem(
        item_name=coerce_str(resolve_field(raw, ITEM_FIELD_CANDIDATES["item_name"])),
        weight=coerce_float(resolve_field(raw, ITEM_FIELD_CANDIDATES["weight"])),
        dimensions=normalize_dimensions(resolve_field(raw, ITEM_FIELD_CANDIDATES["dimensions"])),
        quantity=coerce_int(resolve_field(raw, ITEM_FIELD_CANDIDATES["quantity"])),
        value=coerce_float(resolve_field(raw, ITEM_FIELD_CANDIDATES["value"])),
        description=coerce_str(resolve_field(raw, ITEM_FIELD_CANDIDATES["description"])),
    )


def normalize_image(raw: Any, placeholder: str) -> ImageRef:
    """Classify one stored image entry.

    - "http..." string: literal URL
    - {"url": ...}: URL descriptor
    - other non-empty string, or {"path": ...}: storage path to resolve later
    - anything else: placeholder
    """
    if isinstance(raw, str):
        text = raw.strip()
        if text.startswith("http://") or text.startswith("https://"):
            return ImageRef(url=text)
        if text:
            return ImageRef(path=text)
    elif isinstance(raw, Mapping):
        url = raw.get("url")
        if isinstance(url, str) and url.strip():
            return ImageRef(url=url.strip())
        path = raw.get("path") or raw.get("fullPath")
        if isinstance(path, str) and path.strip():
            return ImageRef(path=path.strip())
    return ImageRef(url=placeholder)


def first_positive(raw: Mapping[str, Any], candidates: Sequence[str]) -> Optional[float]:
    """First candidate holding a number above zero; zero counts as unset."""
    for key in candidates:
        number = coerce_float(raw.get(key))
        if number > 0:
            return number
    return None


def _as_list(value: Any) -> List[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


def normalize(
    raw: Any,
    *,
    doc_id: Optional[str] = None,
    defaults: Optional[NormalizerDefaults] = None,
) -> ShipmentRecord:
    """Normalize one stored document into a canonical ShipmentRecord.

    ``doc_id`` takes precedence over an ``id`` key inside the document (store
    documents usually carry their id out of band).
    """
    defaults = defaults or NormalizerDefaults()
    data: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}

    def field(name: str) -> Any:
        return resolve_field(data, FIELD_CANDIDATES[name])

    record_id = doc_id if doc_id is not None else coerce_str(data.get("id"))
    tracking = coerce_str(field("tracking_number")).strip()
    status_raw = field("status")

    return ShipmentRecord(
        id=record_id,
        sender_name=coerce_str(field("sender_name")),
        receiver_name=coerce_str(field("receiver_name")),
        carrier_name=coerce_str(field("carrier_name")),
        origin=coerce_str(field("origin")),
        destination=coerce_str(field("destination")),
        mode=coerce_str(field("mode")),
        weight=coerce_float(field("weight")),
        piece_count=coerce_int(field("piece_count")),
        dimensions=normalize_dimensions(field("dimensions")),
        description=coerce_str(field("description")),
        status=normalize_status(status_raw, defaults.status),
        status_text=coerce_str(status_raw).strip(),
        tracking_number=tracking or defaults.tracking_placeholder,
        delivery_days=first_positive(data, FIELD_CANDIDATES["delivery_days"]),
        arrival_date=parse_date_like(field("arrival_date")),
        departure_date=parse_date_like(field("departure_date")),
        created_at=parse_date_like(field("created_at")),
        items=[normalize_item(item) for item in _as_list(field("items"))],
        images=[
            normalize_image(img, defaults.placeholder_image)
            for img in _as_list(field("images"))
        ],
    )


def normalize_all(
    documents: Sequence[Tuple[str, Any]],
    *,
    defaults: Optional[NormalizerDefaults] = None,
) -> List[ShipmentRecord]:
    """Normalize (id, document) pairs, preserving order and duplicate ids."""
    defaults = defaults or NormalizerDefaults()
    return [normalize(doc, doc_id=doc_id, defaults=defaults) for doc_id, doc in documents]
