"""Search and categorical filtering over normalized records."""

from __future__ import annotations

from enum import Enum
from typing import Iterable, List, Optional

from .models import FilterQuery, ShipmentRecord

ALL = "all"


def searchable_text(record: ShipmentRecord) -> List[str]:
    """Fields the free-text search looks at, in display order."""
    fields = [
        record.sender_name,
        record.receiver_name,
        record.tracking_number,
        record.carrier_name,
    ]
    if record.items:
        fields.append(record.items[0].item_name)
    return fields


def matches_text(record: ShipmentRecord, text: str) -> bool:
    needle = (text or "").lower()
    if not needle:
        return True
    return any(needle in value.lower() for value in searchable_text(record))


def _matches_category(value: str, wanted: Optional[str]) -> bool:
    if wanted is None or wanted == ALL:
        return True
    return value == wanted


def matches(record: ShipmentRecord, query: FilterQuery) -> bool:
    """True when the record passes the search text and every active filter."""
    return (
        matches_text(record, query.text)
        and _matches_category(record.status.value, query.status)
        and _matches_category(record.origin, query.origin)
    )


def filter_records(records: Iterable[ShipmentRecord], query: FilterQuery) -> List[ShipmentRecord]:
    return [r for r in records if matches(r, query)]


def distinct_values(records: Iterable[ShipmentRecord], attr: str) -> List[str]:
    """Non-empty values of ``attr`` in first-seen order, for filter dropdowns."""
    seen: List[str] = []
    for record in records:
        value = getattr(record, attr)
        if isinstance(value, Enum):
            value = value.value
        if value and value not in seen:
            seen.append(value)
    return seen
