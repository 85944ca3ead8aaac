"""Ordering of the entries list.

Python's list.sort is stable, so records the comparator considers equal keep
their input order and rows don't jump around between refreshes.
"""

from __future__ import annotations

from datetime import datetime, timezone
from functools import cmp_to_key
from typing import Iterable, List, Optional, Union

from .models import ShipmentRecord, SortKey
from .utils import to_utc


def _cmp(x, y) -> int:
    return (x > y) - (x < y)


def created_timestamp(record: ShipmentRecord, now: datetime) -> float:
    # Entries without a usable creation date count as created "now", so they
    # sort ahead of everything dated.
    created = record.created_at or now
    return to_utc(created).timestamp()


def compare(
    a: ShipmentRecord,
    b: ShipmentRecord,
    key: Union[SortKey, str],
    now: Optional[datetime] = None,
) -> int:
    """Comparator for ``key``: negative if ``a`` sorts first, positive if ``b``.

    - dateCreated: newest first
    - weight: heaviest first
    - status: ascending by status label
    Unknown keys compare everything equal.
    """
    try:
        key = SortKey(key)
    except ValueError:
        return 0
    if key is SortKey.DATE_CREATED:
        now = now or datetime.now(timezone.utc)
        return _cmp(created_timestamp(b, now), created_timestamp(a, now))
    if key is SortKey.WEIGHT:
        return _cmp(b.weight, a.weight)
    return _cmp(a.status.value, b.status.value)


def sort_records(
    records: Iterable[ShipmentRecord],
    key: Union[SortKey, str] = SortKey.DATE_CREATED,
    now: Optional[datetime] = None,
) -> List[ShipmentRecord]:
    """Return a new, stably sorted list. ``now`` is fixed once per call."""
    now = now or datetime.now(timezone.utc)
    return sorted(records, key=cmp_to_key(lambda a, b: compare(a, b, key, now)))
