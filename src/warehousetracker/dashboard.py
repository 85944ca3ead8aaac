"""
Composition used by the presentation layer.

Each view fetches the whole collection, normalizes it, and derives what it
shows from that snapshot; nothing here caches between calls. Store errors
propagate to the caller, which decides how to surface them.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence, Union

from .distribution import (
    build_distribution,
    carrier_key,
    category_color,
    mode_key,
    origin_key,
    status_distribution,
    top_destinations,
)
from .filters import filter_records
from .metrics import (
    monthly_trends,
    record_transit_days,
    report_metrics,
    total_quantity,
    total_value,
    total_weight,
    volume_cubic_meters,
)
from .models import EntryDetails, FilterQuery, Report, ShipmentRecord, SortKey
from .normalizer import NormalizerDefaults, normalize, normalize_all
from .sorting import sort_records
from .store.base import RecordStore


def load_records(
    store: RecordStore, defaults: Optional[NormalizerDefaults] = None
) -> List[ShipmentRecord]:
    return normalize_all(store.list_documents(), defaults=defaults)


async def aload_records(
    store: RecordStore, defaults: Optional[NormalizerDefaults] = None
) -> List[ShipmentRecord]:
    return normalize_all(await store.alist_documents(), defaults=defaults)


def load_record(
    store: RecordStore, doc_id: str, defaults: Optional[NormalizerDefaults] = None
) -> ShipmentRecord:
    return normalize(store.get_document(doc_id), doc_id=doc_id, defaults=defaults)


def query_records(
    records: Sequence[ShipmentRecord],
    query: Optional[FilterQuery] = None,
    sort_key: Union[SortKey, str] = SortKey.DATE_CREATED,
    now: Optional[datetime] = None,
) -> List[ShipmentRecord]:
    """Filtered, then stably sorted, view of ``records``."""
    return sort_records(filter_records(records, query or FilterQuery()), sort_key, now=now)


def replace_record(
    records: Sequence[ShipmentRecord], updated: ShipmentRecord
) -> List[ShipmentRecord]:
    """Local patch after an edit: swap in every record carrying ``updated.id``."""
    return [updated if r.id == updated.id else r for r in records]


def remove_record(records: Sequence[ShipmentRecord], doc_id: str) -> List[ShipmentRecord]:
    return [r for r in records if r.id != doc_id]


def entry_details(record: ShipmentRecord) -> EntryDetails:
    return EntryDetails(
        record=record,
        total_weight=total_weight(record.items),
        total_value=total_value(record.items),
        total_quantity=total_quantity(record.items),
        volume_m3=volume_cubic_meters(record.dimensions),
        transit_days=record_transit_days(record),
        item_count=len(record.items),
    )


def build_report(records: Sequence[ShipmentRecord], top_n: int = 5) -> Report:
    return Report(
        metrics=report_metrics(records),
        status_distribution=status_distribution(records),
        top_destinations=top_destinations(records, top_n),
        mode_distribution=build_distribution(records, mode_key, color_fn=category_color),
        origin_distribution=build_distribution(records, origin_key, color_fn=category_color),
        carrier_distribution=build_distribution(records, carrier_key, color_fn=category_color),
        monthly_trends=monthly_trends(records),
    )
