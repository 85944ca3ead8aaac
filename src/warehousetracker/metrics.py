"""
Derived metrics over a single record or a record set.

Every function here is pure and recomputes from its input each call. Empty
input gives 0, never an error. Line items may be LineItem models or raw
item dicts straight from a document; invalid per-item values count as 0.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .models import (
    NOT_APPLICABLE,
    Dimensions,
    LineItem,
    MonthlyTrend,
    ReportMetrics,
    ShipmentRecord,
    ShipmentStatus,
)
from .utils import coerce_float, parse_date_like, to_utc

CM3_PER_M3 = 1_000_000
MS_PER_DAY = 86_400_000


def _item_number(item: Union[LineItem, Mapping[str, Any]], name: str) -> float:
    if isinstance(item, LineItem):
        return float(getattr(item, name))
    if isinstance(item, Mapping):
        return coerce_float(item.get(name))
    return 0.0


def total_weight(items: Iterable[Union[LineItem, Mapping[str, Any]]]) -> float:
    return sum((_item_number(i, "weight") for i in items), 0.0)


def total_value(items: Iterable[Union[LineItem, Mapping[str, Any]]]) -> float:
    return sum((_item_number(i, "value") for i in items), 0.0)


def total_quantity(items: Iterable[Union[LineItem, Mapping[str, Any]]]) -> int:
    return int(sum(_item_number(i, "quantity") for i in items))


def volume_cubic_meters(dimensions: Union[Dimensions, Mapping[str, Any], None]) -> float:
    """Volume in m³ from centimeter dimensions, rounded to 2 decimals."""
    if isinstance(dimensions, Dimensions):
        length, width, height = dimensions.length, dimensions.width, dimensions.height
    elif isinstance(dimensions, Mapping):
        length = coerce_float(dimensions.get("length"))
        width = coerce_float(dimensions.get("width"))
        height = coerce_float(dimensions.get("height"))
    else:
        return 0.0
    return round(length * width * height / CM3_PER_M3, 2)


def format_volume(dimensions: Union[Dimensions, Mapping[str, Any], None]) -> str:
    return f"{volume_cubic_meters(dimensions):.2f}"


def transit_days(departure: Any, arrival: Any) -> Union[int, str]:
    """Whole days from departure to arrival, rounded up.

    Returns "N/A" when either date is missing or unparseable; 0 would read as
    same-day transit.
    """
    start = parse_date_like(departure)
    end = parse_date_like(arrival)
    if start is None or end is None:
        return NOT_APPLICABLE
    elapsed_ms = (to_utc(end) - to_utc(start)).total_seconds() * 1000
    return math.ceil(elapsed_ms / MS_PER_DAY)


def average_of(values: Sequence[float]) -> float:
    values = list(values)
    if not values:
        return 0.0
    return sum(values) / len(values)


def record_transit_days(record: ShipmentRecord) -> Union[int, str]:
    return transit_days(record.departure_date, record.arrival_date)


def is_delivered(record: ShipmentRecord) -> bool:
    """Delivered for reporting: any stored status text mentioning "delivered"."""
    if record.status is ShipmentStatus.DELIVERED:
        return True
    return "delivered" in record.status_text.lower()


def record_delivery_days(record: ShipmentRecord) -> Optional[float]:
    """Recorded delivery time, else positive transit days, else None."""
    if record.delivery_days is not None:
        return record.delivery_days
    days = record_transit_days(record)
    if isinstance(days, int) and days > 0:
        return float(days)
    return None


def report_metrics(records: Sequence[ShipmentRecord]) -> ReportMetrics:
    """Headline numbers for the reports view."""
    delivery_days = [
        days for days in (record_delivery_days(r) for r in records)
        if days is not None
    ]
    return ReportMetrics(
        total_entries=len(records),
        total_weight=sum((r.weight for r in records), 0.0),
        delivered_orders=sum(1 for r in records if is_delivered(r)),
        average_delivery_days=average_of(delivery_days),
    )


def monthly_trends(records: Sequence[ShipmentRecord]) -> List[MonthlyTrend]:
    """Per-month entry count, weight and deliveries, oldest month first.

    Months come from ``created_at`` in UTC; records without one are left out.
    """
    months: Dict[str, MonthlyTrend] = {}
    for record in records:
        if record.created_at is None:
            continue
        month = to_utc(record.created_at).strftime("%Y-%m")
        trend = months.setdefault(month, MonthlyTrend(month=month))
        trend.entries += 1
        trend.weight += record.weight
        if is_delivered(record):
            trend.delivered += 1
    return [months[m] for m in sorted(months)]
