"""
Grouping records into ranked, percentage-annotated buckets.

Percentages are rounded per bucket (half up), so a distribution may sum to
99 or 101; bucket counts always sum to the number of records.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Sequence

from .models import DistributionBucket, ShipmentRecord, ShipmentStatus
from .utils import round_half_up

UNKNOWN = "Unknown"

STATUS_COLORS: Dict[ShipmentStatus, str] = {
    ShipmentStatus.DELIVERED: "#10B981",
    ShipmentStatus.IN_TRANSIT: "#3B82F6",
    ShipmentStatus.PENDING: "#F59E0B",
    ShipmentStatus.DELAYED: "#EF4444",
}

CATEGORY_SATURATION = 65
CATEGORY_LIGHTNESS = 50


def status_color(status: ShipmentStatus) -> str:
    return STATUS_COLORS.get(status, STATUS_COLORS[ShipmentStatus.PENDING])


def category_hue(label: str) -> int:
    """Stable hue in [0, 360) for an arbitrary category label."""
    h = 0
    for ch in label:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    return h % 360


def category_color(label: str) -> str:
    return f"hsl({category_hue(label)}, {CATEGORY_SATURATION}%, {CATEGORY_LIGHTNESS}%)"


def status_key(record: ShipmentRecord) -> str:
    return record.status.value


def _label_or_unknown(value: str) -> str:
    value = (value or "").strip()
    return value or UNKNOWN


def destination_key(record: ShipmentRecord) -> str:
    return _label_or_unknown(record.destination)


def origin_key(record: ShipmentRecord) -> str:
    return _label_or_unknown(record.origin)


def mode_key(record: ShipmentRecord) -> str:
    return _label_or_unknown(record.mode)


def carrier_key(record: ShipmentRecord) -> str:
    return _label_or_unknown(record.carrier_name)


def build_distribution(
    records: Sequence[ShipmentRecord],
    key_fn: Callable[[ShipmentRecord], str],
    *,
    top_n: Optional[int] = None,
    color_fn: Optional[Callable[[str], str]] = None,
) -> List[DistributionBucket]:
    """Group ``records`` by ``key_fn`` into buckets sorted by count, descending.

    Ties keep first-encountered key order. ``top_n`` truncates after sorting.
    An empty record set yields an empty list.
    """
    total = len(records)
    if total == 0:
        return []

    counts: Dict[str, int] = {}
    for record in records:
        key = key_fn(record)
        counts[key] = counts.get(key, 0) + 1

    ranked = sorted(counts.items(), key=lambda kv: -kv[1])
    if top_n is not None:
        ranked = ranked[: max(top_n, 0)]

    return [
        DistributionBucket(
            key=key,
            count=count,
            percentage=round_half_up(100 * count / total),
            color=color_fn(key) if color_fn else None,
        )
        for key, count in ranked
    ]


def status_distribution(records: Sequence[ShipmentRecord]) -> List[DistributionBucket]:
    return build_distribution(
        records, status_key, color_fn=lambda key: status_color(ShipmentStatus(key))
    )


def top_destinations(records: Sequence[ShipmentRecord], n: int = 5) -> List[DistributionBucket]:
    return build_distribution(records, destination_key, top_n=n, color_fn=category_color)
