"""Flat, serializable projection of records for spreadsheet/CSV/JSON export."""

from __future__ import annotations

import csv
import json
from typing import Any, Dict, IO, List, Sequence

from .models import ShipmentRecord
from .utils import serialize_dt

EXPORT_COLUMNS = [
    "id",
    "sender_name",
    "receiver_name",
    "carrier_name",
    "origin",
    "destination",
    "mode",
    "weight",
    "piece_count",
    "dimensions_length",
    "dimensions_width",
    "dimensions_height",
    "description",
    "status",
    "tracking_number",
    "arrival_date",
    "departure_date",
    "created_at",
    "items",
    "images",
]


def flatten_record(record: ShipmentRecord) -> Dict[str, Any]:
    """One flat row per record; nested values become scalars or JSON text."""
    def dt(value):
        return serialize_dt(value) if value else ""

    return {
        "id": record.id,
        "sender_name": record.sender_name,
        "receiver_name": record.receiver_name,
        "carrier_name": record.carrier_name,
        "origin": record.origin,
        "destination": record.destination,
        "mode": record.mode,
        "weight": record.weight,
        "piece_count": record.piece_count,
        "dimensions_length": record.dimensions.length,
        "dimensions_width": record.dimensions.width,
        "dimensions_height": record.dimensions.height,
        "description": record.description,
        "status": record.status.value,
        "tracking_number": record.tracking_number,
        "arrival_date": dt(record.arrival_date),
        "departure_date": dt(record.departure_date),
        "created_at": dt(record.created_at),
        "items": json.dumps([i.model_dump() for i in record.items]),
        "images": " | ".join(img.url or img.path or "" for img in record.images),
    }


def to_rows(records: Sequence[ShipmentRecord]) -> List[Dict[str, Any]]:
    return [flatten_record(r) for r in records]


def write_csv(records: Sequence[ShipmentRecord], fp: IO[str]) -> int:
    writer = csv.DictWriter(fp, fieldnames=EXPORT_COLUMNS)
    writer.writeheader()
    rows = to_rows(records)
    writer.writerows(rows)
    return len(rows)


def write_json(records: Sequence[ShipmentRecord], fp: IO[str]) -> int:
    json.dump([r.model_dump(mode="json") for r in records], fp, indent=2)
    fp.write("\n")
    return len(records)
