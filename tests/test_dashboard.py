from datetime import datetime, timezone

import pytest

from warehousetracker.dashboard import (
    aload_records,
    build_report,
    entry_details,
    load_record,
    load_records,
    query_records,
    remove_record,
    replace_record,
)
from warehousetracker.models import FilterQuery, SortKey
from warehousetracker.normalizer import normalize
from warehousetracker.store import InMemoryStore, RecordNotFoundError

NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)

DOCS = [
    ("a", {"senderName": "Acme", "weight": 10, "status": "Delivered", "origin": "Air",
           "destination": "Durban", "mode": "Air", "carrierName": "DHL",
           "timestamp": "2024-03-01T00:00:00Z",
           "departureDate": "2024-03-01", "arrivalDate": "2024-03-05"}),
    ("b", {"senderName": "Globex", "numberOfPieces": 2, "weight": "30", "status": "In Transit",
           "origin": "Sea", "destination": "Durban", "mode": "Sea", "carrierName": "Maersk",
           "timestamp": "2024-04-01T00:00:00Z"}),
    ("c", {"senderName": "Initech", "weight": 20, "origin": "Air"}),
]


def test_load_and_query_records():
    records = load_records(InMemoryStore(DOCS))
    assert [r.id for r in records] == ["a", "b", "c"]
    shown = query_records(records, FilterQuery(origin="Air"), SortKey.WEIGHT)
    assert [r.id for r in shown] == ["c", "a"]
    newest = query_records(records, now=NOW)
    assert [r.id for r in newest] == ["c", "b", "a"]


@pytest.mark.asyncio
async def test_aload_records_matches_sync():
    store = InMemoryStore(DOCS)
    assert [r.id for r in await aload_records(store)] == [r.id for r in load_records(store)]


def test_load_record_missing():
    with pytest.raises(RecordNotFoundError):
        load_record(InMemoryStore(DOCS), "zzz")


def test_entry_details():
    record = normalize(
        {
            "dimensions": {"length": 100, "width": 50, "height": 20},
            "items": [
                {"itemName": "Box", "weight": 10, "value": 100, "quantity": 2},
                {"itemName": "Crate", "weight": 5, "value": 50, "quantity": 1},
            ],
            "departureDate": "2024-01-01",
            "arrivalDate": "2024-01-04",
        },
        doc_id="x",
    )
    d = entry_details(record)
    assert d.total_weight == 15
    assert d.total_value == 150
    assert d.total_quantity == 3
    assert d.volume_m3 == pytest.approx(0.1)
    assert d.transit_days == 3
    assert d.item_count == 2


def test_entry_details_without_dates_or_items():
    d = entry_details(normalize({}, doc_id="y"))
    assert d.transit_days == "N/A"
    assert d.total_weight == 0 and d.item_count == 0


def test_derived_totals_follow_edits():
    record = normalize({"items": [{"weight": 1}]}, doc_id="z")
    assert entry_details(record).total_weight == 1
    edited = normalize({"items": [{"weight": 1}, {"weight": 4}]}, doc_id="z")
    assert entry_details(edited).total_weight == 5


def test_build_report():
    report = build_report(load_records(InMemoryStore(DOCS)), top_n=1)
    assert report.has_entries
    assert report.metrics.total_entries == 3
    assert report.metrics.total_weight == 60
    assert report.metrics.delivered_orders == 1
    assert report.metrics.average_delivery_days == 4
    assert [(b.key, b.count) for b in report.top_destinations] == [("Durban", 2)]
    assert {b.key for b in report.status_distribution} == {"Delivered", "In Transit", "Pending"}
    assert [b.key for b in report.mode_distribution] == ["Air", "Sea", "Unknown"]
    assert all(b.color for b in report.carrier_distribution)
    assert [(b.key, b.count, b.percentage) for b in report.origin_distribution] == [
        ("Air", 2, 67),
        ("Sea", 1, 33),
    ]
    assert [(t.month, t.entries, t.weight, t.delivered) for t in report.monthly_trends] == [
        ("2024-03", 1, 10.0, 1),
        ("2024-04", 1, 30.0, 0),
    ]


def test_build_report_empty():
    report = build_report([])
    assert not report.has_entries
    assert report.status_distribution == []
    assert report.top_destinations == []
    assert report.origin_distribution == []
    assert report.monthly_trends == []


def test_local_patch_helpers():
    records = load_records(InMemoryStore(DOCS))
    updated = normalize({"senderName": "Changed"}, doc_id="b")
    patched = replace_record(records, updated)
    assert [r.sender_name for r in patched] == ["Acme", "Changed", "Initech"]
    assert records[1].sender_name == "Globex"
    assert [r.id for r in remove_record(patched, "a")] == ["b", "c"]
