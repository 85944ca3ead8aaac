import math
from datetime import datetime, timezone

import pytest

from warehousetracker.models import ShipmentStatus
from warehousetracker.normalizer import (
    NormalizerDefaults,
    normalize,
    normalize_all,
    normalize_image,
    normalize_status,
)


def test_empty_document_gets_every_default():
    r = normalize({}, doc_id="abc")
    assert r.id == "abc"
    assert r.sender_name == ""
    assert r.receiver_name == ""
    assert r.carrier_name == ""
    assert r.origin == ""
    assert r.destination == ""
    assert r.mode == ""
    assert r.description == ""
    assert r.weight == 0.0
    assert r.piece_count == 0
    assert (r.dimensions.length, r.dimensions.width, r.dimensions.height) == (0, 0, 0)
    assert r.status == ShipmentStatus.PENDING
    assert r.tracking_number == "-"
    assert r.arrival_date is None and r.departure_date is None and r.created_at is None
    assert r.items == [] and r.images == []


@pytest.mark.parametrize("raw", [None, [], "text", 42])
def test_non_mapping_input_is_treated_as_empty(raw):
    r = normalize(raw, doc_id="x")
    assert r.weight == 0.0
    assert r.status == ShipmentStatus.PENDING


def test_new_field_name_preferred_over_legacy():
    r = normalize({"pieces": 4, "numberOfPieces": 9})
    assert r.piece_count == 4


def test_legacy_field_name_used_when_new_missing():
    r = normalize({"numberOfPieces": "7"})
    assert r.piece_count == 7


def test_resolution_is_per_field_for_mixed_documents():
    raw = {
        "numberOfPieces": 3,
        "totalWeight": "12.5",
        "shipmentStatus": "Delivered",
        "senderName": "ACME",
    }
    r = normalize(raw)
    assert r.piece_count == 3
    assert r.weight == 12.5
    assert r.status == ShipmentStatus.DELIVERED
    assert r.sender_name == "ACME"


@pytest.mark.parametrize(
    "value, expected",
    [("", 0.0), ("abc", 0.0), ("3.5", 3.5), (-4, 0.0), ("-2", 0.0), (float("nan"), 0.0), (True, 0.0), (None, 0.0)],
)
def test_weight_coercion(value, expected):
    r = normalize({"weight": value})
    assert r.weight == expected
    assert not math.isnan(r.weight + 1)


def test_piece_count_truncates_fractional_strings():
    assert normalize({"pieces": "3.7"}).piece_count == 3
    assert normalize({"pieces": "many"}).piece_count == 0


def test_partial_dimensions_are_defaulted_field_by_field():
    r = normalize({"dimensions": {"length": "40"}})
    assert r.dimensions.length == 40.0
    assert r.dimensions.width == 0.0
    assert r.dimensions.height == 0.0


def test_item_dimensions_and_names():
    r = normalize(
        {
            "items": [
                {"itemName": "Laptop", "weight": "2", "dimensions": {"width": 30}, "quantity": "2", "value": 999},
                {"name": "Charger"},
                "garbage",
            ]
        }
    )
    assert [i.item_name for i in r.items] == ["Laptop", "Charger", ""]
    assert r.items[0].weight == 2.0
    assert r.items[0].dimensions.width == 30.0
    assert r.items[0].dimensions.length == 0.0
    assert r.items[0].quantity == 2
    assert r.items[1].value == 0.0


@pytest.mark.parametrize(
    "value, expected",
    [
        ("Delivered", ShipmentStatus.DELIVERED),
        ("in transit", ShipmentStatus.IN_TRANSIT),
        ("IN_TRANSIT", ShipmentStatus.IN_TRANSIT),
        (" Delayed ", ShipmentStatus.DELAYED),
        ("Lost at sea", ShipmentStatus.PENDING),
        (None, ShipmentStatus.PENDING),
        (3, ShipmentStatus.PENDING),
    ],
)
def test_status_is_always_one_of_the_fixed_set(value, expected):
    assert normalize_status(value) == expected


def test_custom_defaults_are_used():
    defaults = NormalizerDefaults(tracking_placeholder="n/a", status=ShipmentStatus.DELAYED)
    r = normalize({"status": "weird"}, defaults=defaults)
    assert r.tracking_number == "n/a"
    assert r.status == ShipmentStatus.DELAYED


def test_defaults_are_immutable():
    defaults = NormalizerDefaults()
    with pytest.raises(Exception):
        defaults.tracking_placeholder = "x"


def test_blank_tracking_number_uses_placeholder():
    assert normalize({"trackingNumber": "   "}).tracking_number == "-"
    assert normalize({"trackingNumber": "TRK1"}).tracking_number == "TRK1"


def test_dates_from_various_shapes():
    r = normalize(
        {
            "timestamp": {"seconds": 1704067200, "nanos": 0},
            "departureDate": "2024-01-01",
            "arrivalDate": "not a date",
        }
    )
    assert r.created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert r.departure_date == datetime(2024, 1, 1)
    assert r.arrival_date is None


def test_created_at_prefers_created_at_over_timestamp():
    r = normalize({"createdAt": "2024-05-01T10:00:00Z", "timestamp": "2023-01-01"})
    assert r.created_at == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)


def test_image_classification():
    placeholder = "/placeholder.svg"
    assert normalize_image("https://cdn.example.com/a.jpg", placeholder).url == "https://cdn.example.com/a.jpg"
    assert normalize_image({"url": "https://x/y.png"}, placeholder).url == "https://x/y.png"
    ref = normalize_image("shipments/abc.jpg", placeholder)
    assert ref.url is None and ref.path == "shipments/abc.jpg" and ref.needs_resolution
    assert normalize_image(None, placeholder).url == placeholder
    assert normalize_image({}, placeholder).url == placeholder


def test_image_order_is_preserved():
    r = normalize({"images": ["https://a", 5, "path/b.png"]})
    assert [img.url or img.path for img in r.images] == ["https://a", "/placeholder.svg", "path/b.png"]


def test_normalize_all_keeps_duplicate_ids_and_order():
    docs = [("1", {"senderName": "a"}), ("1", {"senderName": "b"}), ("2", {})]
    records = normalize_all(docs)
    assert [r.id for r in records] == ["1", "1", "2"]
    assert [r.sender_name for r in records] == ["a", "b", ""]


def test_doc_id_overrides_embedded_id():
    assert normalize({"id": "inner"}, doc_id="outer").id == "outer"
    assert normalize({"id": "inner"}).id == "inner"


def test_huge_integers_fall_back_to_defaults():
    r = normalize({"weight": 10**400, "createdAt": 10**400, "arrivalDate": {"seconds": 10**400}})
    assert r.weight == 0.0
    assert r.created_at is None
    assert r.arrival_date is None


def test_huge_integer_from_json_file_still_loads():
    from warehousetracker.dashboard import load_records
    from warehousetracker.store import InMemoryStore

    store = InMemoryStore.from_json('[{"id": "a", "weight": 1' + "0" * 400 + ', "senderName": "Acme"}]')
    records = load_records(store)
    assert [(r.id, r.sender_name, r.weight) for r in records] == [("a", "Acme", 0.0)]


def test_status_text_and_delivery_days():
    r = normalize({"Status": "Delivered - signed", "deliveryTime": 0, "deliveryDays": "2.5"})
    assert r.status_text == "Delivered - signed"
    assert r.status == ShipmentStatus.PENDING
    assert r.delivery_days == 2.5
    blank = normalize({"estimatedDeliveryTime": -3})
    assert blank.status_text == ""
    assert blank.delivery_days is None
