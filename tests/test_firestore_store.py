import json
from datetime import datetime, timezone

import httpx
import pytest

from warehousetracker.config import Settings
from warehousetracker.store import FirestoreStore, MissingCredentialsError, RecordNotFoundError
from warehousetracker.store.firestore import decode_fields, encode_fields, encode_value

SETTINGS = Settings(project_id="demo", api_key="web-key", collection="shipments")
PREFIX = "projects/demo/databases/(default)/documents/shipments"


def _doc(doc_id, fields):
    return {"name": f"{PREFIX}/{doc_id}", "fields": encode_fields(fields)}


def test_decode_sample_document():
    fields = {
        "senderName": {"stringValue": "Acme"},
        "pieces": {"integerValue": "3"},
        "weight": {"doubleValue": 12.5},
        "fragile": {"booleanValue": True},
        "note": {"nullValue": None},
        "timestamp": {"timestampValue": "2024-05-01T10:00:00.123456789Z"},
        "dimensions": {"mapValue": {"fields": {"length": {"integerValue": "40"}}}},
        "images": {"arrayValue": {"values": [{"stringValue": "shipments/a.jpg"}]}},
        "empty": {"arrayValue": {}},
    }
    decoded = decode_fields(fields)
    assert decoded["senderName"] == "Acme"
    assert decoded["pieces"] == 3
    assert decoded["weight"] == 12.5
    assert decoded["fragile"] is True
    assert decoded["note"] is None
    assert decoded["timestamp"] == datetime(2024, 5, 1, 10, 0, 0, 123456, tzinfo=timezone.utc)
    assert decoded["dimensions"] == {"length": 40}
    assert decoded["images"] == ["shipments/a.jpg"]
    assert decoded["empty"] == []


def test_encode_values():
    assert encode_value(True) == {"booleanValue": True}
    assert encode_value(3) == {"integerValue": "3"}
    assert encode_value(2.5) == {"doubleValue": 2.5}
    assert encode_value(None) == {"nullValue": None}
    assert encode_value(datetime(2024, 1, 1, tzinfo=timezone.utc)) == {"timestampValue": "2024-01-01T00:00:00Z"}
    assert encode_value({"a": [1]}) == {
        "mapValue": {"fields": {"a": {"arrayValue": {"values": [{"integerValue": "1"}]}}}}
    }


def test_missing_project_id():
    with pytest.raises(MissingCredentialsError):
        FirestoreStore(Settings())


def test_list_documents_follows_pages():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        assert request.url.params.get("key") == "web-key"
        if request.url.params.get("pageToken") == "p2":
            return httpx.Response(200, json={"documents": [_doc("c", {"senderName": "C"})]})
        return httpx.Response(
            200,
            json={
                "documents": [_doc("a", {"senderName": "A"}), _doc("b", {"pieces": 2})],
                "nextPageToken": "p2",
            },
        )

    store = FirestoreStore(SETTINGS, client=httpx.Client(transport=httpx.MockTransport(handler)))
    docs = store.list_documents()
    assert [d[0] for d in docs] == ["a", "b", "c"]
    assert docs[1][1] == {"pieces": 2}
    assert len(seen) == 2
    assert seen[0].url.path.endswith("/documents/shipments")


def test_empty_collection():
    store = FirestoreStore(
        SETTINGS,
        client=httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={}))),
    )
    assert store.list_documents() == []


def test_get_document_not_found():
    def handler(request):
        return httpx.Response(404, json={"error": {"status": "NOT_FOUND"}})

    store = FirestoreStore(SETTINGS, client=httpx.Client(transport=httpx.MockTransport(handler)))
    with pytest.raises(RecordNotFoundError):
        store.get_document("nope")


def test_transient_errors_are_retried(monkeypatch):
    monkeypatch.setattr("warehousetracker.utils.time.sleep", lambda s: None)
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        if calls["n"] == 1:
            return httpx.Response(503)
        return httpx.Response(200, json=_doc("a", {"senderName": "A"}))

    store = FirestoreStore(SETTINGS, client=httpx.Client(transport=httpx.MockTransport(handler)))
    assert store.get_document("a") == {"senderName": "A"}
    assert calls["n"] == 2


def test_permission_denied_propagates():
    store = FirestoreStore(
        SETTINGS,
        client=httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(403, json={}))),
    )
    with pytest.raises(httpx.HTTPStatusError):
        store.list_documents()


def test_create_document_adds_timestamp_and_returns_id():
    captured = {}

    def handler(request):
        captured["method"] = request.method
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"name": f"{PREFIX}/NEWID", "fields": captured["body"]["fields"]})

    store = FirestoreStore(SETTINGS, client=httpx.Client(transport=httpx.MockTransport(handler)))
    doc_id = store.create_document({"senderName": "Acme", "pieces": 2})
    assert doc_id == "NEWID"
    assert captured["method"] == "POST"
    fields = captured["body"]["fields"]
    assert fields["senderName"] == {"stringValue": "Acme"}
    assert fields["pieces"] == {"integerValue": "2"}
    assert "timestampValue" in fields["timestamp"]


def test_create_document_is_not_retried():
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        return httpx.Response(503)

    store = FirestoreStore(SETTINGS, client=httpx.Client(transport=httpx.MockTransport(handler)))
    with pytest.raises(httpx.HTTPStatusError):
        store.create_document({"senderName": "Acme"})
    assert calls["n"] == 1


def test_update_document_uses_field_mask():
    captured = {}

    def handler(request):
        captured["method"] = request.method
        captured["mask"] = request.url.params.get_list("updateMask.fieldPaths")
        captured["exists"] = request.url.params.get("currentDocument.exists")
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json=_doc("a", {}))

    store = FirestoreStore(SETTINGS, client=httpx.Client(transport=httpx.MockTransport(handler)))
    store.update_document("a", {"status": "Delivered", "weight": 3.0})
    assert captured["method"] == "PATCH"
    assert captured["mask"] == ["status", "weight"]
    assert captured["exists"] == "true"
    assert captured["body"]["fields"]["status"] == {"stringValue": "Delivered"}


def test_delete_document():
    methods = []

    def handler(request):
        methods.append((request.method, request.url.path))
        return httpx.Response(200, json={})

    store = FirestoreStore(SETTINGS, client=httpx.Client(transport=httpx.MockTransport(handler)))
    store.delete_document("a")
    assert len(methods) == 1
    assert methods[0][0] == "DELETE"
    assert methods[0][1].endswith("/documents/shipments/a")


@pytest.mark.asyncio
async def test_alist_documents():
    def handler(request):
        return httpx.Response(200, json={"documents": [_doc("a", {"weight": 1.5})]})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as ac:
        store = FirestoreStore(SETTINGS, async_client=ac)
        docs = await store.alist_documents()
    assert docs == [("a", {"weight": 1.5})]


def test_bearer_token_header():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={})

    settings = Settings(project_id="demo", id_token="tok")
    store = FirestoreStore(settings, client=httpx.Client(transport=httpx.MockTransport(handler)))
    store.list_documents()
    assert seen["auth"] == "Bearer tok"
