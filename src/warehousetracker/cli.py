import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
from dotenv import load_dotenv

from .config import load_settings
from .dashboard import build_report, entry_details, load_record, load_records, query_records
from .entries import create_entry, delete_entry, update_entry
from .export import write_csv, write_json
from .filters import distinct_values
from .metrics import format_volume
from .models import EntryDetails, FilterQuery, Report, ShipmentRecord, ShipmentStatus, SortKey
from .normalizer import NormalizerDefaults
from .store import (
    BlobStorage,
    BlobUpload,
    FirestoreStore,
    InMemoryStore,
    RecordNotFoundError,
    RecordStore,
)

# Load environment variables from .env if present
load_dotenv()

logger = logging.getLogger(__name__)

# Errors a store or storage call can surface to the user
STORE_ERRORS = (httpx.HTTPError, RuntimeError, OSError)


def open_store(args: argparse.Namespace) -> RecordStore:
    if args.data:
        return InMemoryStore.from_file(args.data)
    return FirestoreStore(load_settings())


def save_store(args: argparse.Namespace, store: RecordStore) -> None:
    # File-backed stores persist writes back to the same file
    if args.data and isinstance(store, InMemoryStore):
        Path(args.data).write_text(store.to_json() + "\n", encoding="utf-8")


def _defaults() -> NormalizerDefaults:
    return NormalizerDefaults(placeholder_image=load_settings().placeholder_image)


def _fail(action: str, exc: BaseException, *, retry_hint: bool = False) -> int:
    print(f"Failed to {action}: {exc.__class__.__name__}: {exc}", file=sys.stderr)
    if retry_hint:
        print("Check your connection/credentials and run the command again.", file=sys.stderr)
    return 1


def _load(args: argparse.Namespace) -> Optional[List[ShipmentRecord]]:
    try:
        store = open_store(args)
        records = load_records(store, _defaults())
    except STORE_ERRORS as exc:
        if args.strict:
            raise
        _fail("load entries", exc, retry_hint=True)
        return None
    logger.debug("Loaded %d entries from %s store", len(records), store.name)
    return records


def cmd_list(args: argparse.Namespace) -> int:
    records = _load(args)
    if records is None:
        return 1
    query = FilterQuery(text=args.search, status=args.status, origin=args.origin)
    shown = query_records(records, query, args.sort)
    if args.json:
        print(json.dumps([r.model_dump(mode="json") for r in shown], indent=2))
    else:
        print_entries(shown, total=len(records))
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    try:
        record = load_record(open_store(args), args.id, _defaults())
    except RecordNotFoundError:
        print(f"Entry not found: {args.id}", file=sys.stderr)
        return 1
    except STORE_ERRORS as exc:
        if args.strict:
            raise
        return _fail("load entry details", exc, retry_hint=True)

    details = entry_details(record)
    image_urls: List[str] = []
    if args.resolve_images and record.images:
        try:
            storage = BlobStorage(load_settings())
        except STORE_ERRORS as exc:
            return _fail("resolve images", exc)
        image_urls = asyncio.run(storage.aresolve_urls(record.images))
    if args.json:
        payload = details.model_dump(mode="json")
        if image_urls:
            payload["image_urls"] = image_urls
        print(json.dumps(payload, indent=2))
    else:
        print_details(details, image_urls)
    return 0


def cmd_report(args: argparse.Namespace) -> int:
    records = _load(args)
    if records is None:
        return 1
    report = build_report(records, top_n=args.top)
    if args.json:
        print(report.model_dump_json(indent=2))
    else:
        print_report(report)
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    records = _load(args)
    if records is None:
        return 1
    records = query_records(records, sort_key=args.sort)
    writer = write_csv if args.format == "csv" else write_json
    if args.output:
        with open(args.output, "w", encoding="utf-8", newline="") as fp:
            count = writer(records, fp)
        print(f"Exported {count} entries to {args.output}")
    else:
        writer(records, sys.stdout)
    return 0


def _entry_fields(args: argparse.Namespace) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    for name in (
        "sender_name",
        "receiver_name",
        "carrier_name",
        "origin",
        "destination",
        "mode",
        "weight",
        "piece_count",
        "description",
        "status",
        "tracking_number",
        "delivery_days",
        "arrival_date",
        "departure_date",
    ):
        value = getattr(args, name, None)
        if value is not None:
            fields[name] = value
    dims = {k: getattr(args, k) for k in ("length", "width", "height")}
    if any(v is not None for v in dims.values()):
        fields["dimensions"] = dims
    return fields


def cmd_add(args: argparse.Namespace) -> int:
    try:
        store = open_store(args)
        images = [BlobUpload.from_path(p) for p in args.image or []]
        storage = BlobStorage(load_settings()) if images else None
        doc_id = asyncio.run(
            create_entry(store, _entry_fields(args), images=images, storage=storage)
        )
        save_store(args, store)
    except STORE_ERRORS as exc:
        if args.strict:
            raise
        return _fail("add entry", exc)
    print(f"Entry added: {doc_id}")
    return 0


def _parse_assignments(pairs: List[str]) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep:
            raise ValueError(f"Expected key=value, got {pair!r}")
        key = key.strip()
        if key.startswith("dimensions."):
            fields.setdefault("dimensions", {})[key.split(".", 1)[1]] = value
        else:
            fields[key] = value
    return fields


def cmd_update(args: argparse.Namespace) -> int:
    try:
        fields = _parse_assignments(args.set or [])
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    try:
        store = open_store(args)
        changes = update_entry(store, args.id, fields)
        save_store(args, store)
    except RecordNotFoundError:
        print(f"Entry not found: {args.id}", file=sys.stderr)
        return 1
    except KeyError as exc:
        print(f"Failed to update entry: {exc.args[0] if exc.args else exc}", file=sys.stderr)
        return 1
    except STORE_ERRORS as exc:
        if args.strict:
            raise
        return _fail("update entry", exc)
    print(f"Entry {args.id} updated ({', '.join(changes) or 'no changes'})")
    return 0


def cmd_delete(args: argparse.Namespace) -> int:
    try:
        store = open_store(args)
        delete_entry(store, args.id)
        save_store(args, store)
    except RecordNotFoundError:
        print(f"Entry not found: {args.id}", file=sys.stderr)
        return 1
    except STORE_ERRORS as exc:
        if args.strict:
            raise
        return _fail("delete entry", exc)
    print(f"Entry {args.id} deleted")
    return 0


def cmd_statuses(_args: argparse.Namespace) -> int:
    for status in ShipmentStatus:
        print(status.value)
    return 0


def _fmt_date(value) -> str:
    return value.strftime("%Y-%m-%d") if value else "N/A"


def print_entries(records: List[ShipmentRecord], total: int) -> None:
    print(f"Entries: {len(records)} of {total}")
    if not records:
        print("No warehouse entries match your current filters.")
        return
    for r in records:
        print(
            f"- {r.id}  {r.tracking_number}  {r.sender_name} -> {r.receiver_name}  "
            f"{r.origin or '-'}/{r.destination or '-'}  {r.weight:g} kg  "
            f"{r.piece_count} pcs  [{r.status.value}]  {_fmt_date(r.created_at)}"
        )
    origins = distinct_values(records, "origin")
    if origins:
        print(f"\nOrigins: {', '.join(origins)}")


def print_details(details: EntryDetails, image_urls: List[str]) -> None:
    r = details.record
    print(f"Entry: {r.id}")
    print(f"Tracking: {r.tracking_number}")
    print(f"Status: {r.status.value}")
    print(f"Sender: {r.sender_name or 'N/A'}")
    print(f"Receiver: {r.receiver_name or 'N/A'}")
    print(f"Carrier: {r.carrier_name or 'N/A'}")
    print(f"Route: {r.origin or 'N/A'} -> {r.destination or 'N/A'} ({r.mode or 'N/A'})")
    print(f"Weight: {r.weight:g} kg, {r.piece_count} pieces")
    d = r.dimensions
    print(f"Dimensions: {d.length:g} x {d.width:g} x {d.height:g} cm ({format_volume(d)} m³)")
    print(f"Departure: {_fmt_date(r.departure_date)}  Arrival: {_fmt_date(r.arrival_date)}")
    print(f"Transit days: {details.transit_days}")
    print(f"Created: {_fmt_date(r.created_at)}")
    if r.description:
        print(f"Description: {r.description}")

    if r.items:
        print(f"\nItems ({details.item_count}):")
        for item in r.items:
            print(f"- {item.item_name or 'N/A'}: {item.quantity} x, {item.weight:g} kg, value {item.value:g}")
        print(
            f"Totals: {details.total_quantity} units, "
            f"{details.total_weight:g} kg, value {details.total_value:.2f}"
        )

    if image_urls:
        print("\nImages:")
        for url in image_urls:
            print(f"- {url}")
    elif r.images:
        print("\nImages:")
        for img in r.images:
            print(f"- {img.url or img.path}")


def print_report(report: Report) -> None:
    m = report.metrics
    print(f"Total entries: {m.total_entries}")
    print(f"Total weight (kg): {m.total_weight:,.0f}")
    print(f"Delivered orders: {m.delivered_orders}")
    print(f"Average delivery time: {m.average_delivery_days:.1f} days")
    if not report.has_entries:
        return
    sections = [
        ("Status distribution", report.status_distribution),
        ("Top destinations", report.top_destinations),
        ("Transport modes", report.mode_distribution),
        ("Origins", report.origin_distribution),
        ("Carriers", report.carrier_distribution),
    ]
    for title, buckets in sections:
        print(f"\n{title}:")
        for b in buckets:
            print(f"- {b.key}: {b.count} ({b.percentage}%)")
    if report.monthly_trends:
        print("\nMonthly trends:")
        for t in report.monthly_trends:
            print(f"- {t.month}: {t.entries} entries, {t.weight:g} kg, {t.delivered} delivered")


def _add_entry_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--sender", dest="sender_name", help="Sender name")
    p.add_argument("--receiver", dest="receiver_name", help="Receiver name")
    p.add_argument("--carrier", dest="carrier_name", help="Carrier name")
    p.add_argument("--origin", help="Origin (e.g. Air, Sea, Local Storage)")
    p.add_argument("--destination", help="Destination city")
    p.add_argument("--mode", help="Transport mode")
    p.add_argument("--weight", type=float, help="Weight in kg")
    p.add_argument("--pieces", dest="piece_count", type=int, help="Number of pieces")
    p.add_argument("--length", type=float, help="Length in cm")
    p.add_argument("--width", type=float, help="Width in cm")
    p.add_argument("--height", type=float, help="Height in cm")
    p.add_argument("--description", help="Free-text description")
    p.add_argument("--tracking", dest="tracking_number", help="Tracking number")
    p.add_argument(
        "--delivery-days", dest="delivery_days", type=float, help="Delivery time in days"
    )
    p.add_argument(
        "--status", choices=[s.value for s in ShipmentStatus], help="Entry status"
    )
    p.add_argument("--arrival", dest="arrival_date", help="Arrival date (YYYY-MM-DD)")
    p.add_argument("--departure", dest="departure_date", help="Departure date (YYYY-MM-DD)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="warehousetracker", description="Warehouse shipment entries and reports."
    )
    parser.add_argument(
        "--data",
        default=None,
        help="Use a local JSON file of entries instead of Firestore",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Propagate store errors (traceback) instead of printing a short message",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    subparsers = parser.add_subparsers(dest="command")

    p_list = subparsers.add_parser("list", help="List, search and filter entries")
    p_list.add_argument("--search", "-s", default="", help="Search sender/receiver/tracking/carrier")
    p_list.add_argument("--status", default="all", help="Status filter (or 'all')")
    p_list.add_argument("--origin", default="all", help="Origin filter (or 'all')")
    p_list.add_argument(
        "--sort",
        choices=[k.value for k in SortKey],
        default=SortKey.DATE_CREATED.value,
        help="Sort key",
    )
    p_list.add_argument("--json", action="store_true", help="Output JSON")
    p_list.set_defaults(func=cmd_list)

    p_show = subparsers.add_parser("show", help="Show one entry with derived totals")
    p_show.add_argument("id", help="Entry id")
    p_show.add_argument("--json", action="store_true", help="Output JSON")
    p_show.add_argument(
        "--resolve-images",
        action="store_true",
        help="Resolve storage paths to download URLs (needs FIREBASE_STORAGE_BUCKET)",
    )
    p_show.set_defaults(func=cmd_show)

    p_report = subparsers.add_parser("report", help="Summary metrics and distributions")
    p_report.add_argument("--top", type=int, default=5, help="Number of top destinations")
    p_report.add_argument("--json", action="store_true", help="Output JSON")
    p_report.set_defaults(func=cmd_report)

    p_export = subparsers.add_parser("export", help="Export all entries")
    p_export.add_argument("--format", choices=["csv", "json"], default="csv")
    p_export.add_argument("--output", "-o", default=None, help="Output file (default stdout)")
    p_export.add_argument(
        "--sort",
        choices=[k.value for k in SortKey],
        default=SortKey.DATE_CREATED.value,
    )
    p_export.set_defaults(func=cmd_export)

    p_add = subparsers.add_parser("add", help="Add a new entry")
    _add_entry_options(p_add)
    p_add.add_argument(
        "--image", action="append", help="Image file to upload (repeatable)"
    )
    p_add.set_defaults(func=cmd_add)

    p_update = subparsers.add_parser("update", help="Edit fields of an entry")
    p_update.add_argument("id", help="Entry id")
    p_update.add_argument(
        "--set",
        action="append",
        metavar="FIELD=VALUE",
        help="Field to change, e.g. status='In Transit' or dimensions.length=40",
    )
    p_update.set_defaults(func=cmd_update)

    p_delete = subparsers.add_parser("delete", help="Delete an entry")
    p_delete.add_argument("id", help="Entry id")
    p_delete.set_defaults(func=cmd_delete)

    p_statuses = subparsers.add_parser("statuses", help="List entry statuses")
    p_statuses.set_defaults(func=cmd_statuses)

    return parser


def main(argv: Optional[list] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "command", None):
        parser.print_help()
        return 1
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
