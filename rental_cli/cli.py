"""Console interface for operating on a rental store data directory."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

from rental_core.config import StoreSettings
from rental_core.exceptions import (
    BookingConflictError,
    PermissionDeniedError,
    RecordNotFoundError,
    StorageUnavailableError,
    ValidationError,
)
from rental_core.models import DEFAULT_SCHEMAS
from rental_core.services import BookingService
from rental_core.store import RecordStore


def _parse_date(value: str) -> str:
    try:
        date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"Invalid date '{value}'. Expected format YYYY-MM-DD."
        ) from exc
    return value


def _open_store(data_dir: Optional[Path]) -> RecordStore:
    return RecordStore.from_settings(StoreSettings.from_env(data_dir=data_dir), cleanup=False)


def _format_booking(booking: Dict[str, Any]) -> str:
    state = "confirmed" if booking.get("bookingStatus") is True else "cancelled"
    return (
        f"[{booking.get('bookingId')}] property {booking.get('propertyId')} "
        f"{booking.get('checkInDate')} -> {booking.get('checkOutDate')} ({state})\n"
        f"  Guest: {booking.get('userId')} | Host: {booking.get('hostId') or '-'}\n"
    )


def _format_record(record: Dict[str, Any]) -> str:
    return json.dumps(record, indent=2, ensure_ascii=False)


def handle_booking(args: argparse.Namespace, service: BookingService) -> None:
    if args.command == "add":
        booking = service.create({
            "propertyId": args.property_id,
            "userId": args.user_id,
            "checkInDate": args.check_in,
            "checkOutDate": args.check_out,
        })
        print("Booking saved:\n" + _format_booking(booking))
    elif args.command == "list":
        filters = {
            "property_id": args.property,
            "user_id": args.user,
            "host_id": args.host,
            "status": args.status,
        }
        found = service.list(**{k: v for k, v in filters.items() if v is not None})
        if not found:
            print("No bookings found.")
            return
        print(f"Found {len(found)} bookings:")
        for booking in found:
            print(_format_booking(booking))
    elif args.command == "check":
        available = service.is_available(args.property_id, args.check_in, args.check_out)
        print("Available" if available else "Property already booked for selected dates")
    elif args.command == "reschedule":
        booking = service.reschedule(args.id, args.check_in, args.check_out)
        print("Booking updated:\n" + _format_booking(booking))
    elif args.command == "cancel":
        booking = service.cancel(args.id)
        print("Booking cancelled:\n" + _format_booking(booking))
    elif args.command == "delete":
        if service.delete(args.id):
            print(f"Booking {args.id} deleted.")
        else:
            print(f"Booking {args.id} not found; nothing deleted.")


def handle_collection(args: argparse.Namespace, store: RecordStore) -> None:
    collection = store.load(args.collection)
    if args.command == "show":
        print(_format_record(collection.get(args.id)))
        return
    records = list(collection.find_all())
    if not records:
        print(f"No {args.collection} found.")
        return
    print(f"Found {len(records)} {args.collection}:")
    for record in records:
        print(_format_record(record))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Rental store CLI")
    parser.add_argument(
        "--data-dir",
        default=None,
        type=Path,
        help="Directory holding the collection files (default: $RENTAL_STORE_DATA_DIR or ./data)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="entity", required=True)

    booking_parser = subparsers.add_parser("booking", help="Manage bookings")
    booking_sub = booking_parser.add_subparsers(dest="command", required=True)

    booking_add = booking_sub.add_parser("add", help="Book a property")
    booking_add.add_argument("property_id", type=int)
    booking_add.add_argument("user_id", type=int)
    booking_add.add_argument("check_in", type=_parse_date)
    booking_add.add_argument("check_out", type=_parse_date)

    booking_list = booking_sub.add_parser("list", help="List bookings")
    booking_list.add_argument("--property", type=int)
    booking_list.add_argument("--user", type=int)
    booking_list.add_argument("--host", type=int)
    booking_list.add_argument("--status", choices=["true", "false"])

    booking_check = booking_sub.add_parser("check", help="Check availability of a property")
    booking_check.add_argument("property_id", type=int)
    booking_check.add_argument("check_in", type=_parse_date)
    booking_check.add_argument("check_out", type=_parse_date)

    booking_reschedule = booking_sub.add_parser("reschedule", help="Move a booking to new dates")
    booking_reschedule.add_argument("id", type=int)
    booking_reschedule.add_argument("check_in", type=_parse_date)
    booking_reschedule.add_argument("check_out", type=_parse_date)

    booking_cancel = booking_sub.add_parser("cancel", help="Cancel a booking (kept for audit)")
    booking_cancel.add_argument("id", type=int)

    booking_delete = booking_sub.add_parser("delete", help="Remove a booking permanently")
    booking_delete.add_argument("id", type=int)

    for command in ("list", "show"):
        sub = subparsers.add_parser(command, help=f"{command.capitalize()} raw records")
        sub.add_argument("collection", choices=sorted(DEFAULT_SCHEMAS))
        if command == "show":
            sub.add_argument("id", type=int)

    revenue_parser = subparsers.add_parser("revenue", help="Compute a host's revenue")
    revenue_parser.add_argument("host_id", type=int)

    subparsers.add_parser("cleanup", help="Remove temporary files left by interrupted writes")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument("--port", type=int, default=8081)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        store = _open_store(args.data_dir)
        if args.entity == "booking":
            handle_booking(args, BookingService(store))
        elif args.entity in {"list", "show"}:
            args.command = args.entity
            handle_collection(args, store)
        elif args.entity == "revenue":
            total = BookingService(store).revenue(args.host_id)
            print(f"Total revenue for host {args.host_id}: {total}")
        elif args.entity == "cleanup":
            removed = store.storage.cleanup_temp_files()
            print(f"Removed {removed} temporary file(s).")
        elif args.entity == "serve":
            from api.app import create_app

            store.storage.cleanup_temp_files()
            create_app(store=store).run(host=args.host, port=args.port, threaded=True)
        else:  # pragma: no cover - argparse should prevent this
            parser.error(f"Unknown entity: {args.entity}")
            return 2
    except ValidationError as exc:
        print(f"Validation error: {exc}", file=sys.stderr)
        return 1
    except BookingConflictError as exc:
        print(f"Conflict: {exc}", file=sys.stderr)
        return 1
    except (RecordNotFoundError, PermissionDeniedError) as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except StorageUnavailableError as exc:
        print(f"Storage error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
