"""Closed-interval overlap checks for confirmed bookings."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Iterable, Iterator, List, Optional

from .collection import coerce_id
from .exceptions import ValidationError
from .models import parse_date

logger = logging.getLogger(__name__)


def intervals_overlap(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    """Closed intervals overlap iff each starts no later than the other ends.

    A checkout day equal to the next check-in day counts as overlapping.
    """
    return start_a <= end_b and start_b <= end_a


def is_confirmed(booking: Dict[str, Any]) -> bool:
    return booking.get("bookingStatus") is True


def _coerce_interval(check_in: Any, check_out: Any) -> tuple:
    try:
        start = parse_date(check_in)
        end = parse_date(check_out)
    except (TypeError, ValueError) as exc:
        raise ValidationError("checkInDate and checkOutDate must be valid YYYY-MM-DD dates") from exc
    if start > end:
        raise ValidationError("checkInDate must not be later than checkOutDate")
    return start, end


def _iter_conflicts(
    bookings: Iterable[Dict[str, Any]],
    property_id: Any,
    check_in: Any,
    check_out: Any,
    exclude_booking_id: Optional[Any],
) -> Iterator[Dict[str, Any]]:
    start, end = _coerce_interval(check_in, check_out)
    wanted_property = coerce_id(property_id)
    excluded = coerce_id(exclude_booking_id) if exclude_booking_id is not None else None

    for booking in bookings:
        if coerce_id(booking.get("propertyId")) != wanted_property:
            continue
        if not is_confirmed(booking):
            continue
        if excluded is not None and coerce_id(booking.get("bookingId")) == excluded:
            continue
        try:
            existing_start = parse_date(booking.get("checkInDate"))
            existing_end = parse_date(booking.get("checkOutDate"))
        except (TypeError, ValueError):
            logger.warning(
                "Skipping booking %s with unreadable dates during overlap check",
                booking.get("bookingId"),
            )
            continue
        if intervals_overlap(start, end, existing_start, existing_end):
            yield booking


def has_conflict(
    bookings: Iterable[Dict[str, Any]],
    property_id: Any,
    check_in: Any,
    check_out: Any,
    exclude_booking_id: Optional[Any] = None,
) -> bool:
    """Return True when a confirmed booking of ``property_id`` overlaps the interval.

    The bookings must come from the snapshot held inside the bookings collection's
    exclusive write section that will also perform the insert.
    """
    for _ in _iter_conflicts(bookings, property_id, check_in, check_out, exclude_booking_id):
        return True
    return False


def find_conflicts(
    bookings: Iterable[Dict[str, Any]],
    property_id: Any,
    check_in: Any,
    check_out: Any,
    exclude_booking_id: Optional[Any] = None,
) -> List[Dict[str, Any]]:
    """Return every confirmed booking of ``property_id`` overlapping the interval."""
    return list(_iter_conflicts(bookings, property_id, check_in, check_out, exclude_booking_id))
