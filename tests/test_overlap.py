from datetime import date

import pytest

from rental_core.exceptions import ValidationError
from rental_core.overlap import find_conflicts, has_conflict, intervals_overlap

EXISTING = {
    "bookingId": 1,
    "propertyId": 10,
    "checkInDate": "2024-06-10",
    "checkOutDate": "2024-06-15",
    "bookingStatus": True,
}


@pytest.mark.parametrize(
    "check_in, check_out, expected",
    [
        ("2024-06-15", "2024-06-20", True),
        ("2024-06-16", "2024-06-20", False),
        ("2024-06-01", "2024-06-09", False),
        ("2024-06-01", "2024-06-10", True),
        ("2024-06-11", "2024-06-12", True),
        ("2024-06-01", "2024-06-30", True),
    ],
)
def test_closed_interval_overlap_against_confirmed_booking(check_in, check_out, expected):
    assert has_conflict([EXISTING], 10, check_in, check_out) is expected


def test_resubmitting_same_interval_excluding_itself_is_not_a_conflict():
    assert has_conflict([EXISTING], 10, "2024-06-10", "2024-06-15", exclude_booking_id=1) is False


def test_cancelled_bookings_never_block():
    cancelled = {**EXISTING, "bookingStatus": False}
    assert has_conflict([cancelled], 10, "2024-06-10", "2024-06-15") is False


def test_other_properties_are_ignored():
    assert has_conflict([EXISTING], 11, "2024-06-10", "2024-06-15") is False


def test_accepts_date_objects_and_string_property_ids():
    assert has_conflict([EXISTING], "10", date(2024, 6, 12), date(2024, 6, 13)) is True


def test_inverted_interval_is_rejected_even_with_no_bookings():
    with pytest.raises(ValidationError):
        has_conflict([], 10, "2024-06-15", "2024-06-10")


def test_unreadable_dates_are_rejected():
    with pytest.raises(ValidationError):
        has_conflict([EXISTING], 10, "next tuesday", "2024-06-10")


def test_stored_bookings_with_bad_dates_are_skipped():
    broken = {**EXISTING, "bookingId": 2, "checkInDate": "soon"}
    assert has_conflict([broken], 10, "2024-06-10", "2024-06-15") is False


def test_find_conflicts_returns_every_overlap():
    second = {**EXISTING, "bookingId": 2, "checkInDate": "2024-06-20", "checkOutDate": "2024-06-22"}

    conflicts = find_conflicts([EXISTING, second], 10, "2024-06-14", "2024-06-21")

    assert [booking["bookingId"] for booking in conflicts] == [1, 2]


def test_single_day_intervals_touching_overlap():
    day = date(2024, 6, 10)
    assert intervals_overlap(day, day, day, date(2024, 6, 11))
