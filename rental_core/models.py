"""Collection schemas and date helpers for the rental record store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

__all__ = [
    "CollectionSchema",
    "DEFAULT_SCHEMAS",
    "USERS",
    "PROPERTIES",
    "BOOKINGS",
    "COMPLAINTS",
    "NOTIFICATIONS",
    "isoformat_date",
    "parse_date",
]


def isoformat_date(value: date) -> str:
    """Return the calendar part of a date or datetime as YYYY-MM-DD."""
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def parse_date(value: Any) -> date:
    """Parse a calendar date from a date, datetime or ISO 8601 string.

    Strings carrying a time component (``2024-06-10T12:00:00Z``) are truncated to
    their calendar day. Raises ValueError/TypeError for anything else.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise TypeError(f"Expected a date or ISO 8601 string, got {type(value).__name__}")
    text = value.strip()
    if len(text) > 10 and text[10] in "T ":
        text = text[:10]
    return date.fromisoformat(text)


@dataclass(frozen=True)
class CollectionSchema:
    """Describes how one entity type is wrapped and identified on disk."""

    name: str
    key: str
    id_field: str
    legacy_keys: Tuple[str, ...] = ()

    @property
    def filename(self) -> str:
        return f"{self.name}.json"

    def wrap(self, records: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
        return {self.key: records}

    def unwrap(self, payload: Any) -> Optional[List[Dict[str, Any]]]:
        """Return the record list held by ``payload`` or None if it has another shape."""
        if not isinstance(payload, dict):
            return None
        for key in (self.key, *self.legacy_keys):
            if key not in payload:
                continue
            records = payload[key]
            if not isinstance(records, list):
                return None
            if not all(isinstance(record, dict) for record in records):
                return None
            return records
        return None


USERS = CollectionSchema("users", "users", "userId", legacy_keys=("Users",))
PROPERTIES = CollectionSchema("properties", "properties", "propertyId")
BOOKINGS = CollectionSchema("bookings", "bookings", "bookingId")
COMPLAINTS = CollectionSchema("complaints", "complaints", "complaintId")
NOTIFICATIONS = CollectionSchema(
    "notifications", "notifications", "notificationId", legacy_keys=("notification",)
)

DEFAULT_SCHEMAS: Dict[str, CollectionSchema] = {
    schema.name: schema for schema in (USERS, PROPERTIES, BOOKINGS, COMPLAINTS, NOTIFICATIONS)
}
