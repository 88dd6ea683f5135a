"""Map the field-name variants accepted from clients onto the persisted schema.

Only keys present in the payload are touched, so the same functions serve full
creates and partial updates. Fields without an alias pass through unchanged.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Mapping, Tuple

from .models import isoformat_date, parse_date

PROPERTY_ALIASES: Dict[str, Tuple[str, ...]] = {
    "propertyName": ("propertyTitle", "name"),
    "propertyDescription": ("description",),
    "noOfRooms": ("rooms",),
    "noOfBathrooms": ("noOfBathroom", "bathrooms"),
    "maxNoOfGuests": ("maxNumberOfGuest", "maxGuests"),
    "pricePerDay": ("pricePreDay", "priceDay"),
    "imageURL": ("imageUrl", "image"),
    "userId": ("hostId",),
    "propertyAccountNumber": ("accountNumber",),
    "hasWifi": ("hasWIFI",),
    "hasAc": ("hasAC",),
    "propertyRate": ("propertyRating",),
}

ADDRESS_FIELDS = ("buildingNo", "street", "city", "state", "country", "postalCode")
POSTAL_CODE_ALIASES = ("pincode", "postal", "zip")

PROPERTY_NUMERIC_FIELDS = (
    "propertyId",
    "userId",
    "noOfRooms",
    "noOfBathrooms",
    "maxNoOfGuests",
    "pricePerDay",
    "propertyAccountNumber",
    "propertyRate",
    "propertyRatingCount",
)
AMENITY_FIELDS = ("hasWifi", "hasParking", "hasPool", "hasAc", "hasHeater", "hasPetFriendly")

USER_ALIASES: Dict[str, Tuple[str, ...]] = {
    "email": ("userMail",),
    "phone": ("userPhone",),
    "role": ("userRole",),
    "status": ("userStatus",),
}

BOOKING_ID_FIELDS = ("bookingId", "propertyId", "userId", "hostId")

_WHITESPACE = re.compile(r"\s+")


def _apply_aliases(payload: Dict[str, Any], aliases: Mapping[str, Tuple[str, ...]]) -> None:
    for canonical, variants in aliases.items():
        for variant in variants:
            if variant not in payload:
                continue
            value = payload.pop(variant)
            payload.setdefault(canonical, value)


def _to_number(value: Any) -> Any:
    """Best-effort numeric coercion; unparseable values are left for validation."""
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, (int, float)):
        return int(value) if isinstance(value, float) and value.is_integer() else value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return value
        return int(number) if number.is_integer() else number
    return value


def _to_bool(value: Any) -> Any:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1", "yes"}:
            return True
        if lowered in {"false", "0", "no", ""}:
            return False
        return value
    return bool(value)


def clean_username(name: str) -> str:
    return _WHITESPACE.sub("", name).lower()


def normalize_property(body: Mapping[str, Any]) -> Dict[str, Any]:
    payload = dict(body)
    _apply_aliases(payload, PROPERTY_ALIASES)

    raw_address = payload.get("address")
    address = dict(raw_address) if isinstance(raw_address, Mapping) else {}
    had_address = "address" in payload
    for field in ADDRESS_FIELDS:
        if field in payload:
            address.setdefault(field, payload.pop(field))
    for alias in POSTAL_CODE_ALIASES:
        if alias in payload:
            address.setdefault("postalCode", payload.pop(alias))
        if alias in address:
            value = address.pop(alias)
            address.setdefault("postalCode", value)
    if address or had_address:
        payload["address"] = address

    for field in PROPERTY_NUMERIC_FIELDS:
        if field in payload:
            payload[field] = _to_number(payload[field])
    for field in AMENITY_FIELDS:
        if field in payload:
            payload[field] = _to_bool(payload[field])
    if isinstance(payload.get("propertyStatus"), str):
        payload["propertyStatus"] = payload["propertyStatus"].strip().upper()
    return payload


def normalize_user(body: Mapping[str, Any]) -> Dict[str, Any]:
    payload = dict(body)
    _apply_aliases(payload, USER_ALIASES)
    if isinstance(payload.get("username"), str):
        payload["username"] = clean_username(payload["username"])
    if isinstance(payload.get("status"), str):
        payload["status"] = payload["status"].strip().upper()
    if isinstance(payload.get("role"), str):
        payload["role"] = payload["role"].strip().lower()
    if isinstance(payload.get("address"), Mapping):
        address = dict(payload["address"])
        if "buildingNo" in address:
            address.setdefault("building", address.pop("buildingNo"))
        payload["address"] = address
    if "userId" in payload:
        payload["userId"] = _to_number(payload["userId"])
    return payload


def normalize_booking(body: Mapping[str, Any]) -> Dict[str, Any]:
    payload = dict(body)
    for field in BOOKING_ID_FIELDS:
        if field in payload:
            payload[field] = _to_number(payload[field])
    if "bookingStatus" in payload:
        payload["bookingStatus"] = _to_bool(payload["bookingStatus"])
    for field in ("checkInDate", "checkOutDate"):
        if field in payload:
            try:
                payload[field] = isoformat_date(parse_date(payload[field]))
            except (TypeError, ValueError):
                pass  # left for validate_stay to reject
    return payload
