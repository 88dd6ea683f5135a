"""Validation helpers shared across rental store services."""

from __future__ import annotations

import math
import re
from datetime import date
from typing import Iterable, Optional, Tuple

from .exceptions import ValidationError
from .models import parse_date

PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{8,}$")

USER_ROLES = {"client", "host", "admin"}
USER_STATUSES = {"ACTIVE", "BLOCKED", "DELETED"}
COMPLAINT_AUTHOR_ROLES = {"client", "host"}
COMPLAINT_STATUSES = {"active", "closed", "deleted"}


def validate_required_str(value: object, field: str, max_length: int, *, min_length: int = 1) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    trimmed = value.strip()
    if not trimmed:
        raise ValidationError(f"{field} cannot be empty")
    if len(trimmed) < min_length:
        raise ValidationError(f"{field} must be at least {min_length} characters")
    if len(trimmed) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return trimmed


def validate_optional_str(value: object, field: str, max_length: int) -> Optional[str]:
    if value is None or value == "":
        return None
    return validate_required_str(value, field, max_length)


def validate_enum(value: object, field: str, allowed: Iterable[str], *, upper: bool = False) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    canonical = value.strip().upper() if upper else value.strip().lower()
    allowed = set(allowed)
    if canonical not in allowed:
        raise ValidationError(f"{field} must be one of: {', '.join(sorted(allowed))}")
    return canonical


def validate_id(value: object, field: str) -> int:
    """Accept positive integers, including their decimal string form."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a positive integer")
    try:
        number = int(str(value).strip()) if isinstance(value, str) else int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValidationError(f"{field} must be a positive integer") from exc
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(f"{field} must be a positive integer")
    if number <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    return number


def validate_number(value: object, field: str, *, minimum: Optional[float] = None) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a numeric value")
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValidationError(f"{field} must be a numeric value") from exc
    if not math.isfinite(number):
        raise ValidationError(f"{field} must be a finite number")
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be at least {minimum:g}")
    return int(number) if number.is_integer() else number


def validate_date(value: object, field: str) -> date:
    try:
        return parse_date(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be a YYYY-MM-DD date") from exc


def validate_stay(check_in: object, check_out: object) -> Tuple[date, date]:
    start = validate_date(check_in, "checkInDate")
    end = validate_date(check_out, "checkOutDate")
    if start > end:
        raise ValidationError("checkInDate must not be later than checkOutDate")
    return start, end


def validate_password(value: object, field: str = "password") -> str:
    if not isinstance(value, str) or not PASSWORD_PATTERN.fullmatch(value):
        raise ValidationError(
            f"Weak {field}. Must be 8 chars incl uppercase, lowercase, number & special"
        )
    return value
