"""Framework-agnostic business services for the rental application."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from .collection import Collection, Record, coerce_id
from .exceptions import (
    BookingConflictError,
    PermissionDeniedError,
    RecordNotFoundError,
    ValidationError,
)
from .models import isoformat_date, parse_date
from .normalizers import clean_username, normalize_booking, normalize_property, normalize_user
from .overlap import find_conflicts, is_confirmed
from .store import RecordStore
from .validators import (
    COMPLAINT_AUTHOR_ROLES,
    COMPLAINT_STATUSES,
    USER_ROLES,
    USER_STATUSES,
    validate_date,
    validate_enum,
    validate_id,
    validate_number,
    validate_optional_str,
    validate_password,
    validate_required_str,
    validate_stay,
)

Today = Callable[[], date]

PROPERTY_DELETED = "DELETED"
PROPERTY_AVAILABLE = "AVAILABLE"
COMPLAINT_WINDOW = timedelta(days=7)

PROPERTY_DEFAULTS: Dict[str, Any] = {
    "imageURL": "",
    "propertyAccountNumber": 0,
    "hasWifi": False,
    "hasParking": False,
    "hasPool": False,
    "hasAc": False,
    "hasHeater": False,
    "hasPetFriendly": False,
    "propertyStatus": PROPERTY_AVAILABLE,
    "propertyRate": 0,
    "propertyRatingCount": 0,
}
ADDRESS_KEYS = ("buildingNo", "street", "city", "state", "country", "postalCode")

PRIVATE_USER_FIELDS = ("hashedPassword", "securityAnswer")
PROTECTED_USER_FIELDS = ("userId", "password", "hashedPassword", "securityAnswer")


def _stay(booking: Record) -> Optional[tuple]:
    try:
        return parse_date(booking.get("checkInDate")), parse_date(booking.get("checkOutDate"))
    except (TypeError, ValueError):
        return None


def _nights(check_in: date, check_out: date) -> int:
    return max((check_out - check_in).days, 1)


def _property_price(prop: Record) -> float:
    # Records written before ingress normalisation may still carry the misspelt key.
    return prop.get("pricePerDay") or prop.get("pricePreDay") or 0


class PropertyService:
    """Manages host properties; deletion is a status flip, never a removal."""

    collection = "properties"

    def __init__(self, store: RecordStore, *, today: Today = date.today) -> None:
        self._store = store
        self._today = today

    # Public API -----------------------------------------------------------
    def add(self, payload: Dict[str, Any]) -> Record:
        data = self._validate_payload({**PROPERTY_DEFAULTS, **normalize_property(payload)})
        data.pop("propertyId", None)
        return self._store.insert(self.collection, data)

    def update(self, property_id: Any, changes: Dict[str, Any]) -> Record:
        property_id = validate_id(property_id, "propertyId")
        normalized = normalize_property(changes)
        normalized.pop("propertyId", None)
        address_changes = normalized.pop("address", None) or {}
        if self._booked_on(property_id, self._today()):
            raise BookingConflictError("Cannot update: Property is currently booked during this date")

        def apply(collection: Collection) -> Record:
            existing = collection.get(property_id)
            address = {**(existing.get("address") or {}), **address_changes}
            merged = {**existing, **normalized}
            if address:
                merged["address"] = address
            return collection.update(property_id, self._validate_payload(merged))

        return self._store.with_exclusive_write(self.collection, apply)

    def delete(self, property_id: Any) -> Record:
        property_id = validate_id(property_id, "propertyId")
        self.get(property_id)
        today = self._today()
        for booking in self._store.snapshot("bookings"):
            if coerce_id(booking.get("propertyId")) != property_id or not is_confirmed(booking):
                continue
            stay = _stay(booking)
            if stay and stay[1] >= today:
                raise BookingConflictError("Cannot delete: Property has active/future bookings")
        return self._store.mark_status(self.collection, property_id, "propertyStatus", PROPERTY_DELETED)

    def get(self, property_id: Any) -> Record:
        return self._store.load(self.collection).get(validate_id(property_id, "propertyId"))

    def list(self, **filters: Any) -> List[Record]:
        records = self._store.load(self.collection).find_all()
        return list(self._apply_filters(records, filters))

    # Internal helpers -----------------------------------------------------
    def _booked_on(self, property_id: int, day: date) -> bool:
        for booking in self._store.snapshot("bookings"):
            if coerce_id(booking.get("propertyId")) != property_id or not is_confirmed(booking):
                continue
            stay = _stay(booking)
            if stay and stay[0] <= day <= stay[1]:
                return True
        return False

    def _validate_payload(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        address = payload.get("address") or {}
        if not isinstance(address, dict):
            raise ValidationError("address must be an object")
        base = {
            **payload,
            "userId": validate_id(payload.get("userId"), "userId"),
            "propertyName": validate_required_str(
                payload.get("propertyName"), "propertyName", 120, min_length=5
            ),
            "propertyDescription": validate_required_str(
                payload.get("propertyDescription"), "propertyDescription", 2000, min_length=20
            ),
            "noOfRooms": validate_number(payload.get("noOfRooms"), "noOfRooms", minimum=1),
            "noOfBathrooms": validate_number(payload.get("noOfBathrooms"), "noOfBathrooms", minimum=1),
            "maxNoOfGuests": validate_number(payload.get("maxNoOfGuests"), "maxNoOfGuests", minimum=1),
            "pricePerDay": validate_number(payload.get("pricePerDay"), "pricePerDay", minimum=100),
            "address": {**address, **{key: address.get(key) or "" for key in ADDRESS_KEYS}},
            "propertyStatus": str(payload.get("propertyStatus") or PROPERTY_AVAILABLE).upper(),
        }
        return base

    def _apply_filters(self, records: Iterable[Record], filters: Dict[str, Any]) -> Iterable[Record]:
        host_id = validate_id(filters["host_id"], "host_id") if filters.get("host_id") is not None else None
        status = str(filters["status"]).strip().upper() if filters.get("status") else None
        include_deleted = bool(filters.get("include_deleted")) or status == PROPERTY_DELETED
        city = str(filters["city"]).strip().lower() if filters.get("city") else None
        search = str(filters["search"]).strip().lower() if filters.get("search") else None
        min_price = (
            validate_number(filters["min_price"], "min_price")
            if filters.get("min_price") is not None
            else None
        )
        max_price = (
            validate_number(filters["max_price"], "max_price")
            if filters.get("max_price") is not None
            else None
        )
        amenities = [name for name in ("hasWifi", "hasParking", "hasPool") if filters.get(name)]

        def matches(prop: Record) -> bool:
            prop_status = str(prop.get("propertyStatus") or PROPERTY_AVAILABLE).upper()
            if not include_deleted and prop_status == PROPERTY_DELETED:
                return False
            if status and prop_status != status:
                return False
            if host_id is not None and coerce_id(prop.get("userId")) != host_id:
                return False
            if city and str((prop.get("address") or {}).get("city", "")).lower() != city:
                return False
            price = _property_price(prop)
            if min_price is not None and price < min_price:
                return False
            if max_price is not None and price > max_price:
                return False
            if any(prop.get(name) is not True for name in amenities):
                return False
            if search:
                haystack = " ".join(
                    str(prop.get(key) or "") for key in ("propertyName", "propertyDescription")
                ).lower()
                if search not in haystack:
                    return False
            return True

        return filter(matches, records)


class BookingService:
    """Creates and manages bookings while keeping confirmed stays non-overlapping."""

    collection = "bookings"

    def __init__(self, store: RecordStore, *, today: Today = date.today) -> None:
        self._store = store
        self._today = today

    # Public API -----------------------------------------------------------
    def create(self, payload: Dict[str, Any]) -> Record:
        data = normalize_booking(payload)
        property_id = validate_id(data.get("propertyId"), "propertyId")
        user_id = validate_id(data.get("userId"), "userId")
        check_in, check_out = validate_stay(data.get("checkInDate"), data.get("checkOutDate"))
        status = data.get("bookingStatus", True)
        if not isinstance(status, bool):
            raise ValidationError("bookingStatus must be a boolean")

        prop = self._bookable_property(property_id)
        record = {
            **data,
            "propertyId": property_id,
            "userId": user_id,
            "hostId": coerce_id(prop.get("userId")) or data.get("hostId"),
            "checkInDate": isoformat_date(check_in),
            "checkOutDate": isoformat_date(check_out),
            "bookingStatus": status,
        }
        record.pop("bookingId", None)

        def insert(collection: Collection) -> Record:
            # Validated against the same snapshot the insert is applied to.
            if status:
                conflicts = find_conflicts(collection.records, property_id, check_in, check_out)
                if conflicts:
                    raise BookingConflictError(
                        "Property already booked for selected dates", conflicts
                    )
            return collection.insert(record)

        return self._store.with_exclusive_write(self.collection, insert)

    def reschedule(self, booking_id: Any, check_in: Any, check_out: Any) -> Record:
        booking_id = validate_id(booking_id, "bookingId")
        start, end = validate_stay(check_in, check_out)

        def apply(collection: Collection) -> Record:
            existing = collection.get(booking_id)
            if is_confirmed(existing):
                conflicts = find_conflicts(
                    collection.records,
                    existing.get("propertyId"),
                    start,
                    end,
                    exclude_booking_id=booking_id,
                )
                if conflicts:
                    raise BookingConflictError(
                        "Property already booked for selected dates", conflicts
                    )
            return collection.update(
                booking_id,
                {"checkInDate": isoformat_date(start), "checkOutDate": isoformat_date(end)},
            )

        return self._store.with_exclusive_write(self.collection, apply)

    def cancel(self, booking_id: Any) -> Record:
        """Soft cancel: the booking stays on record but no longer blocks its dates."""
        return self._store.mark_status(
            self.collection, validate_id(booking_id, "bookingId"), "bookingStatus", False
        )

    def delete(self, booking_id: Any) -> bool:
        return self._store.remove(self.collection, validate_id(booking_id, "bookingId"))

    def get(self, booking_id: Any) -> Record:
        return self._store.load(self.collection).get(validate_id(booking_id, "bookingId"))

    def list(self, **filters: Any) -> List[Record]:
        user_id = coerce_id(filters["user_id"]) if filters.get("user_id") is not None else None
        host_id = coerce_id(filters["host_id"]) if filters.get("host_id") is not None else None
        property_id = (
            coerce_id(filters["property_id"]) if filters.get("property_id") is not None else None
        )
        status = filters.get("status")
        if isinstance(status, str):
            status = status.strip().lower() == "true"

        def matches(booking: Record) -> bool:
            if user_id is not None and coerce_id(booking.get("userId")) != user_id:
                return False
            if host_id is not None and coerce_id(booking.get("hostId")) != host_id:
                return False
            if property_id is not None and coerce_id(booking.get("propertyId")) != property_id:
                return False
            if status is not None and booking.get("bookingStatus") is not status:
                return False
            return True

        return list(self._store.load(self.collection).find_all(matches))

    def is_available(self, property_id: Any, check_in: Any, check_out: Any) -> bool:
        """Advisory check only; ``create`` re-validates under the write exclusion."""
        property_id = validate_id(property_id, "propertyId")
        start, end = validate_stay(check_in, check_out)
        return not find_conflicts(self._store.snapshot(self.collection), property_id, start, end)

    def revenue(self, host_id: Any) -> float:
        """Sum nights x nightly price over the host's confirmed bookings."""
        host_id = validate_id(host_id, "host_id")
        host_props = {
            coerce_id(prop.get("propertyId")): prop
            for prop in self._store.snapshot("properties")
            if coerce_id(prop.get("userId")) == host_id
        }
        total = 0
        for booking in self._store.snapshot(self.collection):
            property_id = coerce_id(booking.get("propertyId"))
            if coerce_id(booking.get("hostId")) != host_id and property_id not in host_props:
                continue
            if not is_confirmed(booking):
                continue
            stay = _stay(booking)
            if stay is None:
                continue
            total += _nights(*stay) * _property_price(host_props.get(property_id, {}))
        return total

    def eligible_for_complaint(self, user_id: Any, role: str) -> List[int]:
        """Ids of bookings checked in today, in progress, or checked out within a week."""
        user_id = validate_id(user_id, "userId")
        role = validate_enum(role, "role", COMPLAINT_AUTHOR_ROLES)
        owner_field = "userId" if role == "client" else "hostId"
        today = self._today()
        eligible = []
        for booking in self._store.snapshot(self.collection):
            if coerce_id(booking.get(owner_field)) != user_id:
                continue
            stay = _stay(booking)
            if stay and stay[0] <= today <= stay[1] + COMPLAINT_WINDOW:
                eligible.append(coerce_id(booking.get("bookingId")))
        return eligible

    # Internal helpers -----------------------------------------------------
    def _bookable_property(self, property_id: int) -> Record:
        try:
            prop = self._store.load("properties").get(property_id)
        except RecordNotFoundError as exc:
            raise RecordNotFoundError(f"Property {property_id} not found") from exc
        if str(prop.get("propertyStatus") or "").upper() == PROPERTY_DELETED:
            raise ValidationError(f"Property {property_id} is no longer available")
        return prop


class UserService:
    """Manages user accounts; deletion and blocking are status changes."""

    collection = "users"

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    @staticmethod
    def public_view(user: Record) -> Record:
        return {key: value for key, value in user.items() if key not in PRIVATE_USER_FIELDS}

    # Public API -----------------------------------------------------------
    def register(self, payload: Dict[str, Any]) -> Record:
        data = normalize_user(payload)
        username = validate_required_str(data.get("username"), "username", 50)
        password = validate_password(data.get("password"))
        question = validate_required_str(data.get("securityQuestion"), "securityQuestion", 200)
        answer = validate_required_str(data.get("securityAnswer"), "securityAnswer", 200)
        role = validate_enum(data.get("role") or "client", "role", USER_ROLES)
        address = data.get("address") or {}
        if not isinstance(address, dict):
            raise ValidationError("address must be an object")

        record = {
            key: value
            for key, value in data.items()
            if key not in PROTECTED_USER_FIELDS
        }
        record.update(
            {
                "username": username,
                "email": data.get("email") or "",
                "phone": data.get("phone") or "",
                "address": {
                    "building": address.get("building") or "",
                    "street": address.get("street") or "",
                    "city": address.get("city") or "",
                    "pincode": address.get("pincode") or "",
                    "state": address.get("state") or "",
                    "country": address.get("country") or "India",
                },
                "hashedPassword": generate_password_hash(password),
                "status": "ACTIVE",
                "role": role,
                "securityQuestion": question,
                "securityAnswer": generate_password_hash(answer.strip()),
            }
        )

        def insert(collection: Collection) -> Record:
            taken = collection.find_all(lambda user: user.get("username") == username).first()
            if taken is not None:
                raise ValidationError("User already exists")
            return collection.insert(record)

        return self.public_view(self._store.with_exclusive_write(self.collection, insert))

    def authenticate(self, username: str, password: str) -> Record:
        user = self._find_by_username(username)
        if user is None:
            raise ValidationError("Invalid username")
        status = str(user.get("status") or "").upper()
        if status == "DELETED":
            raise PermissionDeniedError("Account deleted")
        if status == "BLOCKED":
            raise PermissionDeniedError("Account blocked")
        if not check_password_hash(user.get("hashedPassword") or "", password or ""):
            raise ValidationError("Incorrect password")
        return self.public_view(user)

    def change_password(self, user_id: Any, old_password: str, new_password: str) -> None:
        user_id = validate_id(user_id, "userId")

        def apply(collection: Collection) -> None:
            user = collection.get(user_id)
            if not check_password_hash(user.get("hashedPassword") or "", old_password or ""):
                raise ValidationError("Old password incorrect")
            validate_password(new_password, "newPassword")
            if check_password_hash(user["hashedPassword"], new_password):
                raise ValidationError("New password must not be same as old password")
            collection.update(user_id, {"hashedPassword": generate_password_hash(new_password)})

        self._store.with_exclusive_write(self.collection, apply)

    def security_question(self, username: str) -> str:
        user = self._find_by_username(username)
        if user is None:
            raise ValidationError("User not found")
        return user.get("securityQuestion") or ""

    def reset_password(self, username: str, answer: str, new_password: str) -> None:
        """Replace a forgotten password after checking the security answer."""
        cleaned = clean_username(username or "")

        def apply(collection: Collection) -> None:
            user = collection.find_all(lambda item: item.get("username") == cleaned).first()
            if user is None:
                raise ValidationError("User not found")
            if not check_password_hash(user.get("securityAnswer") or "", (answer or "").strip()):
                raise ValidationError("Incorrect security answer")
            validate_password(new_password, "newPassword")
            if check_password_hash(user.get("hashedPassword") or "", new_password):
                raise ValidationError("New password must not be same as old password")
            collection.update(
                user["userId"], {"hashedPassword": generate_password_hash(new_password)}
            )

        self._store.with_exclusive_write(self.collection, apply)

    def update(self, user_id: Any, changes: Dict[str, Any]) -> Record:
        user_id = validate_id(user_id, "userId")
        data = {
            key: value
            for key, value in normalize_user(changes).items()
            if key not in PROTECTED_USER_FIELDS
        }
        if "status" in data:
            data["status"] = validate_enum(data["status"], "status", USER_STATUSES, upper=True)
        if "role" in data:
            data["role"] = validate_enum(data["role"], "role", USER_ROLES)
        if "username" in data:
            username = validate_required_str(data["username"], "username", 50)
            data["username"] = username

        def apply(collection: Collection) -> Record:
            if "username" in data:
                clash = collection.find_all(
                    lambda user: user.get("username") == data["username"]
                    and coerce_id(user.get("userId")) != user_id
                ).first()
                if clash is not None:
                    raise ValidationError("User already exists")
            return collection.update(user_id, data)

        return self.public_view(self._store.with_exclusive_write(self.collection, apply))

    def set_status(self, user_id: Any, status: str) -> Record:
        status = validate_enum(status, "status", USER_STATUSES, upper=True)
        updated = self._store.mark_status(
            self.collection, validate_id(user_id, "userId"), "status", status
        )
        return self.public_view(updated)

    def get(self, user_id: Any) -> Record:
        user = self._store.load(self.collection).get(validate_id(user_id, "userId"))
        return self.public_view(user)

    def list(self, **filters: Any) -> List[Record]:
        role = str(filters["role"]).strip().lower() if filters.get("role") else None
        status = str(filters["status"]).strip().upper() if filters.get("status") else None
        search = str(filters["search"]).strip().lower() if filters.get("search") else None

        def matches(user: Record) -> bool:
            if role and str(user.get("role") or "").lower() != role:
                return False
            if status and str(user.get("status") or "").upper() != status:
                return False
            if search:
                fields = (user.get("username"), user.get("email"), user.get("phone"))
                if not any(search in str(value or "").lower() for value in fields):
                    return False
            return True

        users = self._store.load(self.collection).find_all(matches)
        return [self.public_view(user) for user in users]

    def _find_by_username(self, username: str) -> Optional[Record]:
        cleaned = clean_username(username or "")
        return self._store.load(self.collection).find_all(
            lambda user: user.get("username") == cleaned
        ).first()


class ComplaintService:
    """Complaints raised by clients or hosts and resolved by admins."""

    collection = "complaints"

    def __init__(self, store: RecordStore, *, today: Today = date.today) -> None:
        self._store = store
        self._today = today

    def create(self, user_id: Any, role: str, booking_id: Any, description: Any) -> Record:
        user_id = validate_id(user_id, "x-user-id")
        role = validate_enum(role, "x-user-role", USER_ROLES)
        if role not in COMPLAINT_AUTHOR_ROLES:
            raise PermissionDeniedError("admin users cannot create complaints")
        record = {
            "bookingId": validate_id(booking_id, "bookingId"),
            "userId": user_id,
            "clientOrHost": role,
            "complaintDescription": validate_required_str(
                description, "complaintDescription", 2000
            ),
            "complaintStatus": "active",
            "createdOn": isoformat_date(self._today()),
            "resolvedOn": "",
        }
        return self._store.insert(self.collection, record)

    def resolve(self, complaint_id: Any, role: str) -> Record:
        if str(role or "").strip().lower() != "admin":
            raise PermissionDeniedError("Only admin can resolve complaints")
        return self._store.update(
            self.collection,
            validate_id(complaint_id, "complaintId"),
            {"complaintStatus": "closed", "resolvedOn": isoformat_date(self._today())},
        )

    def delete(self, complaint_id: Any, user_id: Any, role: str) -> Record:
        """Soft delete by the complaint's author; admins may not delete."""
        complaint_id = validate_id(complaint_id, "complaintId")
        user_id = validate_id(user_id, "x-user-id")
        if str(role or "").strip().lower() == "admin":
            raise PermissionDeniedError("admin users cannot delete complaints")

        def apply(collection: Collection) -> Record:
            complaint = collection.get(complaint_id)
            if coerce_id(complaint.get("userId")) != user_id:
                raise PermissionDeniedError("You can only delete your own complaints")
            return collection.mark_status(complaint_id, "complaintStatus", "deleted")

        return self._store.with_exclusive_write(self.collection, apply)

    def list(self, **filters: Any) -> List[Record]:
        complaint_id = (
            validate_id(filters["complaint_id"], "id") if filters.get("complaint_id") else None
        )
        user_type = (
            validate_enum(filters["user_type"], "userType", COMPLAINT_AUTHOR_ROLES)
            if filters.get("user_type")
            else None
        )
        status = (
            validate_enum(filters["status"], "status", COMPLAINT_STATUSES)
            if filters.get("status")
            else None
        )
        user_id = coerce_id(filters["user_id"]) if filters.get("user_id") is not None else None
        start = validate_date(filters["start"], "from") if filters.get("start") else None
        end = validate_date(filters["end"], "to") if filters.get("end") else None

        def matches(complaint: Record) -> bool:
            if complaint_id is not None:
                return coerce_id(complaint.get("complaintId")) == complaint_id
            if user_type and str(complaint.get("clientOrHost") or "").lower() != user_type:
                return False
            if status and str(complaint.get("complaintStatus") or "").lower() != status:
                return False
            if user_id is not None and coerce_id(complaint.get("userId")) != user_id:
                return False
            if start or end:
                try:
                    created = parse_date(complaint.get("createdOn"))
                except (TypeError, ValueError):
                    return False
                if start and created < start:
                    return False
                if end and created > end:
                    return False
            return True

        return list(self._store.load(self.collection).find_all(matches))


class NotificationService:
    """Per-user notifications; deletion removes the record."""

    collection = "notifications"

    def __init__(self, store: RecordStore, *, today: Today = date.today) -> None:
        self._store = store
        self._today = today

    def create(self, payload: Dict[str, Any]) -> Record:
        data = dict(payload)
        if "notificationTarget" in data:
            data.setdefault("target", data.pop("notificationTarget"))
        user_id = validate_id(data.get("userId"), "userId")
        record = {
            **data,
            "userId": user_id,
            "notificationTitle": validate_required_str(
                data.get("notificationTitle"), "notificationTitle", 200
            ),
            "message": validate_required_str(data.get("message"), "message", 2000),
            "notificationType": validate_optional_str(
                data.get("notificationType"), "notificationType", 50
            )
            or "general",
            "target": data.get("target") or "",
            "createdBy": data.get("createdBy") or f"user-{user_id}",
            "createdOn": isoformat_date(self._today()),
            "isRead": False,
            "readOn": "",
        }
        record.pop("notificationId", None)
        return self._store.insert(self.collection, record)

    def mark_read(self, notification_id: Any) -> Record:
        return self._store.update(
            self.collection,
            validate_id(notification_id, "notificationId"),
            {"isRead": True, "readOn": isoformat_date(self._today())},
        )

    def delete(self, notification_id: Any) -> bool:
        return self._store.remove(self.collection, validate_id(notification_id, "notificationId"))

    def list(self, user_id: Optional[Any] = None) -> List[Record]:
        wanted = coerce_id(user_id) if user_id is not None else None

        def matches(notification: Record) -> bool:
            if wanted is None:
                return True
            if str(notification.get("target") or "").upper() == "ALL":
                return True
            return coerce_id(notification.get("userId")) == wanted

        return list(self._store.load(self.collection).find_all(matches))
