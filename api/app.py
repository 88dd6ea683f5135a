"""Flask REST API exposing the rental record store services."""

from __future__ import annotations

import os
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

from flask import Flask, jsonify, request
from flask_cors import CORS

from rental_core.config import StoreSettings
from rental_core.exceptions import (
    BookingConflictError,
    PermissionDeniedError,
    RecordNotFoundError,
    StorageUnavailableError,
    ValidationError,
)
from rental_core.services import (
    BookingService,
    ComplaintService,
    NotificationService,
    PropertyService,
    UserService,
)
from rental_core.store import RecordStore


def create_app(
    data_dir: Optional[Path] = None,
    *,
    store: Optional[RecordStore] = None,
    today: Callable[[], date] = date.today,
) -> Flask:
    app = Flask(__name__)

    env_name = os.getenv("RENTAL_STORE_ENV", "prod").lower()
    if env_name in {"dev", "development"}:
        CORS(app, resources={r"/*": {"origins": "*"}}, supports_credentials=True)
    else:
        allowed_origins = os.getenv("RENTAL_STORE_ALLOWED_ORIGINS")
        if allowed_origins:
            origins = [origin.strip() for origin in allowed_origins.split(",") if origin.strip()]
            CORS(app, resources={r"/*": {"origins": origins}}, supports_credentials=True)
        else:
            CORS(app)

    if store is None:
        store = RecordStore.from_settings(StoreSettings.from_env(data_dir=data_dir))
    app.extensions["rental_store"] = store

    users = UserService(store)
    properties = PropertyService(store, today=today)
    bookings = BookingService(store, today=today)
    complaints = ComplaintService(store, today=today)
    notifications = NotificationService(store, today=today)

    def _success(payload: Any, status: int = 200):
        if status == 204:
            return ("", status)
        return jsonify(payload), status

    def _handle_error(exc: Exception, status: int, message: str, **extra: Any):
        app.logger.error("%s: %s", message, exc)
        return jsonify({"error": message, "details": str(exc), **extra}), status

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        return _handle_error(exc, 400, "Validation error")

    @app.errorhandler(PermissionDeniedError)
    def handle_permission_denied(exc: PermissionDeniedError):
        return _handle_error(exc, 403, "Permission denied")

    @app.errorhandler(RecordNotFoundError)
    def handle_not_found(exc: RecordNotFoundError):
        return _handle_error(exc, 404, "Record not found")

    @app.errorhandler(BookingConflictError)
    def handle_conflict(exc: BookingConflictError):
        conflicting = [booking.get("bookingId") for booking in exc.conflicts]
        return _handle_error(exc, 409, "Booking conflict", conflicts=conflicting)

    @app.errorhandler(StorageUnavailableError)
    def handle_storage_error(exc: StorageUnavailableError):
        return _handle_error(exc, 500, "Storage unavailable")

    def _json_body() -> Dict[str, Any]:
        if not request.is_json:
            raise ValidationError("Request content must be application/json")
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Malformed JSON body")
        return data

    def _caller() -> Tuple[str, str]:
        raw_id = request.headers.get("X-User-Id")
        raw_role = request.headers.get("X-User-Role")
        if not raw_id or not raw_role:
            raise ValidationError("Missing x-user-id or x-user-role headers")
        return raw_id, raw_role

    def _clean_filters(raw: Dict[str, Optional[str]]) -> Dict[str, str]:
        return {k: v for k, v in raw.items() if v not in (None, "")}

    # Users ---------------------------------------------------------------
    @app.get("/api/users")
    def list_users():
        filters = _clean_filters({
            "role": request.args.get("role"),
            "status": request.args.get("status"),
            "search": request.args.get("search"),
        })
        items = users.list(**filters)
        return _success({"items": items, "count": len(items)})

    @app.post("/api/users")
    def register_user():
        return _success(users.register(_json_body()), 201)

    @app.post("/api/users/login")
    def login():
        payload = _json_body()
        if not payload.get("username") or not payload.get("password"):
            raise ValidationError("Missing fields")
        return _success(users.authenticate(payload["username"], payload["password"]))

    @app.post("/api/users/forgot-password")
    def forgot_password():
        payload = _json_body()
        return _success({"question": users.security_question(payload.get("username") or "")})

    @app.post("/api/users/reset-password")
    def reset_password():
        payload = _json_body()
        users.reset_password(
            payload.get("username") or "", payload.get("answer"), payload.get("newPassword")
        )
        return _success({"message": "Password reset successful"})

    @app.get("/api/users/<int:user_id>")
    def get_user(user_id: int):
        return _success(users.get(user_id))

    @app.put("/api/users/<int:user_id>")
    def update_user(user_id: int):
        return _success(users.update(user_id, _json_body()))

    @app.post("/api/users/<int:user_id>/password")
    def change_password(user_id: int):
        payload = _json_body()
        users.change_password(user_id, payload.get("oldPassword"), payload.get("newPassword"))
        return _success({"message": "Password changed successfully"})

    @app.put("/api/users/<int:user_id>/block")
    def block_user(user_id: int):
        payload = _json_body()
        if "block" not in payload:
            raise ValidationError("Block status is required")
        return _success(users.set_status(user_id, "BLOCKED" if payload["block"] else "ACTIVE"))

    @app.delete("/api/users/<int:user_id>")
    def delete_user(user_id: int):
        users.set_status(user_id, "DELETED")
        return _success({}, 204)

    @app.get("/api/users/<int:user_id>/eligible-bookings")
    def eligible_bookings(user_id: int):
        role = request.headers.get("X-User-Role")
        if not role:
            raise ValidationError("Missing userId or role")
        return _success({"bookingIds": bookings.eligible_for_complaint(user_id, role)})

    # Properties ----------------------------------------------------------
    @app.get("/api/properties")
    def list_properties():
        filters = _clean_filters({
            "host_id": request.args.get("hostId"),
            "status": request.args.get("status"),
            "city": request.args.get("city"),
            "min_price": request.args.get("minPrice"),
            "max_price": request.args.get("maxPrice"),
            "search": request.args.get("search"),
        })
        for flag in ("hasWifi", "hasParking", "hasPool"):
            if request.args.get(flag, "").lower() == "true":
                filters[flag] = True
        if request.args.get("includeDeleted", "").lower() == "true":
            filters["include_deleted"] = True
        items = properties.list(**filters)
        return _success({"items": items, "count": len(items)})

    @app.post("/api/properties")
    def add_property():
        return _success(properties.add(_json_body()), 201)

    @app.get("/api/properties/<int:property_id>")
    def get_property(property_id: int):
        return _success(properties.get(property_id))

    @app.put("/api/properties/<int:property_id>")
    def update_property(property_id: int):
        return _success(properties.update(property_id, _json_body()))

    @app.delete("/api/properties/<int:property_id>")
    def delete_property(property_id: int):
        return _success(properties.delete(property_id))

    @app.get("/api/properties/<int:property_id>/availability")
    def property_availability(property_id: int):
        check_in = request.args.get("checkIn")
        check_out = request.args.get("checkOut")
        available = bookings.is_available(property_id, check_in, check_out)
        return _success({"propertyId": property_id, "available": available})

    @app.get("/api/hosts/<int:host_id>/revenue")
    def host_revenue(host_id: int):
        return _success({"totalRevenue": bookings.revenue(host_id)})

    # Bookings ------------------------------------------------------------
    @app.get("/api/bookings")
    def list_bookings():
        filters = _clean_filters({
            "user_id": request.args.get("userId"),
            "host_id": request.args.get("hostId"),
            "property_id": request.args.get("propertyId"),
            "status": request.args.get("status"),
        })
        items = bookings.list(**filters)
        return _success({"items": items, "count": len(items)})

    @app.post("/api/bookings")
    def create_booking():
        return _success(bookings.create(_json_body()), 201)

    @app.get("/api/bookings/<int:booking_id>")
    def get_booking(booking_id: int):
        return _success(bookings.get(booking_id))

    @app.put("/api/bookings/<int:booking_id>/dates")
    def reschedule_booking(booking_id: int):
        payload = _json_body()
        booking = bookings.reschedule(
            booking_id, payload.get("checkInDate"), payload.get("checkOutDate")
        )
        return _success(booking)

    @app.patch("/api/bookings/<int:booking_id>/cancel")
    def cancel_booking(booking_id: int):
        return _success(bookings.cancel(booking_id))

    @app.delete("/api/bookings/<int:booking_id>")
    def delete_booking(booking_id: int):
        if not bookings.delete(booking_id):
            raise RecordNotFoundError(f"Booking {booking_id} not found")
        return _success({}, 204)

    # Complaints ----------------------------------------------------------
    @app.get("/api/complaints")
    def list_complaints():
        _caller()
        filters = _clean_filters({
            "complaint_id": request.args.get("id"),
            "user_type": request.args.get("userType"),
            "status": request.args.get("status"),
            "user_id": request.args.get("userId"),
            "start": request.args.get("from"),
            "end": request.args.get("to"),
        })
        return _success({"complaints": complaints.list(**filters)})

    @app.post("/api/complaints")
    def create_complaint():
        user_id, role = _caller()
        payload = _json_body()
        complaint = complaints.create(
            user_id, role, payload.get("bookingId"), payload.get("complaintDescription")
        )
        return _success(complaint, 201)

    @app.patch("/api/complaints/<int:complaint_id>/resolve")
    def resolve_complaint(complaint_id: int):
        _, role = _caller()
        return _success(complaints.resolve(complaint_id, role))

    @app.patch("/api/complaints/<int:complaint_id>/delete")
    def delete_complaint(complaint_id: int):
        user_id, role = _caller()
        return _success(complaints.delete(complaint_id, user_id, role))

    # Notifications -------------------------------------------------------
    @app.get("/api/notifications")
    def list_notifications():
        return _success({"notifications": notifications.list(request.args.get("userId"))})

    @app.post("/api/notifications")
    def create_notification():
        return _success(notifications.create(_json_body()), 201)

    @app.put("/api/notifications/<int:notification_id>/read")
    def read_notification(notification_id: int):
        return _success(notifications.mark_read(notification_id))

    @app.delete("/api/notifications/<int:notification_id>")
    def delete_notification(notification_id: int):
        if not notifications.delete(notification_id):
            raise RecordNotFoundError(f"Notification {notification_id} not found")
        return _success({}, 204)

    return app
