from datetime import date

import pytest

from api.app import create_app

TODAY = date(2024, 6, 1)

CLIENT = {"X-User-Id": "21", "X-User-Role": "client"}
ADMIN = {"X-User-Id": "1", "X-User-Role": "admin"}


@pytest.fixture
def client(store):
    app = create_app(store=store, today=lambda: TODAY)
    app.testing = True
    return app.test_client()


@pytest.fixture
def property_id(client, property_payload):
    response = client.post("/api/properties", json=property_payload)
    assert response.status_code == 201
    return response.get_json()["propertyId"]


def _booking(property_id, check_in="2024-06-10", check_out="2024-06-15"):
    return {
        "propertyId": property_id,
        "userId": 21,
        "checkInDate": check_in,
        "checkOutDate": check_out,
    }


def test_booking_flow_and_conflict_status(client, property_id):
    created = client.post("/api/bookings", json=_booking(property_id))
    assert created.status_code == 201
    assert created.get_json()["hostId"] == 7

    clash = client.post("/api/bookings", json=_booking(property_id, "2024-06-15", "2024-06-18"))
    assert clash.status_code == 409
    assert clash.get_json()["conflicts"] == [created.get_json()["bookingId"]]

    listed = client.get(f"/api/bookings?propertyId={property_id}")
    assert listed.get_json()["count"] == 1


def test_booking_validation_and_missing_property(client, property_id):
    inverted = client.post("/api/bookings", json=_booking(property_id, "2024-06-15", "2024-06-10"))
    assert inverted.status_code == 400

    missing = client.post("/api/bookings", json=_booking(999))
    assert missing.status_code == 404


def test_non_json_body_is_rejected(client):
    response = client.post("/api/bookings", data="propertyId=1")
    assert response.status_code == 400


def test_availability_cancel_and_delete(client, property_id):
    booking_id = client.post("/api/bookings", json=_booking(property_id)).get_json()["bookingId"]
    url = f"/api/properties/{property_id}/availability?checkIn=2024-06-12&checkOut=2024-06-13"

    assert client.get(url).get_json()["available"] is False

    cancelled = client.patch(f"/api/bookings/{booking_id}/cancel")
    assert cancelled.get_json()["bookingStatus"] is False
    assert client.get(url).get_json()["available"] is True

    assert client.delete(f"/api/bookings/{booking_id}").status_code == 204
    assert client.delete(f"/api/bookings/{booking_id}").status_code == 404
    assert client.get(f"/api/bookings/{booking_id}").status_code == 404


def test_property_update_blocked_while_occupied(client, property_id):
    client.post("/api/bookings", json=_booking(property_id, "2024-05-31", "2024-06-02"))

    response = client.put(f"/api/properties/{property_id}", json={"pricePerDay": 2000})

    assert response.status_code == 409


def test_host_revenue(client, property_id):
    client.post("/api/bookings", json=_booking(property_id))

    assert client.get("/api/hosts/7/revenue").get_json() == {"totalRevenue": 7500}


def test_user_registration_and_login(client):
    payload = {
        "username": "meera",
        "password": "Str0ng!Pass",
        "securityQuestion": "City of birth?",
        "securityAnswer": "Nagpur",
    }
    created = client.post("/api/users", json=payload)
    assert created.status_code == 201
    assert "hashedPassword" not in created.get_json()

    assert client.post("/api/users", json=payload).status_code == 400

    login = client.post("/api/users/login", json={"username": "meera", "password": "Str0ng!Pass"})
    assert login.status_code == 200

    user_id = created.get_json()["userId"]
    assert client.put(f"/api/users/{user_id}/block", json={"block": True}).status_code == 200
    blocked = client.post("/api/users/login", json={"username": "meera", "password": "Str0ng!Pass"})
    assert blocked.status_code == 403


def test_complaints_require_caller_headers(client):
    response = client.post("/api/complaints", json={"bookingId": 1, "complaintDescription": "Noise"})
    assert response.status_code == 400

    response = client.get("/api/complaints")
    assert response.status_code == 400


def test_complaint_roles(client):
    body = {"bookingId": 1, "complaintDescription": "Noise after midnight"}

    assert client.post("/api/complaints", json=body, headers=ADMIN).status_code == 403
    created = client.post("/api/complaints", json=body, headers=CLIENT)
    assert created.status_code == 201

    complaint_id = created.get_json()["complaintId"]
    assert client.patch(f"/api/complaints/{complaint_id}/resolve", headers=CLIENT).status_code == 403
    resolved = client.patch(f"/api/complaints/{complaint_id}/resolve", headers=ADMIN)
    assert resolved.get_json()["complaintStatus"] == "closed"

    listed = client.get("/api/complaints?userType=client", headers=ADMIN)
    assert len(listed.get_json()["complaints"]) == 1


def test_notifications(client):
    created = client.post(
        "/api/notifications",
        json={"userId": 5, "notificationTitle": "Hello", "message": "Welcome aboard"},
    )
    assert created.status_code == 201
    notification_id = created.get_json()["notificationId"]

    read = client.put(f"/api/notifications/{notification_id}/read")
    assert read.get_json()["isRead"] is True
    assert len(client.get("/api/notifications?userId=5").get_json()["notifications"]) == 1

    assert client.delete(f"/api/notifications/{notification_id}").status_code == 204
    assert client.delete(f"/api/notifications/{notification_id}").status_code == 404


def test_out_of_range_numbers_are_validation_errors(client, property_id, property_payload):
    overflow = client.post(
        "/api/bookings",
        data='{"propertyId": 1e400, "userId": 21, "checkInDate": "2024-06-10", "checkOutDate": "2024-06-12"}',
        content_type="application/json",
    )
    assert overflow.status_code == 400

    infinite_price = client.post("/api/properties", json={**property_payload, "pricePerDay": "Infinity"})
    assert infinite_price.status_code == 400


def test_forgot_and_reset_password(client):
    client.post(
        "/api/users",
        json={
            "username": "meera",
            "password": "Str0ng!Pass",
            "securityQuestion": "City of birth?",
            "securityAnswer": "Nagpur",
        },
    )

    question = client.post("/api/users/forgot-password", json={"username": "Meera"})
    assert question.get_json() == {"question": "City of birth?"}
    assert client.post("/api/users/forgot-password", json={"username": "ghost"}).status_code == 400

    wrong = client.post(
        "/api/users/reset-password",
        json={"username": "meera", "answer": "Pune", "newPassword": "N3w!Secret"},
    )
    assert wrong.status_code == 400

    reset = client.post(
        "/api/users/reset-password",
        json={"username": "meera", "answer": "Nagpur", "newPassword": "N3w!Secret"},
    )
    assert reset.status_code == 200
    login = client.post("/api/users/login", json={"username": "meera", "password": "N3w!Secret"})
    assert login.status_code == 200


def test_complaints_filtered_by_author(client):
    body = {"bookingId": 1, "complaintDescription": "Noise after midnight"}
    client.post("/api/complaints", json=body, headers=CLIENT)
    client.post("/api/complaints", json=body, headers={"X-User-Id": "7", "X-User-Role": "host"})

    listed = client.get("/api/complaints?userId=7", headers=ADMIN)

    assert [c["userId"] for c in listed.get_json()["complaints"]] == [7]
