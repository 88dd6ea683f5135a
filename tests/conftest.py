from datetime import date

import pytest

from rental_core.services import (
    BookingService,
    ComplaintService,
    NotificationService,
    PropertyService,
    UserService,
)
from rental_core.storage import JSONStorage
from rental_core.store import RecordStore

TODAY = date(2024, 6, 1)


@pytest.fixture
def storage(tmp_path):
    return JSONStorage(tmp_path / "data")


@pytest.fixture
def store(storage):
    return RecordStore(storage)


@pytest.fixture
def today():
    return lambda: TODAY


@pytest.fixture
def properties(store, today):
    return PropertyService(store, today=today)


@pytest.fixture
def bookings(store, today):
    return BookingService(store, today=today)


@pytest.fixture
def users(store):
    return UserService(store)


@pytest.fixture
def complaints(store, today):
    return ComplaintService(store, today=today)


@pytest.fixture
def notifications(store, today):
    return NotificationService(store, today=today)


@pytest.fixture
def property_payload():
    return {
        "userId": 7,
        "propertyName": "Lake House",
        "propertyDescription": "Quiet two-room cottage right by the lake shore.",
        "noOfRooms": 2,
        "noOfBathrooms": 1,
        "maxNoOfGuests": 4,
        "pricePerDay": 1500,
        "address": {"city": "Pune", "country": "India"},
        "hasWifi": True,
    }


@pytest.fixture
def listed_property(properties, property_payload):
    return properties.add(property_payload)
