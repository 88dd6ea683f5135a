"""Durable record store and business services for the rental application."""

from .collection import Collection, RecordQuery, next_id
from .config import StoreSettings
from .exceptions import (
    BookingConflictError,
    PermissionDeniedError,
    RecordNotFoundError,
    StorageUnavailableError,
    ValidationError,
)
from .locking import FairLock, WriteSerializer
from .models import DEFAULT_SCHEMAS, CollectionSchema
from .overlap import find_conflicts, has_conflict, intervals_overlap
from .services import (
    BookingService,
    ComplaintService,
    NotificationService,
    PropertyService,
    UserService,
)
from .storage import JSONStorage
from .store import RecordStore

__all__ = [
    "Collection",
    "CollectionSchema",
    "DEFAULT_SCHEMAS",
    "RecordQuery",
    "next_id",
    "StoreSettings",
    "FairLock",
    "WriteSerializer",
    "JSONStorage",
    "RecordStore",
    "find_conflicts",
    "has_conflict",
    "intervals_overlap",
    "BookingService",
    "ComplaintService",
    "NotificationService",
    "PropertyService",
    "UserService",
    "BookingConflictError",
    "PermissionDeniedError",
    "RecordNotFoundError",
    "StorageUnavailableError",
    "ValidationError",
]
