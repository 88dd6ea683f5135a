"""Domain-specific exceptions for the rental record store."""

class ValidationError(ValueError):
    """Raised when provided data does not meet validation requirements."""


class RecordNotFoundError(LookupError):
    """Raised when a record id is absent from its collection."""


class BookingConflictError(RuntimeError):
    """Raised when a change collides with confirmed bookings (overlapping stay, booked property)."""

    def __init__(self, message: str, conflicts=None) -> None:
        super().__init__(message)
        self.conflicts = list(conflicts or [])


class PermissionDeniedError(PermissionError):
    """Raised when a role or ownership rule forbids the requested change."""


class StorageUnavailableError(IOError):
    """Raised when a collection file cannot be read or written for reasons other than absence."""
