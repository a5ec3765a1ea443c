"""
Domain-specific exception hierarchy for the booking engine.
"""


class BookingError(Exception):
    """Base class for all application-level errors."""


class ValidationError(BookingError):
    """Raised when a template, duration or horizon is malformed."""


class ResourceNotFound(BookingError):
    """Raised when slots are created for a resource that is not registered."""


class SlotUnavailable(BookingError):
    """Raised when a slot is missing, belongs elsewhere, or is already booked."""


class ReservationNotFound(BookingError):
    """Raised when a reservation id does not exist."""


class AlreadyCanceled(BookingError):
    """Raised by strict cancellation of a reservation that is no longer active."""


class NotPermitted(BookingError):
    """Raised when the cancel policy rejects the acting account."""


class StorageFault(BookingError):
    """Raised when the persistence layer cannot complete an operation in time."""
