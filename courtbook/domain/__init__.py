"""
Domain layer - Pure business logic without external dependencies.
"""

from .models import (
    AvailabilityTemplate,
    DayAvailability,
    Reservation,
    ReservationStatus,
    Resource,
    Slot,
    SlotStatus,
    TimeRange,
    Weekday,
)
from .slot_generator import SlotGenerator

__all__ = [
    "AvailabilityTemplate",
    "DayAvailability",
    "Reservation",
    "ReservationStatus",
    "Resource",
    "Slot",
    "SlotStatus",
    "SlotGenerator",
    "TimeRange",
    "Weekday",
]
