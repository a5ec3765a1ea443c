"""
Domain models for availability templates, slots and reservations.
"""

from dataclasses import dataclass, replace
from datetime import date, time
from enum import Enum, IntEnum
from typing import Mapping, Optional, Tuple

import pendulum
from pendulum import DateTime

from .exceptions import ValidationError


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another."""
        return self.start < other.end and self.end > other.start

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


class Weekday(IntEnum):
    """
    Days of the week, numbered from Monday.

    The numbering belongs to this enum alone; ``Weekday.of`` is the only
    place a calendar date is mapped onto it.
    """
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @classmethod
    def of(cls, day: date) -> "Weekday":
        """Map a calendar date to its weekday (ISO weekday 1 = Monday)."""
        return cls(day.isoweekday() - 1)

    @classmethod
    def parse(cls, name: str) -> "Weekday":
        """Parse a full or three-letter English weekday name."""
        key = name.strip().lower()
        for weekday in cls:
            full = weekday.name.lower()
            if key == full or key == full[:3]:
                return weekday
        raise ValidationError(f"Unknown weekday: '{name}'")

    @property
    def label(self) -> str:
        return self.name.capitalize()


@dataclass(frozen=True)
class DayAvailability:
    """Opening window for one weekday of a template."""
    enabled: bool
    open: time
    close: time

    def window_on(self, day: date, timezone: str) -> Optional[TimeRange]:
        """
        Absolute opening window on a calendar date in the given time zone.

        Returns None for a disabled day or an empty window.
        """
        if not self.enabled or self.close <= self.open:
            return None

        start = pendulum.datetime(
            day.year, day.month, day.day,
            self.open.hour, self.open.minute,
            tz=timezone,
        )
        end = pendulum.datetime(
            day.year, day.month, day.day,
            self.close.hour, self.close.minute,
            tz=timezone,
        )
        if end <= start:
            return None
        return TimeRange(start=start, end=end)


DEFAULT_OPEN = time(8, 0)
DEFAULT_CLOSE = time(22, 0)


def closed_day(open_time: time = DEFAULT_OPEN, close_time: time = DEFAULT_CLOSE) -> DayAvailability:
    """A disabled day that still remembers the hours it would open with."""
    return DayAvailability(enabled=False, open=open_time, close=close_time)


@dataclass(frozen=True)
class AvailabilityTemplate:
    """
    Weekly availability of one resource: exactly one entry per weekday,
    indexed by ``Weekday``.
    """
    days: Tuple[DayAvailability, ...]

    def __post_init__(self):
        if len(self.days) != len(Weekday):
            raise ValidationError(
                f"An availability template needs {len(Weekday)} days, got {len(self.days)}"
            )

    @classmethod
    def from_mapping(
        cls,
        days: Mapping[Weekday, DayAvailability],
        default: Optional[DayAvailability] = None,
    ) -> "AvailabilityTemplate":
        """Build a template, filling weekdays missing from ``days`` with ``default``."""
        fallback = default or closed_day()
        return cls(days=tuple(days.get(weekday, fallback) for weekday in Weekday))

    @classmethod
    def closed(cls) -> "AvailabilityTemplate":
        return cls.from_mapping({})

    def for_weekday(self, weekday: Weekday) -> DayAvailability:
        return self.days[weekday]

    def for_date(self, day: date) -> DayAvailability:
        return self.days[Weekday.of(day)]

    def with_day(self, weekday: Weekday, availability: DayAvailability) -> "AvailabilityTemplate":
        """Return a copy with one weekday replaced."""
        days = list(self.days)
        days[weekday] = availability
        return replace(self, days=tuple(days))

    def validate(self) -> None:
        """
        Reject enabled days whose window does not open before it closes.

        Raises:
            ValidationError: listing every offending weekday
        """
        invalid = [
            Weekday(index).label
            for index, day in enumerate(self.days)
            if day.enabled and not day.open < day.close
        ]
        if invalid:
            raise ValidationError(
                f"Opening time must be before closing time on: {', '.join(invalid)}"
            )


@dataclass(frozen=True)
class Resource:
    """A bookable facility as registered by its owner."""
    id: str
    owner_id: str
    name: str = ""
    timezone: str = "Europe/Ljubljana"


class SlotStatus(str, Enum):
    FREE = "free"
    BOOKED = "booked"


class ReservationStatus(str, Enum):
    ACTIVE = "active"
    CANCELED = "canceled"


@dataclass(frozen=True)
class Slot:
    id: int
    resource_id: str
    start: DateTime
    end: DateTime
    status: SlotStatus

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)

    def format_display(self, timezone: str) -> str:
        """
        Format the slot for display in the resource's local time.
        Format: HH:MM – HH:MM (N min)
        """
        start = self.start.in_timezone(timezone)
        end = self.end.in_timezone(timezone)
        return f"{start.format('HH:mm')} – {end.format('HH:mm')} ({self.time_range.duration_minutes()} min)"


@dataclass(frozen=True)
class Reservation:
    """
    A customer's claim on one slot. Canceled reservations are kept as an
    audit trail.
    """
    id: int
    customer_id: str
    resource_id: str
    slot_id: Optional[int]
    reserved_at: DateTime
    status: ReservationStatus
    created_at: DateTime
    canceled_at: Optional[DateTime] = None
    canceled_by: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status is ReservationStatus.ACTIVE
