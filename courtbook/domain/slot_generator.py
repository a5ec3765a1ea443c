"""
Turns a weekly availability template into concrete candidate slots.

Pure domain logic: no database, no clock, no I/O. The same inputs always
produce the same candidates, so generation can be re-run safely.
"""

from datetime import datetime
from typing import Iterator, Optional

import pendulum
from pendulum import Date

from .models import AvailabilityTemplate, TimeRange


class SlotGenerator:
    """
    Generates bookable slots for one resource.

    Algorithm:
    1. Walk the calendar days of the horizon, starting at the reference date
    2. Look up each day's template entry through its weekday; skip closed days
    3. Anchor the opening window to the date in the resource's time zone
    4. Cut the window into consecutive chunks of the slot duration, the last
       chunk ending exactly at closing time
    """

    def __init__(self, template: AvailabilityTemplate, timezone: str):
        self.template = template
        self.timezone = timezone

    def generate(
        self,
        horizon_days: int,
        slot_duration_minutes: int,
        reference_now: datetime,
    ) -> Iterator[TimeRange]:
        """
        Lazily yield candidate slots in ascending start order.

        Args:
            horizon_days: Number of calendar days to cover, starting today
            slot_duration_minutes: Length of a regular slot
            reference_now: The moment that defines "today"

        Yields:
            Non-overlapping TimeRange objects. Nothing is yielded for a
            non-positive horizon or duration.
        """
        if horizon_days <= 0 or slot_duration_minutes <= 0:
            return

        today = pendulum.instance(reference_now).in_timezone(self.timezone).date()

        for offset in range(horizon_days):
            window = self._window_for_day(today.add(days=offset))
            if window is None:
                continue
            yield from self._partition_window(window, slot_duration_minutes)

    def _window_for_day(self, day: Date) -> Optional[TimeRange]:
        """Opening window for a calendar day, or None when closed."""
        return self.template.for_date(day).window_on(day, self.timezone)

    def _partition_window(
        self,
        window: TimeRange,
        slot_duration_minutes: int,
    ) -> Iterator[TimeRange]:
        """
        Split an opening window into slots.

        Example (30 minute slots):
        Window: 08:00 - 08:50
        Result: [08:00-08:30, 08:30-08:50]

        A window shorter than one slot yields nothing.
        """
        if window.start.add(minutes=slot_duration_minutes) > window.end:
            return

        current_start = window.start
        while current_start < window.end:
            current_end = min(current_start.add(minutes=slot_duration_minutes), window.end)
            yield TimeRange(start=current_start, end=current_end)
            current_start = current_end
