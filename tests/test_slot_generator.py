"""
Tests for slot generator.
"""

import inspect
from datetime import time

import pendulum

from courtbook.domain.models import AvailabilityTemplate, DayAvailability, Weekday
from courtbook.domain.slot_generator import SlotGenerator

TZ = "Europe/Ljubljana"
MONDAY = pendulum.datetime(2024, 11, 25, 0, 0, tz=TZ)


def _open(open_at: time, close_at: time) -> DayAvailability:
    return DayAvailability(enabled=True, open=open_at, close=close_at)


def _every_day(open_at: time, close_at: time) -> AvailabilityTemplate:
    return AvailabilityTemplate.from_mapping({day: _open(open_at, close_at) for day in Weekday})


class TestSlotGenerator:
    """Tests for SlotGenerator."""

    def test_truncated_final_slot(self):
        """A 50 minute window with 30 minute slots ends with a 20 minute slot."""
        template = AvailabilityTemplate.from_mapping({Weekday.MONDAY: _open(time(8, 0), time(8, 50))})
        generator = SlotGenerator(template=template, timezone=TZ)

        slots = list(generator.generate(horizon_days=1, slot_duration_minutes=30, reference_now=MONDAY))

        assert len(slots) == 2
        assert (slots[0].start.format("HH:mm"), slots[0].end.format("HH:mm")) == ("08:00", "08:30")
        assert (slots[1].start.format("HH:mm"), slots[1].end.format("HH:mm")) == ("08:30", "08:50")
        assert slots[1].duration_minutes() == 20

    def test_even_partition(self):
        generator = SlotGenerator(template=_every_day(time(8, 0), time(10, 0)), timezone=TZ)

        slots = list(generator.generate(horizon_days=1, slot_duration_minutes=30, reference_now=MONDAY))

        assert [slot.duration_minutes() for slot in slots] == [30, 30, 30, 30]
        assert slots[-1].end.format("HH:mm") == "10:00"

    def test_disabled_day_produces_no_slots(self):
        """Closed Saturdays stay empty on every Saturday of the horizon."""
        template = _every_day(time(8, 0), time(12, 0)).with_day(
            Weekday.SATURDAY,
            DayAvailability(enabled=False, open=time(8, 0), close=time(12, 0)),
        )
        generator = SlotGenerator(template=template, timezone=TZ)

        slots = list(generator.generate(horizon_days=21, slot_duration_minutes=60, reference_now=MONDAY))

        weekdays = {Weekday.of(slot.start.in_timezone(TZ).date()) for slot in slots}
        assert Weekday.SATURDAY not in weekdays
        assert weekdays == set(Weekday) - {Weekday.SATURDAY}
        assert len(slots) == 18 * 4

    def test_window_shorter_than_duration(self):
        template = AvailabilityTemplate.from_mapping({Weekday.MONDAY: _open(time(8, 0), time(8, 20))})
        generator = SlotGenerator(template=template, timezone=TZ)

        assert list(generator.generate(horizon_days=1, slot_duration_minutes=30, reference_now=MONDAY)) == []

    def test_degenerate_inputs_yield_nothing(self):
        generator = SlotGenerator(template=_every_day(time(8, 0), time(10, 0)), timezone=TZ)

        assert list(generator.generate(horizon_days=0, slot_duration_minutes=30, reference_now=MONDAY)) == []
        assert list(generator.generate(horizon_days=-3, slot_duration_minutes=30, reference_now=MONDAY)) == []
        assert list(generator.generate(horizon_days=7, slot_duration_minutes=0, reference_now=MONDAY)) == []
        assert list(generator.generate(horizon_days=7, slot_duration_minutes=-15, reference_now=MONDAY)) == []

    def test_inverted_window_yields_nothing(self):
        """An unvalidated template with close before open is treated as closed."""
        template = AvailabilityTemplate.from_mapping({Weekday.MONDAY: _open(time(10, 0), time(8, 0))})
        generator = SlotGenerator(template=template, timezone=TZ)

        assert list(generator.generate(horizon_days=1, slot_duration_minutes=30, reference_now=MONDAY)) == []

    def test_sorted_and_non_overlapping(self):
        generator = SlotGenerator(template=_every_day(time(7, 0), time(21, 45)), timezone=TZ)

        slots = list(generator.generate(horizon_days=14, slot_duration_minutes=45, reference_now=MONDAY))

        assert slots
        for previous, current in zip(slots, slots[1:]):
            assert previous.start < current.start
            assert not previous.overlaps(current)

    def test_generation_is_lazy_and_restartable(self):
        generator = SlotGenerator(template=_every_day(time(8, 0), time(10, 0)), timezone=TZ)

        first = generator.generate(horizon_days=3, slot_duration_minutes=60, reference_now=MONDAY)
        assert inspect.isgenerator(first)

        second = generator.generate(horizon_days=3, slot_duration_minutes=60, reference_now=MONDAY)
        assert list(first) == list(second)

    def test_slots_are_anchored_in_resource_time_zone(self):
        generator = SlotGenerator(template=_every_day(time(8, 0), time(9, 0)), timezone=TZ)

        slots = list(generator.generate(horizon_days=1, slot_duration_minutes=60, reference_now=MONDAY))

        assert len(slots) == 1
        assert slots[0].start.in_timezone("UTC").hour == 7

    def test_today_is_resolved_in_resource_time_zone(self):
        """23:30 UTC on Sunday is already Monday in Ljubljana."""
        template = AvailabilityTemplate.from_mapping({Weekday.MONDAY: _open(time(8, 0), time(9, 0))})
        generator = SlotGenerator(template=template, timezone=TZ)
        reference = pendulum.datetime(2024, 11, 24, 23, 30, tz="UTC")

        slots = list(generator.generate(horizon_days=1, slot_duration_minutes=60, reference_now=reference))

        assert len(slots) == 1
        assert slots[0].start.in_timezone(TZ).date() == pendulum.date(2024, 11, 25)
