"""
Tests for the availability service: publishing hours and generating slots.
"""

from datetime import time

import pytest

from courtbook.domain.exceptions import ResourceNotFound, ValidationError
from courtbook.domain.models import (
    AvailabilityTemplate,
    DayAvailability,
    SlotStatus,
    Weekday,
)

from conftest import MONDAY


class TestGenerateSlots:
    """Tests for AvailabilityService.generate_slots."""

    def test_one_week_of_slots(self, services):
        result = services.availability.generate_slots(
            "court-1", horizon_days=7, slot_duration_minutes=60, reference_now=MONDAY
        )

        assert result.inserted == 10  # Monday to Friday, 08:00-10:00
        assert result.skipped == 0
        slots = services.slots.list_all("court-1")
        assert all(slot.status is SlotStatus.FREE for slot in slots)
        assert {Weekday.of(slot.start.in_timezone("Europe/Ljubljana").date()) for slot in slots} == {
            Weekday.MONDAY,
            Weekday.TUESDAY,
            Weekday.WEDNESDAY,
            Weekday.THURSDAY,
            Weekday.FRIDAY,
        }

    def test_started_slots_are_not_offered(self, services):
        result = services.availability.generate_slots(
            "court-1",
            horizon_days=7,
            slot_duration_minutes=60,
            reference_now=MONDAY.add(hours=8, minutes=30),
        )

        assert result.inserted == 9
        assert services.slots.list_all("court-1")[0].start == MONDAY.add(hours=9)

    def test_wider_horizon_only_adds_missing_slots(self, services):
        services.availability.generate_slots(
            "court-1", horizon_days=7, slot_duration_minutes=60, reference_now=MONDAY
        )

        result = services.availability.generate_slots(
            "court-1", horizon_days=14, slot_duration_minutes=60, reference_now=MONDAY
        )

        assert result.inserted == 10
        assert result.skipped == 10
        assert len(services.slots.list_all("court-1")) == 20

    def test_booked_slots_survive_regeneration(self, services, court_slots):
        reservation = services.booking.reserve("customer-1", "court-1", court_slots[0].id)

        result = services.availability.generate_slots(
            "court-1", horizon_days=7, slot_duration_minutes=60, reference_now=MONDAY
        )

        assert result.inserted == 0
        assert services.slots.get(reservation.slot_id).status is SlotStatus.BOOKED

    @pytest.mark.parametrize("horizon_days, duration", [(0, 60), (7, 0), (-1, 60), (7, -30)])
    def test_non_positive_inputs_rejected(self, services, horizon_days, duration):
        with pytest.raises(ValidationError):
            services.availability.generate_slots(
                "court-1",
                horizon_days=horizon_days,
                slot_duration_minutes=duration,
                reference_now=MONDAY,
            )

    def test_unknown_resource(self, services):
        with pytest.raises(ResourceNotFound):
            services.availability.generate_slots(
                "court-404", horizon_days=7, slot_duration_minutes=60, reference_now=MONDAY
            )


class TestTemplates:
    """Tests for publishing and editing weekly hours."""

    def test_synced_template_is_stored(self, services):
        template = services.availability.template_for("court-1")

        assert template.for_weekday(Weekday.MONDAY).open == time(8, 0)
        assert template.for_weekday(Weekday.MONDAY).close == time(10, 0)
        assert not template.for_weekday(Weekday.SATURDAY).enabled
        assert not template.for_weekday(Weekday.SUNDAY).enabled

    def test_set_day_keeps_other_days(self, services):
        sunday = DayAvailability(enabled=True, open=time(10, 0), close=time(12, 0))

        services.availability.set_day("court-1", Weekday.SUNDAY, sunday)

        template = services.availability.template_for("court-1")
        assert template.for_weekday(Weekday.SUNDAY) == sunday
        assert template.for_weekday(Weekday.MONDAY).enabled

    def test_set_day_changes_generated_slots(self, services):
        services.availability.set_day(
            "court-2",
            Weekday.MONDAY,
            DayAvailability(enabled=True, open=time(18, 0), close=time(21, 0)),
        )

        result = services.availability.generate_slots(
            "court-2", horizon_days=1, slot_duration_minutes=90, reference_now=MONDAY
        )

        assert result.inserted == 2
        starts = [slot.start for slot in services.slots.list_all("court-2")]
        assert starts == [MONDAY.add(hours=18), MONDAY.add(hours=19, minutes=30)]

    def test_invalid_template_rejected(self, services):
        broken = AvailabilityTemplate.from_mapping(
            {Weekday.MONDAY: DayAvailability(enabled=True, open=time(12, 0), close=time(9, 0))}
        )

        with pytest.raises(ValidationError, match="Monday"):
            services.availability.publish_template("court-1", broken)

        assert services.availability.template_for("court-1").for_weekday(Weekday.MONDAY).open == time(8, 0)

    def test_publish_for_unknown_resource(self, services):
        with pytest.raises(ResourceNotFound):
            services.availability.publish_template("court-404", AvailabilityTemplate.closed())


class TestFreeSlots:
    """Tests for AvailabilityService.free_slots."""

    def test_window_from_start(self, services, court_slots):
        free = services.availability.free_slots("court-1", days=1, start=MONDAY)

        assert [slot.start for slot in free] == [MONDAY.add(hours=8), MONDAY.add(hours=9)]

    def test_booked_slots_are_not_listed(self, services, court_slots):
        services.booking.reserve("customer-1", "court-1", court_slots[0].id)

        free = services.availability.free_slots("court-1", days=7, start=MONDAY)

        assert len(free) == 9
        assert court_slots[0].id not in {slot.id for slot in free}

    def test_non_positive_days_rejected(self, services):
        with pytest.raises(ValidationError):
            services.availability.free_slots("court-1", days=0, start=MONDAY)
