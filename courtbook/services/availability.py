"""
Application service for publishing availability and generating slots.

The service coordinates the template and slot stores and delegates the
actual slot calculation to the domain-level ``SlotGenerator``. This keeps the
CLI thin and the generator free of persistence concerns.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

import pendulum

from ..adapters.resource_store import SqlResourceStore
from ..adapters.slot_store import PersistResult, SqlSlotStore
from ..adapters.template_store import SqlTemplateStore
from ..domain.exceptions import ResourceNotFound, ValidationError
from ..domain.models import AvailabilityTemplate, DayAvailability, Resource, Slot, Weekday
from ..domain.slot_generator import SlotGenerator

logger = logging.getLogger(__name__)


class AvailabilityService:
    """Owner-facing operations: weekly hours and slot generation."""

    def __init__(
        self,
        resource_store: SqlResourceStore,
        template_store: SqlTemplateStore,
        slot_store: SqlSlotStore,
        default_day: Optional[DayAvailability] = None,
    ) -> None:
        self._resources = resource_store
        self._templates = template_store
        self._slots = slot_store
        self._default_day = default_day

    def resource(self, resource_id: str) -> Resource:
        resource = self._resources.get(resource_id)
        if resource is None:
            raise ResourceNotFound(f"Unknown resource: {resource_id}")
        return resource

    def template_for(self, resource_id: str) -> AvailabilityTemplate:
        return self._templates.load(resource_id, default=self._default_day)

    def publish_template(self, resource_id: str, template: AvailabilityTemplate) -> None:
        """Validate and store the weekly template of a resource."""
        template.validate()
        self._templates.save(resource_id, template)
        logger.info("Published availability template for resource %s", resource_id)

    def set_day(self, resource_id: str, weekday: Weekday, day: DayAvailability) -> AvailabilityTemplate:
        """Change the hours of one weekday, keeping the other six."""
        template = self.template_for(resource_id).with_day(weekday, day)
        self.publish_template(resource_id, template)
        return template

    def generate_slots(
        self,
        resource_id: str,
        *,
        horizon_days: int,
        slot_duration_minutes: int,
        reference_now: Optional[datetime] = None,
    ) -> PersistResult:
        """
        Generate slots from the stored template and persist them.

        Candidates that have already started at ``reference_now`` are not
        offered. Running this again with the same or a wider horizon only
        adds the missing slots.

        Raises:
            ValidationError: non-positive horizon or duration, invalid template
            ResourceNotFound: the resource is not registered
        """
        if horizon_days <= 0:
            raise ValidationError(f"horizon_days must be greater than zero, got {horizon_days}")
        if slot_duration_minutes <= 0:
            raise ValidationError(
                f"slot_duration_minutes must be greater than zero, got {slot_duration_minutes}"
            )

        resource = self.resource(resource_id)
        template = self.template_for(resource_id)
        template.validate()

        now = pendulum.instance(reference_now) if reference_now else pendulum.now("UTC")
        generator = SlotGenerator(template=template, timezone=resource.timezone)

        candidates = (
            candidate
            for candidate in generator.generate(
                horizon_days=horizon_days,
                slot_duration_minutes=slot_duration_minutes,
                reference_now=now,
            )
            if candidate.start >= now
        )

        result = self._slots.persist_candidates(resource_id, candidates)
        logger.info(
            "Generated slots for resource %s over %s days: %s inserted, %s skipped",
            resource_id, horizon_days, result.inserted, result.skipped,
        )
        return result

    def free_slots(
        self,
        resource_id: str,
        *,
        days: int = 30,
        start: Optional[datetime] = None,
    ) -> List[Slot]:
        """Free slots from ``start`` (default: now) for the next ``days`` days."""
        if days <= 0:
            raise ValidationError(f"days must be greater than zero, got {days}")

        window_start = pendulum.instance(start) if start else pendulum.now("UTC")
        return self._slots.list_free(resource_id, window_start, window_start.add(days=days))
