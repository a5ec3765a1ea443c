"""
Persistence for weekly availability templates (seven rows per resource).
"""

from typing import Dict, Optional

from ..domain.exceptions import ResourceNotFound
from ..domain.models import AvailabilityTemplate, DayAvailability, Weekday
from .database import Database
from .tables import AvailabilityTemplateRow, ResourceRow


class SqlTemplateStore:
    def __init__(self, database: Database):
        self._database = database

    def save(self, resource_id: str, template: AvailabilityTemplate) -> None:
        """
        Replace the stored template of a resource.

        Raises:
            ResourceNotFound: if the resource is not registered
        """
        with self._database.session() as session:
            if session.get(ResourceRow, resource_id) is None:
                raise ResourceNotFound(f"Unknown resource: {resource_id}")

            existing: Dict[int, AvailabilityTemplateRow] = {
                row.weekday: row
                for row in session.query(AvailabilityTemplateRow).filter(
                    AvailabilityTemplateRow.resource_id == resource_id
                )
            }

            for weekday in Weekday:
                day = template.for_weekday(weekday)
                row = existing.get(int(weekday))
                if row is None:
                    row = AvailabilityTemplateRow(resource_id=resource_id, weekday=int(weekday))
                    session.add(row)
                row.enabled = day.enabled
                row.open_time = day.open
                row.close_time = day.close

    def load(
        self,
        resource_id: str,
        default: Optional[DayAvailability] = None,
    ) -> AvailabilityTemplate:
        """
        Load a resource's template. Weekdays without a stored row fall back to
        ``default`` (a closed day unless given).
        """
        with self._database.session() as session:
            rows = (
                session.query(AvailabilityTemplateRow)
                .filter(AvailabilityTemplateRow.resource_id == resource_id)
                .all()
            )
            days = {
                Weekday(row.weekday): DayAvailability(
                    enabled=row.enabled,
                    open=row.open_time,
                    close=row.close_time,
                )
                for row in rows
            }

        return AvailabilityTemplate.from_mapping(days, default=default)
