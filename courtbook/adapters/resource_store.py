"""
Registry of bookable resources.

Resources are owned by the facility catalogue; this store only keeps the
fields the booking engine needs (owner, display name, time zone).
"""

from typing import List, Optional

from ..domain.models import Resource
from .database import Database
from .tables import ResourceRow


def _to_domain(row: ResourceRow) -> Resource:
    return Resource(id=row.id, owner_id=row.owner_id, name=row.name, timezone=row.timezone)


class SqlResourceStore:
    def __init__(self, database: Database):
        self._database = database

    def upsert(self, resource: Resource) -> Resource:
        """Register a resource or refresh its owner, name and time zone."""
        with self._database.session() as session:
            row = session.get(ResourceRow, resource.id)
            if row is None:
                row = ResourceRow(id=resource.id)
                session.add(row)
            row.owner_id = resource.owner_id
            row.name = resource.name
            row.timezone = resource.timezone
        return resource

    def get(self, resource_id: str) -> Optional[Resource]:
        with self._database.session() as session:
            row = session.get(ResourceRow, resource_id)
            return _to_domain(row) if row else None

    def list_all(self) -> List[Resource]:
        with self._database.session() as session:
            rows = session.query(ResourceRow).order_by(ResourceRow.id).all()
            return [_to_domain(row) for row in rows]
