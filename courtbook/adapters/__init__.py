"""
Adapters layer - SQLAlchemy persistence for resources, templates, slots and reservations.
"""

from .database import Database, create_database_engine
from .reservation_store import SqlReservationStore
from .resource_store import SqlResourceStore
from .slot_store import PersistResult, SqlSlotStore
from .template_store import SqlTemplateStore

__all__ = [
    "Database",
    "create_database_engine",
    "PersistResult",
    "SqlReservationStore",
    "SqlResourceStore",
    "SqlSlotStore",
    "SqlTemplateStore",
]
