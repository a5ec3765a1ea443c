"""
Wiring of configuration, stores and services.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .adapters.database import Database
from .adapters.reservation_store import SqlReservationStore
from .adapters.resource_store import SqlResourceStore
from .adapters.slot_store import SqlSlotStore
from .adapters.template_store import SqlTemplateStore
from .config import AppConfig
from .services.availability import AvailabilityService
from .services.booking import BookingTransaction, owner_or_customer_policy

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything a command needs, built from one configuration."""
    config: AppConfig
    database: Database
    resources: SqlResourceStore
    templates: SqlTemplateStore
    slots: SqlSlotStore
    reservations: SqlReservationStore
    availability: AvailabilityService
    booking: BookingTransaction


def build_services(config: AppConfig, database: Optional[Database] = None) -> Services:
    database = database or Database.from_url(config.database_url, config.storage_timeout_seconds)

    resources = SqlResourceStore(database)
    templates = SqlTemplateStore(database)
    slots = SqlSlotStore(database)
    reservations = SqlReservationStore(database)

    return Services(
        config=config,
        database=database,
        resources=resources,
        templates=templates,
        slots=slots,
        reservations=reservations,
        availability=AvailabilityService(
            resource_store=resources,
            template_store=templates,
            slot_store=slots,
            default_day=config.defaults.closed_day(),
        ),
        booking=BookingTransaction(
            database=database,
            slot_store=slots,
            reservation_store=reservations,
            cancel_policy=owner_or_customer_policy(resources),
        ),
    )


def sync_resources(services: Services) -> int:
    """
    Register every configured resource and publish its weekly hours.

    Returns the number of resources synced.
    """
    config = services.config
    for resource_config in config.resources:
        services.resources.upsert(resource_config.to_resource(config.timezone))
        services.availability.publish_template(
            resource_config.id,
            resource_config.to_template(config.defaults),
        )
        logger.info("Synced resource %s", resource_config.id)
    return len(config.resources)
