"""
Shared fixtures: a fresh SQLite database per test and two registered courts.
"""

import pendulum
import pytest

from courtbook.adapters.database import Database
from courtbook.bootstrap import build_services, sync_resources
from courtbook.config import AppConfig

TZ = "Europe/Ljubljana"

# Monday, 25 November 2024, midnight local time
MONDAY = pendulum.datetime(2024, 11, 25, 0, 0, tz=TZ)

WEEKDAY_HOURS = {"open": "08:00", "close": "10:00"}


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(
        database_url="sqlite://",
        timezone=TZ,
        resources=[
            {
                "id": "court-1",
                "owner_id": "owner-1",
                "name": "Court 1",
                "hours": {
                    "monday": WEEKDAY_HOURS,
                    "tuesday": WEEKDAY_HOURS,
                    "wednesday": WEEKDAY_HOURS,
                    "thursday": WEEKDAY_HOURS,
                    "friday": WEEKDAY_HOURS,
                    "saturday": None,
                },
            },
            {
                "id": "court-2",
                "owner_id": "owner-2",
                "name": "Court 2",
                "hours": {"monday": WEEKDAY_HOURS},
            },
        ],
    )


@pytest.fixture
def database(tmp_path):
    db = Database.from_url(f"sqlite:///{tmp_path / 'courtbook.db'}", timeout_seconds=5)
    db.create_schema()
    yield db
    db.dispose()


@pytest.fixture
def services(config, database):
    services = build_services(config, database=database)
    sync_resources(services)
    return services


@pytest.fixture
def court_slots(services):
    """One week of generated slots for court-1 (ten 60 minute slots)."""
    services.availability.generate_slots(
        "court-1",
        horizon_days=7,
        slot_duration_minutes=60,
        reference_now=MONDAY,
    )
    return services.slots.list_all("court-1")
