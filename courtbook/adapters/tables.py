"""
SQLAlchemy table definitions.

Timestamps are stored as naive UTC and handed back as aware pendulum
DateTimes, so SQLite and PostgreSQL compare them the same way.
"""

import pendulum
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Time,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

Base = declarative_base()


def utc_now():
    return pendulum.now("UTC")


class UTCDateTime(TypeDecorator):
    """DateTime column that always stores UTC."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return pendulum.instance(value).in_timezone("UTC").naive()

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return pendulum.instance(value, tz="UTC")


class ResourceRow(Base):
    __tablename__ = "resource"

    id = Column(String(64), primary_key=True)
    owner_id = Column(String(64), nullable=False)
    name = Column(String(255), nullable=False, default="")
    timezone = Column(String(64), nullable=False)
    # Touched by every slot-generation run; serializes concurrent runs per resource
    slots_generated_at = Column(UTCDateTime, nullable=True)


class AvailabilityTemplateRow(Base):
    __tablename__ = "availability_template"

    resource_id = Column(ForeignKey("resource.id", ondelete="CASCADE"), primary_key=True)
    weekday = Column(Integer, primary_key=True)  # courtbook.domain.Weekday
    enabled = Column(Boolean, nullable=False, default=False)
    open_time = Column(Time, nullable=False)
    close_time = Column(Time, nullable=False)

    __table_args__ = (
        CheckConstraint("weekday BETWEEN 0 AND 6", name="ck_template_weekday"),
    )


class SlotRow(Base):
    __tablename__ = "slot"

    id = Column(Integer, primary_key=True)
    resource_id = Column(ForeignKey("resource.id", ondelete="CASCADE"), nullable=False)
    start_at = Column(UTCDateTime, nullable=False)
    end_at = Column(UTCDateTime, nullable=False)
    status = Column(String(16), nullable=False, default="free")  # free | booked

    __table_args__ = (
        UniqueConstraint("resource_id", "start_at", "end_at", name="uq_slot_resource_window"),
        CheckConstraint("start_at < end_at", name="ck_slot_interval"),
        CheckConstraint("status IN ('free', 'booked')", name="ck_slot_status"),
        Index("ix_slot_resource_start", "resource_id", "start_at"),
    )


class ReservationRow(Base):
    __tablename__ = "reservation"

    id = Column(Integer, primary_key=True)
    customer_id = Column(String(64), nullable=False, index=True)
    resource_id = Column(ForeignKey("resource.id"), nullable=False, index=True)
    slot_id = Column(ForeignKey("slot.id"), nullable=True)
    reserved_at = Column(UTCDateTime, nullable=False)
    status = Column(String(16), nullable=False, default="active")  # active | canceled
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    canceled_at = Column(UTCDateTime, nullable=True)
    canceled_by = Column(String(64), nullable=True)

    __table_args__ = (
        CheckConstraint("status IN ('active', 'canceled')", name="ck_reservation_status"),
        # At most one active reservation per slot
        Index(
            "uq_reservation_active_slot",
            "slot_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )
