"""
Append-only persistence for reservations.

Rows are never deleted. The only mutation is the active -> canceled
transition, performed through ``mark_canceled`` inside a booking transaction.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..domain.models import Reservation, ReservationStatus
from .database import Database
from .tables import ReservationRow, utc_now


def reservation_from_row(row: ReservationRow) -> Reservation:
    return Reservation(
        id=row.id,
        customer_id=row.customer_id,
        resource_id=row.resource_id,
        slot_id=row.slot_id,
        reserved_at=row.reserved_at,
        status=ReservationStatus(row.status),
        created_at=row.created_at,
        canceled_at=row.canceled_at,
        canceled_by=row.canceled_by,
    )


class SqlReservationStore:
    def __init__(self, database: Database):
        self._database = database

    def get(self, reservation_id: int) -> Optional[Reservation]:
        with self._database.session() as session:
            return self.fetch(session, reservation_id)

    def list_by_customer(self, customer_id: str, include_canceled: bool = True) -> List[Reservation]:
        """A customer's reservations, newest first."""
        return self._list(ReservationRow.customer_id == customer_id, include_canceled)

    def list_by_resource(self, resource_id: str, include_canceled: bool = True) -> List[Reservation]:
        """Reservations made on a resource, newest first."""
        return self._list(ReservationRow.resource_id == resource_id, include_canceled)

    def _list(self, criterion, include_canceled: bool) -> List[Reservation]:
        with self._database.session() as session:
            query = session.query(ReservationRow).filter(criterion)
            if not include_canceled:
                query = query.filter(ReservationRow.status == ReservationStatus.ACTIVE.value)
            rows = query.order_by(ReservationRow.created_at.desc(), ReservationRow.id.desc()).all()
            return [reservation_from_row(row) for row in rows]

    # Session-scoped helpers used by the booking transaction.

    @staticmethod
    def fetch(session: Session, reservation_id: int) -> Optional[Reservation]:
        row = session.get(ReservationRow, reservation_id)
        return reservation_from_row(row) if row else None

    @staticmethod
    def add_active(
        session: Session,
        *,
        customer_id: str,
        resource_id: str,
        slot_id: int,
        reserved_at: datetime,
    ) -> Reservation:
        """Insert an active reservation and flush it so constraints fire now."""
        row = ReservationRow(
            customer_id=customer_id,
            resource_id=resource_id,
            slot_id=slot_id,
            reserved_at=reserved_at,
            status=ReservationStatus.ACTIVE.value,
            created_at=utc_now(),
        )
        session.add(row)
        session.flush()
        return reservation_from_row(row)

    @staticmethod
    def mark_canceled(
        session: Session,
        reservation_id: int,
        *,
        canceled_by: str,
        canceled_at: datetime,
    ) -> bool:
        """Compare-and-set a reservation from active to canceled."""
        result = session.execute(
            update(ReservationRow)
            .where(
                ReservationRow.id == reservation_id,
                ReservationRow.status == ReservationStatus.ACTIVE.value,
            )
            .values(
                status=ReservationStatus.CANCELED.value,
                canceled_by=canceled_by,
                canceled_at=canceled_at,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
