"""
Reserve and cancel slots atomically.

Both operations run in a single database transaction spanning the slot and
the reservation tables. Any failure inside the transaction rolls back both
sides, so an active reservation always points at a booked slot.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Optional, Protocol, TypeVar

from sqlalchemy.exc import IntegrityError

from ..adapters.database import Database
from ..adapters.reservation_store import SqlReservationStore
from ..adapters.resource_store import SqlResourceStore
from ..adapters.slot_store import SqlSlotStore
from ..adapters.tables import utc_now
from ..domain.exceptions import (
    AlreadyCanceled,
    NotPermitted,
    ReservationNotFound,
    SlotUnavailable,
    StorageFault,
)
from ..domain.models import Reservation, ReservationStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancelPolicy(Protocol):
    """Decides whether an account may cancel a reservation."""

    def __call__(self, reservation: Reservation, actor_id: str) -> bool:
        """Return True if ``actor_id`` may cancel ``reservation``."""


def owner_or_customer_policy(resources: SqlResourceStore) -> CancelPolicy:
    """Allow the customer who made the reservation or the resource owner."""

    def policy(reservation: Reservation, actor_id: str) -> bool:
        if actor_id == reservation.customer_id:
            return True
        resource = resources.get(reservation.resource_id)
        return resource is not None and resource.owner_id == actor_id

    return policy


def call_with_retry(operation: Callable[[], T], retries: int = 1) -> T:
    """
    Run ``operation``, retrying after a ``StorageFault`` at most ``retries`` times.

    Safe for reserve and cancel because a failed attempt leaves nothing behind.
    """
    attempt = 0
    while True:
        try:
            return operation()
        except StorageFault as exc:
            if attempt >= retries:
                raise
            attempt += 1
            logger.warning("Storage fault, retrying (%s/%s): %s", attempt, retries, exc)


class BookingTransaction:
    """
    Orchestrates the slot and reservation stores.

    The identity layer is responsible for who the caller is; this class only
    receives the ids and, through an optional ``CancelPolicy``, lets the
    caller plug in who may cancel what.
    """

    def __init__(
        self,
        database: Database,
        slot_store: SqlSlotStore,
        reservation_store: SqlReservationStore,
        cancel_policy: Optional[CancelPolicy] = None,
    ) -> None:
        self._database = database
        self._slots = slot_store
        self._reservations = reservation_store
        self._cancel_policy = cancel_policy

    def reserve(self, customer_id: str, resource_id: str, slot_id: int) -> Reservation:
        """
        Book a free slot for a customer.

        The slot is flipped from free to booked by a conditional update and
        the reservation is inserted in the same transaction. Losing either
        check rolls everything back.

        Raises:
            SlotUnavailable: slot missing, on another resource, or already booked
            StorageFault: the database failed or timed out
        """
        try:
            with self._database.session() as session:
                if not self._slots.mark_booked(session, slot_id, resource_id):
                    raise SlotUnavailable(
                        f"Slot {slot_id} of resource {resource_id} is not available"
                    )

                slot = self._slots.fetch(session, slot_id)
                try:
                    reservation = self._reservations.add_active(
                        session,
                        customer_id=customer_id,
                        resource_id=resource_id,
                        slot_id=slot_id,
                        reserved_at=slot.start,
                    )
                except IntegrityError as exc:
                    raise SlotUnavailable(
                        f"Slot {slot_id} of resource {resource_id} already has an active reservation"
                    ) from exc
        except SlotUnavailable:
            logger.info("Customer %s could not reserve slot %s: not available", customer_id, slot_id)
            raise

        logger.info(
            "Customer %s reserved slot %s of resource %s (reservation %s)",
            customer_id, slot_id, resource_id, reservation.id,
        )
        return reservation

    def cancel(self, reservation_id: int, actor_id: str, strict: bool = False) -> Reservation:
        """
        Cancel a reservation and free its slot.

        Canceling a reservation that is already canceled returns it unchanged,
        so retried requests are harmless; pass ``strict=True`` to get
        ``AlreadyCanceled`` instead.

        Raises:
            ReservationNotFound: no reservation with this id
            NotPermitted: the cancel policy rejected ``actor_id``
            AlreadyCanceled: only with ``strict=True``
            StorageFault: the database failed or timed out
        """
        reservation = self._reservations.get(reservation_id)
        if reservation is None:
            raise ReservationNotFound(f"Reservation {reservation_id} not found")

        if self._cancel_policy is not None and not self._cancel_policy(reservation, actor_id):
            raise NotPermitted(f"{actor_id} may not cancel reservation {reservation_id}")

        if not reservation.is_active:
            return self._already_canceled(reservation, strict)

        canceled_at = utc_now()
        with self._database.session() as session:
            canceled = self._reservations.mark_canceled(
                session,
                reservation_id,
                canceled_by=actor_id,
                canceled_at=canceled_at,
            )
            if canceled and reservation.slot_id is not None:
                if not self._slots.mark_free(session, reservation.slot_id):
                    logger.warning(
                        "Slot %s of reservation %s was not booked; left unchanged",
                        reservation.slot_id, reservation_id,
                    )

        if not canceled:
            # A concurrent cancel got there first
            return self._already_canceled(self._reservations.get(reservation_id), strict)

        logger.info("Reservation %s canceled by %s", reservation_id, actor_id)
        return replace(
            reservation,
            status=ReservationStatus.CANCELED,
            canceled_at=canceled_at,
            canceled_by=actor_id,
        )

    @staticmethod
    def _already_canceled(reservation: Reservation, strict: bool) -> Reservation:
        if strict:
            raise AlreadyCanceled(f"Reservation {reservation.id} is already canceled")
        logger.info("Reservation %s already canceled, nothing to do", reservation.id)
        return reservation
