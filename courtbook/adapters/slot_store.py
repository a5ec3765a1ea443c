"""
Persistence for generated slots.

Insertion never overwrites: a candidate that overlaps a stored slot of the
same resource is skipped, which makes repeated generation runs idempotent.
Status changes are single conditional UPDATE statements so that concurrent
bookings of one slot cannot both win.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import insert, update
from sqlalchemy.orm import Session

from ..domain.exceptions import ResourceNotFound, StorageFault
from ..domain.models import Slot, SlotStatus, TimeRange
from .database import Database
from .tables import ResourceRow, SlotRow, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PersistResult:
    """Outcome of persisting a batch of candidate slots."""
    inserted: int
    skipped: int


def slot_from_row(row: SlotRow) -> Slot:
    return Slot(
        id=row.id,
        resource_id=row.resource_id,
        start=row.start_at,
        end=row.end_at,
        status=SlotStatus(row.status),
    )


def _bounds(time_range: TimeRange) -> Tuple[float, float]:
    """UTC epoch seconds, so ranges from different time zones compare cheaply."""
    return time_range.start.timestamp(), time_range.end.timestamp()


def _without_self_overlaps(candidates: Iterable[TimeRange]) -> Tuple[List[TimeRange], int]:
    """
    Sort candidates by start and drop those overlapping an earlier accepted one.

    Accepted ranges are disjoint and sorted, so only the last one can overlap
    the next candidate. Returns the accepted candidates and the number skipped.
    """
    ordered = sorted(candidates, key=_bounds)
    accepted: List[TimeRange] = []
    last_end = float("-inf")

    for candidate in ordered:
        start, end = _bounds(candidate)
        if start < last_end:
            continue
        accepted.append(candidate)
        last_end = end

    return accepted, len(ordered) - len(accepted)


def _without_overlaps(
    candidates: Sequence[TimeRange],
    occupied: Sequence[TimeRange],
) -> Tuple[List[TimeRange], int]:
    """
    Drop candidates that overlap an occupied range.

    Both inputs must be sorted by start and free of overlaps among
    themselves; a single sweep over the two lists then suffices.
    Returns the accepted candidates and the number skipped.
    """
    occupied_bounds = [_bounds(time_range) for time_range in occupied]
    accepted: List[TimeRange] = []
    index = 0

    for candidate in candidates:
        start, end = _bounds(candidate)
        while index < len(occupied_bounds) and occupied_bounds[index][1] <= start:
            index += 1
        if index < len(occupied_bounds) and occupied_bounds[index][0] < end:
            continue
        accepted.append(candidate)

    return accepted, len(candidates) - len(accepted)


class SqlSlotStore:
    """Slot persistence backed by SQLAlchemy."""

    def __init__(self, database: Database):
        self._database = database

    def persist_candidates(
        self,
        resource_id: str,
        candidates: Iterable[TimeRange],
    ) -> PersistResult:
        """
        Store candidate slots as free slots of a resource.

        Overlaps within the batch are removed before any lock is taken. The
        rest is first written in one transaction. If that fails for a storage
        reason, every candidate is retried in its own transaction; a
        candidate that still fails is counted as skipped.

        Raises:
            ResourceNotFound: if the resource is not registered
        """
        batch, duplicates = _without_self_overlaps(candidates)
        if not batch:
            return PersistResult(inserted=0, skipped=duplicates)

        try:
            result = self._persist_bulk(resource_id, batch)
        except StorageFault as exc:
            logger.warning(
                "Bulk insert of %s slots for resource %s failed, inserting one by one: %s",
                len(batch), resource_id, exc,
            )
            result = self._persist_individually(resource_id, batch)

        return PersistResult(inserted=result.inserted, skipped=result.skipped + duplicates)

    def _persist_bulk(self, resource_id: str, batch: List[TimeRange]) -> PersistResult:
        """Insert a sorted, self-disjoint batch while holding the resource lock."""
        with self._database.session() as session:
            self._lock_resource(session, resource_id)

            occupied = self._occupied_ranges(
                session,
                resource_id,
                start=batch[0].start,
                end=max(candidate.end for candidate in batch),
            )
            accepted, skipped = _without_overlaps(batch, occupied)

            if accepted:
                session.execute(
                    insert(SlotRow),
                    [
                        {
                            "resource_id": resource_id,
                            "start_at": candidate.start,
                            "end_at": candidate.end,
                            "status": SlotStatus.FREE.value,
                        }
                        for candidate in accepted
                    ],
                )

        logger.info(
            "Resource %s: inserted %s slots, skipped %s overlapping",
            resource_id, len(accepted), skipped,
        )
        return PersistResult(inserted=len(accepted), skipped=skipped)

    def _persist_individually(self, resource_id: str, batch: List[TimeRange]) -> PersistResult:
        inserted = 0
        skipped = 0

        for candidate in batch:
            try:
                with self._database.session() as session:
                    self._lock_resource(session, resource_id)
                    if self._occupied_ranges(session, resource_id, candidate.start, candidate.end):
                        stored = False
                    else:
                        session.add(
                            SlotRow(
                                resource_id=resource_id,
                                start_at=candidate.start,
                                end_at=candidate.end,
                                status=SlotStatus.FREE.value,
                            )
                        )
                        session.flush()
                        stored = True
            except StorageFault as exc:
                logger.warning("Skipping slot %s for resource %s: %s", candidate, resource_id, exc)
                stored = False

            if stored:
                inserted += 1
            else:
                skipped += 1

        logger.info(
            "Resource %s: inserted %s slots one by one, skipped %s",
            resource_id, inserted, skipped,
        )
        return PersistResult(inserted=inserted, skipped=skipped)

    @staticmethod
    def _lock_resource(session: Session, resource_id: str) -> None:
        """
        Touch the resource row as the first write of the transaction.

        This is the existence check for the resource and it holds the row
        (PostgreSQL) or database (SQLite) write lock until commit, so two
        generation runs for one resource cannot interleave their overlap checks.
        """
        result = session.execute(
            update(ResourceRow)
            .where(ResourceRow.id == resource_id)
            .values(slots_generated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ResourceNotFound(f"Unknown resource: {resource_id}")

    @staticmethod
    def _occupied_ranges(
        session: Session,
        resource_id: str,
        start: datetime,
        end: datetime,
    ) -> List[TimeRange]:
        """Stored slots of the resource (any status) overlapping [start, end)."""
        rows = (
            session.query(SlotRow.start_at, SlotRow.end_at)
            .filter(
                SlotRow.resource_id == resource_id,
                SlotRow.start_at < end,
                SlotRow.end_at > start,
            )
            .order_by(SlotRow.start_at)
            .all()
        )
        return [TimeRange(start=row.start_at, end=row.end_at) for row in rows]

    def list_free(self, resource_id: str, start: datetime, end: datetime) -> List[Slot]:
        """Free slots of a resource starting in [start, end), earliest first."""
        with self._database.session() as session:
            rows = (
                session.query(SlotRow)
                .filter(
                    SlotRow.resource_id == resource_id,
                    SlotRow.status == SlotStatus.FREE.value,
                    SlotRow.start_at >= start,
                    SlotRow.start_at < end,
                )
                .order_by(SlotRow.start_at)
                .all()
            )
            return [slot_from_row(row) for row in rows]

    def list_all(self, resource_id: str) -> List[Slot]:
        """Every stored slot of a resource, earliest first."""
        with self._database.session() as session:
            rows = (
                session.query(SlotRow)
                .filter(SlotRow.resource_id == resource_id)
                .order_by(SlotRow.start_at)
                .all()
            )
            return [slot_from_row(row) for row in rows]

    def get(self, slot_id: int) -> Optional[Slot]:
        with self._database.session() as session:
            return self.fetch(session, slot_id)

    # Session-scoped helpers used by the booking transaction.

    @staticmethod
    def fetch(session: Session, slot_id: int) -> Optional[Slot]:
        row = session.get(SlotRow, slot_id)
        return slot_from_row(row) if row else None

    @staticmethod
    def mark_booked(session: Session, slot_id: int, resource_id: str) -> bool:
        """
        Compare-and-set a slot of the resource from free to booked.

        Returns False if no such free slot exists at the time of the update.
        """
        result = session.execute(
            update(SlotRow)
            .where(
                SlotRow.id == slot_id,
                SlotRow.resource_id == resource_id,
                SlotRow.status == SlotStatus.FREE.value,
            )
            .values(status=SlotStatus.BOOKED.value)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def mark_free(session: Session, slot_id: int) -> bool:
        """Compare-and-set a slot from booked back to free."""
        result = session.execute(
            update(SlotRow)
            .where(
                SlotRow.id == slot_id,
                SlotRow.status == SlotStatus.BOOKED.value,
            )
            .values(status=SlotStatus.FREE.value)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
