"""
Data access for the call queue.

Every write that guards a concurrency invariant is a single conditional
UPDATE (compare-and-set) against the visits table, so two operators racing
on stale screens cannot both win.
"""

import logging
from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from clinic_queue.models.enums import RoomKey, RoomStatus
from clinic_queue.models.visits import Visit

logger = logging.getLogger(__name__)

# Label the display surface treats as "no room"
NO_ROOM_LABEL = "nenhuma"


class VisitQueueRepository:
    """
    Reads and guarded writes on the visits table.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # --------------------------
    # Reads
    # --------------------------
    async def get_visit(self, visit_id: UUID) -> Optional[Visit]:
        result = await self.db.execute(
            select(Visit)
            .where(Visit.id == visit_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def list_day_visits(self, day: date, present_only: bool = True) -> List[Visit]:
        """Visits scheduled for ``day``, priority first then arrival order."""
        stmt = select(Visit).where(Visit.scheduled_date == day)
        if present_only:
            stmt = stmt.where(Visit.present.is_(True))
        stmt = stmt.order_by(
            Visit.priority.desc(),
            Visit.arrived_at.asc().nulls_last(),
        ).execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_display_visits(self, limit: int) -> List[Visit]:
        """Visits holding a display slot, current call first."""
        result = await self.db.execute(
            select(Visit)
            .where(
                Visit.display_position.is_not(None),
                Visit.display_room_label.is_not(None),
                Visit.display_room_label != NO_ROOM_LABEL,
            )
            .order_by(
                Visit.display_position.asc(),
                Visit.called_at.desc().nulls_last(),
            )
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    # --------------------------
    # Guarded writes
    # --------------------------
    async def start_room(
        self,
        visit_id: UUID,
        room: RoomKey,
        room_label: str,
        now: datetime,
    ) -> bool:
        """
        Move ``room`` from waiting to in_progress and take the display slot.

        Matches only when the room is still waiting, the patient is in no
        other room, and no other visit of the same day holds this room.
        Returns True when the row was updated.

        The EXISTS guard only sees committed rows; two concurrent starts on
        different visits are settled by the per-room partial unique index,
        whose violation is reported as a lost race (False).
        """
        in_progress = RoomStatus.in_progress.value
        col = getattr(Visit, room.value)
        other = aliased(Visit)

        room_taken = (
            select(other.id)
            .where(
                getattr(other, room.value) == in_progress,
                other.id != Visit.id,
                other.scheduled_date == Visit.scheduled_date,
            )
            .correlate(Visit.__table__)
            .exists()
        )
        patient_busy = or_(
            *[getattr(Visit, r.value) == in_progress for r in RoomKey if r != room]
        )

        stmt = (
            update(Visit)
            .where(
                Visit.id == visit_id,
                col == RoomStatus.waiting.value,
                ~patient_busy,
                ~room_taken,
            )
            .values({
                room.value: in_progress,
                "display_position": 1,
                "display_room_label": room_label,
                "called_at": now,
            })
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.info("Room %s already taken for the day of visit %s: %s", room.value, visit_id, e.orig)
            return False
        return result.rowcount == 1

    async def finish_room(self, visit_id: UUID, room: RoomKey) -> bool:
        """Move ``room`` from in_progress to done; True when the row matched."""
        col = getattr(Visit, room.value)
        stmt = (
            update(Visit)
            .where(Visit.id == visit_id, col == RoomStatus.in_progress.value)
            .values({room.value: RoomStatus.done.value})
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount == 1

    async def demote_current_call(self, except_visit_id: UUID, called_at: datetime) -> int:
        """
        Push calls older than ``called_at`` off display position 1 (to 2).

        A newer call that landed on position 1 concurrently is left alone, so
        interleaved starts always leave the most recent call on screen.
        """
        stmt = (
            update(Visit)
            .where(
                Visit.display_position == 1,
                Visit.id != except_visit_id,
                or_(Visit.called_at.is_(None), Visit.called_at < called_at),
            )
            .values(display_position=2)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount
