"""
Room status state machine.

Per (visit, room) lifecycle::

    not_applicable            (inert)
    waiting -> in_progress -> done

Operators trigger only waiting -> in_progress and in_progress -> done.
Before either, the operator's access level is checked and the write itself
is a compare-and-set, so the two occupancy rules hold even when a stale
screen lets a click through:

1. a visit has at most one room in_progress;
2. a room is in_progress for at most one visit of the day.

The status write is authoritative. Display slot, attendance session and
billing follow as separate best-effort writes; when one of them fails it is
logged and reported on the result, never rolled back.
"""

import logging
from datetime import datetime
from typing import Iterable, Optional, Set, Union
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_queue.contracts.operator import OperatorContext
from clinic_queue.contracts.queue import TransitionResult
from clinic_queue.core.clock import utc_now
from clinic_queue.models.enums import (
    ROOM_LABELS,
    RoomControlState,
    RoomKey,
    RoomStatus,
    TransitionOutcome,
)
from clinic_queue.services.access.access_policy import can_advance
from clinic_queue.services.attendance.attendance_ledger import AttendanceLedger
from clinic_queue.services.notifications.visit_change_notifier import VisitChangeNotifier

from .queue_projection import room_status_of
from .repository import VisitQueueRepository

logger = logging.getLogger(__name__)


# --------------------------
# Control derivation
# --------------------------
def active_room_of(visit) -> Optional[RoomKey]:
    for room in RoomKey:
        if room_status_of(visit, room) == RoomStatus.in_progress:
            return room
    return None


def occupied_rooms(visits: Iterable) -> Set[RoomKey]:
    """Rooms that some visit currently has in_progress."""
    occupied = set()
    for visit in visits:
        for room in RoomKey:
            if room_status_of(visit, room) == RoomStatus.in_progress:
                occupied.add(room)
    return occupied


def derive_room_control(
    visit,
    room: RoomKey,
    operator: Union[OperatorContext, int, None],
    occupied: Set[RoomKey],
) -> RoomControlState:
    """
    How a renderer should present the (visit, room) control.

    ``done`` is read-only for everyone. A room busy with another patient is
    ``occupied_by_other``. A room the operator may not touch, or any room of a
    patient already busy elsewhere, is ``blocked``.
    """
    status = room_status_of(visit, room)
    if status == RoomStatus.not_applicable:
        return RoomControlState.hidden
    if status == RoomStatus.done:
        return RoomControlState.done
    if room in occupied and status != RoomStatus.in_progress:
        return RoomControlState.occupied_by_other
    active = active_room_of(visit)
    if not can_advance(operator, room) or (active is not None and active != room):
        return RoomControlState.blocked
    return RoomControlState.enabled


# --------------------------
# State machine
# --------------------------
class RoomStatusStateMachine:
    """
    Advances one room of one visit on behalf of an operator.
    """

    def __init__(
        self,
        db: AsyncSession,
        ledger: Optional[AttendanceLedger] = None,
        notifier: Optional[VisitChangeNotifier] = None,
        repository: Optional[VisitQueueRepository] = None,
    ):
        self.db = db
        self.repository = repository or VisitQueueRepository(db)
        self.ledger = ledger or AttendanceLedger(db)
        self.notifier = notifier

    async def advance(
        self,
        operator: OperatorContext,
        visit_id: UUID,
        room: Union[RoomKey, str],
        expected_status: Optional[RoomStatus] = None,
        now: Optional[datetime] = None,
    ) -> TransitionResult:
        """
        Move ``room`` one step forward.

        ``expected_status`` is the status the caller saw; when given it is the
        compare-and-set guard, otherwise the freshly read status is used.
        Never raises for permission, conflict or storage failures; inspect
        ``outcome`` instead.
        """
        room = RoomKey(room)
        now = now or utc_now()

        if not can_advance(operator, room):
            logger.info(
                "Operator %s (level=%s) may not advance %s",
                operator.username, operator.access_level, room.value,
            )
            return TransitionResult(
                outcome=TransitionOutcome.permission_denied,
                visit_id=visit_id,
                room=room,
                detail="Operator has no access to this room",
            )

        try:
            visit = await self.repository.get_visit(visit_id)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to read visit %s: %s", visit_id, e, exc_info=True)
            return TransitionResult(
                outcome=TransitionOutcome.write_failed,
                visit_id=visit_id,
                room=room,
                detail=str(e),
            )
        if visit is None:
            return TransitionResult(
                outcome=TransitionOutcome.not_found,
                visit_id=visit_id,
                room=room,
                detail="Visit not found",
            )

        current = RoomStatus(expected_status) if expected_status else room_status_of(visit, room)

        if current == RoomStatus.waiting:
            return await self._start(operator, visit, room, now)
        if current == RoomStatus.in_progress:
            return await self._finish(operator, visit, room, now)

        return TransitionResult(
            outcome=TransitionOutcome.invalid_transition,
            visit_id=visit_id,
            room=room,
            previous_status=current,
            detail=f"Room is {current.value}",
        )

    # --------------------------
    # waiting -> in_progress
    # --------------------------
    async def _start(
        self,
        operator: OperatorContext,
        visit,
        room: RoomKey,
        now: datetime,
    ) -> TransitionResult:
        visit_id = visit.id
        patient_name = visit.patient_name or "Paciente"
        label = ROOM_LABELS[room]

        try:
            started = await self.repository.start_room(visit_id, room, label, now)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to start %s for visit %s: %s", room.value, visit_id, e, exc_info=True)
            return TransitionResult(
                outcome=TransitionOutcome.write_failed,
                visit_id=visit_id,
                room=room,
                previous_status=RoomStatus.waiting,
                detail=str(e),
            )

        if not started:
            detail = await self._conflict_detail(visit_id, room, RoomStatus.waiting)
            logger.info("Start of %s for visit %s rejected: %s", room.value, visit_id, detail)
            return TransitionResult(
                outcome=TransitionOutcome.conflict,
                visit_id=visit_id,
                room=room,
                previous_status=RoomStatus.waiting,
                detail=detail,
            )

        result = TransitionResult(
            outcome=TransitionOutcome.applied,
            visit_id=visit_id,
            room=room,
            previous_status=RoomStatus.waiting,
            new_status=RoomStatus.in_progress,
            timer_started_at=now,
            timer_patient_name=patient_name,
        )

        try:
            await self.repository.demote_current_call(except_visit_id=visit_id, called_at=now)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to demote previous call: %s", e, exc_info=True)
            result.side_effect_errors.append(f"display: {e}")

        try:
            session = await self.ledger.open(visit_id, operator, now, room=room)
            result.attendance_session_id = session.id
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Room %s started for visit %s but the attendance session was not recorded: %s",
                room.value, visit_id, e, exc_info=True,
            )
            result.side_effect_errors.append(f"attendance: {e}")

        await self._publish(visit_id, "room_started")
        return result

    # --------------------------
    # in_progress -> done
    # --------------------------
    async def _finish(
        self,
        operator: OperatorContext,
        visit,
        room: RoomKey,
        now: datetime,
    ) -> TransitionResult:
        visit_id = visit.id

        try:
            finished = await self.repository.finish_room(visit_id, room)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to finish %s for visit %s: %s", room.value, visit_id, e, exc_info=True)
            return TransitionResult(
                outcome=TransitionOutcome.write_failed,
                visit_id=visit_id,
                room=room,
                previous_status=RoomStatus.in_progress,
                detail=str(e),
            )

        if not finished:
            detail = await self._conflict_detail(visit_id, room, RoomStatus.in_progress)
            logger.info("Finish of %s for visit %s rejected: %s", room.value, visit_id, detail)
            return TransitionResult(
                outcome=TransitionOutcome.conflict,
                visit_id=visit_id,
                room=room,
                previous_status=RoomStatus.in_progress,
                detail=detail,
            )

        result = TransitionResult(
            outcome=TransitionOutcome.applied,
            visit_id=visit_id,
            room=room,
            previous_status=RoomStatus.in_progress,
            new_status=RoomStatus.done,
            timer_stopped=True,
        )

        try:
            closed = await self.ledger.close(visit_id, operator, now)
            result.attendance_session_id = closed.closed_session_id
            result.billing_record_id = closed.billing_record_id
            if closed.billing_error:
                result.side_effect_errors.append(closed.billing_error)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Room %s finished for visit %s but the attendance session was not closed: %s",
                room.value, visit_id, e, exc_info=True,
            )
            result.side_effect_errors.append(f"attendance: {e}")

        await self._publish(visit_id, "room_finished")
        return result

    # --------------------------
    # Helpers
    # --------------------------
    async def _conflict_detail(self, visit_id: UUID, room: RoomKey, expected: RoomStatus) -> str:
        try:
            visit = await self.repository.get_visit(visit_id)
        except SQLAlchemyError as e:
            await self.db.rollback()
            return f"Could not re-read visit: {e}"
        if visit is None:
            return "Visit no longer exists"
        actual = room_status_of(visit, room)
        if actual != expected:
            return f"Room status changed to {actual.value}"
        active = active_room_of(visit)
        if active is not None and active != room:
            return f"Patient is already in {active.value}"
        return "Room is occupied by another patient"

    async def _publish(self, visit_id: UUID, event: str) -> None:
        if self.notifier is not None:
            await self.notifier.publish(visit_id, event)
