"""
Operator-side cache of the call queue.

Mirrors what one operator's screen shows. Clicks are applied to the local
copy first for responsiveness, then sent to the state machine; any outcome
other than ``applied`` throws the local copy away and re-reads everything.
There is no partial patch-back: other screens may already have acted on
the optimistic state.
"""

import logging
from datetime import date, datetime
from typing import Awaitable, Callable, List, Optional, Union
from uuid import UUID

from clinic_queue.contracts.operator import OperatorContext
from clinic_queue.contracts.queue import QueueEntryResponse, RoomControl, TransitionResult
from clinic_queue.contracts.visit import VisitResponse
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
from clinic_queue.services.attendance.timer import AttendanceTimer, timer_display

from .queue_projection import QueueProjectionService, has_pending_rooms, room_status_of
from .room_state_machine import RoomStatusStateMachine, derive_room_control, occupied_rooms

logger = logging.getLogger(__name__)

# Clicks on these controls go through to the state machine
_ACTIONABLE = (RoomControlState.enabled,)


def build_queue_entries(visits: List, operator: Union[OperatorContext, int, None]) -> List[QueueEntryResponse]:
    """Attach a per-room control state to each visit for one operator."""
    occupied = occupied_rooms(visits)
    entries = []
    for visit in visits:
        response = visit if isinstance(visit, VisitResponse) else VisitResponse.model_validate(visit)
        entries.append(
            QueueEntryResponse(
                visit=response,
                rooms=[
                    RoomControl(
                        room=room,
                        label=ROOM_LABELS[room],
                        status=room_status_of(visit, room),
                        control=derive_room_control(visit, room, operator, occupied),
                    )
                    for room in RoomKey
                ],
            )
        )
    return entries


class OperatorQueueView:
    """
    Local projection plus active-call timer for one operator.
    """

    def __init__(
        self,
        operator: OperatorContext,
        projection: QueueProjectionService,
        machine: RoomStatusStateMachine,
        ledger: AttendanceLedger,
        today: Optional[Callable[[], date]] = None,
    ):
        self.operator = operator
        self.projection = projection
        self.machine = machine
        self.ledger = ledger
        self._today = today
        self.visits: List[VisitResponse] = []
        self.active_call: Optional[AttendanceTimer] = None

    async def refresh(self) -> List[VisitResponse]:
        """Full re-read of the active queue."""
        today = self._today() if self._today else None
        rows = await self.projection.active_queue(today)
        self.visits = [VisitResponse.model_validate(v) for v in rows]
        return self.visits

    async def rehydrate_timer(self) -> Optional[AttendanceTimer]:
        self.active_call = await self.ledger.active_timer(self.operator.operator_id)
        return self.active_call

    def entries(self) -> List[QueueEntryResponse]:
        return build_queue_entries(self.visits, self.operator)

    def elapsed_display(self, now: Optional[datetime] = None) -> str:
        return timer_display(self.active_call, now)

    def find(self, visit_id: UUID) -> Optional[VisitResponse]:
        return next((v for v in self.visits if v.id == visit_id), None)

    async def advance(
        self,
        visit_id: UUID,
        room: Union[RoomKey, str],
        now: Optional[datetime] = None,
    ) -> TransitionResult:
        room = RoomKey(room)
        now = now or utc_now()
        visit = self.find(visit_id)
        if visit is None:
            return TransitionResult(
                outcome=TransitionOutcome.not_found, visit_id=visit_id, room=room,
                detail="Visit is not in the local queue",
            )

        control = derive_room_control(visit, room, self.operator, occupied_rooms(self.visits))
        if control not in _ACTIONABLE:
            rejected = TransitionResult(
                outcome=self._rejected_outcome(control, room),
                visit_id=visit_id,
                room=room,
                previous_status=room_status_of(visit, room),
                detail=f"Control is {control.value}",
            )
            # Occupancy seen locally may already be stale
            if rejected.outcome == TransitionOutcome.conflict:
                await self._resync()
            return rejected

        expected = room_status_of(visit, room)
        previous_call = self.active_call
        self._apply_optimistic(visit, room, expected, now)

        try:
            result = await self.machine.advance(
                self.operator, visit_id, room, expected_status=expected, now=now
            )
        except Exception:
            self.active_call = previous_call
            await self._resync()
            raise

        if not result.applied:
            logger.info(
                "Advance of %s for visit %s not applied (%s), resynchronizing",
                room.value, visit_id, result.outcome.value,
            )
            await self._resync()
        return result

    # --------------------------
    # Internals
    # --------------------------
    def _rejected_outcome(self, control: RoomControlState, room: RoomKey) -> TransitionOutcome:
        if control in (RoomControlState.hidden, RoomControlState.done):
            return TransitionOutcome.invalid_transition
        if control == RoomControlState.blocked and not can_advance(self.operator, room):
            return TransitionOutcome.permission_denied
        return TransitionOutcome.conflict

    def _apply_optimistic(self, visit: VisitResponse, room: RoomKey, current: RoomStatus, now: datetime) -> None:
        if current == RoomStatus.waiting:
            update = {
                room.value: RoomStatus.in_progress,
                "display_position": 1,
                "display_room_label": ROOM_LABELS[room],
                "called_at": now,
            }
            self.active_call = AttendanceTimer(
                started_at=now, patient_name=visit.patient_name or "Paciente", visit_id=visit.id
            )
        else:
            update = {room.value: RoomStatus.done}
            self.active_call = None

        patched = visit.model_copy(update=update)
        visits = []
        for v in self.visits:
            if v.id == visit.id:
                if has_pending_rooms(patched):
                    visits.append(patched)
            elif current == RoomStatus.waiting and v.display_position == 1:
                visits.append(v.model_copy(update={"display_position": 2}))
            else:
                visits.append(v)
        self.visits = visits

    async def _resync(self) -> None:
        await self.refresh()
        await self.rehydrate_timer()
