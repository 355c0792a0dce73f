"""
Contracts for the call queue and room transitions.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from clinic_queue.models.enums import RoomControlState, RoomKey, RoomStatus, TransitionOutcome

from .base import BaseContract
from .visit import VisitResponse


class RoomControl(BaseContract):
    room: RoomKey
    label: str
    status: RoomStatus
    control: RoomControlState


class QueueEntryResponse(BaseContract):
    visit: VisitResponse
    rooms: List[RoomControl]


class TransitionResult(BaseContract):
    """
    Outcome of one room advance attempt.

    Anything other than ``applied`` means the room did not move and the
    caller should resynchronize its view.
    """
    outcome: TransitionOutcome
    visit_id: UUID
    room: RoomKey
    previous_status: Optional[RoomStatus] = None
    new_status: Optional[RoomStatus] = None
    attendance_session_id: Optional[UUID] = None
    billing_record_id: Optional[UUID] = None
    timer_started_at: Optional[datetime] = None
    timer_patient_name: Optional[str] = None
    timer_stopped: bool = False
    side_effect_errors: List[str] = []
    detail: Optional[str] = None

    @property
    def applied(self) -> bool:
        return self.outcome == TransitionOutcome.applied
