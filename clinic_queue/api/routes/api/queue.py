"""
Call queue routes: GET /, POST /{visit_id}/rooms/{room}/advance
"""

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from clinic_queue.contracts.operator import OperatorContext
from clinic_queue.contracts.queue import QueueEntryResponse, TransitionResult
from clinic_queue.dependencies.auth import get_operator_context
from clinic_queue.dependencies.queue import get_queue_projection, get_room_state_machine
from clinic_queue.models.enums import RoomKey, RoomStatus, TransitionOutcome
from clinic_queue.services.queue import (
    QueueProjectionService,
    RoomStatusStateMachine,
    build_queue_entries,
)

router = APIRouter()

_OUTCOME_STATUS = {
    TransitionOutcome.permission_denied: status.HTTP_403_FORBIDDEN,
    TransitionOutcome.conflict: status.HTTP_409_CONFLICT,
    TransitionOutcome.invalid_transition: status.HTTP_409_CONFLICT,
    TransitionOutcome.not_found: status.HTTP_404_NOT_FOUND,
    TransitionOutcome.write_failed: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@router.get("/", response_model=List[QueueEntryResponse])
async def list_queue(
    day: Optional[date] = None,
    operator: OperatorContext = Depends(get_operator_context),
    projection: QueueProjectionService = Depends(get_queue_projection),
):
    """Today's active queue with the caller's per-room controls."""
    visits = await projection.active_queue(day)
    return build_queue_entries(visits, operator)


@router.post("/{visit_id}/rooms/{room}/advance", response_model=TransitionResult)
async def advance_room(
    visit_id: UUID,
    room: RoomKey,
    expected_status: Optional[RoomStatus] = None,
    operator: OperatorContext = Depends(get_operator_context),
    machine: RoomStatusStateMachine = Depends(get_room_state_machine),
):
    """
    Start or finish ``room`` for a visit.

    ``expected_status`` is what the caller's screen showed; a mismatch is
    reported as a conflict and the caller should reload the queue.
    """
    result = await machine.advance(operator, visit_id, room, expected_status=expected_status)
    if not result.applied:
        raise HTTPException(
            status_code=_OUTCOME_STATUS[result.outcome],
            detail=result.model_dump(mode="json"),
        )
    return result
