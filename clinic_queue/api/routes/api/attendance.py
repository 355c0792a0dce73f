"""
Attendance routes: GET /active
"""

from typing import Optional

from fastapi import APIRouter, Depends

from clinic_queue.contracts.attendance import ActiveCallResponse
from clinic_queue.contracts.operator import OperatorContext
from clinic_queue.core.clock import utc_now
from clinic_queue.dependencies.auth import get_operator_context
from clinic_queue.dependencies.queue import get_attendance_ledger
from clinic_queue.services.attendance import AttendanceLedger, format_elapsed

router = APIRouter()


@router.get("/active", response_model=Optional[ActiveCallResponse])
async def get_active_call(
    operator: OperatorContext = Depends(get_operator_context),
    ledger: AttendanceLedger = Depends(get_attendance_ledger),
):
    """The caller's open attendance session, or null; lets a reloaded screen restart its timer."""
    found = await ledger.find_open_session(operator.operator_id)
    if found is None:
        return None
    session, patient_name = found
    timer = await ledger.active_timer(operator.operator_id)
    elapsed = timer.elapsed_seconds(utc_now())
    return ActiveCallResponse(
        session_id=session.id,
        visit_id=session.visit_id,
        patient_name=patient_name or "Paciente",
        started_at=session.started_at,
        elapsed_seconds=elapsed,
        elapsed_display=format_elapsed(elapsed),
    )
