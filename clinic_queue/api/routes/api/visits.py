"""
Visit routes: POST /, PUT /{visit_id}/exams, POST|DELETE /{visit_id}/check-in
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from clinic_queue.contracts.operator import OperatorContext
from clinic_queue.contracts.visit import VisitCreate, VisitExamsUpdate, VisitResponse
from clinic_queue.dependencies.auth import get_operator_context
from clinic_queue.dependencies.queue import get_visit_service
from clinic_queue.services.visits import PatientNotFoundError, VisitService

router = APIRouter()


@router.post("/", response_model=VisitResponse, status_code=201)
async def register_visit(
    payload: VisitCreate,
    operator: OperatorContext = Depends(get_operator_context),
    service: VisitService = Depends(get_visit_service),
):
    try:
        visit = await service.register_visit(payload)
    except PatientNotFoundError:
        raise HTTPException(status_code=404, detail="Patient not found")
    return VisitResponse.model_validate(visit)


@router.put("/{visit_id}/exams", response_model=VisitResponse)
async def update_exams(
    visit_id: UUID,
    payload: VisitExamsUpdate,
    operator: OperatorContext = Depends(get_operator_context),
    service: VisitService = Depends(get_visit_service),
):
    visit = await service.update_exams(visit_id, payload.exams)
    if not visit:
        raise HTTPException(status_code=404, detail="Visit not found")
    return VisitResponse.model_validate(visit)


@router.post("/{visit_id}/check-in", response_model=VisitResponse)
async def check_in(
    visit_id: UUID,
    operator: OperatorContext = Depends(get_operator_context),
    service: VisitService = Depends(get_visit_service),
):
    visit = await service.set_presence(visit_id, True)
    if not visit:
        raise HTTPException(status_code=404, detail="Visit not found")
    return VisitResponse.model_validate(visit)


@router.delete("/{visit_id}/check-in", response_model=VisitResponse)
async def undo_check_in(
    visit_id: UUID,
    operator: OperatorContext = Depends(get_operator_context),
    service: VisitService = Depends(get_visit_service),
):
    visit = await service.set_presence(visit_id, False)
    if not visit:
        raise HTTPException(status_code=404, detail="Visit not found")
    return VisitResponse.model_validate(visit)
