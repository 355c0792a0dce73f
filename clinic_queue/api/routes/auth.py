"""
Authentication routes
"""

from fastapi import APIRouter, Depends

from clinic_queue.contracts.operator import OperatorResponse
from clinic_queue.dependencies.auth import get_current_operator_record
from clinic_queue.models.operators import Operator
from clinic_queue.services.access import allowed_rooms

router = APIRouter()


@router.get("/me", response_model=OperatorResponse)
async def get_me(
    operator: Operator = Depends(get_current_operator_record),
):
    """
    Return the current operator and the rooms they may drive.
    """
    return OperatorResponse(
        operator_id=operator.id,
        username=operator.username,
        display_name=operator.display_name or operator.username,
        access_level=operator.access_level,
        email=operator.email,
        allowed_rooms=allowed_rooms(operator.access_level),
    )
