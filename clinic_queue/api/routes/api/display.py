"""
Passive display routes: GET /board
"""

from typing import Optional

from fastapi import APIRouter, Depends

from clinic_queue.config import get_settings
from clinic_queue.contracts.display import DisplayBoard
from clinic_queue.dependencies.queue import get_queue_repository
from clinic_queue.services.display import board_since
from clinic_queue.services.queue import VisitQueueRepository

router = APIRouter()


@router.get("/board", response_model=DisplayBoard)
async def get_board(
    since: Optional[str] = None,
    repository: VisitQueueRepository = Depends(get_queue_repository),
):
    """
    Current call plus recent history.

    Pass the last ``signature`` seen as ``since``; ``new_call`` is true when
    the current call differs from it.
    """
    return await board_since(repository, since, get_settings().display_history_limit)
