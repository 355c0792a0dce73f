"""
"Now calling" display feed.

The waiting-room screen shows the patient currently being called (display
position 1) and a short history of earlier calls. The feed tells the screen
when the current call changed so it can play the alert exactly once.
"""

import logging
from typing import Awaitable, Callable, Iterable, List, Optional

from clinic_queue.contracts.display import DisplayBoard, DisplayCall
from clinic_queue.core.clock import as_utc
from clinic_queue.services.queue.repository import NO_ROOM_LABEL, VisitQueueRepository

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 6


def _displayable(visit) -> bool:
    label = visit.display_room_label
    return (
        visit.display_position is not None
        and bool(label)
        and label.strip().lower() != NO_ROOM_LABEL
    )


def to_display_call(visit) -> DisplayCall:
    return DisplayCall(
        visit_id=visit.id,
        patient_name=visit.patient_name,
        room_label=visit.display_room_label,
        position=visit.display_position,
    )


def call_signature(visit) -> Optional[str]:
    if visit is None:
        return None
    return f"{visit.id}:{visit.display_room_label}"


def _recency(visit) -> float:
    return -as_utc(visit.called_at).timestamp() if visit.called_at else float("inf")


def build_display_board(visits: Iterable, history_limit: int = DEFAULT_HISTORY_LIMIT) -> DisplayBoard:
    """Split visits into the current call and the bounded history."""
    shown = [v for v in visits if _displayable(v)]
    current = next(
        iter(sorted((v for v in shown if v.display_position == 1), key=_recency)),
        None,
    )
    history = sorted(
        (v for v in shown if v.display_position > 1),
        key=lambda v: (v.display_position, _recency(v)),
    )[:max(0, history_limit)]
    return DisplayBoard(
        current=to_display_call(current) if current is not None else None,
        history=[to_display_call(v) for v in history],
        signature=call_signature(current),
    )


class CallDisplayFeed:
    """
    Stateful wrapper that remembers the last current call it announced.

    The first load with someone on screen counts as a new call.
    """

    def __init__(
        self,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        on_new_call: Optional[Callable[[DisplayCall], Awaitable[None]]] = None,
    ):
        self.history_limit = history_limit
        self.on_new_call = on_new_call
        self.last_signature: Optional[str] = None

    async def refresh(self, visits: Iterable) -> DisplayBoard:
        board = build_display_board(visits, self.history_limit)
        if board.current is not None and board.signature != self.last_signature:
            self.last_signature = board.signature
            board.new_call = True
            logger.info(
                "Now calling %s to %s",
                board.current.patient_name, board.current.room_label,
            )
            if self.on_new_call is not None:
                try:
                    await self.on_new_call(board.current)
                except Exception:
                    logger.exception("New-call alert failed")
        return board

    async def load(self, repository: VisitQueueRepository) -> DisplayBoard:
        # One extra row so a full history still leaves room for the current call
        visits = await repository.list_display_visits(self.history_limit + 1)
        return await self.refresh(visits)


async def board_since(
    repository: VisitQueueRepository,
    since: Optional[str] = None,
    history_limit: int = DEFAULT_HISTORY_LIMIT,
) -> DisplayBoard:
    """Stateless variant for HTTP polling: ``since`` is the caller's last signature."""
    visits = await repository.list_display_visits(history_limit + 1)
    board = build_display_board(visits, history_limit)
    board.new_call = board.current is not None and board.signature != since
    return board
