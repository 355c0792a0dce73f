"""
Contracts for operators and the per-request operator context.
"""

from typing import List, Optional
from uuid import UUID

from clinic_queue.models.enums import RoomKey

from .base import BaseContract


class OperatorContext(BaseContract):
    """
    Explicit identity of the operator acting on the queue.

    Passed into every core operation instead of being looked up from
    ambient state, so several operators can be simulated side by side.
    """
    operator_id: UUID
    username: str
    display_name: str
    access_level: Optional[int] = None


class OperatorResponse(OperatorContext):
    email: str
    allowed_rooms: List[RoomKey] = []
