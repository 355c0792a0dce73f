"""
Contracts for the passive "now calling" display.
"""

from typing import List, Optional
from uuid import UUID

from .base import BaseContract


class DisplayCall(BaseContract):
    visit_id: UUID
    patient_name: Optional[str] = None
    room_label: str
    position: int


class DisplayBoard(BaseContract):
    current: Optional[DisplayCall] = None
    history: List[DisplayCall] = []
    new_call: bool = False
    signature: Optional[str] = None
