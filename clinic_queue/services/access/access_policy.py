"""
Room access policy.

Access levels:
    1   every room
    2   consultorio
    3   salaexames
    4   salacoleta
    5   audiometria
    6   raiox

Anything else, including an unresolved level (None), is denied.
"""

from typing import List, Optional, Union

from clinic_queue.contracts.operator import OperatorContext
from clinic_queue.models.enums import RoomKey

FULL_ACCESS_LEVEL = 1

ROOM_ACCESS_LEVELS = {
    RoomKey.consultorio: 2,
    RoomKey.salaexames: 3,
    RoomKey.salacoleta: 4,
    RoomKey.audiometria: 5,
    RoomKey.raiox: 6,
}


def _level_of(operator: Union[OperatorContext, int, None]) -> Optional[int]:
    if isinstance(operator, OperatorContext):
        return operator.access_level
    return operator


def can_advance(operator: Union[OperatorContext, int, None], room: Union[RoomKey, str]) -> bool:
    """Return True when the operator (or bare access level) may move ``room``."""
    level = _level_of(operator)
    if level is None:
        return False
    try:
        room = RoomKey(room)
    except ValueError:
        return False
    if level == FULL_ACCESS_LEVEL:
        return True
    return ROOM_ACCESS_LEVELS[room] == level


def allowed_rooms(operator: Union[OperatorContext, int, None]) -> List[RoomKey]:
    return [room for room in RoomKey if can_advance(operator, room)]
