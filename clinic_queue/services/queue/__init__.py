from .operator_view import OperatorQueueView, build_queue_entries
from .queue_projection import QueueProjectionService, has_pending_rooms, project_active_queue
from .refresher import QueueRefresher
from .repository import NO_ROOM_LABEL, VisitQueueRepository
from .room_state_machine import (
    RoomStatusStateMachine,
    active_room_of,
    derive_room_control,
    occupied_rooms,
)
