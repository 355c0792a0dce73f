from .access_policy import ROOM_ACCESS_LEVELS, FULL_ACCESS_LEVEL, allowed_rooms, can_advance
