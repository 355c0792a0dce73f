from .room_router import EXAM_ROOM_TOKENS, normalize_exam_name, resolve_rooms
