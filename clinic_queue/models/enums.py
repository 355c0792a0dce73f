"""
Enum definitions for the queue tables.
Uses (str, Enum) pattern so values serialize correctly in Pydantic.
"""

from enum import Enum


class RoomKey(str, Enum):
    consultorio = "consultorio"
    salaexames = "salaexames"
    salacoleta = "salacoleta"
    audiometria = "audiometria"
    raiox = "raiox"


class RoomStatus(str, Enum):
    not_applicable = "not_applicable"
    waiting = "waiting"
    in_progress = "in_progress"
    done = "done"


class BillingStatus(str, Enum):
    pendente = "pendente"
    pago = "pago"


class RoomControlState(str, Enum):
    """How a renderer should present one (visit, room) control."""
    hidden = "hidden"
    done = "done"
    occupied_by_other = "occupied_by_other"
    blocked = "blocked"
    enabled = "enabled"


class TransitionOutcome(str, Enum):
    applied = "applied"
    permission_denied = "permission_denied"
    conflict = "conflict"
    invalid_transition = "invalid_transition"
    not_found = "not_found"
    write_failed = "write_failed"


ROOM_LABELS = {
    RoomKey.consultorio: "Consultório Médico",
    RoomKey.salaexames: "Sala Exames",
    RoomKey.salacoleta: "Sala Coleta",
    RoomKey.audiometria: "Audiometria",
    RoomKey.raiox: "Raio-X",
}

# Statuses that keep a visit in the active queue
ACTIVE_ROOM_STATUSES = (RoomStatus.waiting, RoomStatus.in_progress)
