from .base import Base

# Enums
from .enums import (
    ACTIVE_ROOM_STATUSES,
    ROOM_LABELS,
    BillingStatus,
    RoomControlState,
    RoomKey,
    RoomStatus,
    TransitionOutcome,
)

# Tier 1, no FKs
from .patients import Patient
from .operators import Operator

# Tier 2
from .visits import Visit

# Tier 3
from .attendance_sessions import AttendanceSession
from .billing_records import BillingRecord
