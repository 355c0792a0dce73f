"""
This module contains the contracts for the application.
"""

from .base import BaseContract, TimestampedContract
from .operator import OperatorContext, OperatorResponse
from .visit import VisitCreate, VisitExamsUpdate, VisitResponse
from .attendance import ActiveCallResponse, AttendanceSessionResponse, BillingRecordResponse
from .queue import QueueEntryResponse, RoomControl, TransitionResult
from .display import DisplayBoard, DisplayCall
