"""
Contracts for attendance sessions and billing records.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from .base import BaseContract


class AttendanceSessionResponse(BaseContract):
    id: UUID
    visit_id: UUID
    operator_id: UUID
    room: Optional[str] = None
    started_at: datetime
    ended_at: Optional[datetime] = None


class ActiveCallResponse(BaseContract):
    session_id: UUID
    visit_id: UUID
    patient_name: str
    started_at: datetime
    elapsed_seconds: int
    elapsed_display: str


class BillingRecordResponse(BaseContract):
    id: UUID
    operator_id: UUID
    attendance_session_id: Optional[UUID] = None
    description: str
    supplier: str
    amount: Decimal
    projected_date: date
    status: str
    created_at: Optional[datetime] = None
