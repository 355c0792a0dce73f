"""
Contracts for visits.
"""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import field_validator

from clinic_queue.models.enums import RoomStatus

from .base import BaseContract, TimestampedContract


class VisitBase(BaseContract):
    patient_id: UUID
    scheduled_date: date
    priority: bool = False
    notes: Optional[str] = None


class VisitCreate(VisitBase):
    exams: List[str] = []

    @field_validator("exams")
    @classmethod
    def strip_exams(cls, v: List[str]) -> List[str]:
        return [e.strip() for e in v if e and e.strip()]


class VisitExamsUpdate(BaseContract):
    exams: List[str]

    @field_validator("exams")
    @classmethod
    def strip_exams(cls, v: List[str]) -> List[str]:
        return [e.strip() for e in v if e and e.strip()]


class VisitResponse(VisitBase, TimestampedContract):
    id: UUID
    patient_name: Optional[str] = None
    arrived_at: Optional[datetime] = None
    present: bool = False
    exams_snapshot: List[str] = []
    consultorio: RoomStatus = RoomStatus.not_applicable
    salaexames: RoomStatus = RoomStatus.not_applicable
    salacoleta: RoomStatus = RoomStatus.not_applicable
    audiometria: RoomStatus = RoomStatus.not_applicable
    raiox: RoomStatus = RoomStatus.not_applicable
    display_position: Optional[int] = None
    display_room_label: Optional[str] = None
    called_at: Optional[datetime] = None
