"""
Visit model: maps to the visits table.

One row per scheduled day of care. The five room columns are named after
RoomKey values so they can be addressed with getattr(Visit, room.value).
"""

import uuid
from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, ForeignKey, Index, Integer, Text, Uuid, text
from sqlalchemy.orm import Mapped, relationship

from .base import Base
from .enums import RoomKey, RoomStatus


def _room_column() -> Column:
    return Column(Text, nullable=False, default=RoomStatus.not_applicable.value)


def _one_visit_per_room(room: RoomKey) -> Index:
    """At most one visit of a day may hold ``room`` in_progress."""
    busy = text(f"{room.value} = '{RoomStatus.in_progress.value}'")
    return Index(
        f"uq_visits_{room.value}_in_progress",
        "scheduled_date",
        unique=True,
        postgresql_where=busy,
        sqlite_where=busy,
    )


class Visit(Base):
    __tablename__ = "visits"
    __table_args__ = tuple(_one_visit_per_room(room) for room in RoomKey)

    id: Mapped[uuid.UUID] = Column(Uuid, primary_key=True, default=uuid.uuid4)
    patient_id: Mapped[uuid.UUID] = Column(
        Uuid, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False
    )
    scheduled_date: Mapped[date] = Column(Date, nullable=False, index=True)
    arrived_at: Mapped[Optional[datetime]] = Column(DateTime(timezone=True), nullable=True)
    present: Mapped[bool] = Column(Boolean, nullable=False, default=False)
    priority: Mapped[bool] = Column(Boolean, nullable=False, default=False)
    # Frozen at scheduling time; catalog edits never rewrite it
    exams_snapshot: Mapped[List[str]] = Column(JSON, nullable=False, default=list)

    consultorio: Mapped[str] = _room_column()
    salaexames: Mapped[str] = _room_column()
    salacoleta: Mapped[str] = _room_column()
    audiometria: Mapped[str] = _room_column()
    raiox: Mapped[str] = _room_column()

    # "Now calling" slot: 1 = on screen, >1 = history
    display_position: Mapped[Optional[int]] = Column(Integer, nullable=True, index=True)
    display_room_label: Mapped[Optional[str]] = Column(Text, nullable=True)
    called_at: Mapped[Optional[datetime]] = Column(DateTime(timezone=True), nullable=True)

    notes: Mapped[Optional[str]] = Column(Text, nullable=True)
    created_at: Mapped[Optional[datetime]] = Column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[Optional[datetime]] = Column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    patient: Mapped["Patient"] = relationship("Patient", foreign_keys=[patient_id], lazy="selectin")

    @property
    def patient_name(self) -> Optional[str]:
        return self.patient.name if self.patient else None
