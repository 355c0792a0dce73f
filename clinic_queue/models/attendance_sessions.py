"""
AttendanceSession model: maps to the attendance_sessions table.
An open session has ended_at = NULL. Rows are never deleted.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import Mapped, relationship

from .base import Base


class AttendanceSession(Base):
    __tablename__ = "attendance_sessions"

    id: Mapped[uuid.UUID] = Column(Uuid, primary_key=True, default=uuid.uuid4)
    visit_id: Mapped[uuid.UUID] = Column(
        Uuid, ForeignKey("visits.id", ondelete="CASCADE"), nullable=False, index=True
    )
    operator_id: Mapped[uuid.UUID] = Column(
        Uuid, ForeignKey("operators.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    room: Mapped[Optional[str]] = Column(Text, nullable=True)
    started_at: Mapped[datetime] = Column(DateTime(timezone=True), nullable=False)
    ended_at: Mapped[Optional[datetime]] = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    visit: Mapped["Visit"] = relationship("Visit", foreign_keys=[visit_id])
    operator: Mapped["Operator"] = relationship("Operator", foreign_keys=[operator_id])
