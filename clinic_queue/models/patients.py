"""
Patient model: maps to the patients table.
"""

import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import Column, Date, DateTime, Text, Uuid
from sqlalchemy.orm import Mapped

from .base import Base


class Patient(Base):
    __tablename__ = "patients"

    id: Mapped[uuid.UUID] = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = Column(Text, nullable=False)
    document_number: Mapped[Optional[str]] = Column(Text, nullable=True)
    date_of_birth: Mapped[Optional[date]] = Column(Date, nullable=True)
    sex: Mapped[Optional[str]] = Column(Text, nullable=True)
    job_title: Mapped[Optional[str]] = Column(Text, nullable=True)
    created_at: Mapped[Optional[datetime]] = Column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
