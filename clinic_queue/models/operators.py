"""
Operator model: maps to the operators table.
One row per clinic staff account allowed to drive the call screen.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, Column, DateTime, Integer, Text, Uuid
from sqlalchemy.orm import Mapped

from .base import Base


class Operator(Base):
    __tablename__ = "operators"

    id: Mapped[uuid.UUID] = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username: Mapped[str] = Column(Text, nullable=False, unique=True)
    display_name: Mapped[str] = Column(Text, nullable=False)
    email: Mapped[str] = Column(Text, nullable=False, unique=True)
    # 1 = every room, 2..6 = a single room, anything else = none
    access_level: Mapped[Optional[int]] = Column(Integer, nullable=True)
    is_active: Mapped[bool] = Column(Boolean, nullable=False, default=True)
    created_at: Mapped[Optional[datetime]] = Column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
