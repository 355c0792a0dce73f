"""
BillingRecord model: maps to the billing_records table.
Placeholder ledger entries generated when an attendance session closes;
amounts are reconciled manually later.
"""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, Text, Uuid
from sqlalchemy.orm import Mapped

from .base import Base
from .enums import BillingStatus


class BillingRecord(Base):
    __tablename__ = "billing_records"

    id: Mapped[uuid.UUID] = Column(Uuid, primary_key=True, default=uuid.uuid4)
    operator_id: Mapped[uuid.UUID] = Column(
        Uuid, ForeignKey("operators.id", ondelete="RESTRICT"), nullable=False
    )
    attendance_session_id: Mapped[Optional[uuid.UUID]] = Column(
        Uuid, ForeignKey("attendance_sessions.id"), nullable=True
    )
    description: Mapped[str] = Column(Text, nullable=False)
    supplier: Mapped[str] = Column(Text, nullable=False)
    name: Mapped[str] = Column(Text, nullable=False)
    payment_method: Mapped[str] = Column(Text, nullable=False)
    cost_center: Mapped[str] = Column(Text, nullable=False)
    responsible: Mapped[str] = Column(Text, nullable=False)
    category: Mapped[str] = Column(Text, nullable=False)
    amount: Mapped[Decimal] = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    projected_date: Mapped[date] = Column(Date, nullable=False)
    status: Mapped[str] = Column(Text, nullable=False, default=BillingStatus.pendente.value)
    installments: Mapped[int] = Column(Integer, nullable=False, default=1)
    recurring: Mapped[bool] = Column(Boolean, nullable=False, default=False)
    created_at: Mapped[Optional[datetime]] = Column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
