"""
Attendance session ledger.

Opens and closes the timestamped (visit, operator) sessions that downstream
reporting uses to compute handling times, and writes the placeholder billing
entry when a session closes.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_queue.config import Settings, get_settings
from clinic_queue.contracts.operator import OperatorContext
from clinic_queue.core.clock import clinic_today, last_day_of_month
from clinic_queue.models.attendance_sessions import AttendanceSession
from clinic_queue.models.billing_records import BillingRecord
from clinic_queue.models.enums import BillingStatus, RoomKey
from clinic_queue.models.patients import Patient
from clinic_queue.models.visits import Visit

from .timer import AttendanceTimer

logger = logging.getLogger(__name__)


@dataclass
class SessionCloseResult:
    closed_session_id: Optional[UUID] = None
    billing_record_id: Optional[UUID] = None
    billing_error: Optional[str] = None

    @property
    def closed(self) -> bool:
        return self.closed_session_id is not None


class AttendanceLedger:
    """
    Session bookkeeping for the call screen.

    ``open`` always inserts; duplicate opens for one visit are prevented
    upstream by the single-active-room rule. ``close`` is a guarded update on
    ``ended_at IS NULL`` so retries and concurrent closes are no-ops.
    """

    def __init__(self, db: AsyncSession, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()

    async def open(
        self,
        visit_id: UUID,
        operator: OperatorContext,
        now: datetime,
        room: Optional[RoomKey] = None,
    ) -> AttendanceSession:
        session = AttendanceSession(
            visit_id=visit_id,
            operator_id=operator.operator_id,
            room=room.value if room else None,
            started_at=now,
            ended_at=None,
        )
        self.db.add(session)
        await self.db.commit()
        await self.db.refresh(session)
        logger.info(
            "Opened attendance session %s (visit=%s operator=%s)",
            session.id, visit_id, operator.username,
        )
        return session

    async def close(
        self,
        visit_id: UUID,
        operator: OperatorContext,
        now: datetime,
    ) -> SessionCloseResult:
        """
        Close the open session for ``visit_id`` and bill the closing operator.

        Billing is written only when this call actually closed a session, so
        a retried close yields exactly one billing record. A billing failure
        is logged and reported but leaves the closed session in place.
        """
        result = await self.db.execute(
            select(AttendanceSession.id)
            .where(
                AttendanceSession.visit_id == visit_id,
                AttendanceSession.ended_at.is_(None),
            )
            .order_by(AttendanceSession.started_at.desc())
        )
        open_ids = list(result.scalars().all())
        if not open_ids:
            logger.info("No open attendance session for visit %s, nothing to close", visit_id)
            return SessionCloseResult()

        closed = await self.db.execute(
            update(AttendanceSession)
            .where(
                AttendanceSession.id.in_(open_ids),
                AttendanceSession.ended_at.is_(None),
            )
            .values(ended_at=now)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        if closed.rowcount == 0:
            logger.info("Attendance session for visit %s was closed concurrently", visit_id)
            return SessionCloseResult()

        outcome = SessionCloseResult(closed_session_id=open_ids[0])
        try:
            record = await self.record_billing(operator, now, session_id=open_ids[0])
            outcome.billing_record_id = record.id
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Failed to create billing record for operator %s: %s",
                operator.username, e, exc_info=True,
            )
            outcome.billing_error = f"billing: {e}"
        return outcome

    async def record_billing(
        self,
        operator: OperatorContext,
        now: datetime,
        session_id: Optional[UUID] = None,
    ) -> BillingRecord:
        """Insert the zero-amount entry settled on the last day of the month."""
        settings = self.settings
        record = BillingRecord(
            operator_id=operator.operator_id,
            attendance_session_id=session_id,
            description=settings.billing_description,
            supplier=operator.username,
            name=operator.username,
            payment_method=settings.billing_payment_method,
            cost_center=settings.billing_cost_center,
            responsible=settings.billing_responsible,
            category=settings.billing_category,
            amount=Decimal("0"),
            projected_date=last_day_of_month(clinic_today(now)),
            status=BillingStatus.pendente.value,
            installments=1,
            recurring=False,
        )
        self.db.add(record)
        await self.db.commit()
        await self.db.refresh(record)
        logger.info("Billing record %s created for %s", record.id, operator.username)
        return record

    async def find_open_session(
        self, operator_id: UUID
    ) -> Optional[Tuple[AttendanceSession, Optional[str]]]:
        """Latest open session for an operator together with the patient's name."""
        result = await self.db.execute(
            select(AttendanceSession, Patient.name)
            .join(Visit, AttendanceSession.visit_id == Visit.id)
            .outerjoin(Patient, Visit.patient_id == Patient.id)
            .where(
                AttendanceSession.operator_id == operator_id,
                AttendanceSession.ended_at.is_(None),
            )
            .order_by(AttendanceSession.started_at.desc())
            .limit(1)
        )
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]

    async def active_timer(self, operator_id: UUID) -> Optional[AttendanceTimer]:
        """Rebuild the operator's timer from the database after a reload."""
        found = await self.find_open_session(operator_id)
        if found is None:
            return None
        session, patient_name = found
        return AttendanceTimer(
            started_at=session.started_at,
            patient_name=patient_name or "Paciente",
            visit_id=session.visit_id,
        )
