"""
Attendance session ledger tests.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from clinic_queue.core.clock import last_day_of_month
from clinic_queue.models import AttendanceSession, BillingRecord
from clinic_queue.services.attendance import AttendanceLedger

from conftest import add_visit


async def count(session, model):
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


class TestLastDayOfMonth:

    @pytest.mark.parametrize("day,expected", [
        (date(2026, 1, 15), date(2026, 1, 31)),
        (date(2026, 2, 1), date(2026, 2, 28)),
        (date(2028, 2, 10), date(2028, 2, 29)),
        (date(2026, 4, 30), date(2026, 4, 30)),
        (date(2026, 12, 31), date(2026, 12, 31)),
    ])
    def test_month_ends(self, day, expected):
        assert last_day_of_month(day) == expected


class TestAttendanceLedger:

    @pytest.mark.asyncio
    async def test_open_then_close_bills_once(self, db_session, operators, base_time):
        visit = await add_visit(db_session, "Ana", ["Audiometria"])
        ledger = AttendanceLedger(db_session)
        audio = operators["audio"]

        opened = await ledger.open(visit.id, audio, base_time)
        assert opened.ended_at is None

        first = await ledger.close(visit.id, audio, base_time + timedelta(minutes=4))
        second = await ledger.close(visit.id, audio, base_time + timedelta(minutes=5))

        assert first.closed and first.closed_session_id == opened.id
        assert first.billing_record_id is not None
        assert not second.closed and second.billing_record_id is None
        assert await count(db_session, BillingRecord) == 1

        session = (await db_session.execute(
            select(AttendanceSession).execution_options(populate_existing=True)
        )).scalars().one()
        assert session.ended_at.replace(tzinfo=timezone.utc) == base_time + timedelta(minutes=4)

    @pytest.mark.asyncio
    async def test_billing_placeholder_fields(self, db_session, operators, settings):
        visit = await add_visit(db_session, "Ana", ["Audiometria"])
        ledger = AttendanceLedger(db_session)
        now = datetime(2026, 2, 14, 15, 0, tzinfo=timezone.utc)

        await ledger.open(visit.id, operators["audio"], now)
        result = await ledger.close(visit.id, operators["audio"], now)

        record = await db_session.get(BillingRecord, result.billing_record_id)
        assert record.amount == Decimal("0")
        assert record.projected_date == date(2026, 2, 28)
        assert record.status == "pendente"
        assert record.supplier == "audio"
        assert record.name == "audio"
        assert record.operator_id == operators["audio"].operator_id
        assert record.description == settings.billing_description
        assert record.payment_method == "a combinar"
        assert record.installments == 1
        assert record.recurring is False

    @pytest.mark.asyncio
    async def test_close_without_open_session_is_noop(self, db_session, operators, base_time):
        visit = await add_visit(db_session, "Ana", ["Audiometria"])
        result = await AttendanceLedger(db_session).close(visit.id, operators["audio"], base_time)
        assert not result.closed
        assert await count(db_session, BillingRecord) == 0

    @pytest.mark.asyncio
    async def test_billing_failure_keeps_session_closed(self, db_session, operators, base_time):
        visit = await add_visit(db_session, "Ana", ["Audiometria"])
        ledger = AttendanceLedger(db_session)
        await ledger.open(visit.id, operators["audio"], base_time)
        ledger.record_billing = AsyncMock(side_effect=SQLAlchemyError("billing table locked"))

        result = await ledger.close(visit.id, operators["audio"], base_time)

        assert result.closed
        assert result.billing_record_id is None
        assert "billing table locked" in result.billing_error
        assert await ledger.find_open_session(operators["audio"].operator_id) is None

    @pytest.mark.asyncio
    async def test_rehydrates_timer_from_open_session(self, db_session, operators, base_time):
        visit = await add_visit(db_session, "Ana Souza", ["Hemograma"])
        ledger = AttendanceLedger(db_session)
        await ledger.open(visit.id, operators["nurse"], base_time)

        timer = await ledger.active_timer(operators["nurse"].operator_id)

        assert timer.patient_name == "Ana Souza"
        assert timer.visit_id == visit.id
        assert timer.display(base_time + timedelta(minutes=75, seconds=3)) == "75:03"
        assert await ledger.active_timer(operators["audio"].operator_id) is None
