"""
Room status state machine tests.
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from clinic_queue.models import AttendanceSession, BillingRecord, Visit
from clinic_queue.models.enums import (
    RoomControlState,
    RoomKey,
    RoomStatus,
    TransitionOutcome,
)
from clinic_queue.services.attendance import AttendanceLedger
from clinic_queue.services.display import build_display_board
from clinic_queue.services.queue import (
    RoomStatusStateMachine,
    VisitQueueRepository,
    derive_room_control,
    occupied_rooms,
)
from clinic_queue.services.queue.queue_projection import room_status_of

from conftest import add_visit


async def reload(session, visit_id) -> Visit:
    return await VisitQueueRepository(session).get_visit(visit_id)


async def in_progress_rows(session):
    visits = (await session.execute(
        select(Visit).execution_options(populate_existing=True)
    )).scalars().all()
    return [(v.id, room) for v in visits for room in RoomKey if room_status_of(v, room) == RoomStatus.in_progress]


class TestClinicScenario:
    """Audiometry walk-through: start, denied, occupied, finish and bill."""

    @pytest.mark.asyncio
    async def test_full_scenario(self, db_session, operators, base_time):
        v = await add_visit(db_session, "Ana", ["Audiometria"])
        other = await add_visit(db_session, "Bruno", ["Audiometria"])
        machine = RoomStatusStateMachine(db_session)

        started = await machine.advance(operators["audio"], v.id, RoomKey.audiometria, now=base_time)
        assert started.outcome == TransitionOutcome.applied
        assert started.new_status == RoomStatus.in_progress
        assert started.attendance_session_id is not None
        assert started.timer_patient_name == "Ana"
        assert started.side_effect_errors == []

        row = await reload(db_session, v.id)
        assert row.audiometria == "in_progress"
        assert row.display_position == 1
        assert row.display_room_label == "Audiometria"

        denied = await machine.advance(operators["doctor"], v.id, RoomKey.consultorio, now=base_time)
        assert denied.outcome == TransitionOutcome.invalid_transition

        occupied = await machine.advance(operators["admin"], other.id, RoomKey.audiometria, now=base_time)
        assert occupied.outcome == TransitionOutcome.conflict
        assert (await reload(db_session, other.id)).audiometria == "waiting"

        done = await machine.advance(
            operators["audio"], v.id, RoomKey.audiometria, now=base_time + timedelta(minutes=6)
        )
        assert done.outcome == TransitionOutcome.applied
        assert done.new_status == RoomStatus.done
        assert done.timer_stopped
        assert done.billing_record_id is not None

        record = await db_session.get(BillingRecord, done.billing_record_id)
        assert record.amount == 0
        assert record.projected_date.day in (28, 29, 30, 31)
        assert (await reload(db_session, v.id)).audiometria == "done"


class TestAdvanceRules:

    @pytest.mark.asyncio
    async def test_permission_denied_leaves_visit_untouched(self, db_session, operators):
        v = await add_visit(db_session, "Ana", ["Hemograma"])
        result = await RoomStatusStateMachine(db_session).advance(
            operators["audio"], v.id, RoomKey.salacoleta
        )
        assert result.outcome == TransitionOutcome.permission_denied
        assert (await reload(db_session, v.id)).salacoleta == "waiting"

    @pytest.mark.asyncio
    async def test_operator_without_level_is_denied(self, db_session, operators):
        v = await add_visit(db_session, "Ana", ["Hemograma"])
        result = await RoomStatusStateMachine(db_session).advance(
            operators["reception"], v.id, RoomKey.salacoleta
        )
        assert result.outcome == TransitionOutcome.permission_denied

    @pytest.mark.asyncio
    async def test_done_room_cannot_move(self, db_session, operators):
        v = await add_visit(db_session, "Ana", ["Hemograma"], salacoleta="done")
        result = await RoomStatusStateMachine(db_session).advance(
            operators["nurse"], v.id, RoomKey.salacoleta
        )
        assert result.outcome == TransitionOutcome.invalid_transition

    @pytest.mark.asyncio
    async def test_unknown_visit(self, db_session, operators):
        import uuid
        result = await RoomStatusStateMachine(db_session).advance(
            operators["admin"], uuid.uuid4(), RoomKey.raiox
        )
        assert result.outcome == TransitionOutcome.not_found

    @pytest.mark.asyncio
    async def test_patient_already_in_another_room(self, db_session, operators):
        v = await add_visit(db_session, "Ana", ["Hemograma", "Raio X"])
        machine = RoomStatusStateMachine(db_session)
        assert (await machine.advance(operators["nurse"], v.id, RoomKey.salacoleta)).applied

        result = await machine.advance(operators["xray"], v.id, RoomKey.raiox)

        assert result.outcome == TransitionOutcome.conflict
        assert "salacoleta" in result.detail

    @pytest.mark.asyncio
    async def test_stale_expected_status_is_conflict(self, db_session, operators):
        v = await add_visit(db_session, "Ana", ["Hemograma"])
        machine = RoomStatusStateMachine(db_session)
        assert (await machine.advance(operators["nurse"], v.id, RoomKey.salacoleta)).applied

        # A second screen still shows "waiting"
        result = await machine.advance(
            operators["admin"], v.id, RoomKey.salacoleta, expected_status=RoomStatus.waiting
        )

        assert result.outcome == TransitionOutcome.conflict
        assert await db_session.scalar(select(func.count()).select_from(AttendanceSession)) == 1

    @pytest.mark.asyncio
    async def test_occupancy_is_per_day(self, db_session, operators, today):
        yesterday = await add_visit(
            db_session, "Ana", ["Audiometria"], day=today - timedelta(days=1), audiometria="in_progress"
        )
        v = await add_visit(db_session, "Bruno", ["Audiometria"])
        result = await RoomStatusStateMachine(db_session).advance(operators["audio"], v.id, RoomKey.audiometria)
        assert result.applied
        assert (await reload(db_session, yesterday.id)).audiometria == "in_progress"

    @pytest.mark.asyncio
    async def test_new_call_demotes_previous(self, db_session, operators):
        first = await add_visit(db_session, "Ana", ["Audiometria"])
        second = await add_visit(db_session, "Bruno", ["Hemograma"])
        machine = RoomStatusStateMachine(db_session)

        await machine.advance(operators["audio"], first.id, RoomKey.audiometria)
        await machine.advance(operators["nurse"], second.id, RoomKey.salacoleta)

        assert (await reload(db_session, first.id)).display_position == 2
        row = await reload(db_session, second.id)
        assert row.display_position == 1
        assert row.display_room_label == "Sala Coleta"

    @pytest.mark.asyncio
    async def test_publishes_change_events(self, db_session, operators):
        v = await add_visit(db_session, "Ana", ["Audiometria"])
        notifier = AsyncMock()
        machine = RoomStatusStateMachine(db_session, notifier=notifier)

        await machine.advance(operators["audio"], v.id, RoomKey.audiometria)
        await machine.advance(operators["audio"], v.id, RoomKey.audiometria)

        events = [c.args for c in notifier.publish.await_args_list]
        assert events == [(v.id, "room_started"), (v.id, "room_finished")]


class TestFailures:

    @pytest.mark.asyncio
    async def test_status_write_failure(self, db_session, operators):
        v = await add_visit(db_session, "Ana", ["Audiometria"])
        repository = VisitQueueRepository(db_session)
        repository.start_room = AsyncMock(
            side_effect=OperationalError("UPDATE visits", {}, Exception("connection reset"))
        )
        machine = RoomStatusStateMachine(db_session, repository=repository)

        result = await machine.advance(operators["audio"], v.id, RoomKey.audiometria)

        assert result.outcome == TransitionOutcome.write_failed
        assert (await reload(db_session, v.id)).audiometria == "waiting"
        assert await db_session.scalar(select(func.count()).select_from(AttendanceSession)) == 0

    @pytest.mark.asyncio
    async def test_session_open_failure_is_reported_not_rolled_back(self, db_session, operators):
        v = await add_visit(db_session, "Ana", ["Audiometria"])
        ledger = AttendanceLedger(db_session)
        ledger.open = AsyncMock(side_effect=SQLAlchemyError("attendance table missing"))
        machine = RoomStatusStateMachine(db_session, ledger=ledger)

        result = await machine.advance(operators["audio"], v.id, RoomKey.audiometria)

        assert result.applied
        assert result.attendance_session_id is None
        assert any("attendance" in e for e in result.side_effect_errors)
        assert (await reload(db_session, v.id)).audiometria == "in_progress"

    @pytest.mark.asyncio
    async def test_finish_without_session_creates_no_billing(self, db_session, operators):
        v = await add_visit(db_session, "Ana", ["Audiometria"], audiometria="in_progress")
        result = await RoomStatusStateMachine(db_session).advance(
            operators["audio"], v.id, RoomKey.audiometria
        )
        assert result.applied
        assert result.billing_record_id is None
        assert await db_session.scalar(select(func.count()).select_from(BillingRecord)) == 0


class TestConcurrentAdvances:
    """Operators racing from separate sessions never break the occupancy rules."""

    @pytest.mark.asyncio
    async def test_two_visits_race_for_one_room(self, session_factory, db_session, operators):
        visits = [await add_visit(db_session, f"P{i}", ["Audiometria"]) for i in range(4)]

        async def attempt(visit):
            async with session_factory() as session:
                return await RoomStatusStateMachine(session).advance(
                    operators["admin"], visit.id, RoomKey.audiometria
                )

        results = await asyncio.gather(*(attempt(v) for v in visits))

        outcomes = sorted(r.outcome.value for r in results)
        assert outcomes.count("applied") == 1
        assert outcomes.count("conflict") == 3
        assert len(await in_progress_rows(db_session)) == 1

    @pytest.mark.asyncio
    async def test_one_visit_races_into_two_rooms(self, session_factory, db_session, operators):
        v = await add_visit(db_session, "Ana", ["Hemograma", "Audiometria", "Raio X", "Espirometria"])
        rooms = [RoomKey.salacoleta, RoomKey.audiometria, RoomKey.raiox, RoomKey.salaexames]

        async def attempt(room):
            async with session_factory() as session:
                return await RoomStatusStateMachine(session).advance(operators["admin"], v.id, room)

        results = await asyncio.gather(*(attempt(r) for r in rooms))

        assert sum(1 for r in results if r.applied) == 1
        assert len(await in_progress_rows(db_session)) == 1


class TestDeriveRoomControl:

    @pytest.mark.asyncio
    async def test_control_states(self, db_session, operators):
        busy = await add_visit(db_session, "Ana", ["Audiometria", "Hemograma"], audiometria="in_progress")
        waiting = await add_visit(db_session, "Bruno", ["Audiometria", "Avaliação Clínica"], consultorio="done")
        occupied = occupied_rooms([busy, waiting])
        audio = operators["audio"]

        assert occupied == {RoomKey.audiometria}
        assert derive_room_control(busy, RoomKey.audiometria, audio, occupied) == RoomControlState.enabled
        assert derive_room_control(busy, RoomKey.salacoleta, operators["nurse"], occupied) == RoomControlState.blocked
        assert derive_room_control(busy, RoomKey.raiox, audio, occupied) == RoomControlState.hidden
        assert derive_room_control(waiting, RoomKey.audiometria, audio, occupied) == RoomControlState.occupied_by_other
        assert derive_room_control(waiting, RoomKey.consultorio, audio, occupied) == RoomControlState.done
        assert derive_room_control(busy, RoomKey.audiometria, operators["doctor"], occupied) == RoomControlState.blocked


class TestOneVisitPerRoomIndex:
    """The store itself refuses a second in-progress visit for a room on one day."""

    @pytest.mark.asyncio
    async def test_second_in_progress_row_is_rejected(self, db_session, today):
        await add_visit(db_session, "Ana", ["Audiometria"], audiometria="in_progress")
        other = await add_visit(db_session, "Bruno", ["Audiometria"])

        with pytest.raises(IntegrityError):
            await db_session.execute(
                update(Visit).where(Visit.id == other.id).values(audiometria="in_progress")
            )
        await db_session.rollback()

        await add_visit(
            db_session, "Carla", ["Audiometria"], day=today + timedelta(days=1), audiometria="in_progress"
        )
        assert len(await in_progress_rows(db_session)) == 2

    @pytest.mark.asyncio
    async def test_unique_violation_is_a_lost_race(self, db_session, monkeypatch):
        v = await add_visit(db_session, "Ana", ["Audiometria"])
        repository = VisitQueueRepository(db_session)
        monkeypatch.setattr(db_session, "execute", AsyncMock(side_effect=IntegrityError(
            "UPDATE visits", {}, Exception("duplicate key value violates unique constraint")
        )))

        started = await repository.start_room(v.id, RoomKey.audiometria, "Audiometria", None)

        monkeypatch.undo()
        assert started is False
        assert room_status_of(await reload(db_session, v.id), RoomKey.audiometria) == RoomStatus.waiting


class HeldRepository(VisitQueueRepository):
    """Holds each start after its status write until ``release`` is set."""

    def __init__(self, db, written, release):
        super().__init__(db)
        self.written = written
        self.release = release

    async def start_room(self, *args, **kwargs):
        started = await super().start_room(*args, **kwargs)
        self.written.set()
        await self.release.wait()
        return started


class TestInterleavedCalls:

    @pytest.mark.asyncio
    async def test_newest_call_keeps_the_slot(self, session_factory, db_session, operators, base_time):
        ana = await add_visit(db_session, "Ana", ["Audiometria"])
        bia = await add_visit(db_session, "Bia", ["Raio X"])
        release = asyncio.Event()
        written = [asyncio.Event(), asyncio.Event()]

        async def call(visit, room, operator, now, done):
            async with session_factory() as session:
                machine = RoomStatusStateMachine(
                    session, repository=HeldRepository(session, done, release)
                )
                return await machine.advance(operator, visit.id, room, now=now)

        tasks = [
            asyncio.create_task(call(ana, RoomKey.audiometria, operators["audio"], base_time, written[0])),
            asyncio.create_task(
                call(bia, RoomKey.raiox, operators["xray"], base_time + timedelta(seconds=1), written[1])
            ),
        ]
        await asyncio.wait_for(asyncio.gather(*(e.wait() for e in written)), timeout=5)
        release.set()
        results = await asyncio.wait_for(asyncio.gather(*tasks), timeout=5)

        assert all(r.applied for r in results)
        board = build_display_board(await VisitQueueRepository(db_session).list_display_visits(7))
        assert board.current is not None
        assert board.current.patient_name == "Bia"
        assert [c.patient_name for c in board.history] == ["Ana"]
