"""
Database connection and schema tests.
"""

import pytest
from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_queue.db.session import engine_options


class TestDatabaseConnection:
    """Test database connectivity and basic operations."""

    @pytest.mark.asyncio
    async def test_database_connection(self, db_session: AsyncSession):
        """Test that we can connect to the database."""
        result = await db_session.execute(text("SELECT 1"))
        assert result.scalar() == 1

    def test_asyncpg_gets_server_timeouts(self):
        options = engine_options("postgresql+asyncpg://localhost/clinic_queue")
        assert options["connect_args"]["server_settings"]["statement_timeout"] == "60000"
        assert "connect_args" not in engine_options("sqlite+aiosqlite://")


class TestDatabaseSchema:
    """Test that required tables and columns exist."""

    @pytest.mark.asyncio
    async def test_tables_exist(self, engine):
        async with engine.connect() as conn:
            tables = await conn.run_sync(lambda sync: inspect(sync).get_table_names())
        assert {"patients", "operators", "visits", "attendance_sessions", "billing_records"} <= set(tables)

    @pytest.mark.asyncio
    async def test_visit_has_one_column_per_room(self, engine):
        async with engine.connect() as conn:
            columns = await conn.run_sync(
                lambda sync: {c["name"] for c in inspect(sync).get_columns("visits")}
            )
        assert {"consultorio", "salaexames", "salacoleta", "audiometria", "raiox"} <= columns
        assert {"display_position", "display_room_label", "called_at", "exams_snapshot"} <= columns

    @pytest.mark.asyncio
    async def test_queue_indexes_exist(self, engine):
        async with engine.connect() as conn:
            indexed = await conn.run_sync(
                lambda sync: {tuple(i["column_names"]) for i in inspect(sync).get_indexes("visits")}
            )
        assert ("scheduled_date",) in indexed
        assert ("display_position",) in indexed


class TestRoomOccupancyIndexes:
    """One partial unique index per room keeps a room to one visit per day."""

    def test_declared_for_every_room(self):
        from clinic_queue.models import RoomKey, Visit

        indexes = {i.name: i for i in Visit.__table__.indexes}
        for room in RoomKey:
            index = indexes[f"uq_visits_{room.value}_in_progress"]
            assert index.unique
            assert [c.name for c in index.columns] == ["scheduled_date"]
            where = index.dialect_options["postgresql"]["where"]
            assert str(where) == f"{room.value} = 'in_progress'"

    @pytest.mark.asyncio
    async def test_created_in_database(self, engine):
        async with engine.connect() as conn:
            unique = await conn.run_sync(
                lambda sync: {i["name"] for i in inspect(sync).get_indexes("visits") if i["unique"]}
            )
        assert "uq_visits_audiometria_in_progress" in unique
        assert "uq_visits_raiox_in_progress" in unique
