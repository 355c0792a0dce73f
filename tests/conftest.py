"""
Pytest fixtures for backend tests.
"""

import os
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Dict, Iterable, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Set test environment before importing app
os.environ.setdefault("AUTH_DISABLED", "true")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("REDIS_URL", "")

from clinic_queue.config import get_settings
from clinic_queue.contracts.operator import OperatorContext
from clinic_queue.core.clock import clinic_today
from clinic_queue.dependencies.auth import get_current_user
from clinic_queue.dependencies.db import get_db
from clinic_queue.main import app
from clinic_queue.models import Base, Operator, Patient, Visit
from clinic_queue.services.visits import routed_room_fields


# --- Builders ---

def operator_context(operator: Operator) -> OperatorContext:
    return OperatorContext(
        operator_id=operator.id,
        username=operator.username,
        display_name=operator.display_name,
        access_level=operator.access_level,
    )


async def add_operator(
    session: AsyncSession, username: str, access_level: Optional[int]
) -> OperatorContext:
    operator = Operator(
        username=username,
        display_name=username.title(),
        email=f"{username}@clinic.test",
        access_level=access_level,
    )
    session.add(operator)
    await session.commit()
    return operator_context(operator)


async def add_visit(
    session: AsyncSession,
    name: str,
    exams: Iterable[str],
    day=None,
    present: bool = True,
    priority: bool = False,
    arrived_at: Optional[datetime] = None,
    **fields,
) -> Visit:
    patient = Patient(name=name)
    session.add(patient)
    await session.flush()
    exams = list(exams)
    visit = Visit(
        patient_id=patient.id,
        scheduled_date=day or clinic_today(),
        present=present,
        priority=priority,
        arrived_at=arrived_at if arrived_at or not present else datetime.now(timezone.utc),
        exams_snapshot=exams,
        **{**routed_room_fields(exams), **fields},
    )
    session.add(visit)
    await session.commit()
    await session.refresh(visit)
    return visit


# --- Fixtures ---

@pytest.fixture(scope="session")
def settings():
    """Get application settings."""
    return get_settings()


@pytest.fixture
def today():
    return clinic_today()


@pytest.fixture
def base_time():
    return datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """
    File-backed SQLite database per test, so concurrent sessions get
    separate connections.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'queue.db'}",
        connect_args={"timeout": 15},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """
    Create a database session for testing.
    """
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def operators(db_session) -> Dict[str, OperatorContext]:
    """One operator per access level plus one without a level."""
    return {
        "admin": await add_operator(db_session, "admin", 1),
        "doctor": await add_operator(db_session, "doctor", 2),
        "exams": await add_operator(db_session, "exams", 3),
        "nurse": await add_operator(db_session, "nurse", 4),
        "audio": await add_operator(db_session, "audio", 5),
        "xray": await add_operator(db_session, "xray", 6),
        "reception": await add_operator(db_session, "reception", None),
    }


@pytest.fixture
def api_user() -> Dict[str, Optional[str]]:
    """Email the mocked Auth0 user resolves to; tests switch operators by editing it."""
    return {"email": None}


@pytest_asyncio.fixture(scope="function")
async def async_client(session_factory, api_user) -> AsyncGenerator[AsyncClient, None]:
    """
    Async test client for FastAPI bound to the per-test database.
    """
    async def override_get_db():
        async with session_factory() as session:
            yield session

    def mock_user_override():
        return {
            "id": "test-user-id",
            "email": api_user["email"],
            "auth0_sub": "auth0|test-user-id",
        }

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = mock_user_override
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()

