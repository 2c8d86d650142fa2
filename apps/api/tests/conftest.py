"""
Pytest configuration and fixtures.

Services run against a SQLite file database per test. Every transaction
starts with BEGIN IMMEDIATE, so concurrent writers queue up the way row
locks make them queue on PostgreSQL.
"""

import os
import uuid
from collections.abc import AsyncGenerator
from datetime import date

# Keep the application engine off any real database
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from boardbook.core.audit import AuditLogger, get_audit_logger
from boardbook.core.database import create_tables, get_db
from boardbook.governance.models import Meeting, MeetingType
from boardbook.main import app

SECRETARY_ID = uuid.UUID("00000000-0000-0000-0000-00000000000a")
PRESIDENT_ID = uuid.UUID("00000000-0000-0000-0000-00000000000b")
PARLIAMENTARIAN_ID = uuid.UUID("00000000-0000-0000-0000-00000000000c")
MEMBER_ID = uuid.UUID("00000000-0000-0000-0000-00000000000d")


def actor_headers(actor_id: uuid.UUID, role: str) -> dict[str, str]:
    """Headers the authenticating gateway forwards for an actor."""
    return {"X-Actor-Id": str(actor_id), "X-Actor-Role": role}


SECRETARY = actor_headers(SECRETARY_ID, "secretary")
PRESIDENT = actor_headers(PRESIDENT_ID, "president")
PARLIAMENTARIAN = actor_headers(PARLIAMENTARIAN_ID, "parliamentarian")
MEMBER = actor_headers(MEMBER_ID, "member")


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create a fresh database with all tables."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'boardbook.db'}",
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def on_connect(dbapi_connection, connection_record) -> None:
        # Let SQLAlchemy emit BEGIN and SAVEPOINT itself
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def on_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    await create_tables(engine)

    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test database."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_maker: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """A session for service tests. Nothing is committed unless a test does."""
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def meeting(session_maker: async_sessionmaker[AsyncSession]) -> Meeting:
    """A committed board meeting."""
    async with session_maker() as session:
        meeting = Meeting(
            date=date(2026, 9, 14),
            type=MeetingType.BOARD,
            title="September board meeting",
            created_by_id=SECRETARY_ID,
        )
        session.add(meeting)
        await session.commit()
    return meeting


@pytest.fixture
def audit_logger(session_maker: async_sessionmaker[AsyncSession]) -> AuditLogger:
    """Audit logger writing to the test database."""
    return AuditLogger(session_factory=session_maker, enabled=True)


@pytest_asyncio.fixture
async def client(
    session_maker: async_sessionmaker[AsyncSession],
    audit_logger: AuditLogger,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for the API, wired to the test database."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_audit_logger] = lambda: audit_logger

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
