"""
Database Setup

Async engine and sessions for the governance store. PostgreSQL in production
(asyncpg), any SQLAlchemy async URL otherwise.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from boardbook.core.config import settings

engine = create_async_engine(settings.database_url, echo=settings.debug)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base for governance and audit tables."""


async def create_tables(bind: AsyncEngine | None = None) -> None:
    """
    Create every governance and audit table that does not exist yet.

    Production schemas are managed by Alembic; this serves the CLI, debug
    startup and tests.
    """
    # Register the models on the metadata
    import boardbook.core.audit  # noqa: F401
    import boardbook.governance.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session, committed when the route returns cleanly."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
