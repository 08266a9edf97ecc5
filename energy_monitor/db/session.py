"""
Async database engine and session factory.

Uses SQLAlchemy 2.x async engines. SQLite (aiosqlite) is the default for
single-host deployments; PostgreSQL works through asyncpg with a
``postgresql+asyncpg://`` URL.

CHANGELOG:
- 2026-10-16: Initial creation (STORY-008)
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from energy_monitor.db.models import Base


def create_engine(database_url: str, **kwargs: object) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    Args:
        database_url: SQLAlchemy async URL, e.g. ``sqlite+aiosqlite:///./energy.db``.
        **kwargs: Passed through to ``create_async_engine`` (pool settings).

    Returns:
        AsyncEngine: Configured async engine.
    """
    return create_async_engine(database_url, echo=False, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to *engine*."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_schema(engine: AsyncEngine) -> None:
    """Create missing tables (development and tests only).

    Production schemas are managed outside this package.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
