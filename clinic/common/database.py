"""Async database engine and session factory.

Uses SQLAlchemy 2.0+ async with asyncpg for PostgreSQL
and aiosqlite for testing.

Usage in FastAPI:
    from clinic.common.database import get_db

    @router.get("/example")
    async def example(db: AsyncSession = Depends(get_db)):
        result = await db.execute(select(PushSubscription))
        ...
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from clinic.common.config import get_settings

_engine = None
_session_factory = None


def _get_engine():
    """Get or create the async engine (lazy singleton)."""
    global _engine
    if _engine is None:
        settings = get_settings()
        kwargs: dict = {
            "echo": settings.environment == "development",
            "pool_pre_ping": True,
        }
        # SQLite (tests, local runs) has no connection pool to size.
        if not settings.database_url.startswith("sqlite"):
            kwargs["pool_size"] = settings.db_pool_size
            kwargs["max_overflow"] = settings.db_max_overflow
        _engine = create_async_engine(settings.database_url, **kwargs)
    return _engine


def _get_session_factory():
    """Get or create the session factory (lazy singleton)."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=_get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that provides an async database session.

    The session is closed when the request finishes. Writes are committed
    by the store that performs them.
    """
    factory = _get_session_factory()
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


def reset_engine() -> None:
    """Reset the engine and session factory. Used in tests."""
    global _engine, _session_factory
    _engine = None
    _session_factory = None
