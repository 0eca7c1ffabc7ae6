"""Async SQLAlchemy engine and session factory.

One engine with connection pooling for the whole process; each request gets
its own AsyncSession through the get_db dependency.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from appstalker.config import settings

# Connection pool: min 5, max 20 connections.
# SQLite (local dev) doesn't take pool sizing arguments.
_pool_options = (
    {}
    if settings.database_url.startswith("sqlite")
    else {"pool_size": 5, "max_overflow": 15}
)

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    **_pool_options,
)

# Session factory — each request gets its own session.
# expire_on_commit=False: rows stay readable after the per-notification
# commits the fan-out engine performs.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncSession:
    """FastAPI dependency — yields a session per request, auto-closes."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
