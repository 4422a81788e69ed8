"""Async engine and per-request sessions.

PostgreSQL (asyncpg) is the production target: the pool's row locking
relies on it. A sqlite+aiosqlite URL also works for local runs, without
queue-pool sizing and without row locks.
"""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from auratask.config import settings


def _engine_options(database_url: str) -> dict:
    options = {"echo": settings.debug}
    if make_url(database_url).get_backend_name() != "sqlite":
        # 5 steady connections, bursts up to 20
        options.update(pool_size=5, max_overflow=15, pool_pre_ping=True)
    return options


engine = create_async_engine(
    settings.database_url, **_engine_options(settings.database_url)
)

# expire_on_commit=False: handlers serialize ORM rows after the service commits
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncSession:
    """FastAPI dependency: one session per request, closed afterwards."""
    async with async_session_factory() as session:
        yield session
