"""Async SQLAlchemy engine and session factory.

Learn: SQLAlchemy 2.0 async mode — create_async_engine for connection pooling,
AsyncSession for per-request database access, dependency injection via FastAPI.

The pool is bounded: `pool_size` connections are kept open (the minimum),
and up to `max_overflow` more are opened under load. When all of them are
checked out, new requests wait. That is the only backpressure we have.
"""

from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from pulseforge.config import Settings, settings


def build_engine(cfg: Settings) -> AsyncEngine:
    """Create the async engine with pool limits from config."""
    kwargs = {"echo": cfg.debug, "pool_pre_ping": True}
    if not cfg.database_url.startswith("sqlite"):
        kwargs.update(
            pool_size=cfg.db_min_conns,
            max_overflow=cfg.db_max_conns - cfg.db_min_conns,
            pool_recycle=cfg.pool_recycle_seconds,
        )
    return create_async_engine(cfg.database_url, **kwargs)


engine = build_engine(settings)

# Session factory — each request gets its own session.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency — yields a session per request.

    Anything not committed by the handler is rolled back when the
    session closes.
    """
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
