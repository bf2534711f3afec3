"""
Database connection and session management.

Provides SQLAlchemy engines, session factories, and dependency injection
for FastAPI endpoints.

Provides a sync engine (schema setup) and async sessions (API, engine, scripts).

SQLite engines are configured so that every transaction begins with
`BEGIN IMMEDIATE` and foreign keys are enforced. Writers therefore take
the database write lock up front and queue on the busy timeout, which
serializes counter read-modify-write the same way a PostgreSQL row lock
does.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from fellowship.core.config import settings

logger = logging.getLogger(__name__)

_engine: Engine | None = None

_async_engine: AsyncEngine | None = None
_async_sessionmaker: async_sessionmaker | None = None


def _is_sqlite_url(url: str) -> bool:
    return url.startswith("sqlite")


def configure_sqlite_engine(engine: Engine) -> None:
    """
    Install connection hooks for SQLite.

    Disables the driver's implicit BEGIN so SQLAlchemy can emit
    `BEGIN IMMEDIATE` itself, and turns on foreign key enforcement.

    Args:
        engine: Sync engine (pass `async_engine.sync_engine` for async engines)
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def _engine_kwargs(url: str) -> dict[str, Any]:
    if _is_sqlite_url(url):
        return {"connect_args": {"timeout": settings.db_busy_timeout_seconds}}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_timeout": settings.db_pool_timeout,
        "pool_recycle": settings.db_pool_recycle,
        "pool_pre_ping": True,
    }


def get_engine() -> Engine:
    """
    Create and configure the sync SQLAlchemy engine.

    Uses psycopg (PostgreSQL) or pysqlite (SQLite). Used by operator
    scripts for schema setup.

    Returns:
        Configured SQLAlchemy engine
    """
    global _engine

    if _engine is not None:
        return _engine

    url = settings.sync_url
    if not url:
        raise RuntimeError("DATABASE_URL_APP is required")

    _engine = create_engine(url, echo=False, **_engine_kwargs(url))
    if _is_sqlite_url(url):
        configure_sqlite_engine(_engine)

    return _engine


# ============================================================================
# Async Database Support
# ============================================================================

def create_fresh_async_engine(url: str | None = None) -> AsyncEngine:
    """Create a fresh async engine without caching.

    Used by tests (one engine per event loop) and by scripts.

    Args:
        url: Async database URL; defaults to settings.async_url
    """
    url = url or settings.async_url
    if not url:
        raise RuntimeError("DATABASE_URL_APP is required")

    engine = create_async_engine(url, echo=False, **_engine_kwargs(url))
    if _is_sqlite_url(url):
        configure_sqlite_engine(engine.sync_engine)
    return engine


def get_async_engine() -> AsyncEngine:
    """
    Create and configure the async SQLAlchemy engine.

    Uses asyncpg (PostgreSQL) or aiosqlite (SQLite).

    Returns:
        Configured async SQLAlchemy engine
    """
    global _async_engine

    if _async_engine is not None:
        return _async_engine

    _async_engine = create_fresh_async_engine()
    logger.info("Async engine created", extra={"backend": settings.backend})
    return _async_engine


def get_async_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """
    Get or create the async sessionmaker.

    Returns:
        Async sessionmaker factory
    """
    global _async_sessionmaker
    if _async_sessionmaker is not None:
        return _async_sessionmaker

    _async_sessionmaker = async_sessionmaker(
        bind=get_async_engine(),
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )
    return _async_sessionmaker


async def reset_async_engine() -> None:
    """Reset the async database engine and sessionmaker.

    Useful for tests to ensure fresh connections on new event loops.
    """
    global _async_engine, _async_sessionmaker

    if _async_engine is not None:
        await _async_engine.dispose()
    _async_engine = None
    _async_sessionmaker = None


@asynccontextmanager
async def transaction() -> AsyncIterator[AsyncSession]:
    """Run a unit of work in its own session and transaction.

    Commits on success, rolls back on any exception. Used by scripts and
    background callers that are not inside a request.

    Usage:
        async with transaction() as db:
            await recompute_xp_totals(db, user_id)
    """
    session_maker = get_async_sessionmaker()
    async with session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
