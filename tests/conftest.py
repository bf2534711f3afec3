"""
Pytest configuration and shared fixtures.

Provides:
- A fresh schema per test: SQLite file under tmp_path by default, or the
  PostgreSQL database named by DATABASE_URL_APP (tables dropped/recreated)
- async_session_maker / async_db_session fixtures
- An httpx.AsyncClient bound to the FastAPI app with the DB dependency
  overridden to use the per-test engine

Async Helper Functions:
- acreate_user(), acreate_post(), acreate_prayer(), acreate_group()
- reload(): refresh an ORM instance after engine-side counter updates
"""

from __future__ import annotations

import os
import sys
import uuid
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Set test environment variables before importing the app
os.environ.setdefault("DATABASE_URL_APP", "sqlite+aiosqlite:///./fellowship-test.db")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("OBSERVABILITY_STRUCTURED_LOGS", "false")

import httpx  # noqa: E402 (import after env setup)
import pytest  # noqa: E402 (import after env setup)
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker  # noqa: E402

from fellowship.core.config import settings  # noqa: E402
from fellowship.core.db import create_fresh_async_engine  # noqa: E402
from fellowship.core.dependencies import get_async_db_session  # noqa: E402
from fellowship.db.models import Base, Group, Post, Prayer, User  # noqa: E402
from fellowship.main import create_app  # noqa: E402
from fellowship.repos.owner_repo import (  # noqa: E402
    create_group,
    create_post,
    create_prayer,
    create_user,
)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def async_engine(tmp_path) -> AsyncGenerator[AsyncEngine]:
    """Engine with a freshly created schema, disposed after the test."""
    if settings.is_sqlite:
        url = f"sqlite+aiosqlite:///{tmp_path / 'fellowship.db'}"
    else:
        url = settings.async_url

    engine = create_fresh_async_engine(url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def async_session_maker(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture
async def async_db_session(async_session_maker) -> AsyncGenerator[AsyncSession]:
    """
    Session for a single test.

    On SQLite every transaction holds the write lock, so tests that also
    open other sessions (HTTP client, concurrency) must commit or close
    this one first.
    """
    async with async_session_maker() as session:
        yield session


@pytest.fixture
async def async_client(async_session_maker) -> AsyncGenerator[httpx.AsyncClient]:
    app = create_app()

    async def _override() -> AsyncGenerator[AsyncSession]:
        async with async_session_maker() as session:
            yield session

    app.dependency_overrides[get_async_db_session] = _override
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


# ============================================================================
# Async factories
# ============================================================================


async def acreate_user(db: AsyncSession, **overrides: Any) -> User:
    values = {
        "email": f"user-{uuid.uuid4().hex[:12]}@example.com",
        "password_hash": "x",
        "display_name": "Test User",
    }
    values.update(overrides)
    return await create_user(db, **values)


async def acreate_post(db: AsyncSession, user: User, **overrides: Any) -> Post:
    values = {"user_id": user.id, "content": "Grateful today"}
    values.update(overrides)
    return await create_post(db, **values)


async def acreate_prayer(db: AsyncSession, user: User, **overrides: Any) -> Prayer:
    values = {"user_id": user.id, "title": "Healing", "content": "Please pray for my aunt"}
    values.update(overrides)
    return await create_prayer(db, **values)


async def acreate_group(db: AsyncSession, creator: User, **overrides: Any) -> Group:
    values = {"name": "Tuesday Bible Study", "created_by": creator.id}
    values.update(overrides)
    return await create_group(db, **values)


async def reload(db: AsyncSession, obj: Any) -> Any:
    """Refresh an instance whose columns were changed by a Core UPDATE."""
    await db.refresh(obj)
    return obj
