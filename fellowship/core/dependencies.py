"""
FastAPI dependency injection utilities.

Provides reusable dependencies for database sessions.
"""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.core.db import get_async_sessionmaker


async def get_async_db_session() -> AsyncGenerator[AsyncSession]:
    """
    Async database session dependency for FastAPI endpoints.

    Routes commit explicitly; anything left uncommitted is rolled back
    when the session closes.

    Usage:
        @router.get("/posts/{post_id}")
        async def get_post(post_id: str, db: AsyncDbSession):
            return await db.get(Post, post_id)

    Yields:
        Async SQLAlchemy database session
    """
    session_maker = get_async_sessionmaker()
    async with session_maker() as session:
        yield session


AsyncDbSession = Annotated[AsyncSession, Depends(get_async_db_session)]
