"""
Feature flag key/value store.

Flags are process-wide configuration read and written explicitly against
the database. Nothing is cached; every read sees the committed state.
"""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.core.errors import NotFoundError
from fellowship.db.models import FeatureFlag

logger = logging.getLogger(__name__)


async def get_flag(db: AsyncSession, key: str) -> FeatureFlag:
    """
    Raises:
        NotFoundError: Flag not set
    """
    flag = await db.get(FeatureFlag, key, populate_existing=True)
    if flag is None:
        raise NotFoundError("Feature flag not found", details={"key": key})
    return flag


async def is_enabled(db: AsyncSession, key: str, *, default: bool = False) -> bool:
    """Read a flag's enabled bit, falling back to default when it is unset."""
    enabled = await db.scalar(select(FeatureFlag.enabled).where(FeatureFlag.key == key))
    return default if enabled is None else enabled


async def set_flag(
    db: AsyncSession, key: str, *, enabled: bool, payload: dict[str, Any] | None = None
) -> FeatureFlag:
    """Create or overwrite a flag."""
    flag = await db.get(FeatureFlag, key, with_for_update=True)
    if flag is None:
        flag = FeatureFlag(key=key, enabled=enabled, payload=payload)
        db.add(flag)
    else:
        flag.enabled = enabled
        flag.payload = payload
    await db.flush()

    logger.info("Feature flag set", extra={"key": key, "enabled": enabled})
    return flag


async def delete_flag(db: AsyncSession, key: str) -> None:
    """
    Raises:
        NotFoundError: Flag not set
    """
    flag = await get_flag(db, key)
    await db.delete(flag)
    await db.flush()
    logger.info("Feature flag deleted", extra={"key": key})


async def list_flags(db: AsyncSession) -> list[FeatureFlag]:
    return list((await db.scalars(select(FeatureFlag).order_by(FeatureFlag.key))).all())
