"""XP event recording and totals access."""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.core.errors import NotFoundError, ValidationError
from fellowship.db.models import User, XpEvent, XpTotals
from fellowship.domain.enums import Fruit
from fellowship.engine import xp_totals

logger = logging.getLogger(__name__)


async def record_xp_event(
    db: AsyncSession,
    *,
    user_id: str,
    fruit: Fruit | str,
    amount: int,
    reason: str,
    metadata: dict[str, Any] | None = None,
) -> XpEvent:
    """
    Insert an XP event and add it to the user's totals.

    Zero amounts are stored and leave the totals unchanged.

    Raises:
        CheckConstraintViolation: amount < 0 (nothing is written)
        ValidationError: Unknown fruit
        NotFoundError: User missing
    """
    try:
        fruit = Fruit(fruit)
    except ValueError:
        raise ValidationError(
            "Invalid fruit",
            details={"field": "fruit", "value": str(fruit), "allowed": [f.value for f in Fruit]},
        ) from None

    # Validated on assignment; raises before anything reaches the session
    event = XpEvent(user_id=user_id, fruit=fruit, amount=amount, reason=reason, metadata_=metadata)

    if await db.get(User, user_id) is None:
        raise NotFoundError("User not found", details={"user_id": user_id})

    db.add(event)
    await db.flush()
    await xp_totals.add_to_totals(db, user_id, fruit, amount)

    logger.debug(
        "XP event recorded",
        extra={"user_id": user_id, "fruit": fruit.value, "amount": amount, "event_id": event.id},
    )
    return event


async def get_xp_totals(db: AsyncSession, user_id: str) -> dict[str, int]:
    """
    Current totals per fruit column for a user.

    Users without events have no totals row yet; every fruit reads as 0.

    Raises:
        NotFoundError: User missing
    """
    if await db.get(User, user_id) is None:
        raise NotFoundError("User not found", details={"user_id": user_id})

    totals = await db.get(XpTotals, user_id, populate_existing=True)
    if totals is None:
        return {fruit.column: 0 for fruit in Fruit}
    return totals.as_dict()


async def list_xp_events(db: AsyncSession, user_id: str, *, limit: int = 50) -> list[XpEvent]:
    """Most recent XP events for a user."""
    stmt = (
        select(XpEvent)
        .where(XpEvent.user_id == user_id)
        .order_by(XpEvent.created_at.desc())
        .limit(limit)
    )
    return list((await db.scalars(stmt)).all())


async def recompute_xp_totals(db: AsyncSession, user_id: str) -> XpTotals:
    """Rebuild a user's totals from the event log. Idempotent."""
    totals = await xp_totals.recompute_xp_totals(db, user_id)
    await db.flush()
    return totals


async def recompute_all_xp_totals(db: AsyncSession) -> int:
    """Rebuild totals for every user with events. Returns the user count."""
    return await xp_totals.recompute_all_xp_totals(db)
