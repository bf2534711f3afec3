"""
Totals aggregator for per-user XP.

XpTotals is an additive projection of XpEvent.amount grouped by fruit.
Live writes go through a single `INSERT ... ON CONFLICT (user_id) DO UPDATE
SET <fruit> = <fruit> + :amount`, which is atomic per row and commutative,
so arrival order never matters. The recompute path rebuilds a row from the
event log and is idempotent apart from updated_at.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.core.errors import NotFoundError
from fellowship.core.observability import metrics
from fellowship.db.models import User, XpEvent, XpTotals
from fellowship.domain.enums import Fruit

logger = logging.getLogger(__name__)

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _upsert(db: AsyncSession, values: dict[str, Any]):
    """Dialect-specific INSERT for XpTotals that supports ON CONFLICT."""
    dialect = db.get_bind().dialect.name
    try:
        insert = _INSERTS[dialect]
    except KeyError:
        raise RuntimeError(f"Unsupported database dialect for XP totals: {dialect}") from None
    return insert(XpTotals).values(**values)


async def add_to_totals(db: AsyncSession, user_id: str, fruit: Fruit, amount: int) -> None:
    """
    Add amount to one fruit column of the user's totals row.

    Creates the row (every other fruit at zero) on the user's first event.
    """
    now = datetime.now(UTC)
    column = fruit.column
    stmt = _upsert(db, {"user_id": user_id, column: amount, "updated_at": now})
    stmt = stmt.on_conflict_do_update(
        index_elements=[XpTotals.user_id],
        set_={column: getattr(XpTotals, column) + amount, "updated_at": now},
    )
    await db.execute(stmt)

    metrics.aggregate_adjustments_total.labels(
        aggregate=f"xp_totals.{column}", direction="up"
    ).inc()


async def sum_events_by_fruit(db: AsyncSession, user_id: str) -> dict[Fruit, int]:
    """Sum a user's XpEvent amounts per fruit. Fruits without events are 0."""
    stmt = (
        select(XpEvent.fruit, func.coalesce(func.sum(XpEvent.amount), 0))
        .where(XpEvent.user_id == user_id)
        .group_by(XpEvent.fruit)
    )
    sums = {fruit: 0 for fruit in Fruit}
    for fruit, total in (await db.execute(stmt)).all():
        sums[Fruit(fruit)] = int(total)
    return sums


async def recompute_xp_totals(db: AsyncSession, user_id: str) -> XpTotals:
    """
    Rebuild a user's totals row from the event log.

    Locks the user row first. Event inserts hold a key-share lock on the
    same row through their foreign key, so no insert lands between the
    SUM and the overwrite.

    Args:
        db: Async database session
        user_id: User whose totals are rebuilt

    Returns:
        The refreshed XpTotals row

    Raises:
        NotFoundError: If the user does not exist
    """
    locked = await db.scalar(select(User.id).where(User.id == user_id).with_for_update())
    if locked is None:
        raise NotFoundError("User not found", details={"user_id": user_id})

    sums = await sum_events_by_fruit(db, user_id)
    now = datetime.now(UTC)
    columns = {fruit.column: total for fruit, total in sums.items()}

    stmt = _upsert(db, {"user_id": user_id, **columns, "updated_at": now})
    stmt = stmt.on_conflict_do_update(
        index_elements=[XpTotals.user_id],
        set_={**columns, "updated_at": now},
    )
    await db.execute(stmt)

    metrics.xp_recomputes_total.inc()
    logger.info("XP totals recomputed", extra={"user_id": user_id, "totals": columns})

    return await db.get(XpTotals, user_id, populate_existing=True)


async def recompute_all_xp_totals(db: AsyncSession) -> int:
    """
    Backfill totals for every user that has at least one XP event.

    Returns:
        Number of users recomputed
    """
    user_ids = (
        await db.scalars(select(XpEvent.user_id).distinct().order_by(XpEvent.user_id))
    ).all()
    for user_id in user_ids:
        await recompute_xp_totals(db, user_id)
    return len(user_ids)
