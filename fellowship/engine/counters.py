"""
Counter maintainer for denormalized child counts.

Keeps Post.comment_count, Post.reaction_count and Prayer.commit_count equal
to the number of live children. Every adjustment is a single atomic UPDATE
against the parent row, so concurrent adjustments on one parent serialize on
that row (PostgreSQL row lock, SQLite write lock) and never lose updates.

Callers (fact repository, soft-delete state machine, policy engine) invoke
these functions inside their own transaction; nothing here commits.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.core.errors import NotFoundError, ValidationError
from fellowship.core.observability import metrics
from fellowship.db.models import Base, Comment, Post, Prayer, PrayerCommit, Reaction
from fellowship.domain.enums import FactKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CounterSpec:
    """How one fact kind maps onto the counter column of its parent."""

    fact_model: type[Base]
    parent_model: type[Base]
    parent_fk: str
    column: str

    @property
    def aggregate(self) -> str:
        """Metric label, e.g. 'posts.comment_count'."""
        return f"{self.parent_model.__tablename__}.{self.column}"

    @property
    def soft_deletable(self) -> bool:
        return hasattr(self.fact_model, "deleted_at")


COUNTERS: dict[FactKind, CounterSpec] = {
    FactKind.COMMENT: CounterSpec(Comment, Post, "post_id", "comment_count"),
    FactKind.REACTION: CounterSpec(Reaction, Post, "post_id", "reaction_count"),
    FactKind.PRAYER_COMMIT: CounterSpec(PrayerCommit, Prayer, "prayer_id", "commit_count"),
}


@dataclass(frozen=True)
class CounterDrift:
    """A parent whose stored counter disagrees with its live children."""

    kind: FactKind
    parent_id: str
    stored: int
    actual: int


def get_counter_spec(kind: FactKind | str) -> CounterSpec:
    """Resolve a fact kind (enum or its string value) to its counter spec.

    Raises:
        ValidationError: If kind is not a counted fact kind
    """
    try:
        return COUNTERS[FactKind(kind)]
    except ValueError:
        raise ValidationError(
            f"Unknown fact kind: {kind}", details={"kind": str(kind)}
        ) from None


def is_counted(spec: CounterSpec, deleted_at: datetime | None) -> bool:
    """A fact counts toward its parent unless it is soft-deleted."""
    return not (spec.soft_deletable and deleted_at is not None)


async def increment(db: AsyncSession, kind: FactKind, parent_id: Any) -> int:
    """
    Add one to the parent's counter.

    Args:
        db: Async database session
        kind: Fact kind whose counter moves
        parent_id: Parent row id

    Returns:
        The new counter value

    Raises:
        NotFoundError: If the parent row does not exist
    """
    spec = COUNTERS[kind]
    column = getattr(spec.parent_model, spec.column)
    stmt = (
        update(spec.parent_model)
        .where(spec.parent_model.id == parent_id)
        .values({spec.column: column + 1})
        .returning(column)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    new_value = result.scalar_one_or_none()
    if new_value is None:
        raise NotFoundError(
            f"{spec.parent_model.__name__} not found",
            details={"parent_id": str(parent_id), "kind": kind.value},
        )

    metrics.aggregate_adjustments_total.labels(aggregate=spec.aggregate, direction="up").inc()
    return new_value


async def decrement(db: AsyncSession, kind: FactKind, parent_id: Any) -> int:
    """
    Subtract one from the parent's counter, clamping at zero.

    The UPDATE is guarded with `counter > 0`. When it matches nothing and
    the parent exists, the counter was already zero: the stored state was
    inconsistent before this call. That is logged and counted, not raised.

    Returns:
        The new counter value (0 when clamped)

    Raises:
        NotFoundError: If the parent row does not exist
    """
    spec = COUNTERS[kind]
    column = getattr(spec.parent_model, spec.column)
    stmt = (
        update(spec.parent_model)
        .where(spec.parent_model.id == parent_id, column > 0)
        .values({spec.column: column - 1})
        .returning(column)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    new_value = result.scalar_one_or_none()
    if new_value is not None:
        metrics.aggregate_adjustments_total.labels(
            aggregate=spec.aggregate, direction="down"
        ).inc()
        return new_value

    exists = await db.scalar(
        select(spec.parent_model.id).where(spec.parent_model.id == parent_id)
    )
    if exists is None:
        raise NotFoundError(
            f"{spec.parent_model.__name__} not found",
            details={"parent_id": str(parent_id), "kind": kind.value},
        )

    metrics.aggregate_clamps_total.labels(aggregate=spec.aggregate).inc()
    logger.warning(
        "Counter decrement clamped at zero",
        extra={"aggregate": spec.aggregate, "parent_id": str(parent_id)},
    )
    return 0


async def count_live(db: AsyncSession, kind: FactKind, parent_id: Any) -> int:
    """Count the live facts of one kind under a parent."""
    spec = COUNTERS[kind]
    fk = getattr(spec.fact_model, spec.parent_fk)
    stmt = select(func.count()).select_from(spec.fact_model).where(fk == parent_id)
    if spec.soft_deletable:
        stmt = stmt.where(spec.fact_model.deleted_at.is_(None))
    return (await db.scalar(stmt)) or 0


async def recount_parent(db: AsyncSession, kind: FactKind | str, parent_id: Any) -> int:
    """
    Overwrite a parent's counter with the live child count.

    Operator repair path. The parent row is locked first so the count and
    the write see the same set of children.

    Returns:
        The recomputed counter value

    Raises:
        NotFoundError: If the parent row does not exist
    """
    spec = get_counter_spec(kind)
    kind = FactKind(kind)
    locked = await db.scalar(
        select(spec.parent_model.id).where(spec.parent_model.id == parent_id).with_for_update()
    )
    if locked is None:
        raise NotFoundError(
            f"{spec.parent_model.__name__} not found",
            details={"parent_id": str(parent_id), "kind": kind.value},
        )

    actual = await count_live(db, kind, parent_id)
    await db.execute(
        update(spec.parent_model)
        .where(spec.parent_model.id == parent_id)
        .values({spec.column: actual})
        .execution_options(synchronize_session=False)
    )
    return actual


async def reconcile_counters(db: AsyncSession, *, fix: bool = False) -> list[CounterDrift]:
    """
    Compare every stored counter with its live child count.

    Args:
        db: Async database session
        fix: When True, rewrite drifted counters via recount_parent

    Returns:
        One CounterDrift per parent whose counter disagreed
    """
    drifts: list[CounterDrift] = []

    for kind, spec in COUNTERS.items():
        fk = getattr(spec.fact_model, spec.parent_fk)
        live = select(fk.label("parent_id"), func.count().label("n")).group_by(fk)
        if spec.soft_deletable:
            live = live.where(spec.fact_model.deleted_at.is_(None))
        live = live.subquery()

        column = getattr(spec.parent_model, spec.column)
        actual = func.coalesce(live.c.n, 0)
        stmt = (
            select(spec.parent_model.id, column, actual)
            .outerjoin(live, live.c.parent_id == spec.parent_model.id)
            .where(column != actual)
            .order_by(spec.parent_model.id)
        )
        for parent_id, stored, count in (await db.execute(stmt)).all():
            drifts.append(CounterDrift(kind, parent_id, stored, count))

    if drifts:
        logger.warning("Counter drift detected", extra={"drifted": len(drifts), "fix": fix})
    if fix:
        for drift in drifts:
            await recount_parent(db, drift.kind, drift.parent_id)

    return drifts
