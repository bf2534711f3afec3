"""
Fact mutations that keep parent counters consistent.

Comments, reactions and prayer commits are only ever inserted, toggled and
deleted through these functions; each one adjusts the parent counter in the
same transaction. Nothing here commits.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.core.errors import NotFoundError, ValidationError, translate_integrity_error
from fellowship.db.models import Base, Comment, PrayerCommit, Reaction, User
from fellowship.domain.enums import FactKind, ReactionType, SoftDeleteKind
from fellowship.engine import counters, soft_delete

logger = logging.getLogger(__name__)


def _build_fact(kind: FactKind, parent_id: Any, user_id: Any, payload: dict[str, Any]) -> Base:
    if kind is FactKind.COMMENT:
        content = payload.get("content")
        if not content:
            raise ValidationError("Comment content is required", details={"field": "content"})
        return Comment(
            post_id=parent_id,
            user_id=user_id,
            content=content,
            deleted_at=payload.get("deleted_at"),
        )

    if kind is FactKind.REACTION:
        try:
            reaction_type = ReactionType(payload.get("type"))
        except ValueError:
            raise ValidationError(
                "Invalid reaction type",
                details={
                    "field": "type",
                    "value": str(payload.get("type")),
                    "allowed": [t.value for t in ReactionType],
                },
            ) from None
        return Reaction(post_id=parent_id, user_id=user_id, type=reaction_type)

    return PrayerCommit(prayer_id=parent_id, user_id=user_id, message=payload.get("message"))


async def insert_fact(
    db: AsyncSession,
    kind: FactKind | str,
    *,
    parent_id: Any,
    user_id: Any,
    **payload: Any,
) -> Base:
    """
    Insert a countable fact and bump its parent's counter.

    A Comment created with `deleted_at` already set is stored but not
    counted. The row is flushed inside a savepoint, so a constraint
    violation leaves the counter and the rest of the transaction untouched.

    Args:
        db: Async database session
        kind: COMMENT, REACTION or PRAYER_COMMIT
        parent_id: Post id (comment, reaction) or Prayer id (prayer commit)
        user_id: Acting user id
        **payload: content / deleted_at (comment), type (reaction), message (commit)

    Returns:
        The inserted fact

    Raises:
        ValidationError: Unknown kind or invalid payload
        NotFoundError: Parent or user missing
        UniqueConstraintViolation: Duplicate (post, user, type) reaction
    """
    spec = counters.get_counter_spec(kind)
    kind = FactKind(kind)

    if await db.get(spec.parent_model, parent_id) is None:
        raise NotFoundError(
            f"{spec.parent_model.__name__} not found",
            details={"parent_id": str(parent_id), "kind": kind.value},
        )
    if await db.get(User, user_id) is None:
        raise NotFoundError("User not found", details={"user_id": str(user_id)})

    fact = _build_fact(kind, parent_id, user_id, payload)

    try:
        async with db.begin_nested():
            db.add(fact)
            await db.flush()
    except IntegrityError as e:
        error = translate_integrity_error(
            e, details={"kind": kind.value, "parent_id": str(parent_id), "user_id": str(user_id)}
        )
        logger.info(
            "Fact insert rejected",
            extra={"kind": kind.value, "parent_id": str(parent_id), "error": error.message},
        )
        raise error from e

    if counters.is_counted(spec, getattr(fact, "deleted_at", None)):
        await counters.increment(db, kind, parent_id)

    logger.debug(
        "Fact inserted", extra={"kind": kind.value, "id": fact.id, "parent_id": str(parent_id)}
    )
    return fact


async def delete_fact(db: AsyncSession, kind: FactKind | str, fact_id: Any) -> None:
    """
    Hard-delete a fact, decrementing its parent's counter if it was live.

    An already soft-deleted Comment was excluded from the counter when it
    was soft-deleted, so removing it does not decrement again.

    Raises:
        ValidationError: Unknown kind
        NotFoundError: Fact missing
    """
    spec = counters.get_counter_spec(kind)
    kind = FactKind(kind)
    model = spec.fact_model

    columns = [getattr(model, spec.parent_fk)]
    if spec.soft_deletable:
        columns.append(model.deleted_at)

    stmt = (
        delete(model)
        .where(model.id == fact_id)
        .returning(*columns)
        .execution_options(synchronize_session="fetch")
    )
    row = (await db.execute(stmt)).one_or_none()
    if row is None:
        raise NotFoundError(
            f"{model.__name__} not found", details={"id": str(fact_id), "kind": kind.value}
        )

    parent_id = row[0]
    deleted_at: datetime | None = row[1] if spec.soft_deletable else None
    if counters.is_counted(spec, deleted_at):
        await counters.decrement(db, kind, parent_id)

    logger.debug("Fact deleted", extra={"kind": kind.value, "id": str(fact_id)})


async def soft_delete_fact(db: AsyncSession, kind: SoftDeleteKind | str, fact_id: Any) -> Base:
    """
    Soft-delete a fact (or any soft-deletable row).

    Raises:
        ValidationError: Kind is hard-delete only
        NotFoundError: Row missing
    """
    entity, _ = await soft_delete.soft_delete(db, kind, fact_id)
    await db.flush()
    return entity


async def restore_fact(db: AsyncSession, kind: SoftDeleteKind | str, fact_id: Any) -> Base:
    """
    Restore a soft-deleted fact (or any soft-deletable row).

    Raises:
        ValidationError: Kind is hard-delete only
        NotFoundError: Row missing
    """
    entity, _ = await soft_delete.restore(db, kind, fact_id)
    await db.flush()
    return entity


async def get_fact(db: AsyncSession, kind: FactKind | str, fact_id: Any) -> Base:
    """Look up a fact by id regardless of its soft-delete state."""
    spec = counters.get_counter_spec(kind)
    fact = await db.get(spec.fact_model, fact_id)
    if fact is None:
        raise NotFoundError(
            f"{spec.fact_model.__name__} not found", details={"id": str(fact_id)}
        )
    return fact
