"""
Soft-delete / restore state machine.

Rows carrying a `deleted_at` column move between Active (NULL) and Deleted
(timestamp). Each transition is one conditional UPDATE, so exactly one of
several concurrent callers observes the transition and fires the counter
adjustment; the others are no-ops.

Lookups by id ignore the state. List and feed queries filter with active().
"""

import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import ColumnElement, update
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.core.errors import NotFoundError, ValidationError
from fellowship.db.models import Base, Comment, Group, Notification, Post, Prayer
from fellowship.domain.enums import FactKind, SoftDeleteKind
from fellowship.engine import counters

logger = logging.getLogger(__name__)

SOFT_DELETE_MODELS: dict[SoftDeleteKind, type[Base]] = {
    SoftDeleteKind.COMMENT: Comment,
    SoftDeleteKind.POST: Post,
    SoftDeleteKind.PRAYER: Prayer,
    SoftDeleteKind.GROUP: Group,
    SoftDeleteKind.NOTIFICATION: Notification,
}

# Soft-deletable kinds whose transitions move a parent counter
COUNTED_KINDS: dict[SoftDeleteKind, FactKind] = {
    SoftDeleteKind.COMMENT: FactKind.COMMENT,
}


def active(model: type[Base]) -> ColumnElement[bool]:
    """WHERE clause selecting rows that are not soft-deleted."""
    return model.deleted_at.is_(None)


def resolve_kind(kind: SoftDeleteKind | str) -> SoftDeleteKind:
    """
    Resolve a kind name to a soft-deletable kind.

    Raises:
        ValidationError: If the kind is hard-delete only (Reaction,
            PrayerCommit, XpEvent, EventRsvp, MentorSession) or unknown
    """
    try:
        return SoftDeleteKind(kind)
    except ValueError:
        raise ValidationError(
            f"{kind} does not support soft delete",
            details={"kind": str(kind), "allowed": [k.value for k in SoftDeleteKind]},
        ) from None


async def _transition(
    db: AsyncSession,
    kind: SoftDeleteKind,
    entity_id: Any,
    *,
    to_deleted: bool,
) -> tuple[Base, bool]:
    model = SOFT_DELETE_MODELS[kind]
    if to_deleted:
        guard, new_value = model.deleted_at.is_(None), datetime.now(UTC)
    else:
        guard, new_value = model.deleted_at.is_not(None), None

    stmt = (
        update(model)
        .where(model.id == entity_id, guard)
        .values(deleted_at=new_value)
        .returning(model.id)
        .execution_options(synchronize_session=False)
    )
    changed = (await db.execute(stmt)).scalar_one_or_none() is not None

    entity = await db.get(model, entity_id, populate_existing=True)
    if entity is None:
        raise NotFoundError(
            f"{model.__name__} not found", details={"id": str(entity_id), "kind": kind.value}
        )

    if changed and kind in COUNTED_KINDS:
        fact_kind = COUNTED_KINDS[kind]
        spec = counters.COUNTERS[fact_kind]
        parent_id = getattr(entity, spec.parent_fk)
        if to_deleted:
            await counters.decrement(db, fact_kind, parent_id)
        else:
            await counters.increment(db, fact_kind, parent_id)

    logger.debug(
        "Soft-delete transition",
        extra={
            "kind": kind.value,
            "id": str(entity_id),
            "to": "DELETED" if to_deleted else "ACTIVE",
            "changed": changed,
        },
    )
    return entity, changed


async def soft_delete(
    db: AsyncSession, kind: SoftDeleteKind | str, entity_id: Any
) -> tuple[Base, bool]:
    """
    Move a row from Active to Deleted.

    Already-deleted rows are left untouched (no timestamp change, no
    counter change).

    Returns:
        (entity, changed) where changed is False for a no-op

    Raises:
        ValidationError: If kind is not soft-deletable
        NotFoundError: If the row does not exist
    """
    return await _transition(db, resolve_kind(kind), entity_id, to_deleted=True)


async def restore(
    db: AsyncSession, kind: SoftDeleteKind | str, entity_id: Any
) -> tuple[Base, bool]:
    """
    Move a row from Deleted back to Active.

    Restoring an active row is a no-op.

    Returns:
        (entity, changed) where changed is False for a no-op

    Raises:
        ValidationError: If kind is not soft-deletable
        NotFoundError: If the row does not exist
    """
    return await _transition(db, resolve_kind(kind), entity_id, to_deleted=False)
