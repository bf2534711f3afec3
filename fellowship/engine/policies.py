"""
Referential policy engine.

The RELATIONS table is the single registry of parent -> child references
and what happens to the child when the parent is deleted:

- CASCADE: delete the child, recursively applying the same table
- SET_NULL: null the child's foreign key in place
- RESTRICT: abort the whole delete with ForeignKeyRestriction

delete_owner() runs in two phases. Planning walks the graph with reads
only and raises on the first RESTRICT hit, so a blocked delete never
mutates anything. Applying then nulls references, deletes children
(counted facts through the counter maintainer, so parents that survive
the delete stay consistent) and finally the owner itself.

Foreign keys in the schema carry the same ON DELETE actions; a child
inserted by a concurrent transaction after planning still cannot be
orphaned, and a RESTRICT raced in that way surfaces as
ForeignKeyRestriction from the store.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.core.audit import create_audit_log_async, snapshot_entity
from fellowship.core.errors import (
    ForeignKeyRestriction,
    NotFoundError,
    ValidationError,
    translate_integrity_error,
)
from fellowship.core.observability import metrics
from fellowship.db.models import (
    AIResponse,
    AIUsage,
    AuditLog,
    Base,
    Comment,
    Device,
    Event,
    EventRsvp,
    Group,
    GroupMember,
    MagicLink,
    Mentorship,
    MentorSession,
    ModerationAction,
    Notification,
    PasswordReset,
    Post,
    Prayer,
    PrayerCommit,
    Reaction,
    RefreshToken,
    ScriptureRef,
    Streak,
    User,
    UserSettings,
    XpEvent,
    XpTotals,
)
from fellowship.domain.enums import DeletePolicy, FactKind, OwnerKind
from fellowship.engine import counters

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Relation:
    """One foreign key from child to parent and its delete policy."""

    parent: type[Base]
    child: type[Base]
    fk: str
    policy: DeletePolicy
    counted: FactKind | None = None

    @property
    def name(self) -> str:
        return f"{self.parent.__tablename__}->{self.child.__tablename__}.{self.fk}"


CASCADE = DeletePolicy.CASCADE
SET_NULL = DeletePolicy.SET_NULL
RESTRICT = DeletePolicy.RESTRICT

RELATIONS: tuple[Relation, ...] = (
    # Authored content must be removed explicitly before its author
    Relation(User, Post, "user_id", RESTRICT),
    Relation(User, Group, "created_by", RESTRICT),
    # Fully owned by the user
    Relation(User, Prayer, "user_id", CASCADE),
    Relation(User, PrayerCommit, "user_id", CASCADE, counted=FactKind.PRAYER_COMMIT),
    Relation(User, Comment, "user_id", CASCADE, counted=FactKind.COMMENT),
    Relation(User, Reaction, "user_id", CASCADE, counted=FactKind.REACTION),
    Relation(User, Notification, "user_id", CASCADE),
    Relation(User, RefreshToken, "user_id", CASCADE),
    Relation(User, PasswordReset, "user_id", CASCADE),
    Relation(User, MagicLink, "user_id", CASCADE),
    Relation(User, Device, "user_id", CASCADE),
    Relation(User, Mentorship, "mentor_id", CASCADE),
    Relation(User, Mentorship, "mentee_id", CASCADE),
    Relation(User, Event, "created_by", CASCADE),
    Relation(User, EventRsvp, "user_id", CASCADE),
    Relation(User, ModerationAction, "actor_id", CASCADE),
    Relation(User, UserSettings, "user_id", CASCADE),
    Relation(User, GroupMember, "user_id", CASCADE),
    Relation(User, Streak, "user_id", CASCADE),
    Relation(User, XpEvent, "user_id", CASCADE),
    Relation(User, XpTotals, "user_id", CASCADE),
    # History and analytics outlive the actor
    Relation(User, AuditLog, "user_id", SET_NULL),
    Relation(User, AIResponse, "user_id", SET_NULL),
    Relation(User, AIUsage, "user_id", SET_NULL),
    # Post children
    Relation(Post, Comment, "post_id", CASCADE, counted=FactKind.COMMENT),
    Relation(Post, Reaction, "post_id", CASCADE, counted=FactKind.REACTION),
    Relation(Post, Prayer, "linked_post_id", SET_NULL),
    # Group content survives the group
    Relation(Group, Prayer, "group_id", SET_NULL),
    Relation(Group, Event, "group_id", SET_NULL),
    Relation(Group, Post, "group_id", SET_NULL),
    Relation(Group, GroupMember, "group_id", CASCADE),
    Relation(Prayer, PrayerCommit, "prayer_id", CASCADE, counted=FactKind.PRAYER_COMMIT),
    Relation(Event, EventRsvp, "event_id", CASCADE),
    Relation(Mentorship, MentorSession, "mentorship_id", CASCADE),
    Relation(AIResponse, ScriptureRef, "ai_response_id", CASCADE),
)

OWNER_MODELS: dict[OwnerKind, type[Base]] = {
    OwnerKind.USER: User,
    OwnerKind.POST: Post,
    OwnerKind.GROUP: Group,
    OwnerKind.PRAYER: Prayer,
    OwnerKind.EVENT: Event,
    OwnerKind.MENTORSHIP: Mentorship,
    OwnerKind.AI_RESPONSE: AIResponse,
}


# Credentials never land in the audit trail
_SNAPSHOT_EXCLUDE = ("password_hash",)


def relations_for(parent: type[Base]) -> list[Relation]:
    """Relations whose parent side is the given model."""
    return [r for r in RELATIONS if r.parent is parent]


def _has_id(model: type[Base]) -> bool:
    return "id" in model.__table__.c


@dataclass
class CascadeStep:
    """Children removed because their parent is removed."""

    relation: Relation
    parent_ids: list[Any]
    child_ids: list[Any] = field(default_factory=list)
    # (parent id, was counted) per child, for counted relations only
    counted_facts: list[tuple[Any, bool]] = field(default_factory=list)
    row_count: int = 0


@dataclass
class NullifyStep:
    relation: Relation
    child_ids: list[Any]


@dataclass
class DeletePlan:
    """Everything a delete will touch, computed before any mutation."""

    owner_model: type[Base]
    owner_id: Any
    cascades: list[CascadeStep] = field(default_factory=list)
    nullifies: list[NullifyStep] = field(default_factory=list)
    doomed: dict[type[Base], set[Any]] = field(default_factory=lambda: defaultdict(set))


@dataclass
class DeleteReport:
    """Summary of an applied owner delete."""

    kind: OwnerKind
    owner_id: str
    cascaded: dict[str, int] = field(default_factory=dict)
    nullified: dict[str, int] = field(default_factory=dict)
    counters_adjusted: int = 0


async def _plan(
    db: AsyncSession, plan: DeletePlan, model: type[Base], ids: list[Any]
) -> None:
    for relation in relations_for(model):
        child = relation.child
        fk = getattr(child, relation.fk)

        if relation.policy is RESTRICT:
            blocking = (
                await db.scalars(select(fk).where(fk.in_(ids)).limit(1))
            ).first()
            if blocking is not None:
                raise ForeignKeyRestriction(
                    f"Cannot delete {plan.owner_model.__name__}: "
                    f"{child.__tablename__} still reference it",
                    details={
                        "relation": relation.name,
                        "owner_id": str(plan.owner_id),
                        "blocked_by": child.__tablename__,
                    },
                )
            continue

        if not _has_id(child):
            # Composite-key leaf rows; no further relations hang off them
            count = len((await db.execute(select(fk).where(fk.in_(ids)))).all())
            if count:
                plan.cascades.append(CascadeStep(relation, ids, row_count=count))
            continue

        if relation.counted is not None:
            spec = counters.COUNTERS[relation.counted]
            parent_col = getattr(child, spec.parent_fk)
            deleted_col = child.deleted_at if spec.soft_deletable else None
            columns = [child.id, parent_col] + ([deleted_col] if deleted_col is not None else [])
            rows = (await db.execute(select(*columns).where(fk.in_(ids)))).all()
            child_ids = [row[0] for row in rows]
        else:
            rows = []
            child_ids = list((await db.scalars(select(child.id).where(fk.in_(ids)))).all())

        if relation.policy is SET_NULL:
            if child_ids:
                plan.nullifies.append(NullifyStep(relation, child_ids))
            continue

        # CASCADE: skip rows already scheduled through another relation
        fresh = [cid for cid in child_ids if cid not in plan.doomed[child]]
        if not fresh:
            continue
        plan.doomed[child].update(fresh)

        step = CascadeStep(relation, ids, child_ids=fresh, row_count=len(fresh))
        if relation.counted is not None:
            spec = counters.COUNTERS[relation.counted]
            fresh_set = set(fresh)
            step.counted_facts = [
                (row[1], counters.is_counted(spec, row[2] if spec.soft_deletable else None))
                for row in rows
                if row[0] in fresh_set
            ]

        await _plan(db, plan, child, fresh)
        plan.cascades.append(step)


async def plan_delete(db: AsyncSession, kind: OwnerKind, owner_id: Any) -> DeletePlan:
    """
    Compute the full effect of deleting an owner without mutating anything.

    The owner row is locked so no new child can attach to it while the
    plan is applied.

    Raises:
        NotFoundError: If the owner does not exist
        ForeignKeyRestriction: If any RESTRICT relation has dependent rows
    """
    model = OWNER_MODELS[kind]
    locked = await db.scalar(select(model.id).where(model.id == owner_id).with_for_update())
    if locked is None:
        raise NotFoundError(
            f"{model.__name__} not found", details={"id": str(owner_id), "kind": kind.value}
        )

    plan = DeletePlan(owner_model=model, owner_id=owner_id)
    plan.doomed[model].add(owner_id)
    await _plan(db, plan, model, [owner_id])
    return plan


async def _apply(db: AsyncSession, plan: DeletePlan, report: DeleteReport) -> None:
    for step in plan.nullifies:
        relation = step.relation
        child = relation.child
        survivors = [cid for cid in step.child_ids if cid not in plan.doomed[child]]
        if not survivors:
            continue
        await db.execute(
            update(child)
            .where(child.id.in_(survivors))
            .values({relation.fk: None})
            .execution_options(synchronize_session=False)
        )
        report.nullified[relation.name] = len(survivors)
        metrics.referential_actions_total.labels(policy=SET_NULL.value).inc(len(survivors))

    # Steps were appended children-first, so dependents go before their parents
    for step in plan.cascades:
        relation = step.relation
        child = relation.child

        if relation.counted is not None:
            spec = counters.COUNTERS[relation.counted]
            for parent_id, was_counted in step.counted_facts:
                if was_counted and parent_id not in plan.doomed[spec.parent_model]:
                    await counters.decrement(db, relation.counted, parent_id)
                    report.counters_adjusted += 1

        if step.child_ids:
            stmt = delete(child).where(child.id.in_(step.child_ids))
        else:
            stmt = delete(child).where(getattr(child, relation.fk).in_(step.parent_ids))
        await db.execute(stmt.execution_options(synchronize_session="fetch"))

        report.cascaded[relation.name] = report.cascaded.get(relation.name, 0) + step.row_count
        metrics.referential_actions_total.labels(policy=CASCADE.value).inc(step.row_count)

    owner = await db.get(plan.owner_model, plan.owner_id)
    await db.delete(owner)
    await db.flush()


async def delete_owner(
    db: AsyncSession,
    kind: OwnerKind | str,
    owner_id: Any,
    *,
    performed_by: str | None = None,
) -> DeleteReport:
    """
    Delete an owner row and apply every referential policy beneath it.

    Runs inside the caller's transaction and does not commit. The cascade
    itself runs in a savepoint, so a store-level rejection leaves the
    session as it was before the call.

    Args:
        db: Async database session
        kind: Owner kind (USER, POST, GROUP, PRAYER, EVENT, MENTORSHIP, AI_RESPONSE)
        owner_id: Owner row id
        performed_by: Acting user id, recorded on the audit entry

    Returns:
        DeleteReport with per-relation cascaded and nullified row counts

    Raises:
        ValidationError: Unknown owner kind
        NotFoundError: Owner row missing
        ForeignKeyRestriction: A RESTRICT relation blocks the delete
    """
    try:
        kind = OwnerKind(kind)
    except ValueError:
        raise ValidationError(
            f"Unknown owner kind: {kind}",
            details={"kind": str(kind), "allowed": [k.value for k in OwnerKind]},
        ) from None

    plan = await plan_delete(db, kind, owner_id)
    report = DeleteReport(kind=kind, owner_id=str(owner_id))
    before = snapshot_entity(
        await db.get(plan.owner_model, owner_id), exclude=_SNAPSHOT_EXCLUDE
    )

    try:
        async with db.begin_nested():
            await _apply(db, plan, report)
    except IntegrityError as e:
        error = translate_integrity_error(
            e, details={"kind": kind.value, "owner_id": str(owner_id)}
        )
        logger.warning(
            "Owner delete rejected by the store",
            extra={"kind": kind.value, "owner_id": str(owner_id), "error": error.message},
        )
        raise error from e

    # The acting user may be the one just deleted
    actor = performed_by
    if actor is not None and actor in plan.doomed[User]:
        actor = None
    await create_audit_log_async(
        db,
        entity_type=kind.value,
        entity_id=str(owner_id),
        action="DELETE",
        metadata={
            "before": before,
            "cascaded": report.cascaded,
            "nullified": report.nullified,
            "counters_adjusted": report.counters_adjusted,
        },
        performed_by=actor,
    )
    await db.flush()

    logger.info(
        "Owner deleted",
        extra={
            "kind": kind.value,
            "owner_id": str(owner_id),
            "cascaded": report.cascaded,
            "nullified": report.nullified,
        },
    )
    return report
