"""
Owner entities: creation, status updates and deletion.

Counter columns are never accepted as input here; posts and prayers start
at zero and move only through the fact repository. Deletion goes through
the referential policy engine.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.core.errors import NotFoundError, translate_integrity_error
from fellowship.db.models import (
    AIResponse,
    Base,
    Event,
    EventRsvp,
    Group,
    GroupMember,
    Mentorship,
    MentorSession,
    Notification,
    Post,
    Prayer,
    ScriptureRef,
    User,
)
from fellowship.db.validators import validate_time_window
from fellowship.domain.enums import (
    AIResponseKind,
    EventVisibility,
    GroupMemberRole,
    GroupPrivacy,
    OwnerKind,
    PostType,
    PrayerStatus,
    RsvpStatus,
)
from fellowship.engine import policies
from fellowship.engine.policies import DeleteReport

logger = logging.getLogger(__name__)


async def _add(db: AsyncSession, entity: Base, **context: Any) -> Base:
    """Add and flush inside a savepoint, translating constraint errors."""
    try:
        async with db.begin_nested():
            db.add(entity)
            await db.flush()
    except IntegrityError as e:
        raise translate_integrity_error(
            e, details={"entity": type(entity).__name__, **context}
        ) from e
    return entity


async def create_user(
    db: AsyncSession,
    *,
    email: str,
    password_hash: str,
    display_name: str | None = None,
    timezone: str | None = None,
) -> User:
    """
    Create a user.

    Raises:
        UniqueConstraintViolation: Email already registered
    """
    user = User(
        email=email, password_hash=password_hash, display_name=display_name, timezone=timezone
    )
    await _add(db, user, email=email)
    logger.info("Created user %s", user.id)
    return user


async def create_group(
    db: AsyncSession,
    *,
    name: str,
    created_by: str,
    description: str | None = None,
    privacy: GroupPrivacy = GroupPrivacy.PUBLIC,
) -> Group:
    group = Group(name=name, created_by=created_by, description=description, privacy=privacy)
    await _add(db, group, created_by=created_by)
    # The creator administers the group
    await _add(
        db, GroupMember(group_id=group.id, user_id=created_by, role=GroupMemberRole.ADMIN)
    )
    return group


async def add_group_member(
    db: AsyncSession,
    *,
    group_id: str,
    user_id: str,
    role: GroupMemberRole = GroupMemberRole.MEMBER,
) -> GroupMember:
    member = GroupMember(group_id=group_id, user_id=user_id, role=role)
    return await _add(db, member, group_id=group_id, user_id=user_id)


async def create_post(
    db: AsyncSession,
    *,
    user_id: str,
    content: str,
    group_id: str | None = None,
    type: PostType = PostType.POST,
    media_urls: list[str] | None = None,
) -> Post:
    post = Post(
        user_id=user_id, content=content, group_id=group_id, type=type, media_urls=media_urls
    )
    return await _add(db, post, user_id=user_id)


async def create_prayer(
    db: AsyncSession,
    *,
    user_id: str,
    title: str,
    content: str,
    group_id: str | None = None,
    linked_post_id: str | None = None,
) -> Prayer:
    prayer = Prayer(
        user_id=user_id,
        title=title,
        content=content,
        group_id=group_id,
        linked_post_id=linked_post_id,
        status=PrayerStatus.OPEN,
    )
    return await _add(db, prayer, user_id=user_id)


async def update_prayer_status(
    db: AsyncSession, prayer_id: str, status: PrayerStatus | str
) -> Prayer:
    """
    Set a prayer's status.

    Any status may follow any other; there is no transition guard.

    Raises:
        NotFoundError: Prayer missing
    """
    prayer = await db.get(Prayer, prayer_id)
    if prayer is None:
        raise NotFoundError("Prayer not found", details={"prayer_id": prayer_id})

    previous = prayer.status
    prayer.status = PrayerStatus(status)
    await db.flush()

    logger.info(
        "Prayer status updated",
        extra={"prayer_id": prayer_id, "from": previous.value, "to": prayer.status.value},
    )
    return prayer


async def create_event(
    db: AsyncSession,
    *,
    title: str,
    starts_at: datetime,
    ends_at: datetime,
    created_by: str,
    group_id: str | None = None,
    description: str | None = None,
    location: str | None = None,
    visibility: EventVisibility = EventVisibility.PUBLIC,
) -> Event:
    """
    Create an event.

    Raises:
        CheckConstraintViolation: ends_at is not after starts_at
    """
    validate_time_window(starts_at, ends_at)
    event = Event(
        title=title,
        starts_at=starts_at,
        ends_at=ends_at,
        created_by=created_by,
        group_id=group_id,
        description=description,
        location=location,
        visibility=visibility,
    )
    return await _add(db, event, created_by=created_by)


async def rsvp_event(
    db: AsyncSession, *, event_id: str, user_id: str, status: RsvpStatus
) -> EventRsvp:
    rsvp = await db.get(EventRsvp, (event_id, user_id))
    if rsvp is not None:
        rsvp.status = status
        await db.flush()
        return rsvp
    return await _add(
        db, EventRsvp(event_id=event_id, user_id=user_id, status=status), event_id=event_id
    )


async def create_mentorship(db: AsyncSession, *, mentor_id: str, mentee_id: str) -> Mentorship:
    """
    Pair a mentor with a mentee.

    Raises:
        UniqueConstraintViolation: The pair already exists
    """
    mentorship = Mentorship(mentor_id=mentor_id, mentee_id=mentee_id)
    return await _add(db, mentorship, mentor_id=mentor_id, mentee_id=mentee_id)


async def schedule_mentor_session(
    db: AsyncSession, *, mentorship_id: str, scheduled_at: datetime, notes: str | None = None
) -> MentorSession:
    session = MentorSession(mentorship_id=mentorship_id, scheduled_at=scheduled_at, notes=notes)
    return await _add(db, session, mentorship_id=mentorship_id)


async def create_ai_response(
    db: AsyncSession,
    *,
    user_id: str | None,
    kind: AIResponseKind,
    prompt: dict[str, Any],
    output: str,
    latency_ms: int,
    cost_usd: Decimal,
    scripture_refs: list[dict[str, Any]] | None = None,
) -> AIResponse:
    """Store a generated response along with the scripture it cites."""
    response = AIResponse(
        user_id=user_id,
        kind=kind,
        prompt=prompt,
        output=output,
        latency_ms=latency_ms,
        cost_usd=cost_usd,
    )
    await _add(db, response, user_id=user_id)
    for ref in scripture_refs or []:
        await _add(db, ScriptureRef(ai_response_id=response.id, **ref))
    return response


async def create_notification(
    db: AsyncSession, *, user_id: str, type: str, payload: dict[str, Any]
) -> Notification:
    notification = Notification(user_id=user_id, type=type, payload=payload)
    return await _add(db, notification, user_id=user_id)


async def delete_owner(
    db: AsyncSession,
    kind: OwnerKind | str,
    owner_id: str,
    *,
    performed_by: str | None = None,
) -> DeleteReport:
    """
    Delete an owner and everything its referential policies reach.

    Raises:
        NotFoundError: Owner missing
        ForeignKeyRestriction: Blocked by a RESTRICT relation; nothing changed
    """
    return await policies.delete_owner(db, kind, owner_id, performed_by=performed_by)
