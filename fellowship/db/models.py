"""
SQLAlchemy 2.x ORM models for the Fellowship API.

Models use the Mapped[] type annotation syntax and mapped_column.

Foreign keys declare the same ON DELETE behavior the referential policy
engine applies (fellowship.engine.policies), so the store rejects or
repairs anything that reaches it outside the engine. No ORM relationships
are declared: deletion propagation is owned by the policy engine, and
counter columns are owned by the counter maintainer.
"""

import uuid
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, validates

from fellowship.db.validators import validate_non_negative
from fellowship.domain.enums import (
    AIResponseKind,
    EventVisibility,
    Fruit,
    GroupMemberRole,
    GroupPrivacy,
    MentorshipStatus,
    ModerationActionType,
    PostStatus,
    PostType,
    PrayerStatus,
    ReactionType,
    RsvpStatus,
    StreakKind,
)

NAMING_CONVENTION = {
    "ix": "%(table_name)s_%(column_0_name)s_idx",
    "uq": "%(table_name)s_%(column_0_N_name)s_key",
    "ck": "%(table_name)s_%(constraint_name)s",
    "fk": "%(table_name)s_%(column_0_name)s_fkey",
    "pk": "%(table_name)s_pkey",
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


def _id_column() -> Mapped[str]:
    return mapped_column(Uuid(as_uuid=False), primary_key=True, default=_new_id)


def _user_fk(ondelete: str, nullable: bool = False) -> Mapped[Any]:
    return mapped_column(
        Uuid(as_uuid=False), ForeignKey("users.id", ondelete=ondelete), nullable=nullable
    )


def _created_at() -> Mapped[datetime]:
    return mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


def _updated_at() -> Mapped[datetime]:
    return mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )


def _deleted_at() -> Mapped[datetime | None]:
    return mapped_column(DateTime(timezone=True), nullable=True)


def _enum(enum_cls: type, name: str) -> Enum:
    return Enum(enum_cls, name=name, create_constraint=True, validate_strings=True)


# ============================================================================
# Users & auth auxiliaries
# ============================================================================


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = _id_column()
    email: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    display_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    timezone: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()
    deleted_at: Mapped[datetime | None] = _deleted_at()

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"


class UserSettings(Base):
    __tablename__ = "user_settings"

    user_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    bible_translation: Mapped[str | None] = mapped_column(Text, nullable=True)
    denomination: Mapped[str | None] = mapped_column(Text, nullable=True)
    quiet_time_start: Mapped[str | None] = mapped_column(Text, nullable=True)
    quiet_time_end: Mapped[str | None] = mapped_column(Text, nullable=True)
    push_opt_in: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()


class Device(Base):
    __tablename__ = "devices"
    __table_args__ = (UniqueConstraint("user_id", "push_token"),)

    id: Mapped[str] = _id_column()
    user_id: Mapped[str] = _user_fk("CASCADE")
    platform: Mapped[str] = mapped_column(Text, nullable=False)
    push_token: Mapped[str] = mapped_column(Text, nullable=False)
    last_seen_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"

    id: Mapped[str] = _id_column()
    user_id: Mapped[str] = _user_fk("CASCADE")
    token_hash: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()


class PasswordReset(Base):
    __tablename__ = "password_resets"

    id: Mapped[str] = _id_column()
    user_id: Mapped[str] = _user_fk("CASCADE")
    token_hash: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()


class MagicLink(Base):
    __tablename__ = "magic_links"

    id: Mapped[str] = _id_column()
    user_id: Mapped[str] = _user_fk("CASCADE")
    token_hash: Mapped[str] = mapped_column(Text, nullable=False)
    purpose: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()


# ============================================================================
# Groups & social content
# ============================================================================


class Group(Base):
    __tablename__ = "groups"

    id: Mapped[str] = _id_column()
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    privacy: Mapped[GroupPrivacy] = mapped_column(
        _enum(GroupPrivacy, "group_privacy"), nullable=False, default=GroupPrivacy.PUBLIC
    )
    created_by: Mapped[str] = _user_fk("RESTRICT")
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()
    deleted_at: Mapped[datetime | None] = _deleted_at()

    def __repr__(self) -> str:
        return f"<Group(id={self.id}, name={self.name})>"


class GroupMember(Base):
    __tablename__ = "group_members"

    group_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    role: Mapped[GroupMemberRole] = mapped_column(
        _enum(GroupMemberRole, "group_member_role"),
        nullable=False,
        default=GroupMemberRole.MEMBER,
    )
    joined_at: Mapped[datetime] = _created_at()


class Post(Base):
    """
    A post in a feed.

    comment_count / reaction_count are derived from live Comment and
    Reaction rows and written only by fellowship.engine.counters.
    """

    __tablename__ = "posts"
    __table_args__ = (
        CheckConstraint("comment_count >= 0", name="comment_count_non_negative"),
        CheckConstraint("reaction_count >= 0", name="reaction_count_non_negative"),
        Index("posts_user_created_desc", "user_id", "created_at"),
    )

    id: Mapped[str] = _id_column()
    user_id: Mapped[str] = _user_fk("RESTRICT")
    group_id: Mapped[str | None] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("groups.id", ondelete="SET NULL"), nullable=True
    )
    type: Mapped[PostType] = mapped_column(
        _enum(PostType, "post_type"), nullable=False, default=PostType.POST
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    media_urls: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    status: Mapped[PostStatus] = mapped_column(
        _enum(PostStatus, "post_status"), nullable=False, default=PostStatus.ACTIVE
    )
    comment_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    reaction_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()
    deleted_at: Mapped[datetime | None] = _deleted_at()

    def __repr__(self) -> str:
        return (
            f"<Post(id={self.id}, comment_count={self.comment_count}, "
            f"reaction_count={self.reaction_count})>"
        )


class Comment(Base):
    __tablename__ = "comments"
    __table_args__ = (Index("comments_post_created_asc", "post_id", "created_at"),)

    id: Mapped[str] = _id_column()
    post_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = _user_fk("CASCADE")
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()
    deleted_at: Mapped[datetime | None] = _deleted_at()

    def __repr__(self) -> str:
        return f"<Comment(id={self.id}, post_id={self.post_id}, deleted_at={self.deleted_at})>"


class Reaction(Base):
    __tablename__ = "reactions"
    __table_args__ = (UniqueConstraint("post_id", "user_id", "type"),)

    id: Mapped[str] = _id_column()
    post_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = _user_fk("CASCADE")
    type: Mapped[ReactionType] = mapped_column(_enum(ReactionType, "reaction_type"), nullable=False)
    created_at: Mapped[datetime] = _created_at()

    def __repr__(self) -> str:
        return f"<Reaction(id={self.id}, post_id={self.post_id}, type={self.type})>"


# ============================================================================
# Prayers
# ============================================================================


class Prayer(Base):
    """
    A prayer request.

    linked_post_id is a weak, one-directional reference: the post has no
    back-reference and the prayer survives the post's deletion.
    commit_count is written only by fellowship.engine.counters.
    """

    __tablename__ = "prayers"
    __table_args__ = (CheckConstraint("commit_count >= 0", name="commit_count_non_negative"),)

    id: Mapped[str] = _id_column()
    user_id: Mapped[str] = _user_fk("CASCADE")
    group_id: Mapped[str | None] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("groups.id", ondelete="SET NULL"), nullable=True
    )
    linked_post_id: Mapped[str | None] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("posts.id", ondelete="SET NULL"), nullable=True
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[PrayerStatus] = mapped_column(
        _enum(PrayerStatus, "prayer_status"), nullable=False, default=PrayerStatus.OPEN
    )
    commit_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()
    deleted_at: Mapped[datetime | None] = _deleted_at()

    def __repr__(self) -> str:
        return f"<Prayer(id={self.id}, status={self.status}, commit_count={self.commit_count})>"


class PrayerCommit(Base):
    """A user's commitment to pray. Immutable; no uniqueness per user."""

    __tablename__ = "prayer_commits"

    id: Mapped[str] = _id_column()
    prayer_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("prayers.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = _user_fk("CASCADE")
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = _created_at()


# ============================================================================
# XP & streaks
# ============================================================================


class XpEvent(Base):
    """
    Immutable XP fact. amount is validated >= 0 on assignment and by a
    check constraint in the store.
    """

    __tablename__ = "xp_events"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="amount_non_negative"),
        Index("xp_events_user_created_desc", "user_id", "created_at"),
    )

    id: Mapped[str] = _id_column()
    user_id: Mapped[str] = _user_fk("CASCADE")
    fruit: Mapped[Fruit] = mapped_column(_enum(Fruit, "fruit"), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = _created_at()

    @validates("amount")
    def _validate_amount(self, key: str, value: int) -> int:
        return validate_non_negative(key, value)

    def __repr__(self) -> str:
        return f"<XpEvent(id={self.id}, user_id={self.user_id}, fruit={self.fruit}, amount={self.amount})>"


class XpTotals(Base):
    """
    Per-user additive projection of XpEvent.amount, one column per fruit.

    Created lazily on the first event; written only by
    fellowship.engine.xp_totals.
    """

    __tablename__ = "xp_totals"

    user_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    love: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    joy: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    peace: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    patience: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    kindness: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    goodness: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    faithfulness: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    gentleness: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    self_control: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    updated_at: Mapped[datetime] = _updated_at()

    def as_dict(self) -> dict[str, int]:
        """Fruit column -> total."""
        return {fruit.column: getattr(self, fruit.column) for fruit in Fruit}


class Streak(Base):
    __tablename__ = "streaks"
    __table_args__ = (UniqueConstraint("user_id", "kind"),)

    id: Mapped[str] = _id_column()
    user_id: Mapped[str] = _user_fk("CASCADE")
    kind: Mapped[StreakKind] = mapped_column(_enum(StreakKind, "streak_kind"), nullable=False)
    current: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


# ============================================================================
# AI content
# ============================================================================


class AIResponse(Base):
    """Generated devotional / prayer text. Retained after user deletion."""

    __tablename__ = "ai_responses"

    id: Mapped[str] = _id_column()
    user_id: Mapped[str | None] = _user_fk("SET NULL", nullable=True)
    kind: Mapped[AIResponseKind] = mapped_column(
        _enum(AIResponseKind, "ai_response_kind"), nullable=False
    )
    prompt: Mapped[dict] = mapped_column(JSON, nullable=False)
    output: Mapped[str] = mapped_column(Text, nullable=False)
    allowed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    flags: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    template_version: Mapped[str | None] = mapped_column(Text, nullable=True)
    latency_ms: Mapped[int] = mapped_column(Integer, nullable=False)
    cost_usd: Mapped[Decimal] = mapped_column(Numeric(10, 4), nullable=False)
    created_at: Mapped[datetime] = _created_at()


class ScriptureRef(Base):
    __tablename__ = "scripture_refs"

    id: Mapped[str] = _id_column()
    ai_response_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("ai_responses.id", ondelete="CASCADE"), nullable=False
    )
    book: Mapped[str] = mapped_column(Text, nullable=False)
    chapter: Mapped[int] = mapped_column(Integer, nullable=False)
    verse_start: Mapped[int] = mapped_column(Integer, nullable=False)
    verse_end: Mapped[int] = mapped_column(Integer, nullable=False)


class AIUsage(Base):
    """Usage/cost record. Retained for analytics after user deletion."""

    __tablename__ = "ai_usage"

    id: Mapped[str] = _id_column()
    user_id: Mapped[str | None] = _user_fk("SET NULL", nullable=True)
    provider: Mapped[str] = mapped_column(Text, nullable=False)
    model: Mapped[str] = mapped_column(Text, nullable=False)
    tokens_in: Mapped[int] = mapped_column(Integer, nullable=False)
    tokens_out: Mapped[int] = mapped_column(Integer, nullable=False)
    cost_usd: Mapped[Decimal] = mapped_column(Numeric(10, 4), nullable=False)
    latency_ms: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = _created_at()


# ============================================================================
# Events & mentorship
# ============================================================================


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (CheckConstraint("ends_at > starts_at", name="ends_after_starts"),)

    id: Mapped[str] = _id_column()
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    location: Mapped[str | None] = mapped_column(Text, nullable=True)
    visibility: Mapped[EventVisibility] = mapped_column(
        _enum(EventVisibility, "event_visibility"),
        nullable=False,
        default=EventVisibility.PUBLIC,
    )
    group_id: Mapped[str | None] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("groups.id", ondelete="SET NULL"), nullable=True
    )
    created_by: Mapped[str] = _user_fk("CASCADE")
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()


class EventRsvp(Base):
    __tablename__ = "event_rsvps"

    event_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("events.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    status: Mapped[RsvpStatus] = mapped_column(_enum(RsvpStatus, "rsvp_status"), nullable=False)
    created_at: Mapped[datetime] = _created_at()


class Mentorship(Base):
    __tablename__ = "mentorships"
    __table_args__ = (UniqueConstraint("mentor_id", "mentee_id"),)

    id: Mapped[str] = _id_column()
    mentor_id: Mapped[str] = _user_fk("CASCADE")
    mentee_id: Mapped[str] = _user_fk("CASCADE")
    started_at: Mapped[datetime] = _created_at()
    status: Mapped[MentorshipStatus] = mapped_column(
        _enum(MentorshipStatus, "mentorship_status"),
        nullable=False,
        default=MentorshipStatus.ACTIVE,
    )
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()


class MentorSession(Base):
    __tablename__ = "mentor_sessions"

    id: Mapped[str] = _id_column()
    mentorship_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("mentorships.id", ondelete="CASCADE"), nullable=False
    )
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()


# ============================================================================
# Moderation, audit, notifications, flags
# ============================================================================


class ModerationAction(Base):
    __tablename__ = "moderation_actions"

    id: Mapped[str] = _id_column()
    entity_type: Mapped[str] = mapped_column(Text, nullable=False)
    entity_id: Mapped[str] = mapped_column(Uuid(as_uuid=False), nullable=False)
    actor_id: Mapped[str] = _user_fk("CASCADE")
    action: Mapped[ModerationActionType] = mapped_column(
        _enum(ModerationActionType, "moderation_action_type"), nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = _created_at()


class AuditLog(Base):
    """Audit trail entry. Outlives its actor (user_id is nulled on user deletion)."""

    __tablename__ = "audit_logs"

    id: Mapped[str] = _id_column()
    user_id: Mapped[str | None] = _user_fk("SET NULL", nullable=True)
    action: Mapped[str] = mapped_column(Text, nullable=False)
    entity_type: Mapped[str] = mapped_column(Text, nullable=False)
    entity_id: Mapped[str] = mapped_column(Uuid(as_uuid=False), nullable=False)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = _created_at()

    def __repr__(self) -> str:
        return f"<AuditLog(action={self.action}, entity_type={self.entity_type}, entity_id={self.entity_id})>"


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (Index("notifications_user_created_desc", "user_id", "created_at"),)

    id: Mapped[str] = _id_column()
    user_id: Mapped[str] = _user_fk("CASCADE")
    type: Mapped[str] = mapped_column(Text, nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = _created_at()
    deleted_at: Mapped[datetime | None] = _deleted_at()


class FeatureFlag(Base):
    """Process-wide key/value configuration. Read and written explicitly, never cached."""

    __tablename__ = "feature_flags"

    key: Mapped[str] = mapped_column(Text, primary_key=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    updated_at: Mapped[datetime] = _updated_at()
