"""
Domain enums matching the database enum types.

These enums provide type-safe representations of the stored enum values
and are used throughout the application for validation and type checking.
"""

from enum import Enum


class ReactionType(str, Enum):
    """Kind of reaction a user leaves on a post."""

    LIKE = "LIKE"
    AMEN = "AMEN"
    PRAYER = "PRAYER"


class PostType(str, Enum):
    POST = "POST"
    TESTIMONY = "TESTIMONY"


class PostStatus(str, Enum):
    ACTIVE = "ACTIVE"
    REMOVED = "REMOVED"
    PENDING_MOD = "PENDING_MOD"


class PrayerStatus(str, Enum):
    """
    Lifecycle status for prayers.

    Note: transitions are application-driven and unconstrained; any state
    may move to any other.
    """

    OPEN = "OPEN"
    ANSWERED = "ANSWERED"
    ARCHIVED = "ARCHIVED"


class Fruit(str, Enum):
    """
    XP category. Each value maps to one column of xp_totals.
    """

    LOVE = "LOVE"
    JOY = "JOY"
    PEACE = "PEACE"
    PATIENCE = "PATIENCE"
    KINDNESS = "KINDNESS"
    GOODNESS = "GOODNESS"
    FAITHFULNESS = "FAITHFULNESS"
    GENTLENESS = "GENTLENESS"
    SELF_CONTROL = "SELF_CONTROL"

    @property
    def column(self) -> str:
        """Name of the matching XpTotals column (e.g. SELF_CONTROL -> self_control)."""
        return self.value.lower()


class GroupPrivacy(str, Enum):
    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"


class GroupMemberRole(str, Enum):
    ADMIN = "ADMIN"
    MODERATOR = "MODERATOR"
    MEMBER = "MEMBER"


class StreakKind(str, Enum):
    PRAYER = "PRAYER"
    SCRIPTURE = "SCRIPTURE"
    WELLNESS = "WELLNESS"


class AIResponseKind(str, Enum):
    DEVOTIONAL = "DEVOTIONAL"
    PRAYER = "PRAYER"


class EventVisibility(str, Enum):
    PUBLIC = "PUBLIC"
    GROUP = "GROUP"
    PRIVATE = "PRIVATE"


class RsvpStatus(str, Enum):
    GOING = "GOING"
    INTERESTED = "INTERESTED"
    DECLINED = "DECLINED"


class MentorshipStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"


class ModerationActionType(str, Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    REMOVE = "REMOVE"
    BAN = "BAN"


class FactKind(str, Enum):
    """
    Facts whose mutation affects a counter on their parent row.
    """

    COMMENT = "COMMENT"
    REACTION = "REACTION"
    PRAYER_COMMIT = "PRAYER_COMMIT"


class OwnerKind(str, Enum):
    """
    Entities that can be deleted through the referential policy engine.
    """

    USER = "USER"
    POST = "POST"
    GROUP = "GROUP"
    PRAYER = "PRAYER"
    EVENT = "EVENT"
    MENTORSHIP = "MENTORSHIP"
    AI_RESPONSE = "AI_RESPONSE"


class SoftDeleteKind(str, Enum):
    """Entities carrying a deleted_at column."""

    COMMENT = "COMMENT"
    POST = "POST"
    PRAYER = "PRAYER"
    GROUP = "GROUP"
    NOTIFICATION = "NOTIFICATION"


class DeletePolicy(str, Enum):
    """
    What happens to a child row when its referenced parent is deleted.
    """

    CASCADE = "CASCADE"  # Delete the child (recursively)
    SET_NULL = "SET_NULL"  # Null the foreign key, keep the child
    RESTRICT = "RESTRICT"  # Abort the whole delete
