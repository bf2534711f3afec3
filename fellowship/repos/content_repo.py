"""
Feed and list queries.

Every list here excludes soft-deleted rows with active(); lookups by id
elsewhere do not.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.db.models import Comment, Notification, Post, Prayer
from fellowship.domain.enums import PostStatus, PrayerStatus
from fellowship.engine.soft_delete import active

DEFAULT_LIMIT = 50


async def list_posts(
    db: AsyncSession,
    *,
    group_id: str | None = None,
    user_id: str | None = None,
    limit: int = DEFAULT_LIMIT,
) -> list[Post]:
    """Newest live, ACTIVE posts, optionally scoped to a group or author."""
    stmt = select(Post).where(active(Post), Post.status == PostStatus.ACTIVE)
    if group_id is not None:
        stmt = stmt.where(Post.group_id == group_id)
    if user_id is not None:
        stmt = stmt.where(Post.user_id == user_id)
    stmt = stmt.order_by(Post.created_at.desc(), Post.id).limit(limit)
    return list((await db.scalars(stmt)).all())


async def list_comments(
    db: AsyncSession, post_id: str, *, limit: int = DEFAULT_LIMIT
) -> list[Comment]:
    """Live comments on a post, oldest first."""
    stmt = (
        select(Comment)
        .where(active(Comment), Comment.post_id == post_id)
        .order_by(Comment.created_at, Comment.id)
        .limit(limit)
    )
    return list((await db.scalars(stmt)).all())


async def list_prayers(
    db: AsyncSession,
    *,
    status: PrayerStatus | None = None,
    group_id: str | None = None,
    limit: int = DEFAULT_LIMIT,
) -> list[Prayer]:
    stmt = select(Prayer).where(active(Prayer))
    if status is not None:
        stmt = stmt.where(Prayer.status == status)
    if group_id is not None:
        stmt = stmt.where(Prayer.group_id == group_id)
    stmt = stmt.order_by(Prayer.created_at.desc(), Prayer.id).limit(limit)
    return list((await db.scalars(stmt)).all())


async def list_notifications(
    db: AsyncSession, user_id: str, *, unread_only: bool = False, limit: int = DEFAULT_LIMIT
) -> list[Notification]:
    stmt = select(Notification).where(active(Notification), Notification.user_id == user_id)
    if unread_only:
        stmt = stmt.where(Notification.read.is_(False))
    stmt = stmt.order_by(Notification.created_at.desc(), Notification.id).limit(limit)
    return list((await db.scalars(stmt)).all())
