"""
Tests for the soft-delete state machine and the live-row filter.
"""

import pytest

from fellowship.core.errors import NotFoundError, ValidationError
from fellowship.db.models import Comment, Notification, Post
from fellowship.domain.enums import FactKind, SoftDeleteKind
from fellowship.engine.soft_delete import resolve_kind, restore, soft_delete
from fellowship.repos.content_repo import (
    list_comments,
    list_notifications,
    list_posts,
    list_prayers,
)
from fellowship.repos.fact_repo import get_fact, insert_fact
from fellowship.repos.owner_repo import create_notification
from tests.conftest import acreate_post, acreate_prayer, acreate_user, reload

MISSING_ID = "00000000-0000-0000-0000-000000000000"


class TestTransitions:
    @pytest.mark.anyio
    async def test_soft_delete_then_noop(self, async_db_session):
        user = await acreate_user(async_db_session)
        post = await acreate_post(async_db_session, user)

        entity, changed = await soft_delete(async_db_session, SoftDeleteKind.POST, post.id)
        assert changed is True
        assert entity.deleted_at is not None

        _, changed = await soft_delete(async_db_session, SoftDeleteKind.POST, post.id)
        assert changed is False

    @pytest.mark.anyio
    async def test_restore_then_noop(self, async_db_session):
        user = await acreate_user(async_db_session)
        prayer = await acreate_prayer(async_db_session, user)
        await soft_delete(async_db_session, "PRAYER", prayer.id)

        entity, changed = await restore(async_db_session, "PRAYER", prayer.id)
        assert changed is True
        assert entity.deleted_at is None

        _, changed = await restore(async_db_session, "PRAYER", prayer.id)
        assert changed is False

    @pytest.mark.anyio
    async def test_soft_deleting_post_keeps_its_counters(self, async_db_session):
        user = await acreate_user(async_db_session)
        post = await acreate_post(async_db_session, user)
        await insert_fact(
            async_db_session, FactKind.COMMENT, parent_id=post.id, user_id=user.id, content="a"
        )

        await soft_delete(async_db_session, "POST", post.id)

        assert (await reload(async_db_session, post)).comment_count == 1

    @pytest.mark.anyio
    async def test_missing_row(self, async_db_session):
        with pytest.raises(NotFoundError):
            await soft_delete(async_db_session, "COMMENT", MISSING_ID)

    @pytest.mark.parametrize("kind", ["REACTION", "PRAYER_COMMIT", "XP_EVENT", "USER"])
    def test_hard_delete_only_kinds_rejected(self, kind):
        with pytest.raises(ValidationError):
            resolve_kind(kind)


class TestActiveFilter:
    @pytest.mark.anyio
    async def test_lists_exclude_soft_deleted(self, async_db_session):
        user = await acreate_user(async_db_session)
        kept = await acreate_post(async_db_session, user, content="kept")
        hidden = await acreate_post(async_db_session, user, content="hidden")
        prayer = await acreate_prayer(async_db_session, user)
        comment = await insert_fact(
            async_db_session, FactKind.COMMENT, parent_id=kept.id, user_id=user.id, content="a"
        )
        notification = await create_notification(
            async_db_session, user_id=user.id, type="PRAYER_COMMIT", payload={"n": 1}
        )

        await soft_delete(async_db_session, "POST", hidden.id)
        await soft_delete(async_db_session, "PRAYER", prayer.id)
        await soft_delete(async_db_session, "COMMENT", comment.id)
        await soft_delete(async_db_session, "NOTIFICATION", notification.id)

        assert [p.id for p in await list_posts(async_db_session, user_id=user.id)] == [kept.id]
        assert await list_prayers(async_db_session) == []
        assert await list_comments(async_db_session, kept.id) == []
        assert await list_notifications(async_db_session, user.id) == []

    @pytest.mark.anyio
    async def test_lookup_by_id_ignores_state(self, async_db_session):
        user = await acreate_user(async_db_session)
        post = await acreate_post(async_db_session, user)
        comment = await insert_fact(
            async_db_session, FactKind.COMMENT, parent_id=post.id, user_id=user.id, content="a"
        )
        await soft_delete(async_db_session, "COMMENT", comment.id)

        found = await get_fact(async_db_session, FactKind.COMMENT, comment.id)

        assert isinstance(found, Comment)
        assert found.deleted_at is not None
        assert await async_db_session.get(Post, post.id) is not None

    @pytest.mark.anyio
    async def test_unread_notifications(self, async_db_session):
        user = await acreate_user(async_db_session)
        unread = await create_notification(
            async_db_session, user_id=user.id, type="COMMENT", payload={}
        )
        read = await create_notification(
            async_db_session, user_id=user.id, type="COMMENT", payload={}
        )
        read.read = True
        await async_db_session.flush()

        result = await list_notifications(async_db_session, user.id, unread_only=True)

        assert [n.id for n in result] == [unread.id]
        assert isinstance(result[0], Notification)
