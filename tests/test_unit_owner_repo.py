"""
Tests for owner creation and prayer status updates.
"""

from datetime import UTC, datetime, timedelta

import pytest

from fellowship.core.errors import (
    CheckConstraintViolation,
    ForeignKeyRestriction,
    NotFoundError,
    UniqueConstraintViolation,
)
from fellowship.db.models import GroupMember
from fellowship.domain.enums import GroupMemberRole, PrayerStatus, RsvpStatus
from fellowship.repos.owner_repo import (
    create_event,
    create_mentorship,
    rsvp_event,
    update_prayer_status,
)
from tests.conftest import acreate_group, acreate_post, acreate_prayer, acreate_user


class TestCreate:
    @pytest.mark.anyio
    async def test_duplicate_email(self, async_db_session):
        await acreate_user(async_db_session, email="ruth@example.com")

        with pytest.raises(UniqueConstraintViolation):
            await acreate_user(async_db_session, email="ruth@example.com")

    @pytest.mark.anyio
    async def test_new_counters_start_at_zero(self, async_db_session):
        user = await acreate_user(async_db_session)

        post = await acreate_post(async_db_session, user)
        prayer = await acreate_prayer(async_db_session, user)

        assert (post.comment_count, post.reaction_count) == (0, 0)
        assert prayer.commit_count == 0
        assert prayer.status == PrayerStatus.OPEN

    @pytest.mark.anyio
    async def test_group_creator_is_admin(self, async_db_session):
        creator = await acreate_user(async_db_session)

        group = await acreate_group(async_db_session, creator)

        member = await async_db_session.get(GroupMember, (group.id, creator.id))
        assert member.role == GroupMemberRole.ADMIN

    @pytest.mark.anyio
    async def test_duplicate_mentorship(self, async_db_session):
        mentor = await acreate_user(async_db_session)
        mentee = await acreate_user(async_db_session)
        await create_mentorship(async_db_session, mentor_id=mentor.id, mentee_id=mentee.id)

        with pytest.raises(UniqueConstraintViolation):
            await create_mentorship(async_db_session, mentor_id=mentor.id, mentee_id=mentee.id)

    @pytest.mark.anyio
    async def test_unknown_author_rejected_by_store(self, async_db_session):
        """Foreign keys are enforced even outside the engine's own checks."""
        user = await acreate_user(async_db_session)

        with pytest.raises(ForeignKeyRestriction):
            await acreate_post(
                async_db_session, user, user_id="00000000-0000-0000-0000-000000000000"
            )


class TestEvents:
    @pytest.mark.anyio
    async def test_event_must_end_after_start(self, async_db_session):
        creator = await acreate_user(async_db_session)
        starts_at = datetime.now(UTC)

        with pytest.raises(CheckConstraintViolation):
            await create_event(
                async_db_session,
                title="Retreat",
                starts_at=starts_at,
                ends_at=starts_at,
                created_by=creator.id,
            )

    @pytest.mark.anyio
    async def test_rsvp_updates_in_place(self, async_db_session):
        creator = await acreate_user(async_db_session)
        starts_at = datetime.now(UTC)
        event = await create_event(
            async_db_session,
            title="Retreat",
            starts_at=starts_at,
            ends_at=starts_at + timedelta(days=2),
            created_by=creator.id,
        )

        await rsvp_event(
            async_db_session, event_id=event.id, user_id=creator.id, status=RsvpStatus.INTERESTED
        )
        rsvp = await rsvp_event(
            async_db_session, event_id=event.id, user_id=creator.id, status=RsvpStatus.GOING
        )

        assert rsvp.status == RsvpStatus.GOING


class TestPrayerStatus:
    @pytest.mark.anyio
    async def test_any_transition_allowed(self, async_db_session):
        user = await acreate_user(async_db_session)
        prayer = await acreate_prayer(async_db_session, user)

        for status in ("ANSWERED", PrayerStatus.ARCHIVED, PrayerStatus.OPEN, "ARCHIVED"):
            prayer = await update_prayer_status(async_db_session, prayer.id, status)
            assert prayer.status == PrayerStatus(status)

    @pytest.mark.anyio
    async def test_missing_prayer(self, async_db_session):
        with pytest.raises(NotFoundError):
            await update_prayer_status(
                async_db_session, "00000000-0000-0000-0000-000000000000", "ANSWERED"
            )
