"""
Tests for the feature flag store.
"""

import pytest

from fellowship.core.errors import NotFoundError
from fellowship.repos.feature_flag_repo import (
    delete_flag,
    get_flag,
    is_enabled,
    list_flags,
    set_flag,
)


class TestFeatureFlags:
    @pytest.mark.anyio
    async def test_unset_flag_uses_default(self, async_db_session):
        assert await is_enabled(async_db_session, "ai.devotionals") is False
        assert await is_enabled(async_db_session, "ai.devotionals", default=True) is True

    @pytest.mark.anyio
    async def test_set_then_overwrite(self, async_db_session):
        await set_flag(async_db_session, "ai.devotionals", enabled=True, payload={"pct": 10})
        flag = await set_flag(async_db_session, "ai.devotionals", enabled=False)

        assert flag.enabled is False
        assert flag.payload is None
        assert await is_enabled(async_db_session, "ai.devotionals", default=True) is False

    @pytest.mark.anyio
    async def test_list_sorted_by_key(self, async_db_session):
        await set_flag(async_db_session, "b.flag", enabled=True)
        await set_flag(async_db_session, "a.flag", enabled=False)

        assert [f.key for f in await list_flags(async_db_session)] == ["a.flag", "b.flag"]

    @pytest.mark.anyio
    async def test_delete(self, async_db_session):
        await set_flag(async_db_session, "events.rsvp", enabled=True)

        await delete_flag(async_db_session, "events.rsvp")

        with pytest.raises(NotFoundError):
            await get_flag(async_db_session, "events.rsvp")
        with pytest.raises(NotFoundError):
            await delete_flag(async_db_session, "events.rsvp")
