"""
Tests for the HTTP surface: routing, status codes and error bodies.

Seed data is committed through its own session before requests are made,
since each request runs in a separate session.
"""

import pytest

from fellowship.db.models import Post, Prayer
from tests.conftest import acreate_post, acreate_prayer, acreate_user

API = "/api/v1"
MISSING_ID = "00000000-0000-0000-0000-000000000000"


async def _seed(async_session_maker):
    async with async_session_maker() as db:
        user = await acreate_user(db)
        post = await acreate_post(db, user)
        prayer = await acreate_prayer(db, user)
        await db.commit()
    return user, post, prayer


class TestFactEndpoints:
    @pytest.mark.anyio
    async def test_comment_lifecycle(self, async_client, async_session_maker):
        user, post, _ = await _seed(async_session_maker)

        response = await async_client.post(
            f"{API}/comments", json={"post_id": post.id, "user_id": user.id, "content": "Amen"}
        )
        assert response.status_code == 201
        comment_id = response.json()["id"]
        assert response.json()["post_id"] == post.id

        response = await async_client.post(f"{API}/facts/comment/{comment_id}/soft-delete")
        assert response.status_code == 200
        assert response.json()["kind"] == "COMMENT"
        assert response.json()["deleted_at"] is not None

        async with async_session_maker() as db:
            assert (await db.get(Post, post.id)).comment_count == 0

        response = await async_client.post(f"{API}/facts/COMMENT/{comment_id}/restore")
        assert response.status_code == 200
        assert response.json()["deleted_at"] is None

        response = await async_client.delete(f"{API}/facts/comment/{comment_id}")
        assert response.status_code == 204

        async with async_session_maker() as db:
            assert (await db.get(Post, post.id)).comment_count == 0

    @pytest.mark.anyio
    async def test_duplicate_reaction_is_409(self, async_client, async_session_maker):
        user, post, _ = await _seed(async_session_maker)
        body = {"post_id": post.id, "user_id": user.id, "type": "AMEN"}

        assert (await async_client.post(f"{API}/reactions", json=body)).status_code == 201
        response = await async_client.post(f"{API}/reactions", json=body)

        assert response.status_code == 409
        assert response.json()["error"] == "UniqueConstraintViolation"
        assert response.json()["details"]["kind"] == "REACTION"

        async with async_session_maker() as db:
            assert (await db.get(Post, post.id)).reaction_count == 1

    @pytest.mark.anyio
    async def test_prayer_commit(self, async_client, async_session_maker):
        user, _, prayer = await _seed(async_session_maker)

        response = await async_client.post(
            f"{API}/prayer-commits", json={"prayer_id": prayer.id, "user_id": user.id}
        )

        assert response.status_code == 201
        assert response.json()["prayer_id"] == prayer.id
        async with async_session_maker() as db:
            assert (await db.get(Prayer, prayer.id)).commit_count == 1

    @pytest.mark.anyio
    async def test_soft_delete_of_reaction_is_400(self, async_client, async_session_maker):
        user, post, _ = await _seed(async_session_maker)
        response = await async_client.post(
            f"{API}/reactions", json={"post_id": post.id, "user_id": user.id, "type": "LIKE"}
        )

        response = await async_client.post(
            f"{API}/facts/reaction/{response.json()['id']}/soft-delete"
        )

        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    @pytest.mark.anyio
    async def test_missing_parent_is_404(self, async_client, async_session_maker):
        user, _, _ = await _seed(async_session_maker)

        response = await async_client.post(
            f"{API}/comments", json={"post_id": MISSING_ID, "user_id": user.id, "content": "x"}
        )

        assert response.status_code == 404
        assert response.json()["error"] == "NotFoundError"

    @pytest.mark.anyio
    async def test_invalid_body_is_422(self, async_client):
        response = await async_client.post(f"{API}/reactions", json={"post_id": MISSING_ID})

        assert response.status_code == 422


class TestXpEndpoints:
    @pytest.mark.anyio
    async def test_record_and_read_totals(self, async_client, async_session_maker):
        user, _, _ = await _seed(async_session_maker)

        for fruit, amount in (("LOVE", 5), ("JOY", 3), ("LOVE", 2)):
            response = await async_client.post(
                f"{API}/xp-events",
                json={"user_id": user.id, "fruit": fruit, "amount": amount, "reason": "served"},
            )
            assert response.status_code == 201

        response = await async_client.get(f"{API}/users/{user.id}/xp-totals")
        assert response.status_code == 200
        assert response.json()["totals"]["love"] == 7
        assert response.json()["totals"]["joy"] == 3

        response = await async_client.post(f"{API}/users/{user.id}/xp-totals/recompute")
        assert response.status_code == 200
        assert response.json()["totals"]["love"] == 7

    @pytest.mark.anyio
    async def test_negative_amount_is_422(self, async_client, async_session_maker):
        user, _, _ = await _seed(async_session_maker)

        response = await async_client.post(
            f"{API}/xp-events",
            json={"user_id": user.id, "fruit": "LOVE", "amount": -1, "reason": "oops"},
        )

        assert response.status_code == 422
        assert response.json()["error"] == "CheckConstraintViolation"

    @pytest.mark.anyio
    async def test_totals_for_unknown_user(self, async_client):
        response = await async_client.get(f"{API}/users/{MISSING_ID}/xp-totals")

        assert response.status_code == 404


class TestOwnerEndpoints:
    @pytest.mark.anyio
    async def test_restricted_user_delete_is_409(self, async_client, async_session_maker):
        user, post, _ = await _seed(async_session_maker)

        response = await async_client.delete(f"{API}/owners/user/{user.id}")

        assert response.status_code == 409
        assert response.json()["error"] == "ForeignKeyRestriction"
        assert response.json()["details"]["blocked_by"] == "posts"
        async with async_session_maker() as db:
            assert await db.get(Post, post.id) is not None

    @pytest.mark.anyio
    async def test_post_delete_report(self, async_client, async_session_maker):
        user, post, _ = await _seed(async_session_maker)
        await async_client.post(
            f"{API}/comments", json={"post_id": post.id, "user_id": user.id, "content": "a"}
        )

        response = await async_client.delete(
            f"{API}/owners/post/{post.id}", params={"performed_by": user.id}
        )

        assert response.status_code == 200
        assert response.json()["kind"] == "POST"
        assert response.json()["cascaded"] == {"posts->comments.post_id": 1}

    @pytest.mark.anyio
    async def test_prayer_status(self, async_client, async_session_maker):
        _, _, prayer = await _seed(async_session_maker)

        for status in ("ANSWERED", "ARCHIVED", "OPEN"):
            response = await async_client.patch(
                f"{API}/prayers/{prayer.id}/status", json={"status": status}
            )
            assert response.status_code == 200
            assert response.json()["status"] == status

        response = await async_client.patch(
            f"{API}/prayers/{prayer.id}/status", json={"status": "CLOSED"}
        )
        assert response.status_code == 422


class TestFeatureFlagEndpoints:
    @pytest.mark.anyio
    async def test_put_get_delete(self, async_client):
        response = await async_client.put(
            f"{API}/feature-flags/ai.devotionals", json={"enabled": True, "payload": {"pct": 5}}
        )
        assert response.status_code == 200
        assert response.json()["enabled"] is True

        response = await async_client.get(f"{API}/feature-flags")
        assert [f["key"] for f in response.json()] == ["ai.devotionals"]

        response = await async_client.get(f"{API}/feature-flags/ai.devotionals")
        assert response.json()["payload"] == {"pct": 5}

        response = await async_client.delete(f"{API}/feature-flags/ai.devotionals")
        assert response.status_code == 204
        response = await async_client.get(f"{API}/feature-flags/ai.devotionals")
        assert response.status_code == 404


class TestPlumbing:
    @pytest.mark.anyio
    async def test_request_id_header(self, async_client):
        response = await async_client.get(
            f"{API}/feature-flags", headers={"X-Request-ID": "req-123"}
        )

        assert response.headers["X-Request-ID"] == "req-123"

    @pytest.mark.anyio
    async def test_metrics_endpoint(self, async_client):
        response = await async_client.get("/metrics")

        assert response.status_code == 200
        assert "aggregate_adjustments_total" in response.text
