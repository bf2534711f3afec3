"""
Integration tests for concurrent aggregate maintenance.

Each worker runs in its own session (its own connection and transaction),
the way independent API requests would.

Tests cover:
- Concurrent comment inserts never lose a counter update
- Racing duplicate reactions: exactly one wins, counter ends at 1
- Racing soft-deletes of one comment adjust the counter once
- Concurrent XP events sum exactly, whatever the arrival order
- Recomputes interleaved with live XP writes lose no event
"""

import asyncio

import pytest

from fellowship.core.errors import UniqueConstraintViolation
from fellowship.db.models import Post, XpTotals
from fellowship.domain.enums import FactKind, Fruit
from fellowship.repos.fact_repo import insert_fact, soft_delete_fact
from fellowship.repos.xp_repo import get_xp_totals, recompute_xp_totals, record_xp_event
from tests.conftest import acreate_post, acreate_user


async def _seed_post(async_session_maker):
    async with async_session_maker() as db:
        user = await acreate_user(db)
        post = await acreate_post(db, user)
        await db.commit()
    return user, post


class TestConcurrentCounters:
    @pytest.mark.anyio
    async def test_concurrent_comments_all_counted(self, async_session_maker):
        user, post = await _seed_post(async_session_maker)

        async def add_comment(i: int) -> None:
            async with async_session_maker() as db:
                await insert_fact(
                    db,
                    FactKind.COMMENT,
                    parent_id=post.id,
                    user_id=user.id,
                    content=f"comment {i}",
                )
                await db.commit()

        await asyncio.gather(*(add_comment(i) for i in range(10)))

        async with async_session_maker() as db:
            refreshed = await db.get(Post, post.id)
            assert refreshed.comment_count == 10

    @pytest.mark.anyio
    async def test_racing_duplicate_reactions(self, async_session_maker):
        """Three identical reactions: one insert, two unique violations."""
        user, post = await _seed_post(async_session_maker)

        async def react() -> None:
            async with async_session_maker() as db:
                await insert_fact(
                    db, FactKind.REACTION, parent_id=post.id, user_id=user.id, type="AMEN"
                )
                await db.commit()

        results = await asyncio.gather(*(react() for _ in range(3)), return_exceptions=True)

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 2
        assert all(isinstance(f, UniqueConstraintViolation) for f in failures)

        async with async_session_maker() as db:
            refreshed = await db.get(Post, post.id)
            assert refreshed.reaction_count == 1

    @pytest.mark.anyio
    async def test_racing_soft_deletes_decrement_once(self, async_session_maker):
        user, post = await _seed_post(async_session_maker)
        async with async_session_maker() as db:
            target = await insert_fact(
                db, FactKind.COMMENT, parent_id=post.id, user_id=user.id, content="a"
            )
            await insert_fact(
                db, FactKind.COMMENT, parent_id=post.id, user_id=user.id, content="b"
            )
            await db.commit()

        async def remove() -> None:
            async with async_session_maker() as db:
                await soft_delete_fact(db, "COMMENT", target.id)
                await db.commit()

        await asyncio.gather(*(remove() for _ in range(4)))

        async with async_session_maker() as db:
            refreshed = await db.get(Post, post.id)
            assert refreshed.comment_count == 1


class TestConcurrentXp:
    @pytest.mark.anyio
    async def test_concurrent_events_sum_exactly(self, async_session_maker):
        async with async_session_maker() as db:
            user = await acreate_user(db)
            await db.commit()

        amounts = [(Fruit.LOVE, 5), (Fruit.JOY, 3), (Fruit.LOVE, 2), (Fruit.PEACE, 0)] * 3

        async def award(fruit: Fruit, amount: int) -> None:
            async with async_session_maker() as db:
                await record_xp_event(
                    db, user_id=user.id, fruit=fruit, amount=amount, reason="daily prayer"
                )
                await db.commit()

        await asyncio.gather(*(award(f, a) for f, a in amounts))

        async with async_session_maker() as db:
            totals = await get_xp_totals(db, user.id)
            assert totals["love"] == 21
            assert totals["joy"] == 9
            assert totals["peace"] == 0
            assert sum(totals.values()) == 30
            # Exactly one totals row despite racing first events
            assert await db.get(XpTotals, user.id) is not None

    @pytest.mark.anyio
    async def test_recompute_during_live_writes(self, async_session_maker):
        async with async_session_maker() as db:
            user = await acreate_user(db)
            await db.commit()

        amounts = [i % 7 + 1 for i in range(30)]

        async def award(amount: int) -> None:
            async with async_session_maker() as db:
                await record_xp_event(
                    db, user_id=user.id, fruit=Fruit.LOVE, amount=amount, reason="served"
                )
                await db.commit()

        async def rebuild() -> None:
            async with async_session_maker() as db:
                await recompute_xp_totals(db, user.id)
                await db.commit()

        await asyncio.gather(
            *(award(a) for a in amounts),
            *(rebuild() for _ in range(6)),
        )

        async with async_session_maker() as db:
            totals = await get_xp_totals(db, user.id)
            assert totals["love"] == sum(amounts)
            assert totals["joy"] == 0
