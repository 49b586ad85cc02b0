"""Concurrent handler runs against PostgreSQL row locks.

SQLite serializes writers at the file level, so these only mean something
on a real server: set ORANGEFARM_TEST_DATABASE_URL to a disposable database.
"""

from __future__ import annotations

import asyncio

import pytest_asyncio
from sqlalchemy import select

from orangefarm.db.models import BotAsset, ChangeOutbox, LandAsset, Player
from orangefarm.handlers import initialize_player, pay_achievement_rewards, process_harvest, sync_bot_assignment
from orangefarm.pipeline.outbox import event_from_row
from orangefarm.pipeline.schemas import ChangeEvent
from orangefarm.players.service import assign_bot, credit_harvest, register_player
from support import WALLET


async def _pop(session_factory) -> list[ChangeEvent]:  # noqa: ANN001
    async with session_factory() as db:
        rows = list((await db.execute(select(ChangeOutbox).order_by(ChangeOutbox.id.asc()))).scalars().all())
        events = [event_from_row(r) for r in rows]
        for row in rows:
            await db.delete(row)
        await db.commit()
    return events


@pytest_asyncio.fixture
async def pg_player(pg_session_factory, settings):  # noqa: ANN001, ANN201
    """Initialized player on PostgreSQL; returns the session factory."""
    async with pg_session_factory() as db:
        await register_player(db, WALLET)
        await db.commit()
    (created,) = await _pop(pg_session_factory)
    async with pg_session_factory() as db:
        await initialize_player(db, created, settings)
    await _pop(pg_session_factory)
    return pg_session_factory


class TestConcurrentRewards:
    async def test_parallel_reward_deliveries_and_credits(self, pg_player) -> None:
        factory = pg_player
        async with factory() as db:
            await credit_harvest(db, WALLET, 150)
            await db.commit()
        (credit,) = await _pop(factory)
        async with factory() as db:
            await process_harvest(db, credit)
        (unlock,) = await _pop(factory)

        async def pay():  # noqa: ANN202
            async with factory() as db:
                return await pay_achievement_rewards(db, unlock)

        async def harvest(amount: int) -> None:
            async with factory() as db:
                await credit_harvest(db, WALLET, amount)
                await db.commit()

        results = await asyncio.gather(pay(), pay(), pay(), harvest(7), harvest(11), harvest(13))

        payments = [p for paid in results[:3] for p in paid]
        assert [(p.achievement_id, p.bonus_oranges) for p in payments] == [("first_100_oranges", 10)]
        async with factory() as db:
            player = await db.get(Player, WALLET)
            # No increment lost and the bonus paid once.
            assert player.current_oranges == 150 + 10 + 7 + 11 + 13
            assert player.lifetime_oranges == player.current_oranges
            assert player.rewarded_achievements == ["first_100_oranges"]


class TestConcurrentAssignment:
    async def test_two_bots_onto_one_land(self, pg_player) -> None:
        factory = pg_player
        async with factory() as db:
            db.add(LandAsset(wallet_address=WALLET, land_id="land-2", land_type="medium", capacity=4, assigned_bot_ids=[]))
            for bot_id in ("bot-2", "bot-3"):
                db.add(BotAsset(wallet_address=WALLET, bot_id=bot_id, bot_type="basic"))
            await db.commit()
        for bot_id in ("bot-2", "bot-3"):
            async with factory() as db:
                await assign_bot(db, WALLET, bot_id, "land-2")
                await db.commit()
        events = await _pop(factory)
        assert len(events) == 2

        async def sync(event: ChangeEvent) -> bool:
            async with factory() as db:
                return await sync_bot_assignment(db, event)

        # Each event delivered twice, all at once.
        await asyncio.gather(*(sync(e) for e in events + events))

        async with factory() as db:
            land = await db.get(LandAsset, (WALLET, "land-2"))
            assert sorted(land.assigned_bot_ids) == ["bot-2", "bot-3"]
