"""Player registration and starter-pack initialization."""

from __future__ import annotations

from sqlalchemy import func, select

from support import WALLET
from orangefarm.db.models import ActivityEvent, BotAsset, LandAsset, Player
from orangefarm.handlers import initialize_player
from orangefarm.pipeline.documents import STARTER_BOT_ID, STARTER_LAND_ID
from orangefarm.pipeline.schemas import ChangeEvent, ChangeKind, Collection
from orangefarm.players.service import register_player


async def _count(db, model, *where) -> int:  # noqa: ANN001
    result = await db.execute(select(func.count()).select_from(model).where(*where))
    return result.scalar_one()


class TestRegisterPlayer:
    async def test_register_queues_created_event(self, session_factory, pop_events) -> None:
        async with session_factory() as db:
            player, created = await register_player(db, WALLET.upper().replace("0X", "0x"))
            await db.commit()

        assert created is True
        assert player.wallet_address == WALLET
        events = await pop_events()
        assert len(events) == 1
        assert events[0].collection is Collection.PLAYERS
        assert events[0].kind is ChangeKind.CREATED
        assert events[0].before is None
        assert events[0].after["walletAddress"] == WALLET

    async def test_register_existing_is_noop(self, session_factory, pop_events) -> None:
        async with session_factory() as db:
            await register_player(db, WALLET)
            await db.commit()
        await pop_events()

        async with session_factory() as db:
            _, created = await register_player(db, WALLET)
            await db.commit()

        assert created is False
        assert await pop_events() == []


class TestInitializePlayer:
    async def test_grants_starter_pack(self, session_factory, settings, pop_events) -> None:
        async with session_factory() as db:
            await register_player(db, WALLET)
            await db.commit()
        (created,) = await pop_events()

        async with session_factory() as db:
            assert await initialize_player(db, created, settings) is True

        async with session_factory() as db:
            player = await db.get(Player, WALLET)
            assert player.initialized_at is not None
            assert player.mock_orange_dao_balance == settings.starter_tokens
            assert player.water_balance == settings.starter_water
            assert player.land_count == 1
            assert player.bot_count == 1
            assert player.level == 1
            assert player.login_streak == 1
            assert player.referral_code and len(player.referral_code) == settings.referral_code_length
            assert player.preferences["locale"] == "en"

            land = await db.get(LandAsset, (WALLET, STARTER_LAND_ID))
            assert land.capacity == settings.starter_land_capacity
            assert land.assigned_bot_ids == []

            bot = await db.get(BotAsset, (WALLET, STARTER_BOT_ID))
            assert bot.assigned_land_id is None
            assert bot.bot_type == settings.starter_bot_type

            result = await db.execute(
                select(ActivityEvent).where(ActivityEvent.wallet_address == WALLET)
            )
            (activity,) = result.scalars().all()
            assert activity.activity_type == "registration"
            assert activity.activity_metadata["starterPack"]["tokens"] == settings.starter_tokens

        (update,) = await pop_events()
        assert update.kind is ChangeKind.UPDATED
        assert update.before["initializedAt"] is None
        assert update.after["initializedAt"] is not None

    async def test_replay_is_noop(self, session_factory, settings, pop_events) -> None:
        async with session_factory() as db:
            await register_player(db, WALLET)
            await db.commit()
        (created,) = await pop_events()

        async with session_factory() as db:
            assert await initialize_player(db, created, settings) is True
        async with session_factory() as db:
            assert await initialize_player(db, created, settings) is False

        async with session_factory() as db:
            assert await _count(db, LandAsset, LandAsset.wallet_address == WALLET) == 1
            assert await _count(db, BotAsset, BotAsset.wallet_address == WALLET) == 1
            assert await _count(db, ActivityEvent, ActivityEvent.activity_type == "registration") == 1
        assert len(await pop_events()) == 1

    async def test_rerun_without_marker_does_not_duplicate(self, session_factory, settings, pop_events) -> None:
        """Starter assets use fixed ids, so even a second full grant overwrites."""
        async with session_factory() as db:
            await register_player(db, WALLET)
            await db.commit()
        (created,) = await pop_events()

        async with session_factory() as db:
            await initialize_player(db, created, settings)
        async with session_factory() as db:
            player = await db.get(Player, WALLET)
            code = player.referral_code
            player.initialized_at = None
            await db.commit()
        async with session_factory() as db:
            assert await initialize_player(db, created, settings) is True

        async with session_factory() as db:
            assert await _count(db, LandAsset, LandAsset.wallet_address == WALLET) == 1
            assert await _count(db, BotAsset, BotAsset.wallet_address == WALLET) == 1
            assert await _count(db, ActivityEvent, ActivityEvent.wallet_address == WALLET) == 1
            player = await db.get(Player, WALLET)
            assert player.referral_code == code

    async def test_missing_player_is_skipped(self, session_factory, settings) -> None:
        event = ChangeEvent(
            event_id="ghost",
            collection=Collection.PLAYERS,
            kind=ChangeKind.CREATED,
            wallet_address=WALLET,
            document_id=WALLET,
            after={"walletAddress": WALLET},
        )
        async with session_factory() as db:
            assert await initialize_player(db, event, settings) is False
            assert await _count(db, LandAsset) == 0

    async def test_event_without_data_is_skipped(self, session_factory, settings) -> None:
        event = ChangeEvent(
            event_id="empty",
            collection=Collection.PLAYERS,
            kind=ChangeKind.CREATED,
            wallet_address=WALLET,
            document_id=WALLET,
        )
        async with session_factory() as db:
            assert await initialize_player(db, event, settings) is False
