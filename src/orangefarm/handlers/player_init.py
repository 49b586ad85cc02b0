"""Player initialization: grants the starter pack on first registration."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from orangefarm.config import Settings
from orangefarm.db.models import BotAsset, LandAsset
from orangefarm.gamification.level_thresholds import level_for
from orangefarm.pipeline.activity_service import record_activity
from orangefarm.pipeline.documents import STARTER_BOT_ID, STARTER_LAND_ID, lock_player
from orangefarm.pipeline.outbox import record_change
from orangefarm.pipeline.schemas import ChangeEvent, ChangeKind, Collection, PlayerSnapshot
from orangefarm.players.referral_codes import generate_unique_referral_code

logger = structlog.get_logger()

DEFAULT_PREFERENCES = {
    "audioEnabled": True,
    "hapticsEnabled": True,
    "locale": "en",
    "theme": "light",
}


async def initialize_player(db: AsyncSession, event: ChangeEvent, settings: Settings) -> bool:
    """Seed a new player's stats and grant the starter land, bot and welcome event.

    Starter assets are written under the fixed ids ``starter-land`` and
    ``starter-bot`` so a replay overwrites rather than duplicates, and the
    ``initialized_at`` marker set in the same transaction turns later
    replays into no-ops. Returns True if the grant was applied.
    """
    wallet = event.wallet_address
    if event.after is None:
        logger.error("player_create_missing_data", wallet=wallet, event_id=event.event_id)
        return False

    try:
        player = await lock_player(db, wallet)
        if player is None:
            logger.error("player_not_found_for_init", wallet=wallet)
            await db.rollback()
            return False

        if player.initialized_at is not None:
            logger.info("player_already_initialized", wallet=wallet)
            await db.rollback()
            return False

        logger.info("player_init_started", wallet=wallet)
        now = datetime.now(timezone.utc)
        before = PlayerSnapshot.from_model(player)

        if not player.referral_code:
            player.referral_code = await generate_unique_referral_code(db, settings.referral_code_length)

        player.current_oranges = player.current_oranges or 0
        player.lifetime_oranges = player.lifetime_oranges or 0
        player.mock_orange_dao_balance = settings.starter_tokens
        player.water_balance = settings.starter_water
        player.land_count = 1
        player.bot_count = 1
        player.active_bot_capacity = 0
        player.level = level_for(player.lifetime_oranges)
        player.experience_points = player.experience_points or 0

        player.onboarding_step = 0
        player.tutorial_completed = bool(player.tutorial_completed)
        player.achievements = list(player.achievements or [])
        player.rewarded_achievements = list(player.rewarded_achievements or [])
        player.login_streak = 1
        player.last_login = now
        player.last_daily_mint = now
        player.last_harvest = now
        player.preferences = {**DEFAULT_PREFERENCES, **(player.preferences or {})}
        player.initialized_at = now
        player.updated_at = now

        await db.merge(
            LandAsset(
                wallet_address=wallet,
                land_id=STARTER_LAND_ID,
                token_id=0,
                land_type=settings.starter_land_type,
                capacity=settings.starter_land_capacity,
                assigned_bot_ids=[],
                grid_position={"x": 0, "y": 0, "layer": 0},
                purchase_date=now,
                last_modified=now,
            )
        )
        await db.merge(
            BotAsset(
                wallet_address=wallet,
                bot_id=STARTER_BOT_ID,
                token_id=0,
                bot_type=settings.starter_bot_type,
                harvest_rate=settings.starter_bot_harvest_rate,
                water_consumption=settings.starter_bot_water_consumption,
                assigned_land_id=None,
                is_active=False,
                total_harvests=0,
                upgrade_history=[],
                purchase_date=now,
                last_modified=now,
            )
        )

        await record_activity(
            db,
            wallet,
            "registration",
            "Welcome to Orange Farm! You received starter assets.",
            metadata={
                "starterPack": {
                    "tokens": settings.starter_tokens,
                    "water": settings.starter_water,
                    "land": 1,
                    "bots": 1,
                },
            },
            dedup_key=f"registration:{wallet}",
        )

        await db.flush()
        await record_change(
            db,
            Collection.PLAYERS,
            ChangeKind.UPDATED,
            wallet,
            wallet,
            before=before.to_document(),
            after=PlayerSnapshot.from_model(player).to_document(),
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("player_init_failed", wallet=wallet)
        raise

    logger.info("player_init_complete", wallet=wallet, referral_code=player.referral_code)
    return True
