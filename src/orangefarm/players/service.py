"""Player and asset writes.

These are the writes the game client performs through the API. Each one
runs as a single-document read-modify-write and queues a change event in
the same transaction, which is what wakes the progression handlers.
Callers own the transaction and commit.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orangefarm.db.models import BotAsset, LandAsset, Player
from orangefarm.exceptions import AssetNotFoundError, InvalidInputError, PlayerNotFoundError
from orangefarm.pipeline.documents import lock_bot, lock_player, union_ids
from orangefarm.pipeline.outbox import record_change
from orangefarm.pipeline.schemas import BotSnapshot, ChangeKind, Collection, PlayerSnapshot
from orangefarm.players.wallet import normalize_wallet

logger = structlog.get_logger()


async def get_player(db: AsyncSession, wallet_address: str) -> Player | None:
    """Fetch a player by wallet (any casing)."""
    result = await db.execute(
        select(Player).where(Player.wallet_address == normalize_wallet(wallet_address))
    )
    return result.scalar_one_or_none()


async def get_player_snapshot(db: AsyncSession, wallet_address: str) -> PlayerSnapshot | None:
    player = await get_player(db, wallet_address)
    return PlayerSnapshot.from_model(player) if player else None


async def register_player(
    db: AsyncSession,
    wallet_address: str,
    username: str | None = None,
    referred_by: str | None = None,
) -> tuple[Player, bool]:
    """Get or create the player record. Returns (player, created).

    Only a first creation emits a ``created`` change; the starter pack is
    granted by the initialization handler reacting to it.
    """
    wallet = normalize_wallet(wallet_address)
    result = await db.execute(select(Player).where(Player.wallet_address == wallet))
    player = result.scalar_one_or_none()
    if player is not None:
        return player, False

    now = datetime.now(timezone.utc)
    player = Player(
        wallet_address=wallet,
        username=username,
        referred_by=normalize_wallet(referred_by) if referred_by else None,
        achievements=[],
        rewarded_achievements=[],
        preferences={},
        created_at=now,
        updated_at=now,
    )
    db.add(player)
    await db.flush()

    await record_change(
        db,
        Collection.PLAYERS,
        ChangeKind.CREATED,
        wallet,
        wallet,
        before=None,
        after=PlayerSnapshot.from_model(player).to_document(),
    )
    logger.info("player_registered", wallet=wallet)
    return player, True


async def _locked_player(db: AsyncSession, wallet_address: str) -> Player:
    wallet = normalize_wallet(wallet_address)
    player = await lock_player(db, wallet)
    if player is None:
        raise PlayerNotFoundError(f"Player {wallet} not found", details={"walletAddress": wallet})
    return player


async def _queue_player_update(db: AsyncSession, player: Player, before: PlayerSnapshot) -> None:
    player.updated_at = datetime.now(timezone.utc)
    await db.flush()
    await record_change(
        db,
        Collection.PLAYERS,
        ChangeKind.UPDATED,
        player.wallet_address,
        player.wallet_address,
        before=before.to_document(),
        after=PlayerSnapshot.from_model(player).to_document(),
    )


async def credit_harvest(db: AsyncSession, wallet_address: str, amount: int) -> Player:
    """Credit harvested oranges to both current and lifetime totals."""
    if amount <= 0:
        raise InvalidInputError("Harvest amount must be positive", details={"amount": amount})

    player = await _locked_player(db, wallet_address)
    before = PlayerSnapshot.from_model(player)

    player.current_oranges = (player.current_oranges or 0) + amount
    player.lifetime_oranges = (player.lifetime_oranges or 0) + amount
    player.last_harvest = datetime.now(timezone.utc)

    await _queue_player_update(db, player, before)
    return player


async def spend_oranges(db: AsyncSession, wallet_address: str, amount: int) -> Player:
    """Debit current oranges. Lifetime oranges never decrease."""
    if amount <= 0:
        raise InvalidInputError("Spend amount must be positive", details={"amount": amount})

    player = await _locked_player(db, wallet_address)
    if (player.current_oranges or 0) < amount:
        raise InvalidInputError(
            "Insufficient oranges",
            details={"balance": player.current_oranges, "amount": amount},
        )
    before = PlayerSnapshot.from_model(player)
    player.current_oranges -= amount

    await _queue_player_update(db, player, before)
    return player


async def grant_achievement(db: AsyncSession, wallet_address: str, achievement_id: str) -> bool:
    """Unlock a non-threshold achievement (e.g. ``complete_tutorial``).

    Returns False if the player already had it.
    """
    player = await _locked_player(db, wallet_address)
    if achievement_id in (player.achievements or []):
        return False

    before = PlayerSnapshot.from_model(player)
    player.achievements = union_ids(player.achievements, achievement_id)
    if achievement_id == "complete_tutorial":
        player.tutorial_completed = True

    await _queue_player_update(db, player, before)
    return True


async def assign_bot(
    db: AsyncSession,
    wallet_address: str,
    bot_id: str,
    land_id: str | None,
) -> BotAsset:
    """Point a bot at a land (or unassign it with ``land_id=None``).

    Only the bot document is written here; the land's ``assigned_bot_ids``
    mirror is maintained by the asset-link handler.
    """
    wallet = normalize_wallet(wallet_address)
    bot = await lock_bot(db, wallet, bot_id)
    if bot is None:
        raise AssetNotFoundError(f"Bot {bot_id} not found", details={"botId": bot_id})

    new_land_id = land_id or None
    if new_land_id is not None:
        land = await db.get(LandAsset, (wallet, new_land_id))
        if land is None:
            raise AssetNotFoundError(f"Land {new_land_id} not found", details={"landId": new_land_id})

    if (bot.assigned_land_id or None) == new_land_id:
        return bot

    before = BotSnapshot.from_model(bot)
    bot.assigned_land_id = new_land_id
    bot.last_modified = datetime.now(timezone.utc)
    await db.flush()

    await record_change(
        db,
        Collection.BOTS,
        ChangeKind.UPDATED,
        wallet,
        bot_id,
        before=before.to_document(),
        after=BotSnapshot.from_model(bot).to_document(),
    )
    return bot
