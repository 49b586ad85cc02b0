"""Document paths, row locks and set helpers shared by the handlers.

Handlers never coordinate in memory. Every read-modify-write happens in one
transaction that holds ``SELECT ... FOR UPDATE`` on the document rows it
touches, and list-valued fields are treated as sets so that replays and
reordered deliveries converge.
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orangefarm.db.models import BotAsset, LandAsset, Player

STARTER_LAND_ID = "starter-land"
STARTER_BOT_ID = "starter-bot"


def player_path(wallet_address: str) -> str:
    return f"players/{wallet_address}"


def land_path(wallet_address: str, land_id: str) -> str:
    return f"assets/{wallet_address}/lands/{land_id}"


def bot_path(wallet_address: str, bot_id: str) -> str:
    return f"assets/{wallet_address}/bots/{bot_id}"


def activity_path(wallet_address: str, event_id: str) -> str:
    return f"activities/{wallet_address}/events/{event_id}"


def rate_limit_path(identifier: str) -> str:
    return f"rate_limits/{identifier}"


async def lock_player(db: AsyncSession, wallet_address: str) -> Player | None:
    """Load a player row for update (None if absent)."""
    result = await db.execute(
        select(Player)
        .where(Player.wallet_address == wallet_address)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def lock_land(db: AsyncSession, wallet_address: str, land_id: str) -> LandAsset | None:
    """Load a land row for update (None if absent)."""
    result = await db.execute(
        select(LandAsset)
        .where(LandAsset.wallet_address == wallet_address, LandAsset.land_id == land_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def lock_bot(db: AsyncSession, wallet_address: str, bot_id: str) -> BotAsset | None:
    """Load a bot row for update (None if absent)."""
    result = await db.execute(
        select(BotAsset)
        .where(BotAsset.wallet_address == wallet_address, BotAsset.bot_id == bot_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def union_ids(current: Iterable[str] | None, *added: str) -> list[str]:
    """Set-union preserving first-seen order."""
    out = list(dict.fromkeys(current or []))
    for item in added:
        if item not in out:
            out.append(item)
    return out


def without_ids(current: Iterable[str] | None, *removed: str) -> list[str]:
    """Set-difference preserving order."""
    drop = set(removed)
    return [item for item in dict.fromkeys(current or []) if item not in drop]


def added_ids(before: Iterable[str] | None, after: Iterable[str] | None) -> list[str]:
    """Ids present in ``after`` but not in ``before``, in ``after`` order."""
    seen = set(before or [])
    return [item for item in dict.fromkeys(after or []) if item not in seen]
