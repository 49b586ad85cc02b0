"""Document snapshots and the change-event envelope.

Snapshots serialize to the document shape (camelCase keys) so a change event
carries exactly what a reader of ``players/{wallet}`` or
``assets/{wallet}/bots/{botId}`` would see:

{
    "eventId": "<hex>",
    "collection": "players",
    "kind": "updated",
    "walletAddress": "0x...",
    "documentId": "0x...",
    "before": {...},
    "after": {...}
}
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from orangefarm.db.models import BotAsset, Player


class Collection(str, Enum):
    """Collections whose writes are published on the change feed."""

    PLAYERS = "players"
    BOTS = "bots"


class ChangeKind(str, Enum):
    CREATED = "created"
    UPDATED = "updated"


class DocumentModel(BaseModel):
    """Base for document-shaped models: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class PlayerStats(DocumentModel):
    current_oranges: int = 0
    lifetime_oranges: int = 0
    mock_orange_dao_balance: int = 0
    water_balance: int = 0
    land_count: int = 0
    bot_count: int = 0
    active_bot_capacity: int = 0
    level: int = 1
    experience_points: int = 0


class PlayerProgression(DocumentModel):
    onboarding_step: int = 0
    tutorial_completed: bool = False
    achievements: list[str] = Field(default_factory=list)
    rewarded_achievements: list[str] = Field(default_factory=list)
    login_streak: int = 0
    last_login: datetime | None = None
    last_daily_mint: datetime | None = None
    last_harvest: datetime | None = None


class PlayerSnapshot(DocumentModel):
    """Point-in-time view of ``players/{wallet}``."""

    wallet_address: str
    username: str | None = None
    referral_code: str | None = None
    stats: PlayerStats = Field(default_factory=PlayerStats)
    progression: PlayerProgression = Field(default_factory=PlayerProgression)
    preferences: dict[str, Any] = Field(default_factory=dict)
    initialized_at: datetime | None = None

    @classmethod
    def from_model(cls, player: Player) -> PlayerSnapshot:
        return cls(
            wallet_address=player.wallet_address,
            username=player.username,
            referral_code=player.referral_code,
            stats=PlayerStats(
                current_oranges=player.current_oranges or 0,
                lifetime_oranges=player.lifetime_oranges or 0,
                mock_orange_dao_balance=player.mock_orange_dao_balance or 0,
                water_balance=player.water_balance or 0,
                land_count=player.land_count or 0,
                bot_count=player.bot_count or 0,
                active_bot_capacity=player.active_bot_capacity or 0,
                level=player.level or 1,
                experience_points=player.experience_points or 0,
            ),
            progression=PlayerProgression(
                onboarding_step=player.onboarding_step or 0,
                tutorial_completed=bool(player.tutorial_completed),
                achievements=list(player.achievements or []),
                rewarded_achievements=list(player.rewarded_achievements or []),
                login_streak=player.login_streak or 0,
                last_login=player.last_login,
                last_daily_mint=player.last_daily_mint,
                last_harvest=player.last_harvest,
            ),
            preferences=dict(player.preferences or {}),
            initialized_at=player.initialized_at,
        )


class BotSnapshot(DocumentModel):
    """Point-in-time view of ``assets/{wallet}/bots/{botId}``."""

    wallet_address: str
    bot_id: str
    bot_type: str = "basic"
    harvest_rate: int = 1
    water_consumption: int = 1
    assigned_land_id: str | None = None
    is_active: bool = False

    @classmethod
    def from_model(cls, bot: BotAsset) -> BotSnapshot:
        return cls(
            wallet_address=bot.wallet_address,
            bot_id=bot.bot_id,
            bot_type=bot.bot_type,
            harvest_rate=bot.harvest_rate,
            water_consumption=bot.water_consumption,
            assigned_land_id=bot.assigned_land_id or None,
            is_active=bool(bot.is_active),
        )


class ChangeEvent(DocumentModel):
    """Envelope for one observed document write (before/after pair)."""

    event_id: str
    collection: Collection
    kind: ChangeKind
    wallet_address: str
    document_id: str
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None

    def player_before(self) -> PlayerSnapshot | None:
        return PlayerSnapshot.model_validate(self.before) if self.before else None

    def player_after(self) -> PlayerSnapshot | None:
        return PlayerSnapshot.model_validate(self.after) if self.after else None

    def bot_before(self) -> BotSnapshot | None:
        return BotSnapshot.model_validate(self.before) if self.before else None

    def bot_after(self) -> BotSnapshot | None:
        return BotSnapshot.model_validate(self.after) if self.after else None
