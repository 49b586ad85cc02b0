"""ORM models for the Orange Farm document collections.

Each table stands in for one document collection:

    players/{wallet}                       -> players
    assets/{wallet}/lands/{landId}         -> lands
    assets/{wallet}/bots/{botId}           -> bots
    activities/{wallet}/events/{autoId}    -> activity_events
    rate_limits/{identifier}               -> rate_limits

``change_outbox`` is the transactional outbox feeding the change streams.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import BigInteger, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from orangefarm.db.base import Base, BigIntPK, JSONType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Players
# ---------------------------------------------------------------------------


class Player(Base):
    """A player keyed by lower-cased wallet address."""

    __tablename__ = "players"

    wallet_address: Mapped[str] = mapped_column(String(42), primary_key=True)
    username: Mapped[str | None] = mapped_column(String(32), nullable=True)
    referral_code: Mapped[str | None] = mapped_column(String(32), nullable=True, unique=True)
    referred_by: Mapped[str | None] = mapped_column(String(42), nullable=True)

    # --- stats ---
    current_oranges: Mapped[int] = mapped_column(BigInteger, default=0, server_default="0")
    lifetime_oranges: Mapped[int] = mapped_column(BigInteger, default=0, server_default="0")
    mock_orange_dao_balance: Mapped[int] = mapped_column(BigInteger, default=0, server_default="0")
    water_balance: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    land_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    bot_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    active_bot_capacity: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    level: Mapped[int] = mapped_column(Integer, default=1, server_default="1")
    experience_points: Mapped[int] = mapped_column(BigInteger, default=0, server_default="0")

    # --- progression ---
    onboarding_step: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    tutorial_completed: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    achievements: Mapped[list[str]] = mapped_column(JSONType, default=list)
    rewarded_achievements: Mapped[list[str]] = mapped_column(JSONType, default=list)
    login_streak: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_daily_mint: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_harvest: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    preferences: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)

    initialized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


# ---------------------------------------------------------------------------
# Assets
# ---------------------------------------------------------------------------


class LandAsset(Base):
    """A land plot owned by a wallet. ``assigned_bot_ids`` mirrors bot pointers."""

    __tablename__ = "lands"

    wallet_address: Mapped[str] = mapped_column(String(42), primary_key=True)
    land_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    token_id: Mapped[int] = mapped_column(BigInteger, default=0, server_default="0")
    land_type: Mapped[str] = mapped_column(String(16), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    assigned_bot_ids: Mapped[list[str]] = mapped_column(JSONType, default=list)
    grid_position: Mapped[dict[str, int]] = mapped_column(JSONType, default=dict)
    purchase_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    last_modified: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class BotAsset(Base):
    """A harvesting bot owned by a wallet, optionally assigned to one land."""

    __tablename__ = "bots"

    wallet_address: Mapped[str] = mapped_column(String(42), primary_key=True)
    bot_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    token_id: Mapped[int] = mapped_column(BigInteger, default=0, server_default="0")
    bot_type: Mapped[str] = mapped_column(String(16), nullable=False)
    harvest_rate: Mapped[int] = mapped_column(Integer, default=1, server_default="1")
    water_consumption: Mapped[int] = mapped_column(Integer, default=1, server_default="1")
    assigned_land_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    total_harvests: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    upgrade_history: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list)
    purchase_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    last_modified: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


# ---------------------------------------------------------------------------
# Activity feed
# ---------------------------------------------------------------------------


class ActivityEvent(Base):
    """Append-only audit trail entry. Never updated once written."""

    __tablename__ = "activity_events"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=lambda: uuid.uuid4().hex)
    wallet_address: Mapped[str] = mapped_column(String(42), nullable=False, index=True)
    activity_type: Mapped[str] = mapped_column(String(32), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    activity_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, default=dict)
    dedup_key: Mapped[str | None] = mapped_column(String(200), nullable=True, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, index=True)


# ---------------------------------------------------------------------------
# Rate limits
# ---------------------------------------------------------------------------


class RateLimitRecord(Base):
    """Sliding-window counter per identifier. Timestamps are epoch milliseconds."""

    __tablename__ = "rate_limits"

    identifier: Mapped[str] = mapped_column(String(200), primary_key=True)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False)
    first_attempt: Mapped[int] = mapped_column(BigInteger, nullable=False)
    last_attempt: Mapped[int] = mapped_column(BigInteger, nullable=False)
    blocked: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    window_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)


# ---------------------------------------------------------------------------
# Change feed outbox
# ---------------------------------------------------------------------------


class ChangeOutbox(Base):
    """Document change waiting to be relayed onto a Redis stream."""

    __tablename__ = "change_outbox"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, default=lambda: uuid.uuid4().hex)
    collection: Mapped[str] = mapped_column(String(32), nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    wallet_address: Mapped[str] = mapped_column(String(42), nullable=False)
    document_id: Mapped[str] = mapped_column(String(64), nullable=False)
    before: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    after: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
