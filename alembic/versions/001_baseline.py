"""Baseline: player, asset, activity, rate-limit and change-outbox tables.

Revision ID: 001_baseline
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_baseline"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Players ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS players (
            wallet_address VARCHAR(42) PRIMARY KEY,
            username VARCHAR(32),
            referral_code VARCHAR(32) UNIQUE,
            referred_by VARCHAR(42),
            current_oranges BIGINT NOT NULL DEFAULT 0,
            lifetime_oranges BIGINT NOT NULL DEFAULT 0,
            mock_orange_dao_balance BIGINT NOT NULL DEFAULT 0,
            water_balance INTEGER NOT NULL DEFAULT 0,
            land_count INTEGER NOT NULL DEFAULT 0,
            bot_count INTEGER NOT NULL DEFAULT 0,
            active_bot_capacity INTEGER NOT NULL DEFAULT 0,
            level INTEGER NOT NULL DEFAULT 1,
            experience_points BIGINT NOT NULL DEFAULT 0,
            onboarding_step INTEGER NOT NULL DEFAULT 0,
            tutorial_completed BOOLEAN NOT NULL DEFAULT false,
            achievements JSONB NOT NULL DEFAULT '[]',
            rewarded_achievements JSONB NOT NULL DEFAULT '[]',
            login_streak INTEGER NOT NULL DEFAULT 0,
            last_login TIMESTAMPTZ,
            last_daily_mint TIMESTAMPTZ,
            last_harvest TIMESTAMPTZ,
            preferences JSONB NOT NULL DEFAULT '{}',
            initialized_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Assets ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS lands (
            wallet_address VARCHAR(42) NOT NULL,
            land_id VARCHAR(64) NOT NULL,
            token_id BIGINT NOT NULL DEFAULT 0,
            land_type VARCHAR(16) NOT NULL,
            capacity INTEGER NOT NULL,
            assigned_bot_ids JSONB NOT NULL DEFAULT '[]',
            grid_position JSONB NOT NULL DEFAULT '{}',
            purchase_date TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            last_modified TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            PRIMARY KEY (wallet_address, land_id)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS bots (
            wallet_address VARCHAR(42) NOT NULL,
            bot_id VARCHAR(64) NOT NULL,
            token_id BIGINT NOT NULL DEFAULT 0,
            bot_type VARCHAR(16) NOT NULL,
            harvest_rate INTEGER NOT NULL DEFAULT 1,
            water_consumption INTEGER NOT NULL DEFAULT 1,
            assigned_land_id VARCHAR(64),
            is_active BOOLEAN NOT NULL DEFAULT false,
            total_harvests INTEGER NOT NULL DEFAULT 0,
            upgrade_history JSONB NOT NULL DEFAULT '[]',
            purchase_date TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            last_modified TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            PRIMARY KEY (wallet_address, bot_id)
        )
    """)

    # --- Activity feed ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS activity_events (
            id VARCHAR(32) PRIMARY KEY,
            wallet_address VARCHAR(42) NOT NULL,
            activity_type VARCHAR(32) NOT NULL,
            description TEXT NOT NULL,
            metadata JSONB NOT NULL DEFAULT '{}',
            dedup_key VARCHAR(200) UNIQUE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_activity_events_wallet_address
        ON activity_events(wallet_address)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_activity_events_created_at
        ON activity_events(created_at)
    """)

    # --- Rate limits ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS rate_limits (
            identifier VARCHAR(200) PRIMARY KEY,
            attempts INTEGER NOT NULL,
            first_attempt BIGINT NOT NULL,
            last_attempt BIGINT NOT NULL,
            blocked BOOLEAN NOT NULL DEFAULT false,
            window_ms BIGINT NOT NULL
        )
    """)

    # --- Change outbox ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS change_outbox (
            id BIGSERIAL PRIMARY KEY,
            event_id VARCHAR(32) UNIQUE NOT NULL,
            collection VARCHAR(32) NOT NULL,
            kind VARCHAR(16) NOT NULL,
            wallet_address VARCHAR(42) NOT NULL,
            document_id VARCHAR(64) NOT NULL,
            before JSONB,
            after JSONB,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)


def downgrade() -> None:
    for table in ["change_outbox", "rate_limits", "activity_events", "bots", "lands", "players"]:
        op.execute(f"DROP TABLE IF EXISTS {table}")  # noqa: S608
