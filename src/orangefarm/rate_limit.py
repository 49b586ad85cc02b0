"""Sliding-window rate limiting with block escalation.

State per identifier (``rate_limits/{identifier}``):

    absent  --first attempt-------------------------> open (attempts=1)
    open    --attempt in window, under max----------> open (attempts+1)
    open    --attempt in window, over max-----------> blocked
    open    --attempt after the window elapsed------> open (fresh, attempts=1)
    blocked --attempt before last + block duration--> blocked (denied)
    blocked --attempt after the block elapsed-------> open (fresh, attempts=1)

Each check is one read-modify-write transaction holding a row lock on the
record. If the store itself fails the check returns True: availability is
preferred over strict limiting.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from orangefarm.db.models import RateLimitRecord
from orangefarm.exceptions import TooManyAttemptsError
from orangefarm.players.wallet import normalize_wallet

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from orangefarm.config import Settings

logger = structlog.get_logger()


def _now_ms() -> int:
    return int(time.time() * 1000)


class RateLimiter:
    """Document-store backed rate limiter."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self.session_factory = session_factory
        self.clock = clock

    async def check(
        self,
        identifier: str,
        max_attempts: int,
        window_ms: int,
        block_duration_ms: int | None = None,
        *,
        now_ms: int | None = None,
    ) -> bool:
        """Record an attempt and return whether it is allowed.

        ``block_duration_ms`` defaults to twice the window.
        """
        now = self.clock() if now_ms is None else now_ms
        block_ms = block_duration_ms if block_duration_ms is not None else window_ms * 2

        for attempt in range(2):
            try:
                return await self._apply(identifier, max_attempts, window_ms, block_ms, now)
            except IntegrityError:
                # Two first attempts raced on the insert; the retry sees the row.
                if attempt == 0:
                    continue
                logger.error("rate_limit_check_failed", identifier=identifier, exc_info=True)
                return True
            except (SQLAlchemyError, OSError, asyncio.TimeoutError):
                # Driver-level connect failures (e.g. asyncpg refused) arrive unwrapped.
                logger.error("rate_limit_check_failed", identifier=identifier, exc_info=True)
                return True
        return True

    async def _apply(
        self,
        identifier: str,
        max_attempts: int,
        window_ms: int,
        block_ms: int,
        now: int,
    ) -> bool:
        async with self.session_factory() as db:
            result = await db.execute(
                select(RateLimitRecord)
                .where(RateLimitRecord.identifier == identifier)
                .with_for_update()
            )
            record = result.scalar_one_or_none()

            if record is None:
                db.add(
                    RateLimitRecord(
                        identifier=identifier,
                        attempts=1,
                        first_attempt=now,
                        last_attempt=now,
                        blocked=False,
                        window_ms=window_ms,
                    )
                )
                await db.commit()
                return True

            if record.blocked:
                block_expiry = record.last_attempt + block_ms
                if now < block_expiry:
                    await db.rollback()
                    logger.warning("rate_limit_blocked", identifier=identifier, expires_in_ms=block_expiry - now)
                    return False
                _reset(record, now, window_ms)
                await db.commit()
                return True

            if record.first_attempt < now - window_ms:
                _reset(record, now, window_ms)
                await db.commit()
                return True

            attempts = record.attempts + 1
            record.attempts = attempts
            record.last_attempt = now
            if attempts > max_attempts:
                record.blocked = True
                await db.commit()
                logger.warning("rate_limit_exceeded", identifier=identifier, attempts=attempts)
                return False

            await db.commit()
            return True

    async def status(self, identifier: str) -> RateLimitRecord | None:
        """Current record for an identifier, or None if it has never been seen."""
        async with self.session_factory() as db:
            return await db.get(RateLimitRecord, identifier)

    async def clear(self, identifier: str) -> None:
        """Administrative reset: forget an identifier entirely."""
        async with self.session_factory() as db:
            await db.execute(delete(RateLimitRecord).where(RateLimitRecord.identifier == identifier))
            await db.commit()
        logger.info("rate_limit_cleared", identifier=identifier)


def _reset(record: RateLimitRecord, now: int, window_ms: int) -> None:
    record.attempts = 1
    record.first_attempt = now
    record.last_attempt = now
    record.blocked = False
    record.window_ms = window_ms


async def auth_rate_limit(limiter: RateLimiter, wallet_address: str, settings: Settings) -> None:
    """Gate an authentication attempt for a wallet.

    Raises:
        TooManyAttemptsError: If the wallet is over its attempt limit or blocked.
    """
    wallet = normalize_wallet(wallet_address)
    allowed = await limiter.check(
        f"auth:{wallet}",
        settings.rate_limit_auth_max_attempts,
        settings.rate_limit_auth_window_ms,
        settings.rate_limit_auth_block_ms,
    )
    if not allowed:
        minutes = max(settings.rate_limit_auth_block_ms // 60_000, 1)
        raise TooManyAttemptsError(
            f"Too many authentication attempts. Please try again in {minutes} minutes.",
            details={"walletAddress": wallet},
        )
