"""Shared test fixtures."""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from pathlib import Path

import pytest
import pytest_asyncio
import redis.asyncio as aioredis
from fakeredis import FakeServer
from fakeredis.aioredis import FakeRedis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from orangefarm.config import Settings
from orangefarm.db import models  # noqa: F401
from orangefarm.db.base import Base
from orangefarm.db.models import ChangeOutbox
from orangefarm.handlers import initialize_player
from orangefarm.pipeline.outbox import OutboxRelay, event_from_row
from orangefarm.pipeline.schemas import ChangeEvent
from orangefarm.players.service import register_player
from orangefarm.workers.change_consumer import ChangeFeedConsumer
from support import WALLET


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'orangefarm.db'}",
        change_consumer_name="test-consumer-1",
    )


@pytest_asyncio.fixture
async def engine(settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    """SQLite engine with the full schema created."""
    eng = create_async_engine(settings.database_url)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """A direct database session for test setup and assertions."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def redis_client() -> AsyncGenerator[aioredis.Redis, None]:
    """Redis client for stream tests, flushed after use.

    Uses the server at ORANGEFARM_TEST_REDIS_URL when set, otherwise an
    in-process fakeredis server.
    """
    url = os.environ.get("ORANGEFARM_TEST_REDIS_URL")
    if url:
        rc = aioredis.from_url(url, encoding="utf-8", decode_responses=True)
    else:
        rc = FakeRedis(server=FakeServer(), decode_responses=True)
    yield rc
    await rc.flushdb()
    await rc.aclose()


@pytest_asyncio.fixture
async def pg_session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory on PostgreSQL, where row locks are real.

    Skipped unless ORANGEFARM_TEST_DATABASE_URL points at a disposable
    database; its tables are dropped and recreated.
    """
    url = os.environ.get("ORANGEFARM_TEST_DATABASE_URL")
    if not url:
        pytest.skip("ORANGEFARM_TEST_DATABASE_URL not set")
    eng = create_async_engine(url, pool_size=10, max_overflow=10)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(eng, class_=AsyncSession, expire_on_commit=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await eng.dispose()


@pytest.fixture
def relay(redis_client: aioredis.Redis, session_factory: async_sessionmaker[AsyncSession]) -> OutboxRelay:
    return OutboxRelay(redis_client, session_factory, batch_size=50, stream_maxlen=1000)


@pytest_asyncio.fixture
async def consumer(
    redis_client: aioredis.Redis,
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
) -> ChangeFeedConsumer:
    c = ChangeFeedConsumer(redis_client, session_factory, settings)
    await c.setup_groups()
    return c


@pytest.fixture
def pop_events(session_factory: async_sessionmaker[AsyncSession]) -> Callable[[], Awaitable[list[ChangeEvent]]]:
    """Drain the outbox directly, returning the queued change events in order."""

    async def _pop() -> list[ChangeEvent]:
        async with session_factory() as db:
            result = await db.execute(select(ChangeOutbox).order_by(ChangeOutbox.id.asc()))
            rows = list(result.scalars().all())
            events = [event_from_row(r) for r in rows]
            for row in rows:
                await db.delete(row)
            await db.commit()
        return events

    return _pop


@pytest.fixture
def make_player(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
    pop_events: Callable[[], Awaitable[list[ChangeEvent]]],
) -> Callable[..., Awaitable[None]]:
    """Register a player and run the initialization handler for it.

    Leaves the outbox empty.
    """

    async def _make(wallet: str = WALLET, initialize: bool = True) -> None:
        async with session_factory() as db:
            await register_player(db, wallet)
            await db.commit()
        created = await pop_events()
        if initialize:
            async with session_factory() as db:
                await initialize_player(db, created[0], settings)
            await pop_events()

    return _make
