"""Redis Stream consumer for document change events.

Reads ``changes:players`` and ``changes:bots`` with XREADGROUP in the
'orangefarm-pipeline' consumer group and routes each event to the
progression handlers:

    players/created -> initialize_player
    players/updated -> process_harvest, then pay_achievement_rewards
    bots/updated    -> sync_bot_assignment

A message is acknowledged only after every handler for it has committed.
When a handler raises, the message stays pending and is picked up again by
``reclaim_pending``; handlers are idempotent, so that replay is safe.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

import redis.asyncio as aioredis
from pydantic import ValidationError

from orangefarm.handlers import (
    initialize_player,
    pay_achievement_rewards,
    process_harvest,
    sync_bot_assignment,
)
from orangefarm.pipeline.outbox import STREAMS
from orangefarm.pipeline.schemas import ChangeEvent, ChangeKind, Collection

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from orangefarm.config import Settings

logger = logging.getLogger(__name__)

CONSUMER_GROUP = "orangefarm-pipeline"

Handler = Callable[["AsyncSession", ChangeEvent, "Settings"], Awaitable[Any]]

ROUTES: dict[tuple[Collection, ChangeKind], tuple[Handler, ...]] = {
    (Collection.PLAYERS, ChangeKind.CREATED): (initialize_player,),
    (Collection.PLAYERS, ChangeKind.UPDATED): (process_harvest, pay_achievement_rewards),
    (Collection.BOTS, ChangeKind.UPDATED): (sync_bot_assignment,),
}


def parse_event(fields: dict[str, Any]) -> ChangeEvent | None:
    """Decode a stream message into a ChangeEvent (None if malformed)."""
    raw = fields.get("data")
    if raw is None:
        return None
    try:
        payload = json.loads(raw) if isinstance(raw, (str, bytes)) else dict(raw)
        return ChangeEvent.model_validate(payload)
    except (json.JSONDecodeError, ValidationError, TypeError, ValueError):
        return None


class ChangeFeedConsumer:
    """Dispatches change events from Redis Streams to the handlers."""

    def __init__(
        self,
        redis_client: aioredis.Redis,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
        consumer_name: str | None = None,
    ) -> None:
        self.redis = redis_client
        self.session_factory = session_factory
        self.settings = settings
        self.consumer_name = consumer_name or settings.change_consumer_name
        self._running = False
        self._processed = 0
        self._errors = 0

    async def setup_groups(self) -> None:
        """Create consumer groups for all change streams (idempotent)."""
        for stream in STREAMS.values():
            try:
                await self.redis.xgroup_create(stream, CONSUMER_GROUP, id="0", mkstream=True)
                logger.info("Created consumer group for %s", stream)
            except aioredis.ResponseError as e:
                if "BUSYGROUP" not in str(e):
                    raise

    async def dispatch(self, event: ChangeEvent) -> None:
        """Run every handler routed for this event, each in its own transaction."""
        handlers = ROUTES.get((event.collection, event.kind), ())
        for handler in handlers:
            async with self.session_factory() as db:
                await handler(db, event, self.settings)

    async def _handle_message(self, stream: str, msg_id: str, fields: dict[str, Any]) -> bool:
        event = parse_event(fields)
        if event is None:
            # Nothing to reconcile; ack so the poison message is not redelivered forever.
            logger.error("Dropping malformed change event %s from %s", msg_id, stream)
            await self.redis.xack(stream, CONSUMER_GROUP, msg_id)
            return False

        try:
            await self.dispatch(event)
        except Exception:
            self._errors += 1
            logger.exception("Error handling %s message %s (event=%s)", stream, msg_id, event.event_id)
            return False

        await self.redis.xack(stream, CONSUMER_GROUP, msg_id)
        self._processed += 1
        return True

    async def consume(self, count: int | None = None, block_ms: int | None = None) -> int:
        """Read and process a batch of new events from all change streams.

        Returns:
            Number of events processed.
        """
        streams = {s: ">" for s in STREAMS.values()}
        try:
            events = await self.redis.xreadgroup(
                groupname=CONSUMER_GROUP,
                consumername=self.consumer_name,
                streams=streams,
                count=count or self.settings.change_batch_size,
                block=self.settings.change_block_ms if block_ms is None else block_ms,
            )
        except aioredis.ResponseError as e:
            logger.error("XREADGROUP error: %s", e)
            return 0

        if not events:
            return 0

        processed = 0
        for stream_name, messages in events:
            stream_str = stream_name if isinstance(stream_name, str) else stream_name.decode()
            for msg_id, fields in messages:
                if await self._handle_message(stream_str, msg_id, fields):
                    processed += 1
        return processed

    async def reclaim_pending(self, min_idle_ms: int = 60_000, count: int = 100) -> int:
        """Retry messages left pending by a failed or crashed handler run."""
        processed = 0
        for stream in STREAMS.values():
            try:
                claimed = await self.redis.xautoclaim(
                    stream,
                    CONSUMER_GROUP,
                    self.consumer_name,
                    min_idle_time=min_idle_ms,
                    start_id="0-0",
                    count=count,
                )
            except aioredis.ResponseError as e:
                logger.error("XAUTOCLAIM error on %s: %s", stream, e)
                continue

            messages = claimed[1] if len(claimed) > 1 else []
            for msg_id, fields in messages:
                if fields is None:
                    continue
                if await self._handle_message(stream, msg_id, fields):
                    processed += 1
        return processed

    async def run(self) -> None:
        """Main consumer loop. Runs until stop() is called."""
        await self.setup_groups()
        self._running = True
        logger.info("Change feed consumer started (consumer=%s)", self.consumer_name)

        while self._running:
            try:
                await self.reclaim_pending()
                await self.consume()
            except Exception:
                logger.exception("Consumer loop error")
                await asyncio.sleep(1)

    def stop(self) -> None:
        """Signal the consumer to stop."""
        self._running = False

    @property
    def stats(self) -> dict[str, int]:
        return {"processed": self._processed, "errors": self._errors}
