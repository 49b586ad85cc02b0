"""Standalone runner for the progression pipeline.

Relays the change outbox and consumes the change streams in one process,
without arq.

Usage: python -m orangefarm.workers.pipeline_runner
"""

from __future__ import annotations

import asyncio
import logging
import signal

import redis.asyncio as aioredis

from orangefarm.config import get_settings
from orangefarm.database import close_db, get_session_factory, init_db
from orangefarm.logging_config import setup_logging
from orangefarm.pipeline.outbox import OutboxRelay
from orangefarm.workers.change_consumer import ChangeFeedConsumer

logger = logging.getLogger(__name__)


async def relay_loop(relay: OutboxRelay, stop: asyncio.Event, interval: float) -> None:
    """Relay pending outbox rows until stopped."""
    while not stop.is_set():
        try:
            await relay.drain()
        except Exception:
            logger.exception("Outbox relay error")
        try:
            await asyncio.wait_for(stop.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass


async def main() -> None:
    """Run the outbox relay and change consumer until SIGINT/SIGTERM."""
    settings = get_settings()
    setup_logging(settings)
    await init_db(settings.database_url)
    session_factory = get_session_factory()

    redis_client = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
    )

    consumer = ChangeFeedConsumer(redis_client, session_factory, settings)
    relay = OutboxRelay(
        redis_client,
        session_factory,
        batch_size=settings.outbox_relay_batch_size,
        stream_maxlen=settings.change_stream_maxlen,
    )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _stop() -> None:
        consumer.stop()
        stop.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _stop)

    logger.info("Starting pipeline runner (consumer=%s)", consumer.consumer_name)

    try:
        await asyncio.gather(
            consumer.run(),
            relay_loop(relay, stop, settings.outbox_relay_interval_seconds),
        )
    finally:
        await redis_client.aclose()
        await close_db()
        logger.info("Pipeline runner stopped")


if __name__ == "__main__":
    asyncio.run(main())
