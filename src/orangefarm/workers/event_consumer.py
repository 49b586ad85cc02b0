"""arq worker for the progression pipeline.

Runs as a separate process: relays the change outbox onto Redis Streams
and consumes the streams through the progression handlers.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

import redis.asyncio as aioredis
from arq import ArqRedis, cron, func

from orangefarm.config import get_settings
from orangefarm.database import close_db, get_session_factory, init_db
from orangefarm.logging_config import setup_logging
from orangefarm.pipeline.outbox import OutboxRelay
from orangefarm.workers.change_consumer import ChangeFeedConsumer

logger = logging.getLogger(__name__)

LONG_RUNNING_TIMEOUT = timedelta(days=365)

# Fixed ids: arq refuses a second job with an id that is already queued or running.
LOOP_JOBS = {
    "consume_changes": "orangefarm:consume_changes",
    "relay_outbox_forever": "orangefarm:relay_outbox_forever",
}


async def enqueue_pipeline_jobs(arq_redis: ArqRedis) -> int:
    """Queue the long-running consumer and relay loops once per deployment.

    Returns:
        Number of loop jobs newly queued.
    """
    queued = 0
    for function, job_id in LOOP_JOBS.items():
        job = await arq_redis.enqueue_job(function, _job_id=job_id)
        if job is not None:
            queued += 1
    return queued


async def startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Initialize DB + Redis connections and the consumer on worker startup."""
    settings = get_settings()
    setup_logging(settings)
    await init_db(settings.database_url)

    redis_client = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
    )
    session_factory = get_session_factory()

    consumer = ChangeFeedConsumer(redis_client, session_factory, settings)
    await consumer.setup_groups()

    # ctx["redis"] is arq's own pool; the stream client lives beside it.
    ctx["stream_redis"] = redis_client
    ctx["consumer"] = consumer
    ctx["relay"] = OutboxRelay(
        redis_client,
        session_factory,
        batch_size=settings.outbox_relay_batch_size,
        stream_maxlen=settings.change_stream_maxlen,
    )
    queued = await enqueue_pipeline_jobs(ctx["redis"])
    logger.info("Pipeline worker started (consumer=%s, loops queued=%d)", consumer.consumer_name, queued)


async def shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    """Clean up on worker shutdown."""
    consumer: ChangeFeedConsumer | None = ctx.get("consumer")
    if consumer:
        consumer.stop()

    redis_client: aioredis.Redis | None = ctx.get("stream_redis")
    if redis_client:
        await redis_client.aclose()

    await close_db()
    logger.info("Pipeline worker shut down")


async def consume_changes(ctx: dict) -> None:  # type: ignore[type-arg]
    """Main consumer task, runs until shutdown."""
    consumer: ChangeFeedConsumer = ctx["consumer"]
    await consumer.run()


async def relay_outbox(ctx: dict) -> int:  # type: ignore[type-arg]
    """Publish pending document changes to the change streams."""
    relay: OutboxRelay = ctx["relay"]
    count = await relay.drain()
    if count > 0:
        logger.info("Relayed %d change events", count)
    return count


async def relay_outbox_forever(ctx: dict) -> None:  # type: ignore[type-arg]
    """Relay loop for deployments that want sub-second change latency."""
    interval = get_settings().outbox_relay_interval_seconds
    while True:
        try:
            await relay_outbox(ctx)
        except Exception:
            logger.exception("Outbox relay error")
        await asyncio.sleep(interval)


class WorkerSettings:
    """arq worker settings for the progression pipeline."""

    functions = [
        # Loops that never return on their own.
        func(consume_changes, timeout=LONG_RUNNING_TIMEOUT, keep_result=0),
        func(relay_outbox_forever, timeout=LONG_RUNNING_TIMEOUT, keep_result=0),
        relay_outbox,
    ]
    cron_jobs = [
        # Safety net in case the relay loop job is not running
        cron(relay_outbox, second={0, 30}),
    ]
    on_startup = startup
    on_shutdown = shutdown
    max_jobs = 4
    job_timeout = 300
    allow_abort_jobs = True
