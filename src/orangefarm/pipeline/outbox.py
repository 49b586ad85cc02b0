"""Transactional outbox for document changes.

Writers call ``record_change`` inside the same transaction as the document
write, so a committed write always has a pending change row. ``OutboxRelay``
moves pending rows onto Redis Streams and deletes them once published.
A crash between publish and delete republishes the row on the next pass;
consumers are idempotent, so delivery is at-least-once.
"""

from __future__ import annotations

import json
import time
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import delete, select

from orangefarm.db.models import ChangeOutbox
from orangefarm.pipeline.schemas import ChangeEvent, ChangeKind, Collection

if TYPE_CHECKING:
    import redis.asyncio as aioredis
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = structlog.get_logger()

STREAMS: dict[Collection, str] = {
    Collection.PLAYERS: "changes:players",
    Collection.BOTS: "changes:bots",
}


async def record_change(
    db: AsyncSession,
    collection: Collection,
    kind: ChangeKind,
    wallet_address: str,
    document_id: str,
    before: dict[str, Any] | None,
    after: dict[str, Any] | None,
) -> ChangeOutbox:
    """Queue a change event in the caller's transaction."""
    row = ChangeOutbox(
        collection=collection.value,
        kind=kind.value,
        wallet_address=wallet_address,
        document_id=document_id,
        before=before,
        after=after,
    )
    db.add(row)
    await db.flush()
    return row


def event_from_row(row: ChangeOutbox) -> ChangeEvent:
    """Build the wire envelope for an outbox row."""
    return ChangeEvent(
        event_id=row.event_id,
        collection=Collection(row.collection),
        kind=ChangeKind(row.kind),
        wallet_address=row.wallet_address,
        document_id=row.document_id,
        before=row.before,
        after=row.after,
    )


def stream_fields(event: ChangeEvent) -> dict[str, str]:
    """Flatten an event into Redis stream fields (JSON payload under ``data``)."""
    return {
        "event": f"{event.collection.value}.{event.kind.value}",
        "ts": str(time.time()),
        "data": json.dumps(event.to_document()),
    }


class OutboxRelay:
    """Publishes pending outbox rows onto the change streams."""

    def __init__(
        self,
        redis_client: aioredis.Redis,
        session_factory: async_sessionmaker[AsyncSession],
        batch_size: int = 500,
        stream_maxlen: int = 100_000,
    ) -> None:
        self.redis = redis_client
        self.session_factory = session_factory
        self.batch_size = batch_size
        self.stream_maxlen = stream_maxlen
        self._relayed = 0

    async def relay_once(self) -> int:
        """Publish one batch of pending changes. Returns the number relayed."""
        async with self.session_factory() as db:
            result = await db.execute(
                select(ChangeOutbox)
                .order_by(ChangeOutbox.id.asc())
                .limit(self.batch_size)
                .with_for_update(skip_locked=True)
            )
            rows = list(result.scalars().all())
            if not rows:
                return 0

            for row in rows:
                event = event_from_row(row)
                await self.redis.xadd(
                    STREAMS[event.collection],
                    stream_fields(event),
                    maxlen=self.stream_maxlen,
                    approximate=True,
                )

            await db.execute(
                delete(ChangeOutbox).where(ChangeOutbox.id.in_([r.id for r in rows]))
            )
            await db.commit()

        self._relayed += len(rows)
        logger.debug("outbox_relayed", count=len(rows))
        return len(rows)

    async def drain(self) -> int:
        """Relay until the outbox is empty."""
        total = 0
        while True:
            relayed = await self.relay_once()
            if relayed == 0:
                return total
            total += relayed

    @property
    def stats(self) -> dict[str, int]:
        return {"relayed": self._relayed}
