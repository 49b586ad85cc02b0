"""Player activity feed (``activities/{wallet}/events``)."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from orangefarm.db.models import ActivityEvent


async def has_activity(db: AsyncSession, dedup_key: str) -> bool:
    """Check whether an activity with this dedup key was already appended."""
    result = await db.execute(
        select(ActivityEvent.id).where(ActivityEvent.dedup_key == dedup_key)
    )
    return result.scalar_one_or_none() is not None


async def record_activity(
    db: AsyncSession,
    wallet_address: str,
    activity_type: str,
    description: str,
    metadata: dict[str, Any] | None = None,
    dedup_key: str | None = None,
) -> ActivityEvent | None:
    """Append an activity event.

    When ``dedup_key`` is given the append happens at most once per key;
    a repeat returns None. The UNIQUE constraint on ``dedup_key`` backs this
    up if two writers race past the check.
    """
    if dedup_key is not None and await has_activity(db, dedup_key):
        return None

    activity = ActivityEvent(
        wallet_address=wallet_address,
        activity_type=activity_type,
        description=description,
        activity_metadata=metadata or {},
        dedup_key=dedup_key,
        created_at=datetime.now(timezone.utc),
    )
    db.add(activity)
    await db.flush()
    return activity


async def get_activity_feed(
    db: AsyncSession,
    wallet_address: str,
    page: int = 1,
    per_page: int = 20,
    activity_type: str | None = None,
) -> tuple[list[ActivityEvent], int]:
    """Get a player's activity feed, newest first (paginated)."""
    offset = (page - 1) * per_page

    filters = [ActivityEvent.wallet_address == wallet_address]
    if activity_type is not None:
        filters.append(ActivityEvent.activity_type == activity_type)

    total_result = await db.execute(
        select(func.count()).select_from(ActivityEvent).where(*filters)
    )
    total = total_result.scalar_one()

    result = await db.execute(
        select(ActivityEvent)
        .where(*filters)
        .order_by(ActivityEvent.created_at.desc())
        .offset(offset)
        .limit(per_page)
    )
    activities = list(result.scalars().all())
    return activities, total
