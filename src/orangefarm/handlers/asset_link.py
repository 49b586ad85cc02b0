"""Asset-link consistency: keeps ``lands.assigned_bot_ids`` mirroring bot pointers."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from orangefarm.config import Settings
from orangefarm.db.models import LandAsset
from orangefarm.pipeline.activity_service import record_activity
from orangefarm.pipeline.documents import lock_bot, lock_land, union_ids, without_ids
from orangefarm.pipeline.schemas import ChangeEvent

logger = structlog.get_logger()


async def sync_bot_assignment(
    db: AsyncSession,
    event: ChangeEvent,
    settings: Settings | None = None,  # noqa: ARG001
) -> bool:
    """React to a bot's ``assignedLandId`` changing.

    Removal and addition are set operations, and both are checked against
    the bot's *stored* pointer: a land only gains the bot if the bot still
    points at it, and only loses it if the bot no longer does. Stale or
    reordered deliveries therefore converge on the stored pointer. The
    activity entry still records the transition this event observed, so
    feed order can differ from wall-clock order under reordering.

    Capacity is advisory: an over-subscribed land is logged, never rejected.
    Returns True if the event was applied.
    """
    wallet = event.wallet_address
    bot_id = event.document_id
    before = event.bot_before()
    after = event.bot_after()
    if before is None or after is None:
        logger.error("bot_assign_missing_snapshot", wallet=wallet, bot_id=bot_id, event_id=event.event_id)
        return False

    old_land_id = before.assigned_land_id or None
    new_land_id = after.assigned_land_id or None
    if old_land_id == new_land_id:
        return False

    try:
        bot = await lock_bot(db, wallet, bot_id)
        stored_land_id = (bot.assigned_land_id or None) if bot is not None else None

        # Lock lands in a stable order so concurrent reassignments cannot deadlock.
        lands: dict[str, LandAsset | None] = {}
        for land_id in sorted(x for x in (old_land_id, new_land_id) if x):
            lands[land_id] = await lock_land(db, wallet, land_id)

        if new_land_id is not None and lands[new_land_id] is None:
            logger.error("target_land_not_found", wallet=wallet, bot_id=bot_id, land_id=new_land_id)
            await db.rollback()
            return False

        now = datetime.now(timezone.utc)

        if old_land_id is not None:
            old_land = lands[old_land_id]
            if old_land is None:
                logger.warning("previous_land_not_found", wallet=wallet, bot_id=bot_id, land_id=old_land_id)
            elif stored_land_id != old_land_id:
                old_land.assigned_bot_ids = without_ids(old_land.assigned_bot_ids, bot_id)
                old_land.last_modified = now
                logger.info("bot_removed_from_land", wallet=wallet, bot_id=bot_id, land_id=old_land_id)

        if new_land_id is not None:
            new_land = lands[new_land_id]
            if stored_land_id == new_land_id:
                assigned = union_ids(new_land.assigned_bot_ids, bot_id)
                if len(assigned) > new_land.capacity:
                    logger.warning(
                        "land_over_capacity",
                        wallet=wallet,
                        land_id=new_land_id,
                        capacity=new_land.capacity,
                        assigned=len(assigned),
                    )
                new_land.assigned_bot_ids = assigned
                new_land.last_modified = now
                logger.info("bot_assigned_to_land", wallet=wallet, bot_id=bot_id, land_id=new_land_id)
            else:
                logger.info(
                    "stale_assignment_skipped",
                    wallet=wallet,
                    bot_id=bot_id,
                    land_id=new_land_id,
                    stored_land_id=stored_land_id,
                )

        await record_activity(
            db,
            wallet,
            "assignment",
            f"Bot {bot_id} assigned to land {new_land_id}" if new_land_id else f"Bot {bot_id} unassigned from land",
            metadata={
                "botId": bot_id,
                "oldLandId": old_land_id,
                "newLandId": new_land_id,
                "botType": after.bot_type,
            },
            dedup_key=f"assignment:{event.event_id}",
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("bot_assignment_failed", wallet=wallet, bot_id=bot_id, event_id=event.event_id)
        raise

    return True
