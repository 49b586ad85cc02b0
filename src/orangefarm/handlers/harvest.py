"""Harvest progression: activity, threshold achievements and level-ups."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from orangefarm.config import Settings
from orangefarm.gamification.achievements import thresholds_met
from orangefarm.gamification.level_thresholds import compute_level
from orangefarm.pipeline.activity_service import record_activity
from orangefarm.pipeline.documents import lock_player, union_ids
from orangefarm.pipeline.outbox import record_change
from orangefarm.pipeline.schemas import ChangeEvent, ChangeKind, Collection, PlayerSnapshot

logger = structlog.get_logger()


@dataclass
class HarvestOutcome:
    """What a harvest evaluation changed."""

    oranges_gained: int = 0
    unlocked: list[str] = field(default_factory=list)
    old_level: int | None = None
    new_level: int | None = None

    @property
    def leveled_up(self) -> bool:
        return self.new_level is not None


async def process_harvest(
    db: AsyncSession,
    event: ChangeEvent,
    settings: Settings | None = None,  # noqa: ARG001
) -> HarvestOutcome:
    """React to ``stats.currentOranges`` increasing on a player update.

    Thresholds and level are evaluated against ``lifetimeOranges`` from the
    after-snapshot. Achievement ids are added by set-union and the level is
    recomputed from the lifetime total, so replaying the same event leaves
    the same achievement set and level. Activity appends are keyed by the
    source event so a replay does not duplicate them.
    """
    wallet = event.wallet_address
    before = event.player_before()
    after = event.player_after()
    if before is None or after is None:
        logger.error("harvest_missing_snapshot", wallet=wallet, event_id=event.event_id)
        return HarvestOutcome()

    gained = after.stats.current_oranges - before.stats.current_oranges
    if gained <= 0:
        return HarvestOutcome()

    outcome = HarvestOutcome(oranges_gained=gained)
    lifetime = after.stats.lifetime_oranges

    try:
        player = await lock_player(db, wallet)
        if player is None:
            logger.error("harvest_player_not_found", wallet=wallet)
            await db.rollback()
            return HarvestOutcome()

        snapshot_before = PlayerSnapshot.from_model(player)

        await record_activity(
            db,
            wallet,
            "harvest",
            f"Harvested {gained} orange{'s' if gained > 1 else ''}",
            metadata={
                "orangesGained": gained,
                "currentOranges": after.stats.current_oranges,
                "lifetimeOranges": lifetime,
                "activeBots": after.stats.active_bot_capacity,
                "waterBalance": after.stats.water_balance,
            },
            dedup_key=f"harvest:{event.event_id}",
        )
        logger.info("harvest_logged", wallet=wallet, oranges_gained=gained, total_oranges=after.stats.current_oranges)

        for check in thresholds_met(lifetime):
            if check.achievement_id in (player.achievements or []):
                continue
            player.achievements = union_ids(player.achievements, check.achievement_id)
            outcome.unlocked.append(check.achievement_id)
            await record_activity(
                db,
                wallet,
                "achievement",
                f"Achievement unlocked: {check.name}",
                metadata={
                    "achievement": check.achievement_id,
                    "name": check.name,
                    "threshold": check.threshold,
                },
                dedup_key=f"achievement-unlock:{wallet}:{check.achievement_id}",
            )
            logger.info("achievement_unlocked", wallet=wallet, achievement=check.achievement_id)

        stored_level = player.level or 1
        level_info = compute_level(lifetime)
        new_level = level_info["level"]
        if new_level > stored_level:
            player.level = new_level
            outcome.old_level = stored_level
            outcome.new_level = new_level
            await record_activity(
                db,
                wallet,
                "level_up",
                f"Leveled up to Level {new_level}!",
                metadata={
                    "oldLevel": stored_level,
                    "newLevel": new_level,
                    "lifetimeOranges": lifetime,
                    "nextLevelAt": level_info["next_level_at"],
                },
                dedup_key=f"level_up:{wallet}:{new_level}",
            )
            logger.info("player_leveled_up", wallet=wallet, old_level=stored_level, new_level=new_level)

        if outcome.unlocked or outcome.leveled_up:
            player.updated_at = datetime.now(timezone.utc)
            await db.flush()
            await record_change(
                db,
                Collection.PLAYERS,
                ChangeKind.UPDATED,
                wallet,
                wallet,
                before=snapshot_before.to_document(),
                after=PlayerSnapshot.from_model(player).to_document(),
            )

        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("harvest_processing_failed", wallet=wallet, event_id=event.event_id)
        raise

    return outcome
