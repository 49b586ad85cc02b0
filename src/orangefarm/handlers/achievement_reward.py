"""Achievement rewards: pays each achievement's one-time bonus exactly once."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import NamedTuple

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from orangefarm.config import Settings
from orangefarm.gamification.achievements import achievement_label, is_known, reward_for
from orangefarm.pipeline.activity_service import record_activity
from orangefarm.pipeline.documents import added_ids, lock_player, union_ids
from orangefarm.pipeline.outbox import record_change
from orangefarm.pipeline.schemas import ChangeEvent, ChangeKind, Collection, PlayerSnapshot

logger = structlog.get_logger()


class RewardPayment(NamedTuple):
    achievement_id: str
    bonus_oranges: int


async def pay_achievement_rewards(
    db: AsyncSession,
    event: ChangeEvent,
    settings: Settings | None = None,  # noqa: ARG001
) -> list[RewardPayment]:
    """React to ``progression.achievements`` growing on a player update.

    The before/after diff only nominates candidates. Under the player row
    lock each candidate is checked against the stored record: it must be
    present in ``achievements`` and absent from ``rewarded_achievements``.
    The bonus and the ``rewarded_achievements`` entry are written in one
    transaction, so a redelivered event pays nothing.

    Paying a bonus raises ``currentOranges``; the resulting change wakes the
    harvest handler, which may unlock further thresholds. The loop ends
    because each reward-table id can be paid at most once.
    """
    wallet = event.wallet_address
    before = event.player_before()
    after = event.player_after()
    if before is None or after is None:
        logger.error("achievement_missing_snapshot", wallet=wallet, event_id=event.event_id)
        return []

    candidates = added_ids(before.progression.achievements, after.progression.achievements)
    if not candidates:
        return []

    paid: list[RewardPayment] = []
    try:
        player = await lock_player(db, wallet)
        if player is None:
            logger.error("achievement_player_not_found", wallet=wallet)
            await db.rollback()
            return []

        snapshot_before = PlayerSnapshot.from_model(player)

        for achievement in candidates:
            if achievement not in (player.achievements or []):
                logger.warning("achievement_not_persisted", wallet=wallet, achievement=achievement)
                continue
            if achievement in (player.rewarded_achievements or []):
                logger.info("achievement_reward_already_paid", wallet=wallet, achievement=achievement)
                continue

            bonus = reward_for(achievement)
            if not is_known(achievement):
                logger.info("achievement_unknown_no_reward", wallet=wallet, achievement=achievement)
            player.rewarded_achievements = union_ids(player.rewarded_achievements, achievement)
            if bonus > 0:
                player.current_oranges = (player.current_oranges or 0) + bonus
                player.lifetime_oranges = (player.lifetime_oranges or 0) + bonus
                logger.info("achievement_bonus_awarded", wallet=wallet, achievement=achievement, bonus_oranges=bonus)

            await record_activity(
                db,
                wallet,
                "achievement",
                f"Achievement unlocked: {achievement_label(achievement)}",
                metadata={
                    "achievement": achievement,
                    "bonusOranges": bonus,
                    "totalAchievements": len(player.achievements or []),
                },
                dedup_key=f"achievement-reward:{wallet}:{achievement}",
            )
            paid.append(RewardPayment(achievement, bonus))

        if paid:
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
        logger.exception("achievement_reward_failed", wallet=wallet, event_id=event.event_id)
        raise

    return paid
