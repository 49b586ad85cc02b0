"""Achievement definitions: lifetime-orange thresholds and one-time rewards."""

from __future__ import annotations

from typing import NamedTuple


class ThresholdAchievement(NamedTuple):
    threshold: int
    achievement_id: str
    name: str


# Ordered ascending by threshold.
ACHIEVEMENT_THRESHOLDS: tuple[ThresholdAchievement, ...] = (
    ThresholdAchievement(100, "first_100_oranges", "First 100 Oranges"),
    ThresholdAchievement(1_000, "first_1000_oranges", "First 1,000 Oranges"),
    ThresholdAchievement(10_000, "first_10000_oranges", "First 10,000 Oranges"),
)

# One-time bonus oranges paid when an achievement is unlocked.
ACHIEVEMENT_REWARDS: dict[str, int] = {
    "first_100_oranges": 10,
    "first_1000_oranges": 50,
    "first_10000_oranges": 200,
    "first_bot_upgrade": 25,
    "complete_tutorial": 15,
    "first_referral": 25,
    "ten_harvests": 20,
    "hundred_harvests": 100,
    "master_farmer": 500,
}


def reward_for(achievement_id: str) -> int:
    """Bonus oranges for an achievement (0 for unknown ids)."""
    return ACHIEVEMENT_REWARDS.get(achievement_id, 0)


def thresholds_met(lifetime_oranges: int) -> list[ThresholdAchievement]:
    """Threshold achievements reached at this lifetime total, in table order."""
    return [a for a in ACHIEVEMENT_THRESHOLDS if lifetime_oranges >= a.threshold]


def achievement_label(achievement_id: str) -> str:
    """Human-readable label for activity descriptions."""
    for a in ACHIEVEMENT_THRESHOLDS:
        if a.achievement_id == achievement_id:
            return a.name
    return achievement_id.replace("_", " ")


def is_known(achievement_id: str) -> bool:
    return achievement_id in ACHIEVEMENT_REWARDS
