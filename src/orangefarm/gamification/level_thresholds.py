"""Level computation.

Levels are a pure function of lifetime oranges: one level per 1,000
lifetime oranges, starting at level 1. Deriving the level from the
authoritative lifetime total (never "stored level + 1") keeps level-up
handling idempotent under replay.
"""

from __future__ import annotations

ORANGES_PER_LEVEL = 1000


def level_for(lifetime_oranges: int) -> int:
    """Return the level reached with this many lifetime oranges."""
    return max(lifetime_oranges, 0) // ORANGES_PER_LEVEL + 1


def compute_level(lifetime_oranges: int) -> dict:
    """Compute level info from lifetime oranges."""
    lifetime = max(lifetime_oranges, 0)
    level = level_for(lifetime)
    floor = (level - 1) * ORANGES_PER_LEVEL
    return {
        "level": level,
        "oranges_into_level": lifetime - floor,
        "oranges_for_level": ORANGES_PER_LEVEL,
        "next_level": level + 1,
        "next_level_at": floor + ORANGES_PER_LEVEL,
    }
