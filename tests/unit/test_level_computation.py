"""Level computation: one level per 1,000 lifetime oranges, starting at 1."""

import pytest

from orangefarm.gamification.level_thresholds import ORANGES_PER_LEVEL, compute_level, level_for


class TestLevelFor:
    @pytest.mark.parametrize(
        ("lifetime", "level"),
        [(0, 1), (999, 1), (1000, 2), (2500, 3), (10000, 11)],
    )
    def test_level_boundaries(self, lifetime: int, level: int) -> None:
        assert level_for(lifetime) == level

    def test_negative_lifetime_clamps_to_level_1(self) -> None:
        assert level_for(-50) == 1

    def test_monotonic(self) -> None:
        levels = [level_for(n) for n in range(0, 5000, 37)]
        assert levels == sorted(levels)


class TestComputeLevel:
    def test_progress_within_level(self) -> None:
        info = compute_level(2500)
        assert info["level"] == 3
        assert info["oranges_into_level"] == 500
        assert info["oranges_for_level"] == ORANGES_PER_LEVEL
        assert info["next_level"] == 4
        assert info["next_level_at"] == 3000

    def test_exact_boundary_starts_new_level(self) -> None:
        info = compute_level(1000)
        assert info["level"] == 2
        assert info["oranges_into_level"] == 0
