"""Document path and set helpers."""

from orangefarm.pipeline.documents import (
    activity_path,
    added_ids,
    bot_path,
    land_path,
    player_path,
    rate_limit_path,
    union_ids,
    without_ids,
)

WALLET = "0x" + "ab" * 20


class TestPaths:
    def test_paths(self) -> None:
        assert player_path(WALLET) == f"players/{WALLET}"
        assert land_path(WALLET, "l1") == f"assets/{WALLET}/lands/l1"
        assert bot_path(WALLET, "b1") == f"assets/{WALLET}/bots/b1"
        assert activity_path(WALLET, "e1") == f"activities/{WALLET}/events/e1"
        assert rate_limit_path("auth:x") == "rate_limits/auth:x"


class TestSetHelpers:
    def test_union_is_idempotent(self) -> None:
        once = union_ids(["a"], "b")
        assert union_ids(once, "b") == once == ["a", "b"]

    def test_union_handles_none(self) -> None:
        assert union_ids(None, "a", "a") == ["a"]

    def test_union_collapses_existing_duplicates(self) -> None:
        assert union_ids(["a", "a", "b"]) == ["a", "b"]

    def test_without_removes_all_occurrences(self) -> None:
        assert without_ids(["a", "b", "a"], "a") == ["b"]

    def test_without_missing_is_noop(self) -> None:
        assert without_ids(["a"], "z") == ["a"]

    def test_added_ids_keeps_after_order(self) -> None:
        assert added_ids(["a"], ["c", "a", "b"]) == ["c", "b"]

    def test_added_ids_none_before(self) -> None:
        assert added_ids(None, ["a"]) == ["a"]

    def test_added_ids_shrinking_list(self) -> None:
        assert added_ids(["a", "b"], ["a"]) == []
