"""Error taxonomy."""

from orangefarm.exceptions import (
    AssetNotFoundError,
    ErrorCode,
    InvalidInputError,
    OrangeFarmError,
    PlayerNotFoundError,
    TooManyAttemptsError,
)


def test_status_codes() -> None:
    assert InvalidInputError("x").status_code == 400
    assert PlayerNotFoundError("x").status_code == 404
    assert AssetNotFoundError("x").status_code == 404
    assert TooManyAttemptsError("x").status_code == 429
    assert OrangeFarmError("x").status_code == 500


def test_to_dict_includes_details() -> None:
    err = TooManyAttemptsError("slow down", details={"walletAddress": "0xabc"})
    assert err.to_dict() == {
        "error": {
            "code": "TOO_MANY_ATTEMPTS",
            "message": "slow down",
            "details": {"walletAddress": "0xabc"},
        }
    }


def test_to_dict_omits_empty_details() -> None:
    assert PlayerNotFoundError("gone").to_dict() == {
        "error": {"code": ErrorCode.USER_NOT_FOUND.value, "message": "gone"}
    }


def test_unmapped_code_defaults_to_500() -> None:
    assert ErrorCode.DATABASE_ERROR.status_code == 500
