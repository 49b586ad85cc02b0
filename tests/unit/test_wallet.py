"""Wallet address validation."""

import pytest

from orangefarm.exceptions import ErrorCode, WalletAddressError
from orangefarm.players.wallet import is_valid_wallet, normalize_wallet

CHECKSUMMED = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"


def test_normalize_lowercases() -> None:
    assert normalize_wallet(CHECKSUMMED) == CHECKSUMMED.lower()


def test_normalize_strips_whitespace() -> None:
    assert normalize_wallet(f"  {CHECKSUMMED}\n") == CHECKSUMMED.lower()


@pytest.mark.parametrize(
    "address",
    ["", "0x123", "5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed", "0x" + "g" * 40, "0x" + "a" * 41],
)
def test_invalid_addresses_rejected(address: str) -> None:
    assert not is_valid_wallet(address)
    with pytest.raises(WalletAddressError) as exc_info:
        normalize_wallet(address)
    assert exc_info.value.code is ErrorCode.INVALID_WALLET_ADDRESS


def test_wallet_error_is_value_error() -> None:
    with pytest.raises(ValueError):
        normalize_wallet("nope")
