"""Wallet address validation and normalization.

Players are keyed by their EVM wallet address: ``0x`` followed by 40 hex
characters. Keys are stored lower-cased so checksummed and plain forms of
the same address resolve to one player.
"""

from __future__ import annotations

import re

from orangefarm.exceptions import WalletAddressError

_WALLET_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


def is_valid_wallet(address: str) -> bool:
    """Return True if the address has the 0x + 40 hex format."""
    return isinstance(address, str) and _WALLET_RE.match(address.strip()) is not None


def normalize_wallet(address: str) -> str:
    """Validate and lower-case a wallet address.

    Raises:
        WalletAddressError: If the address is not a 0x-prefixed 20-byte hex string.
    """
    if not address or not isinstance(address, str):
        raise WalletAddressError("Wallet address must be a non-empty string")
    candidate = address.strip()
    if not _WALLET_RE.match(candidate):
        raise WalletAddressError(
            f"Invalid wallet address: {candidate[:12]}...",
            details={"walletAddress": candidate},
        )
    return candidate.lower()
