"""Error taxonomy shared by the pipeline and its write-side services."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable error codes, each carrying the HTTP-style status it maps to."""

    INVALID_WALLET_ADDRESS = "INVALID_WALLET_ADDRESS"
    INVALID_INPUT = "INVALID_INPUT"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    ASSET_NOT_FOUND = "ASSET_NOT_FOUND"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    TOO_MANY_ATTEMPTS = "TOO_MANY_ATTEMPTS"
    DATABASE_ERROR = "DATABASE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES.get(self, 500)


_STATUS_CODES: dict[ErrorCode, int] = {
    ErrorCode.INVALID_WALLET_ADDRESS: 400,
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.USER_NOT_FOUND: 404,
    ErrorCode.ASSET_NOT_FOUND: 404,
    ErrorCode.RATE_LIMIT_EXCEEDED: 429,
    ErrorCode.TOO_MANY_ATTEMPTS: 429,
}


class OrangeFarmError(Exception):
    """Base error with a machine-readable code."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def status_code(self) -> int:
        return self.code.status_code

    def to_dict(self) -> dict[str, Any]:
        """Render as the ``{"error": {...}}`` body used by API callers."""
        body: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details:
            body["details"] = self.details
        return {"error": body}


class WalletAddressError(OrangeFarmError, ValueError):
    code = ErrorCode.INVALID_WALLET_ADDRESS


class InvalidInputError(OrangeFarmError, ValueError):
    code = ErrorCode.INVALID_INPUT


class PlayerNotFoundError(OrangeFarmError):
    code = ErrorCode.USER_NOT_FOUND


class AssetNotFoundError(OrangeFarmError):
    code = ErrorCode.ASSET_NOT_FOUND


class TooManyAttemptsError(OrangeFarmError):
    code = ErrorCode.TOO_MANY_ATTEMPTS
