"""
Service Result
==============

Wallet and messaging operations report expected failures (insufficient
balance, a wrong PIN, a non-participant posting to a conversation) as values,
not exceptions. A ServiceResult carries either the success value or an
ErrorKind with a human readable reason.

Only unexpected failures (storage unavailable) propagate as exceptions.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from fastapi import HTTPException, status


class ErrorKind(str, Enum):
    # Validation (client-correctable)
    INVALID_AMOUNT = "invalid_amount"
    EMPTY_CONTENT = "empty_content"
    CONTENT_TOO_LONG = "content_too_long"
    MISSING_RECIPIENT = "missing_recipient"
    INVALID_RECIPIENT = "invalid_recipient"
    INVALID_PIN = "invalid_pin"
    PIN_REQUIRED = "pin_required"
    PIN_NOT_SET = "pin_not_set"
    INVALID_PIN_FORMAT = "invalid_pin_format"
    INVALID_LIMIT = "invalid_limit"
    INVALID_ACCOUNT = "invalid_account"
    INVALID_STATUS_TRANSITION = "invalid_status_transition"

    # Policy (business-rule violations)
    EXCEEDS_PER_TRANSACTION_LIMIT = "exceeds_per_transaction_limit"
    EXCEEDS_DAILY_LIMIT = "exceeds_daily_limit"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    WALLET_FROZEN = "wallet_frozen"
    WALLET_INACTIVE = "wallet_inactive"

    # Authorization
    FORBIDDEN = "forbidden"
    UNAUTHORIZED = "unauthorized"

    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"

    # Storage / integration
    TRANSFER_FAILED = "transfer_failed"


HTTP_STATUS_BY_KIND = {
    ErrorKind.INVALID_PIN: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.WALLET_FROZEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.WALLET_INACTIVE: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.ALREADY_EXISTS: status.HTTP_409_CONFLICT,
    ErrorKind.TRANSFER_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@dataclass
class ServiceResult:
    value: Any = None
    error: Optional[ErrorKind] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any = None) -> "ServiceResult":
        return cls(value=value)

    @classmethod
    def fail(cls, error: ErrorKind, reason: str) -> "ServiceResult":
        return cls(error=error, reason=reason)


def http_status_for(kind: ErrorKind) -> int:
    return HTTP_STATUS_BY_KIND.get(kind, status.HTTP_400_BAD_REQUEST)


def unwrap(result: ServiceResult) -> Any:
    """Return the success value or raise the matching HTTPException."""
    if result.ok:
        return result.value
    raise HTTPException(
        status_code=http_status_for(result.error),
        detail={"error": result.error.value, "message": result.reason},
    )
