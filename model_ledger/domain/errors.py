"""
Exception taxonomy for ledger operations.

Every rejected operation raises a subclass of `LedgerError`. The subclass names
the broad kind of failure; `error_code` names the specific rule that failed
(e.g. ``DuplicateVote``), and `details` carries the offending values.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base exception for ledger operations."""

    kind: str = "ledger"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code or type(self).__name__
        self.details = details or {}

    def as_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "error_code": self.error_code,
            "error_kind": self.kind,
            "details": self.details,
        }


class AuthorizationError(LedgerError):
    """Caller is not the administrator or not the model creator."""

    kind = "authorization"


class NotFoundError(LedgerError):
    """Unknown model identifier, stake account, or unseeded category."""

    kind = "not_found"


class ValidationError(LedgerError):
    """Input out of bounds: lengths, rating range, category taxonomy."""

    kind = "validation"


class ConflictError(LedgerError):
    """Duplicate evaluation, capacity exceeded, repeated initialization."""

    kind = "conflict"


class StateError(LedgerError):
    """Operation not allowed in the record's current state."""

    kind = "state"


class ResourceError(LedgerError):
    """Insufficient balance or stake."""

    kind = "resource"


class InsufficientFundsError(Exception):
    """Raised by a value transfer oracle when the sender cannot cover a transfer."""

    def __init__(self, account: str, requested: int, available: int) -> None:
        super().__init__(
            f"account {account!r} holds {available}, transfer of {requested} requested"
        )
        self.account = account
        self.requested = requested
        self.available = available


__all__ = [
    "AuthorizationError",
    "ConflictError",
    "InsufficientFundsError",
    "LedgerError",
    "NotFoundError",
    "ResourceError",
    "StateError",
    "ValidationError",
]
