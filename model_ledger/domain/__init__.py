"""
Domain package for the model ledger.

Exports the ledger records and the error taxonomy used across components and
the platform facade. Keep this package focused on data definitions and
validation concerns.
"""

from model_ledger.domain.errors import (
    AuthorizationError,
    ConflictError,
    InsufficientFundsError,
    LedgerError,
    NotFoundError,
    ResourceError,
    StateError,
    ValidationError,
)
from model_ledger.domain.models import (
    Category,
    CategoryLeaderboard,
    Evaluation,
    Model,
    PlatformState,
    PlatformStats,
    ReputationProfile,
    StakeAccount,
)

__all__ = [
    "AuthorizationError",
    "Category",
    "CategoryLeaderboard",
    "ConflictError",
    "Evaluation",
    "InsufficientFundsError",
    "LedgerError",
    "Model",
    "NotFoundError",
    "PlatformState",
    "PlatformStats",
    "ReputationProfile",
    "ResourceError",
    "StakeAccount",
    "StateError",
    "ValidationError",
]
