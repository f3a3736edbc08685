"""
Model Ledger - registry and ranking ledger for AI models.

Participants register models against an escrowed stake, other participants
submit reputation-weighted ratings, and the ledger maintains:

- per-model rolling statistics (vote count, cumulative and average rating)
- per-participant reputation and stake bookkeeping
- per-category leaderboards over a fixed taxonomy

under one-vote-per-participant, time-locked withdrawal and all-or-nothing
operation semantics.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from model_ledger.config import Settings, get_settings
from model_ledger.domain import (
    AuthorizationError,
    Category,
    ConflictError,
    LedgerError,
    NotFoundError,
    ResourceError,
    StateError,
    ValidationError,
)
from model_ledger.platform import (
    LedgerPlatform,
    OperationResult,
    build_platform,
    load_platform,
    run_operation,
    save_platform,
)
from model_ledger.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Platform
    "LedgerPlatform",
    "OperationResult",
    "build_platform",
    "load_platform",
    "run_operation",
    "save_platform",
    # Domain
    "Category",
    "LedgerError",
    "AuthorizationError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "StateError",
    "ResourceError",
    # Logging
    "configure_logging",
    "get_logger",
]
