"""
Utilities package for the model ledger.

Exports shared helpers for logging and profiling.
Keep this package lightweight and free of ledger-specific logic.
"""

from model_ledger.utils.logging import configure_logging, get_logger
from model_ledger.utils.profiler import ProfileStats, profile_block

__all__ = [
    "configure_logging",
    "get_logger",
    "ProfileStats",
    "profile_block",
]
