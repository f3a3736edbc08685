"""
Infrastructure package for the model ledger.

Host collaborators (clock, value transfers), the transactional in-memory
store, and state persistence (JSON file or Postgres). Keep this layer focused
on I/O and resource management, decoupled from ledger rules.
"""

from model_ledger.infrastructure.db_factory import build_dsn, get_sync_connection
from model_ledger.infrastructure.host import (
    ClockSource,
    InMemoryTransferOracle,
    ManualClock,
    ValueTransferOracle,
)
from model_ledger.infrastructure.repository import (
    JsonFileRepository,
    LedgerRepository,
    LedgerSnapshot,
    PostgresRepository,
    get_repository,
)
from model_ledger.infrastructure.store import LedgerStore, Table

__all__ = [
    "ClockSource",
    "InMemoryTransferOracle",
    "JsonFileRepository",
    "LedgerRepository",
    "LedgerSnapshot",
    "LedgerStore",
    "ManualClock",
    "PostgresRepository",
    "Table",
    "ValueTransferOracle",
    "build_dsn",
    "get_repository",
    "get_sync_connection",
]
