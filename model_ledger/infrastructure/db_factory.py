"""
Database connection factory for the Postgres state backend.

Includes retry logic for transient connection failures using tenacity.
"""

from __future__ import annotations

from typing import Optional

import psycopg
from psycopg import Connection
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from model_ledger.config import Settings, get_settings
from model_ledger.utils.logging import get_logger

log = get_logger(__name__)


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


def get_sync_connection(dsn: Optional[str] = None, attempts: Optional[int] = None) -> Connection:
    """
    Acquire a dedicated synchronous connection with automatic retry.

    Retries with exponential backoff on transient connection errors.

    Parameters
    ----------
    dsn : str | None
        Connection string; defaults to the one built from settings.
    attempts : int | None
        Total connection attempts; defaults to settings.db_connect_retries.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    settings = get_settings()
    conninfo = dsn or build_dsn(settings)
    retrying = Retrying(
        stop=stop_after_attempt(attempts or settings.db_connect_retries),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
        before_sleep=lambda state: log.warning(
            "Postgres connection failed, retrying",
            extra={"attempt": state.attempt_number},
        ),
        reraise=True,
    )
    return retrying(psycopg.connect, conninfo)


__all__ = ["build_dsn", "get_sync_connection"]
