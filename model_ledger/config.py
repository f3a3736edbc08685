"""
Configuration settings for the model ledger.

Uses Pydantic Settings to load environment variables for platform parameters,
state persistence, database connections, and logging.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Platform
    platform_owner: str = Field("ledger-admin", alias="LEDGER_OWNER")
    escrow_account: str = Field("ledger-escrow", alias="LEDGER_ESCROW_ACCOUNT")
    min_stake: int = Field(1_000_000, alias="LEDGER_MIN_STAKE", gt=0)
    lockup_period: int = Field(100, alias="LEDGER_LOCKUP_PERIOD", ge=0)
    stake_capacity: int = Field(50, alias="LEDGER_STAKE_CAPACITY", gt=0)
    leaderboard_size: int = Field(10, alias="LEDGER_LEADERBOARD_SIZE", gt=0)

    # State persistence
    state_backend: Literal["file", "postgres"] = Field("file", alias="LEDGER_STATE_BACKEND")
    state_path: Path = Field(Path(".model_ledger/state.json"), alias="LEDGER_STATE_PATH")

    # Database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("model_ledger", alias="DB_NAME")
    db_connect_retries: int = Field(3, alias="DB_CONNECT_RETRIES", ge=1)

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    json_logs: bool = Field(False, alias="LOG_JSON")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
