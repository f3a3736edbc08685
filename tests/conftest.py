"""
Pytest configuration for the model ledger.

Provides fixtures for:
- Settings with small, test-friendly platform parameters
- In-process host collaborators (clock, transfer oracle)
- An initialized platform with funded participants
- Database connection management for Postgres integration tests
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Generator

import psycopg
import pytest

from model_ledger.config import Settings
from model_ledger.infrastructure.host import InMemoryTransferOracle, ManualClock
from model_ledger.platform import LedgerPlatform

ADMIN = "admin"
ALICE = "alice"
BOB = "bob"
CAROL = "carol"
MIN_STAKE = 1_000
CONTENT_HASH = "a" * 64


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """
    Settings fixture with test-specific overrides.
    """
    return Settings(
        platform_owner=ADMIN,
        escrow_account="escrow",
        min_stake=MIN_STAKE,
        lockup_period=100,
        stake_capacity=50,
        leaderboard_size=10,
        state_path=tmp_path / "state.json",
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "model_ledger"),
        db_connect_retries=1,
        log_level="DEBUG",
    )


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(height=10)


@pytest.fixture
def transfers() -> InMemoryTransferOracle:
    return InMemoryTransferOracle(
        {ALICE: MIN_STAKE * 5, BOB: MIN_STAKE * 5, CAROL: MIN_STAKE * 5}
    )


@pytest.fixture
def fresh_platform(
    test_settings: Settings, clock: ManualClock, transfers: InMemoryTransferOracle
) -> LedgerPlatform:
    """A platform that has not been initialized yet."""
    return LedgerPlatform(settings=test_settings, clock=clock, transfers=transfers)


@pytest.fixture
def platform(fresh_platform: LedgerPlatform) -> LedgerPlatform:
    fresh_platform.initialize(caller=ADMIN)
    return fresh_platform


@pytest.fixture
def register(platform: LedgerPlatform) -> Callable[..., int]:
    """Register a model with valid defaults; keyword arguments override them."""

    def _register(
        creator: str = ALICE,
        name: str = "Demo",
        description: str = "A demo model",
        category: str = "computer-vision",
        content_hash: str = CONTENT_HASH,
    ) -> int:
        return platform.register_model(creator, name, description, category, content_hash)

    return _register


@pytest.fixture(scope="session")
def test_dsn() -> str:
    """
    Database connection string for integration tests.
    """
    return (
        f"postgresql://{os.getenv('DB_USER', 'postgres')}:{os.getenv('DB_PASSWORD', 'postgres')}"
        f"@{os.getenv('DB_HOST', 'localhost')}:{os.getenv('DB_PORT', '5432')}"
        f"/{os.getenv('DB_NAME', 'model_ledger')}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture
def clean_ledger_tables(test_dsn: str, db_connection_available: bool) -> Generator[None, None, None]:
    """
    Drop the ledger tables before and after each test function.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    def _drop() -> None:
        with psycopg.connect(test_dsn) as conn:
            conn.execute(
                "DROP TABLE IF EXISTS ledger_models, ledger_evaluations, ledger_stake_accounts, "
                "ledger_reputation_profiles, ledger_leaderboards, ledger_meta;"
            )

    _drop()
    yield
    _drop()
