"""
Durable snapshots of the ledger between process runs.

A `LedgerSnapshot` captures every logical table plus the in-process host state
(clock height and balances). Two repositories persist it:

- `JsonFileRepository`: a single JSON document on disk (default backend).
- `PostgresRepository`: one table per logical table, rows stored as JSONB and
  replaced inside a single database transaction.
"""

from __future__ import annotations

import fcntl
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, ContextManager, Dict, Generator, List, Optional, Protocol

from psycopg import Connection
from psycopg.types.json import Jsonb
from pydantic import BaseModel, Field

from model_ledger.config import Settings
from model_ledger.domain.models import (
    CategoryLeaderboard,
    Evaluation,
    Model,
    PlatformState,
    ReputationProfile,
    StakeAccount,
)
from model_ledger.infrastructure.db_factory import get_sync_connection
from model_ledger.infrastructure.host import InMemoryTransferOracle, ManualClock
from model_ledger.infrastructure.store import LedgerStore
from model_ledger.utils.logging import get_logger

log = get_logger(__name__)

SNAPSHOT_SCHEMA_VERSION = 1


class LedgerSnapshot(BaseModel):
    schema_version: int = SNAPSHOT_SCHEMA_VERSION
    platform: PlatformState
    models: List[Model] = Field(default_factory=list)
    evaluations: List[Evaluation] = Field(default_factory=list)
    stake_accounts: List[StakeAccount] = Field(default_factory=list)
    reputations: List[ReputationProfile] = Field(default_factory=list)
    leaderboards: List[CategoryLeaderboard] = Field(default_factory=list)
    height: int = 0
    balances: Dict[str, int] = Field(default_factory=dict)

    @classmethod
    def capture(
        cls,
        store: LedgerStore,
        clock: ManualClock,
        transfers: InMemoryTransferOracle,
    ) -> "LedgerSnapshot":
        with store.read():
            return cls(
                platform=store.state,
                models=sorted(store.models.values(), key=lambda m: m.id),
                evaluations=sorted(
                    store.evaluations.values(), key=lambda e: (e.model_id, e.evaluator)
                ),
                stake_accounts=sorted(store.stake_accounts.values(), key=lambda a: a.participant),
                reputations=sorted(store.reputations.values(), key=lambda r: r.participant),
                leaderboards=sorted(store.leaderboards.values(), key=lambda b: b.category.value),
                height=clock.current_height(),
                balances=transfers.balances(),
            )

    def restore_store(self) -> LedgerStore:
        store = LedgerStore(owner=self.platform.owner)
        store.load(
            state=self.platform,
            models=self.models,
            evaluations=self.evaluations,
            stake_accounts=self.stake_accounts,
            reputations=self.reputations,
            leaderboards=self.leaderboards,
        )
        return store


class LedgerRepository(Protocol):
    def lock(self) -> ContextManager[None]:
        """Hold an exclusive lock on the stored state until the block exits."""
        ...

    def load(self) -> Optional[LedgerSnapshot]:
        ...

    def save(self, snapshot: LedgerSnapshot) -> None:
        ...


class JsonFileRepository:
    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")

    @contextmanager
    def lock(self) -> Generator[None, None, None]:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # flock is per open file, so separate handles in one process also exclude each other
        with self.lock_path.open("a+") as handle:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)

    def load(self) -> Optional[LedgerSnapshot]:
        if not self.path.exists():
            return None
        with self.path.open("r", encoding="utf-8") as f:
            return LedgerSnapshot.model_validate_json(f.read())

    def save(self, snapshot: LedgerSnapshot) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # write-then-rename so a crash never leaves a truncated state file
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".state-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(snapshot.model_dump_json(indent=2))
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        log.debug("State persisted", extra={"path": str(self.path)})


_SCHEMA = """
CREATE TABLE IF NOT EXISTS ledger_models (
    id BIGINT PRIMARY KEY,
    record JSONB NOT NULL
);
CREATE TABLE IF NOT EXISTS ledger_evaluations (
    evaluator TEXT NOT NULL,
    model_id BIGINT NOT NULL,
    record JSONB NOT NULL,
    PRIMARY KEY (evaluator, model_id)
);
CREATE TABLE IF NOT EXISTS ledger_stake_accounts (
    participant TEXT PRIMARY KEY,
    record JSONB NOT NULL
);
CREATE TABLE IF NOT EXISTS ledger_reputation_profiles (
    participant TEXT PRIMARY KEY,
    record JSONB NOT NULL
);
CREATE TABLE IF NOT EXISTS ledger_leaderboards (
    category TEXT PRIMARY KEY,
    record JSONB NOT NULL
);
CREATE TABLE IF NOT EXISTS ledger_meta (
    key TEXT PRIMARY KEY,
    document JSONB NOT NULL
);
"""

_TABLES = (
    "ledger_models",
    "ledger_evaluations",
    "ledger_stake_accounts",
    "ledger_reputation_profiles",
    "ledger_leaderboards",
    "ledger_meta",
)

# Key for pg_advisory_xact_lock; serializes load-modify-save sessions.
ADVISORY_LOCK_KEY = 0x4D4C4544474552


def _dump(record: BaseModel) -> Jsonb:
    return Jsonb(record.model_dump(mode="json"))


class PostgresRepository:
    """
    Persist the ledger tables in Postgres.

    `save` replaces the full contents of every table in one transaction, so a
    reader never sees a mix of two snapshots. Inside `lock`, every load and save
    runs on one connection and one transaction that holds a transaction-scoped
    advisory lock, so concurrent writers queue behind each other.
    """

    def __init__(self, dsn: Optional[str] = None, attempts: Optional[int] = None) -> None:
        self._dsn = dsn
        self._attempts = attempts
        self._locked_conn: Optional[Connection] = None

    @contextmanager
    def lock(self) -> Generator[None, None, None]:
        with get_sync_connection(self._dsn, self._attempts) as conn:
            with conn.transaction():
                conn.execute("SELECT pg_advisory_xact_lock(%s);", (ADVISORY_LOCK_KEY,))
                self._locked_conn = conn
                try:
                    yield
                finally:
                    self._locked_conn = None

    @contextmanager
    def _connection(self) -> Generator[Connection, None, None]:
        if self._locked_conn is not None:
            yield self._locked_conn
            return
        with get_sync_connection(self._dsn, self._attempts) as conn:
            yield conn

    def ensure_schema(self) -> None:
        with self._connection() as conn:
            conn.execute(_SCHEMA)

    def load(self) -> Optional[LedgerSnapshot]:
        with self._connection() as conn:
            conn.execute(_SCHEMA)
            with conn.cursor() as cur:
                cur.execute("SELECT key, document FROM ledger_meta;")
                meta: Dict[str, Any] = {key: document for key, document in cur.fetchall()}
                if "platform" not in meta:
                    return None

                def rows(sql: str) -> List[Any]:
                    cur.execute(sql)
                    return [record for (record,) in cur.fetchall()]

                host = meta.get("host", {})
                return LedgerSnapshot(
                    schema_version=meta.get("schema_version", SNAPSHOT_SCHEMA_VERSION),
                    platform=PlatformState.model_validate(meta["platform"]),
                    models=[
                        Model.model_validate(r)
                        for r in rows("SELECT record FROM ledger_models ORDER BY id;")
                    ],
                    evaluations=[
                        Evaluation.model_validate(r)
                        for r in rows(
                            "SELECT record FROM ledger_evaluations ORDER BY model_id, evaluator;"
                        )
                    ],
                    stake_accounts=[
                        StakeAccount.model_validate(r)
                        for r in rows(
                            "SELECT record FROM ledger_stake_accounts ORDER BY participant;"
                        )
                    ],
                    reputations=[
                        ReputationProfile.model_validate(r)
                        for r in rows(
                            "SELECT record FROM ledger_reputation_profiles ORDER BY participant;"
                        )
                    ],
                    leaderboards=[
                        CategoryLeaderboard.model_validate(r)
                        for r in rows("SELECT record FROM ledger_leaderboards ORDER BY category;")
                    ],
                    height=host.get("height", 0),
                    balances=host.get("balances", {}),
                )

    def save(self, snapshot: LedgerSnapshot) -> None:
        with self._connection() as conn:
            with conn.transaction():
                conn.execute(_SCHEMA)
                conn.execute(f"TRUNCATE {', '.join(_TABLES)};")
                with conn.cursor() as cur:
                    cur.executemany(
                        "INSERT INTO ledger_models (id, record) VALUES (%s, %s);",
                        [(m.id, _dump(m)) for m in snapshot.models],
                    )
                    cur.executemany(
                        "INSERT INTO ledger_evaluations (evaluator, model_id, record) "
                        "VALUES (%s, %s, %s);",
                        [(e.evaluator, e.model_id, _dump(e)) for e in snapshot.evaluations],
                    )
                    cur.executemany(
                        "INSERT INTO ledger_stake_accounts (participant, record) VALUES (%s, %s);",
                        [(a.participant, _dump(a)) for a in snapshot.stake_accounts],
                    )
                    cur.executemany(
                        "INSERT INTO ledger_reputation_profiles (participant, record) "
                        "VALUES (%s, %s);",
                        [(r.participant, _dump(r)) for r in snapshot.reputations],
                    )
                    cur.executemany(
                        "INSERT INTO ledger_leaderboards (category, record) VALUES (%s, %s);",
                        [(b.category.value, _dump(b)) for b in snapshot.leaderboards],
                    )
                    cur.executemany(
                        "INSERT INTO ledger_meta (key, document) VALUES (%s, %s);",
                        [
                            ("platform", _dump(snapshot.platform)),
                            (
                                "host",
                                Jsonb({"height": snapshot.height, "balances": snapshot.balances}),
                            ),
                            ("schema_version", Jsonb(snapshot.schema_version)),
                        ],
                    )
        log.debug("State persisted to Postgres", extra={"models": len(snapshot.models)})


def get_repository(settings: Settings) -> LedgerRepository:
    if settings.state_backend == "postgres":
        return PostgresRepository(attempts=settings.db_connect_retries)
    return JsonFileRepository(settings.state_path)


__all__ = [
    "JsonFileRepository",
    "LedgerRepository",
    "LedgerSnapshot",
    "PostgresRepository",
    "SNAPSHOT_SCHEMA_VERSION",
    "get_repository",
]
