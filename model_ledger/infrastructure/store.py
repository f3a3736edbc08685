"""
In-memory ledger store: keyed tables with an all-or-nothing transaction boundary.

The store is single-writer. Every public operation runs inside
`LedgerStore.transaction()`, which holds the store lock for the duration of
the operation and journals the previous value of every key it writes. If the
block raises, the journal is replayed in reverse and no write survives. Reads
through `LedgerStore.read()` take the same lock, so a half-applied operation
is never observable.

Writes outside a transaction are rejected.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Generator, Generic, Hashable, Iterator, List, Optional, Tuple, TypeVar

from model_ledger.domain.models import (
    Category,
    CategoryLeaderboard,
    Evaluation,
    Model,
    PlatformState,
    ReputationProfile,
    StakeAccount,
)
from model_ledger.utils.logging import get_logger

log = get_logger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

_MISSING = object()
PLATFORM_KEY = "platform"


class Table(Generic[K, V]):
    """A keyed table whose writes are journaled by the owning store."""

    def __init__(self, name: str, store: "LedgerStore") -> None:
        self.name = name
        self._store = store
        self._rows: Dict[K, V] = {}

    def get(self, key: K) -> Optional[V]:
        return self._rows.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._rows

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[K]:
        return iter(list(self._rows))

    def values(self) -> List[V]:
        return list(self._rows.values())

    def items(self) -> List[Tuple[K, V]]:
        return list(self._rows.items())

    def put(self, key: K, value: V) -> None:
        self._store._record(self, key, self._rows.get(key, _MISSING))
        self._rows[key] = value

    def _restore(self, key: K, previous: object) -> None:
        if previous is _MISSING:
            self._rows.pop(key, None)
        else:
            self._rows[key] = previous  # type: ignore[assignment]

    def _load(self, rows: Dict[K, V]) -> None:
        self._rows = dict(rows)


class LedgerStore:
    """
    The five logical ledger tables plus the platform row and a category index.
    """

    def __init__(self, owner: str) -> None:
        self._lock = threading.RLock()
        self._local = threading.local()

        self.models: Table[int, Model] = Table("models", self)
        self.evaluations: Table[Tuple[str, int], Evaluation] = Table("evaluations", self)
        self.stake_accounts: Table[str, StakeAccount] = Table("stake_accounts", self)
        self.reputations: Table[str, ReputationProfile] = Table("reputation_profiles", self)
        self.leaderboards: Table[Category, CategoryLeaderboard] = Table("leaderboards", self)
        self.category_index: Table[Category, Tuple[int, ...]] = Table("category_index", self)
        self.platform: Table[str, PlatformState] = Table("platform", self)

        self.platform._load({PLATFORM_KEY: PlatformState(owner=owner)})

    def tables(self) -> List[Table]:
        return [
            self.models,
            self.evaluations,
            self.stake_accounts,
            self.reputations,
            self.leaderboards,
            self.category_index,
            self.platform,
        ]

    # ---- platform row ----

    @property
    def state(self) -> PlatformState:
        state = self.platform.get(PLATFORM_KEY)
        assert state is not None
        return state

    def put_state(self, state: PlatformState) -> None:
        self.platform.put(PLATFORM_KEY, state)

    # ---- transaction boundary ----

    def in_transaction(self) -> bool:
        return getattr(self._local, "journal", None) is not None

    def _record(self, table: Table, key: Hashable, previous: object) -> None:
        journal = getattr(self._local, "journal", None)
        if journal is None:
            raise RuntimeError(f"write to {table.name!r} outside of a transaction")
        journal.append((table, key, previous))

    @contextmanager
    def transaction(self, label: str = "operation") -> Generator["LedgerStore", None, None]:
        """
        Run a block as one atomic unit of work.

        Nested calls join the enclosing transaction; only the outermost one
        commits or rolls back.
        """
        with self._lock:
            if self.in_transaction():
                yield self
                return

            journal: List[Tuple[Table, Hashable, object]] = []
            self._local.journal = journal
            try:
                yield self
            except BaseException:
                for table, key, previous in reversed(journal):
                    table._restore(key, previous)
                log.debug(
                    "Transaction rolled back",
                    extra={"transaction": label, "writes_undone": len(journal)},
                )
                raise
            finally:
                self._local.journal = None

    @contextmanager
    def read(self) -> Generator["LedgerStore", None, None]:
        with self._lock:
            yield self

    # ---- bulk load (persistence) ----

    def load(
        self,
        state: PlatformState,
        models: List[Model],
        evaluations: List[Evaluation],
        stake_accounts: List[StakeAccount],
        reputations: List[ReputationProfile],
        leaderboards: List[CategoryLeaderboard],
    ) -> None:
        """Replace every table's contents. Not journaled; only valid outside transactions."""
        with self._lock:
            if self.in_transaction():
                raise RuntimeError("cannot bulk-load inside a transaction")
            self.platform._load({PLATFORM_KEY: state})
            self.models._load({m.id: m for m in models})
            self.evaluations._load({(e.evaluator, e.model_id): e for e in evaluations})
            self.stake_accounts._load({a.participant: a for a in stake_accounts})
            self.reputations._load({r.participant: r for r in reputations})
            self.leaderboards._load({b.category: b for b in leaderboards})

            index: Dict[Category, List[int]] = {}
            for model in sorted(models, key=lambda m: m.id):
                index.setdefault(model.category, []).append(model.id)
            self.category_index._load({c: tuple(ids) for c, ids in index.items()})


__all__ = ["LedgerStore", "PLATFORM_KEY", "Table"]
