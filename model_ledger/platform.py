"""
Platform facade: the public operations and queries of the model ledger.

Each mutating operation reads the height once from the injected clock, opens a
single store transaction, and either commits every write or none. Rejections
surface as `LedgerError` subclasses; `run_operation` turns them into an
`OperationResult` for callers that want a tagged result instead of an
exception (the CLI, the simulation).

Usage:
    from model_ledger.platform import build_platform, run_operation

    platform = build_platform()
    platform.initialize(caller=platform.owner)
    result = run_operation(
        platform.register_model, "alice", "Demo", "A demo model", "computer-vision", "ab" * 32
    )
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Dict, Generator, List, Optional, TypedDict

from model_ledger.components import (
    CategoryLeaderboardBook,
    EvaluationLedger,
    ModelRegistry,
    ReputationTracker,
    StakeLedger,
    compute_weighted_score,
)
from model_ledger.config import Settings, get_settings
from model_ledger.domain import validation
from model_ledger.domain.errors import AuthorizationError, ConflictError, LedgerError
from model_ledger.domain.models import (
    CategoryLeaderboard,
    Evaluation,
    Model,
    PlatformStats,
    ReputationProfile,
    StakeAccount,
)
from model_ledger.infrastructure.host import (
    ClockSource,
    InMemoryTransferOracle,
    ManualClock,
    ValueTransferOracle,
)
from model_ledger.infrastructure.repository import LedgerRepository, LedgerSnapshot
from model_ledger.infrastructure.store import LedgerStore
from model_ledger.utils.logging import get_logger

log = get_logger(__name__)


class OperationResult(TypedDict, total=False):
    """
    Tagged outcome of a platform operation.

    `ok` is always present; `value` on success, the error fields on rejection.
    """

    ok: bool
    operation: str
    value: Any
    error: Optional[str]
    error_code: Optional[str]
    error_kind: Optional[str]
    details: Dict[str, Any]


class LedgerPlatform:
    def __init__(
        self,
        settings: Settings,
        clock: ClockSource,
        transfers: ValueTransferOracle,
        store: Optional[LedgerStore] = None,
    ) -> None:
        self.settings = settings
        self.clock = clock
        self.transfers = transfers
        self.store = store or LedgerStore(owner=settings.platform_owner)

        self.reputation = ReputationTracker(self.store)
        self.stakes = StakeLedger(self.store, capacity=settings.stake_capacity)
        self.leaderboards = CategoryLeaderboardBook(self.store, size=settings.leaderboard_size)
        self.registry = ModelRegistry(
            self.store,
            stakes=self.stakes,
            reputation=self.reputation,
            leaderboards=self.leaderboards,
            transfers=transfers,
            escrow_account=settings.escrow_account,
            min_stake=settings.min_stake,
            lockup_period=settings.lockup_period,
        )
        self.evaluations = EvaluationLedger(
            self.store,
            registry=self.registry,
            reputation=self.reputation,
            leaderboards=self.leaderboards,
        )

    @property
    def owner(self) -> str:
        return self.store.state.owner

    def _height(self) -> int:
        return self.clock.current_height()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def initialize(self, caller: str) -> PlatformStats:
        """Seed every category leaderboard. One-time, administrator only."""
        height = self._height()
        with self.store.transaction("initialize"):
            state = self.store.state
            if caller != state.owner:
                raise AuthorizationError(
                    "only the platform administrator may initialize the platform",
                    error_code="Unauthorized",
                    details={"caller": caller},
                )
            if state.initialized:
                raise ConflictError(
                    "platform is already initialized",
                    error_code="AlreadyInitialized",
                    details={"initialized_at": state.initialized_at},
                )
            self.leaderboards.seed(height)
            self.store.put_state(
                state.model_copy(update={"initialized": True, "initialized_at": height})
            )
        log.info("Platform initialized", extra={"owner": caller, "height": height})
        return self.get_platform_stats()

    def register_model(
        self,
        caller: str,
        name: str,
        description: str,
        category: str,
        content_hash: str,
    ) -> int:
        height = self._height()
        with self.store.transaction("register_model"):
            model = self.registry.register(
                name=name,
                description=description,
                category=category,
                content_hash=content_hash,
                creator=caller,
                height=height,
            )
        return model.id

    def submit_evaluation(
        self,
        caller: str,
        model_id: int,
        score: int,
        comment: Optional[str] = None,
    ) -> Evaluation:
        height = self._height()
        with self.store.transaction("submit_evaluation"):
            return self.evaluations.submit(caller, model_id, score, comment, height)

    def withdraw_model_stake(self, caller: str, model_id: int) -> Model:
        height = self._height()
        with self.store.transaction("withdraw_model_stake"):
            return self.registry.withdraw_stake(model_id, caller, height)

    def deactivate_model(self, caller: str, model_id: int) -> Model:
        height = self._height()
        with self.store.transaction("deactivate_model"):
            return self.registry.deactivate(model_id, caller, height)

    def transfer_ownership(self, caller: str, new_owner: str) -> str:
        with self.store.transaction("transfer_ownership"):
            state = self.store.state
            if caller != state.owner:
                raise AuthorizationError(
                    "only the platform administrator may transfer ownership",
                    error_code="Unauthorized",
                    details={"caller": caller},
                )
            validation.validate_identity("new_owner", new_owner)
            self.store.put_state(state.model_copy(update={"owner": new_owner}))
        log.info("Ownership transferred", extra={"previous_owner": caller, "owner": new_owner})
        return new_owner

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_model(self, model_id: int) -> Optional[Model]:
        with self.store.read():
            return self.registry.get(model_id)

    def get_evaluation(self, evaluator: str, model_id: int) -> Optional[Evaluation]:
        with self.store.read():
            return self.evaluations.get(evaluator, model_id)

    def get_reputation(self, participant: str) -> Optional[ReputationProfile]:
        with self.store.read():
            return self.reputation.get(participant)

    def get_leaderboard(self, category: str) -> Optional[CategoryLeaderboard]:
        parsed = validation.parse_category(category)
        with self.store.read():
            return self.leaderboards.get(parsed)

    def get_stake_account(self, participant: str) -> Optional[StakeAccount]:
        with self.store.read():
            return self.stakes.get(participant)

    def get_stake_balance(self, participant: str) -> int:
        with self.store.read():
            return self.stakes.balance(participant)

    def is_model_active(self, model_id: int) -> bool:
        with self.store.read():
            return self.registry.is_active(model_id)

    def list_models_in_category(self, category: str) -> List[int]:
        parsed = validation.parse_category(category)
        with self.store.read():
            return list(self.leaderboards.model_ids(parsed))

    def get_platform_stats(self) -> PlatformStats:
        with self.store.read():
            state = self.store.state
            return PlatformStats(
                total_models=len(self.store.models),
                total_evaluations=state.total_evaluations,
                total_staked=state.total_staked,
                next_model_id=state.next_model_id,
                initialized=state.initialized,
                initialized_at=state.initialized_at,
                owner=state.owner,
                min_stake=self.settings.min_stake,
                lockup_period=self.settings.lockup_period,
                current_height=self._height(),
            )

    @staticmethod
    def is_category_valid(category: str) -> bool:
        return validation.is_category_valid(category)

    @staticmethod
    def compute_weighted_score(score: int, reputation: int) -> int:
        return compute_weighted_score(score, reputation)


def build_platform(
    settings: Optional[Settings] = None,
    clock: Optional[ClockSource] = None,
    transfers: Optional[ValueTransferOracle] = None,
    store: Optional[LedgerStore] = None,
) -> LedgerPlatform:
    """
    Assemble a platform, defaulting to in-process host collaborators.
    """
    return LedgerPlatform(
        settings=settings or get_settings(),
        clock=clock or ManualClock(),
        transfers=transfers or InMemoryTransferOracle(),
        store=store,
    )


def load_platform(settings: Settings, repository: LedgerRepository) -> LedgerPlatform:
    """
    Rebuild a platform from the repository's last snapshot, or a fresh one.
    """
    snapshot = repository.load()
    if snapshot is None:
        return build_platform(settings)
    return LedgerPlatform(
        settings=settings,
        clock=ManualClock(snapshot.height),
        transfers=InMemoryTransferOracle(snapshot.balances),
        store=snapshot.restore_store(),
    )


@contextmanager
def locked_platform(
    settings: Settings, repository: LedgerRepository
) -> Generator[LedgerPlatform, None, None]:
    """
    Load the platform while holding the repository's exclusive lock.

    The lock lasts until the block exits, so a `save_platform` inside the block
    is never based on state another writer has since replaced.
    """
    with repository.lock():
        yield load_platform(settings, repository)


def save_platform(platform: LedgerPlatform, repository: LedgerRepository) -> LedgerSnapshot:
    if not isinstance(platform.clock, ManualClock) or not isinstance(
        platform.transfers, InMemoryTransferOracle
    ):
        raise TypeError("only platforms with in-process host collaborators can be snapshotted")
    snapshot = LedgerSnapshot.capture(platform.store, platform.clock, platform.transfers)
    repository.save(snapshot)
    return snapshot


def _to_jsonable(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    return value


def run_operation(operation: Callable[..., Any], *args: Any, **kwargs: Any) -> OperationResult:
    """
    Invoke a platform operation and capture a rejection as a tagged result.

    Only `LedgerError` is captured; anything else is a defect and propagates.
    """
    name = getattr(operation, "__name__", repr(operation))
    try:
        value = operation(*args, **kwargs)
    except LedgerError as exc:
        log.warning(
            f"[OPERATION REJECTED] {name}",
            extra={"operation": name, "error_code": exc.error_code, "error_kind": exc.kind},
        )
        return OperationResult(ok=False, operation=name, **exc.as_dict())
    return OperationResult(ok=True, operation=name, value=_to_jsonable(value))


__all__ = [
    "LedgerPlatform",
    "OperationResult",
    "build_platform",
    "load_platform",
    "locked_platform",
    "run_operation",
    "save_platform",
]
