"""
Model registry: the canonical catalog and its rolling evaluation statistics.

Registration escrows the platform's minimum stake from the creator, allocates
the next sequential identifier and fans out to the stake ledger, the
reputation tracker and the category leaderboard. Withdrawal returns the stake
after the lockup period and retires the model for good.

All methods expect to run inside a store transaction opened by the caller.
"""

from __future__ import annotations

from typing import Optional

from model_ledger.components.leaderboard import CategoryLeaderboardBook
from model_ledger.components.reputation import ReputationTracker
from model_ledger.components.stake import StakeLedger
from model_ledger.domain.errors import (
    AuthorizationError,
    InsufficientFundsError,
    NotFoundError,
    ResourceError,
    StateError,
)
from model_ledger.domain.models import Model
from model_ledger.domain import validation
from model_ledger.infrastructure.host import ValueTransferOracle
from model_ledger.infrastructure.store import LedgerStore
from model_ledger.utils.logging import get_logger

log = get_logger(__name__)


class ModelRegistry:
    def __init__(
        self,
        store: LedgerStore,
        stakes: StakeLedger,
        reputation: ReputationTracker,
        leaderboards: CategoryLeaderboardBook,
        transfers: ValueTransferOracle,
        escrow_account: str,
        min_stake: int,
        lockup_period: int,
    ) -> None:
        self._store = store
        self._stakes = stakes
        self._reputation = reputation
        self._leaderboards = leaderboards
        self._transfers = transfers
        self.escrow_account = escrow_account
        self.min_stake = min_stake
        self.lockup_period = lockup_period

    def get(self, model_id: int) -> Optional[Model]:
        return self._store.models.get(model_id)

    def require(self, model_id: int) -> Model:
        model = self._store.models.get(model_id)
        if model is None:
            raise NotFoundError(
                f"model {model_id} does not exist",
                error_code="NotFound",
                details={"model_id": model_id},
            )
        return model

    def is_active(self, model_id: int) -> bool:
        model = self._store.models.get(model_id)
        return bool(model and model.active)

    def register(
        self,
        name: str,
        description: str,
        category: str,
        content_hash: str,
        creator: str,
        height: int,
    ) -> Model:
        validation.validate_identity("creator", creator)
        validation.validate_name(name)
        validation.validate_description(description)
        parsed_category = validation.parse_category(category)
        validation.validate_content_hash(content_hash)
        self._leaderboards.require(parsed_category)
        self._stakes.ensure_capacity(creator)

        stake = self.min_stake
        available = self._transfers.balance(creator)
        if available < stake:
            raise ResourceError(
                f"{creator} holds {available}, registration requires {stake}",
                error_code="InsufficientBalance",
                details={"creator": creator, "balance": available, "required": stake},
            )

        self._escrow(creator, stake)
        try:
            state = self._store.state
            model = Model(
                id=state.next_model_id,
                name=name,
                description=description,
                creator=creator,
                category=parsed_category,
                content_hash=content_hash,
                stake_amount=stake,
                registered_at=height,
                updated_at=height,
            )
            self._store.models.put(model.id, model)
            self._store.put_state(
                state.model_copy(
                    update={
                        "next_model_id": state.next_model_id + 1,
                        "total_staked": state.total_staked + stake,
                    }
                )
            )
            self._leaderboards.add_model(parsed_category, model.id)
            self._stakes.deposit(creator, stake, model.id)
            self._reputation.record_registration(creator, height)
            self._leaderboards.on_registration(parsed_category, height)
        except BaseException:
            self._transfers.transfer(self.escrow_account, creator, stake)
            raise

        log.info(
            "Model registered",
            extra={
                "model_id": model.id,
                "creator": creator,
                "category": parsed_category.value,
                "stake": stake,
                "height": height,
            },
        )
        return model

    def apply_evaluation_stats(self, model_id: int, weighted_score: int, height: int) -> Model:
        """Fold one weighted score into the model's running statistics."""
        model = self.require(model_id)
        vote_count = model.vote_count + 1
        cumulative = model.cumulative_score + weighted_score
        updated = model.model_copy(
            update={
                "vote_count": vote_count,
                "cumulative_score": cumulative,
                "average_rating": cumulative // vote_count,
                "updated_at": height,
            }
        )
        self._store.models.put(model_id, updated)
        return updated

    def deactivate(self, model_id: int, caller: str, height: int) -> Model:
        owner = self._store.state.owner
        if caller != owner:
            raise AuthorizationError(
                "only the platform administrator may deactivate models",
                error_code="Unauthorized",
                details={"caller": caller, "model_id": model_id},
            )
        model = self.require(model_id)
        updated = model.model_copy(update={"active": False, "updated_at": height})
        self._store.models.put(model_id, updated)
        self._leaderboards.on_change(model.category, height)
        log.info(
            "Model deactivated by administrator",
            extra={"model_id": model_id, "was_active": model.active, "height": height},
        )
        return updated

    def withdraw_stake(self, model_id: int, caller: str, height: int) -> Model:
        model = self.require(model_id)
        if caller != model.creator:
            raise AuthorizationError(
                "only the model creator may withdraw its stake",
                error_code="Unauthorized",
                details={"caller": caller, "model_id": model_id},
            )
        if model.stake_released:
            raise StateError(
                f"stake for model {model_id} was already withdrawn",
                error_code="StakeAlreadyReleased",
                details={"model_id": model_id},
            )
        unlock_after = model.registered_at + self.lockup_period
        if height <= unlock_after:
            raise StateError(
                f"stake for model {model_id} is locked until after height {unlock_after}",
                error_code="WithdrawalTooEarly",
                details={"model_id": model_id, "height": height, "unlock_after": unlock_after},
            )
        self._stakes.ensure_withdrawable(model.creator, model.stake_amount)

        self._release(model.creator, model.stake_amount)
        try:
            self._stakes.withdraw(model.creator, model.stake_amount)
            updated = model.model_copy(
                update={"active": False, "stake_released": True, "updated_at": height}
            )
            self._store.models.put(model_id, updated)
            state = self._store.state
            self._store.put_state(
                state.model_copy(update={"total_staked": state.total_staked - model.stake_amount})
            )
            self._leaderboards.on_change(model.category, height)
        except BaseException:
            self._transfers.transfer(model.creator, self.escrow_account, model.stake_amount)
            raise

        log.info(
            "Model stake withdrawn",
            extra={"model_id": model_id, "creator": caller, "amount": model.stake_amount},
        )
        return updated

    def _escrow(self, creator: str, amount: int) -> None:
        try:
            self._transfers.transfer(creator, self.escrow_account, amount)
        except InsufficientFundsError as exc:
            raise ResourceError(
                f"escrow transfer from {creator} failed",
                error_code="InsufficientBalance",
                details={"creator": creator, "balance": exc.available, "required": amount},
            ) from exc

    def _release(self, creator: str, amount: int) -> None:
        try:
            self._transfers.transfer(self.escrow_account, creator, amount)
        except InsufficientFundsError as exc:
            raise ResourceError(
                "escrow cannot cover the stake refund",
                error_code="InsufficientEscrow",
                details={"escrow": self.escrow_account, "balance": exc.available, "required": amount},
            ) from exc


__all__ = ["ModelRegistry"]
