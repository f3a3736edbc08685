"""
Per-participant stake bookkeeping.

The ledger only keeps the books; value itself is moved by the host's
`ValueTransferOracle`. The staked-model sequence records every model a
participant ever staked against and is not shrunk on withdrawal, so it also
bounds lifetime registrations per participant at `capacity`.
"""

from __future__ import annotations

from typing import Optional

from model_ledger.domain.errors import ConflictError, NotFoundError, ResourceError
from model_ledger.domain.models import StakeAccount
from model_ledger.infrastructure.store import LedgerStore
from model_ledger.utils.logging import get_logger

log = get_logger(__name__)


class StakeLedger:
    def __init__(self, store: LedgerStore, capacity: int = 50) -> None:
        self._store = store
        self.capacity = capacity

    def get(self, participant: str) -> Optional[StakeAccount]:
        return self._store.stake_accounts.get(participant)

    def balance(self, participant: str) -> int:
        account = self._store.stake_accounts.get(participant)
        return account.total_staked if account else 0

    def ensure_capacity(self, participant: str) -> None:
        account = self._store.stake_accounts.get(participant)
        if account is not None and len(account.staked_models) >= self.capacity:
            raise ConflictError(
                f"{participant} already staked against {self.capacity} models",
                error_code="CapacityExceeded",
                details={"participant": participant, "capacity": self.capacity},
            )

    def ensure_withdrawable(self, participant: str, amount: int) -> StakeAccount:
        account = self._store.stake_accounts.get(participant)
        if account is None:
            raise NotFoundError(
                f"no stake account for {participant}",
                error_code="StakeAccountNotFound",
                details={"participant": participant},
            )
        if amount > account.total_staked:
            raise ResourceError(
                f"{participant} has {account.total_staked} staked, {amount} requested",
                error_code="InsufficientStake",
                details={
                    "participant": participant,
                    "staked": account.total_staked,
                    "requested": amount,
                },
            )
        return account

    def deposit(self, participant: str, amount: int, model_id: int) -> StakeAccount:
        self.ensure_capacity(participant)
        account = self._store.stake_accounts.get(participant)
        if account is None:
            updated = StakeAccount(
                participant=participant, total_staked=amount, staked_models=(model_id,)
            )
        else:
            updated = account.model_copy(
                update={
                    "total_staked": account.total_staked + amount,
                    "staked_models": account.staked_models + (model_id,),
                }
            )
        self._store.stake_accounts.put(participant, updated)
        log.debug(
            "Stake deposited",
            extra={"participant": participant, "amount": amount, "model_id": model_id},
        )
        return updated

    def withdraw(self, participant: str, amount: int) -> StakeAccount:
        account = self.ensure_withdrawable(participant, amount)
        updated = account.model_copy(update={"total_staked": account.total_staked - amount})
        self._store.stake_accounts.put(participant, updated)
        log.debug("Stake withdrawn", extra={"participant": participant, "amount": amount})
        return updated


__all__ = ["StakeLedger"]
