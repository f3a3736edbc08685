"""
Interfaces to the host execution environment, plus in-process implementations.

The ledger never reads a wall clock or moves value itself. It consumes:

- a `ClockSource` supplying the current monotonic height, and
- a `ValueTransferOracle` that moves value between participants and the
  platform escrow account atomically.

`ManualClock` and `InMemoryTransferOracle` back the CLI, the simulation and
the tests.
"""

from __future__ import annotations

import threading
from typing import Dict, Mapping, Optional, Protocol, runtime_checkable

from model_ledger.domain.errors import InsufficientFundsError


@runtime_checkable
class ClockSource(Protocol):
    """Supplies the current height. Must never move backwards."""

    def current_height(self) -> int:
        ...


@runtime_checkable
class ValueTransferOracle(Protocol):
    """
    Moves value between identities.

    `transfer` is all-or-nothing: it either moves the full amount or raises
    `InsufficientFundsError` and leaves both balances untouched.
    """

    def balance(self, identity: str) -> int:
        ...

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        ...


class ManualClock:
    """
    Clock advanced explicitly by the host (CLI `advance`, tests, simulation).
    """

    def __init__(self, height: int = 0) -> None:
        if height < 0:
            raise ValueError("height must be non-negative")
        self._height = height
        self._lock = threading.Lock()

    def current_height(self) -> int:
        return self._height

    def advance(self, blocks: int = 1) -> int:
        if blocks < 0:
            raise ValueError("clock cannot move backwards")
        with self._lock:
            self._height += blocks
            return self._height

    def set_height(self, height: int) -> int:
        with self._lock:
            if height < self._height:
                raise ValueError(f"clock cannot move backwards ({self._height} -> {height})")
            self._height = height
            return self._height


class InMemoryTransferOracle:
    """
    Dict-backed balances with atomic transfers.
    """

    def __init__(self, balances: Optional[Mapping[str, int]] = None) -> None:
        self._balances: Dict[str, int] = dict(balances or {})
        self._lock = threading.Lock()

    def balance(self, identity: str) -> int:
        return self._balances.get(identity, 0)

    def balances(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._balances)

    def mint(self, identity: str, amount: int) -> int:
        """Credit `amount` out of thin air (local funding only)."""
        if amount <= 0:
            raise ValueError("mint amount must be positive")
        with self._lock:
            self._balances[identity] = self._balances.get(identity, 0) + amount
            return self._balances[identity]

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        if amount <= 0:
            raise ValueError("transfer amount must be positive")
        with self._lock:
            available = self._balances.get(sender, 0)
            if available < amount:
                raise InsufficientFundsError(sender, amount, available)
            self._balances[sender] = available - amount
            self._balances[recipient] = self._balances.get(recipient, 0) + amount


__all__ = [
    "ClockSource",
    "InMemoryTransferOracle",
    "ManualClock",
    "ValueTransferOracle",
]
