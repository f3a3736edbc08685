"""
Ledger components.

Each component owns the bookkeeping for one kind of record and expects to be
called inside a store transaction opened by the platform facade.
"""

from model_ledger.components.evaluations import (
    EvaluationLedger,
    compute_weighted_score,
    vote_weight,
)
from model_ledger.components.leaderboard import CategoryLeaderboardBook
from model_ledger.components.registry import ModelRegistry
from model_ledger.components.reputation import ReputationTracker
from model_ledger.components.stake import StakeLedger

__all__ = [
    "CategoryLeaderboardBook",
    "EvaluationLedger",
    "ModelRegistry",
    "ReputationTracker",
    "StakeLedger",
    "compute_weighted_score",
    "vote_weight",
]
