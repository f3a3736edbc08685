"""
Append-only evaluation ledger.

A participant rates a model at most once. The evaluator's reputation is read
once, before any write, and both the vote weight and the recorded
`reputation_at_vote` derive from that single read:

    weight         = 1 + reputation_points // 100
    weighted_score = score * weight
"""

from __future__ import annotations

from typing import Optional

from model_ledger.components.leaderboard import CategoryLeaderboardBook
from model_ledger.components.registry import ModelRegistry
from model_ledger.components.reputation import ReputationTracker
from model_ledger.domain import validation
from model_ledger.domain.errors import ConflictError, StateError
from model_ledger.domain.models import Evaluation
from model_ledger.infrastructure.store import LedgerStore
from model_ledger.utils.logging import get_logger

log = get_logger(__name__)

REPUTATION_PER_WEIGHT_STEP = 100


def vote_weight(reputation_points: int) -> int:
    return 1 + max(reputation_points, 0) // REPUTATION_PER_WEIGHT_STEP


def compute_weighted_score(score: int, reputation_points: int) -> int:
    return score * vote_weight(reputation_points)


class EvaluationLedger:
    def __init__(
        self,
        store: LedgerStore,
        registry: ModelRegistry,
        reputation: ReputationTracker,
        leaderboards: CategoryLeaderboardBook,
    ) -> None:
        self._store = store
        self._registry = registry
        self._reputation = reputation
        self._leaderboards = leaderboards

    def get(self, evaluator: str, model_id: int) -> Optional[Evaluation]:
        return self._store.evaluations.get((evaluator, model_id))

    def submit(
        self,
        evaluator: str,
        model_id: int,
        score: int,
        comment: Optional[str],
        height: int,
    ) -> Evaluation:
        validation.validate_identity("evaluator", evaluator)
        model = self._registry.require(model_id)
        if not model.active:
            raise StateError(
                f"model {model_id} is deactivated",
                error_code="ModelDeactivated",
                details={"model_id": model_id},
            )
        validation.validate_rating(score)
        if (evaluator, model_id) in self._store.evaluations:
            raise ConflictError(
                f"{evaluator} already evaluated model {model_id}",
                error_code="DuplicateVote",
                details={"evaluator": evaluator, "model_id": model_id},
            )
        validation.validate_comment(comment)

        reputation_points = self._reputation.points(evaluator)
        weighted_score = compute_weighted_score(score, reputation_points)

        evaluation = Evaluation(
            evaluator=evaluator,
            model_id=model_id,
            score=score,
            submitted_at=height,
            comment=comment,
            reputation_at_vote=reputation_points,
        )
        self._store.evaluations.put((evaluator, model_id), evaluation)
        updated = self._registry.apply_evaluation_stats(model_id, weighted_score, height)
        state = self._store.state
        self._store.put_state(
            state.model_copy(update={"total_evaluations": state.total_evaluations + 1})
        )
        self._reputation.record_evaluation(evaluator, height)
        self._leaderboards.on_change(model.category, height)

        log.info(
            "Evaluation recorded",
            extra={
                "model_id": model_id,
                "evaluator": evaluator,
                "score": score,
                "weighted_score": weighted_score,
                "average_rating": updated.average_rating,
            },
        )
        return evaluation


__all__ = [
    "EvaluationLedger",
    "REPUTATION_PER_WEIGHT_STEP",
    "compute_weighted_score",
    "vote_weight",
]
