"""
Reputation bookkeeping.

Points only ever go up. Two activities earn them:

- registering a model: +5 points, +1 model contributed
- submitting an evaluation: +1 point, +1 evaluation submitted

The first qualifying activity stamps `first_activity_at`, which never changes
afterwards.
"""

from __future__ import annotations

from typing import Optional

from model_ledger.domain.models import ReputationProfile
from model_ledger.infrastructure.store import LedgerStore
from model_ledger.utils.logging import get_logger

log = get_logger(__name__)

REGISTRATION_POINTS = 5
EVALUATION_POINTS = 1


class ReputationTracker:
    def __init__(self, store: LedgerStore) -> None:
        self._store = store

    def get(self, participant: str) -> Optional[ReputationProfile]:
        return self._store.reputations.get(participant)

    def points(self, participant: str) -> int:
        profile = self._store.reputations.get(participant)
        return profile.points if profile else 0

    def record_registration(self, participant: str, height: int) -> ReputationProfile:
        return self._award(participant, height, REGISTRATION_POINTS, models=1)

    def record_evaluation(self, participant: str, height: int) -> ReputationProfile:
        return self._award(participant, height, EVALUATION_POINTS, evaluations=1)

    def _award(
        self,
        participant: str,
        height: int,
        points: int,
        models: int = 0,
        evaluations: int = 0,
    ) -> ReputationProfile:
        current = self._store.reputations.get(participant) or ReputationProfile(
            participant=participant
        )
        updated = current.model_copy(
            update={
                "points": current.points + points,
                "models_contributed": current.models_contributed + models,
                "evaluations_submitted": current.evaluations_submitted + evaluations,
                "first_activity_at": (
                    current.first_activity_at if current.first_activity_at is not None else height
                ),
            }
        )
        self._store.reputations.put(participant, updated)
        log.debug(
            "Reputation awarded",
            extra={"participant": participant, "points": updated.points, "awarded": points},
        )
        return updated


__all__ = ["EVALUATION_POINTS", "REGISTRATION_POINTS", "ReputationTracker"]
