"""
Domain records for the model ledger.

Each logical table holds immutable (frozen) pydantic records; components never
mutate a stored record in place, they build an updated copy and put it back
through the store so the enclosing transaction can roll it back.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, Field

_FROZEN = {
    "frozen": True,
    "populate_by_name": True,
    "arbitrary_types_allowed": False,
    "protected_namespaces": (),
}


class Category(str, Enum):
    """Closed taxonomy of model categories."""

    NATURAL_LANGUAGE_PROCESSING = "natural-language-processing"
    COMPUTER_VISION = "computer-vision"
    RECOMMENDATION_SYSTEMS = "recommendation-systems"
    REINFORCEMENT_LEARNING = "reinforcement-learning"
    GENERATIVE_MODELS = "generative-models"
    SPEECH_RECOGNITION = "speech-recognition"
    TIME_SERIES_ANALYSIS = "time-series-analysis"
    OTHER = "other-category"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


class Model(BaseModel):
    """
    A registered catalog entry and its rolling evaluation statistics.
    """

    id: int = Field(..., ge=1, description="Sequential identifier, never reused.")
    name: str
    description: str
    creator: str
    category: Category
    content_hash: str = Field(..., description="Opaque content-addressed reference.")
    vote_count: int = 0
    cumulative_score: int = Field(0, description="Sum of weighted scores.")
    average_rating: int = Field(0, description="floor(cumulative_score / vote_count).")
    stake_amount: int
    registered_at: int = Field(..., description="Registration height.")
    active: bool = True
    updated_at: int = Field(..., description="Last-update height.")
    stake_released: bool = False

    model_config = _FROZEN


class Evaluation(BaseModel):
    """
    One evaluator's rating of one model. Written once, never changed.
    """

    evaluator: str
    model_id: int
    score: int = Field(..., ge=1, le=10)
    submitted_at: int
    comment: Optional[str] = None
    reputation_at_vote: int = Field(..., ge=0)

    model_config = _FROZEN


class StakeAccount(BaseModel):
    participant: str
    total_staked: int = Field(0, ge=0)
    staked_models: Tuple[int, ...] = ()

    model_config = _FROZEN


class ReputationProfile(BaseModel):
    participant: str
    points: int = Field(0, ge=0)
    evaluations_submitted: int = 0
    models_contributed: int = 0
    # Reserved; no rule populates it.
    quality_score_average: int = 0
    first_activity_at: Optional[int] = None

    model_config = _FROZEN


class CategoryLeaderboard(BaseModel):
    category: Category
    ranked_model_ids: Tuple[int, ...] = ()
    updated_at: int = 0
    total_models: int = Field(0, ge=0, description="Registrations ever made in the category.")

    model_config = _FROZEN


class PlatformState(BaseModel):
    """
    Singleton platform row: administrator, id sequence and running totals.
    """

    owner: str
    initialized: bool = False
    initialized_at: Optional[int] = None
    next_model_id: int = 1
    total_evaluations: int = 0
    total_staked: int = 0

    model_config = _FROZEN


class PlatformStats(BaseModel):
    total_models: int
    total_evaluations: int
    total_staked: int
    next_model_id: int
    initialized: bool
    initialized_at: Optional[int]
    owner: str
    min_stake: int
    lockup_period: int
    current_height: int

    model_config = _FROZEN


__all__ = [
    "Category",
    "CategoryLeaderboard",
    "Evaluation",
    "Model",
    "PlatformState",
    "PlatformStats",
    "ReputationProfile",
    "StakeAccount",
]
