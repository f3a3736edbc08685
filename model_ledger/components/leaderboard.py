"""
Per-category leaderboards over the fixed taxonomy.

Each category keeps its top `size` active models ranked by average rating
(descending), then vote count (descending), then identifier (ascending). The
ranking is recomputed from the category's models whenever one of them is
registered, rated or deactivated, so averages that drop push a model down as
readily as rising ones push it up.
"""

from __future__ import annotations

import heapq
from typing import List, Optional, Tuple

from model_ledger.domain.errors import NotFoundError
from model_ledger.domain.models import Category, CategoryLeaderboard, Model
from model_ledger.infrastructure.store import LedgerStore


def rank_key(model: Model) -> Tuple[int, int, int]:
    return (-model.average_rating, -model.vote_count, model.id)


class CategoryLeaderboardBook:
    def __init__(self, store: LedgerStore, size: int = 10) -> None:
        self._store = store
        self.size = size

    def seed(self, height: int) -> None:
        for category in Category:
            self._store.leaderboards.put(
                category, CategoryLeaderboard(category=category, updated_at=height)
            )

    def get(self, category: Category) -> Optional[CategoryLeaderboard]:
        return self._store.leaderboards.get(category)

    def require(self, category: Category) -> CategoryLeaderboard:
        board = self._store.leaderboards.get(category)
        if board is None:
            raise NotFoundError(
                f"category {category.value} has not been seeded",
                error_code="CategoryNotSeeded",
                details={"category": category.value},
            )
        return board

    def model_ids(self, category: Category) -> Tuple[int, ...]:
        return self._store.category_index.get(category) or ()

    def add_model(self, category: Category, model_id: int) -> None:
        self._store.category_index.put(category, self.model_ids(category) + (model_id,))

    def rank(self, category: Category) -> Tuple[int, ...]:
        candidates: List[Model] = []
        for model_id in self.model_ids(category):
            model = self._store.models.get(model_id)
            if model is not None and model.active:
                candidates.append(model)
        return tuple(m.id for m in heapq.nsmallest(self.size, candidates, key=rank_key))

    def on_registration(self, category: Category, height: int) -> CategoryLeaderboard:
        board = self.require(category)
        return self._refresh(board, height, total_models=board.total_models + 1)

    def on_change(self, category: Category, height: int) -> CategoryLeaderboard:
        """Stats or active flag of a model in `category` changed."""
        board = self.require(category)
        return self._refresh(board, height, total_models=board.total_models)

    def _refresh(
        self, board: CategoryLeaderboard, height: int, total_models: int
    ) -> CategoryLeaderboard:
        updated = board.model_copy(
            update={
                "ranked_model_ids": self.rank(board.category),
                "updated_at": height,
                "total_models": total_models,
            }
        )
        self._store.leaderboards.put(board.category, updated)
        return updated


__all__ = ["CategoryLeaderboardBook", "rank_key"]
