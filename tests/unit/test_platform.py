from __future__ import annotations

import threading
from typing import Callable

import pytest

from model_ledger.domain.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ResourceError,
    StateError,
    ValidationError,
)
from model_ledger.domain.models import ReputationProfile
from model_ledger.infrastructure.host import InMemoryTransferOracle, ManualClock
from model_ledger.platform import LedgerPlatform, run_operation

from tests.conftest import ADMIN, ALICE, BOB, CAROL, CONTENT_HASH, MIN_STAKE

INITIAL_BALANCE = MIN_STAKE * 5
LOCKUP = 100


class TestInitialization:
    def test_seeds_every_category(self, platform: LedgerPlatform, clock: ManualClock) -> None:
        stats = platform.get_platform_stats()
        assert stats.initialized is True
        assert stats.initialized_at == clock.current_height()
        for category in [
            "natural-language-processing",
            "computer-vision",
            "recommendation-systems",
            "reinforcement-learning",
            "generative-models",
            "speech-recognition",
            "time-series-analysis",
            "other-category",
        ]:
            board = platform.get_leaderboard(category)
            assert board.ranked_model_ids == ()
            assert board.total_models == 0
            assert board.updated_at == clock.current_height()

    def test_second_initialization_is_a_conflict(self, platform: LedgerPlatform) -> None:
        with pytest.raises(ConflictError) as exc_info:
            platform.initialize(caller=ADMIN)
        assert exc_info.value.error_code == "AlreadyInitialized"

    def test_only_owner_may_initialize(self, fresh_platform: LedgerPlatform) -> None:
        with pytest.raises(AuthorizationError):
            fresh_platform.initialize(caller=ALICE)
        assert fresh_platform.get_platform_stats().initialized is False

    def test_registration_before_initialization_fails(self, fresh_platform: LedgerPlatform) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            fresh_platform.register_model(ALICE, "Demo", "A demo model", "computer-vision", CONTENT_HASH)
        assert exc_info.value.error_code == "CategoryNotSeeded"


class TestRegistration:
    def test_sequential_identifiers_and_stats(self, platform: LedgerPlatform, register) -> None:
        assert register() == 1
        assert register(creator=BOB) == 2
        stats = platform.get_platform_stats()
        assert stats.total_models == 2
        assert stats.next_model_id == 3
        assert stats.total_staked == 2 * MIN_STAKE

    def test_registered_model_fields(
        self, platform: LedgerPlatform, register, clock: ManualClock, transfers: InMemoryTransferOracle
    ) -> None:
        model_id = register()
        model = platform.get_model(model_id)
        assert model.name == "Demo"
        assert model.creator == ALICE
        assert model.category.value == "computer-vision"
        assert (model.vote_count, model.cumulative_score, model.average_rating) == (0, 0, 0)
        assert model.active is True
        assert model.stake_amount == MIN_STAKE
        assert model.registered_at == model.updated_at == clock.current_height()

        assert transfers.balance(ALICE) == INITIAL_BALANCE - MIN_STAKE
        assert transfers.balance("escrow") == MIN_STAKE
        assert platform.get_stake_balance(ALICE) == MIN_STAKE
        assert platform.get_stake_account(ALICE).staked_models == (model_id,)

        reputation = platform.get_reputation(ALICE)
        assert reputation.points == 5
        assert reputation.models_contributed == 1
        assert reputation.first_activity_at == clock.current_height()

        board = platform.get_leaderboard("computer-vision")
        assert board.total_models == 1
        assert board.ranked_model_ids == (model_id,)
        assert platform.list_models_in_category("computer-vision") == [model_id]

    def test_unknown_category_changes_nothing(
        self, platform: LedgerPlatform, register, transfers: InMemoryTransferOracle
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            register(category="unknown-category")
        assert exc_info.value.error_code == "InvalidCategory"

        stats = platform.get_platform_stats()
        assert stats.total_models == 0
        assert stats.next_model_id == 1
        assert transfers.balance(ALICE) == INITIAL_BALANCE
        assert platform.get_reputation(ALICE) is None

    @pytest.mark.parametrize(
        "overrides, code",
        [
            ({"name": ""}, "InvalidLength"),
            ({"name": "n" * 101}, "InvalidLength"),
            ({"description": ""}, "InvalidLength"),
            ({"description": "d" * 501}, "InvalidLength"),
            ({"content_hash": "h" * 63}, "InvalidLength"),
            ({"content_hash": "h" * 65}, "InvalidLength"),
        ],
    )
    def test_length_validation(self, platform: LedgerPlatform, register, overrides, code) -> None:
        with pytest.raises(ValidationError) as exc_info:
            register(**overrides)
        assert exc_info.value.error_code == code
        assert platform.get_platform_stats().total_models == 0

    def test_insufficient_balance(
        self, platform: LedgerPlatform, register, transfers: InMemoryTransferOracle
    ) -> None:
        transfers.mint("dave", MIN_STAKE - 1)
        with pytest.raises(ResourceError) as exc_info:
            register(creator="dave")
        assert exc_info.value.error_code == "InsufficientBalance"
        assert transfers.balance("dave") == MIN_STAKE - 1
        assert platform.get_platform_stats().next_model_id == 1

    def test_stake_capacity_is_enforced_before_escrow(
        self, test_settings, clock: ManualClock, transfers: InMemoryTransferOracle
    ) -> None:
        platform = LedgerPlatform(
            settings=test_settings.model_copy(update={"stake_capacity": 2}),
            clock=clock,
            transfers=transfers,
        )
        platform.initialize(caller=ADMIN)
        for _ in range(2):
            platform.register_model(ALICE, "Demo", "A demo model", "computer-vision", CONTENT_HASH)

        with pytest.raises(ConflictError) as exc_info:
            platform.register_model(ALICE, "Demo", "A demo model", "computer-vision", CONTENT_HASH)
        assert exc_info.value.error_code == "CapacityExceeded"
        assert transfers.balance(ALICE) == INITIAL_BALANCE - 2 * MIN_STAKE
        assert platform.get_platform_stats().total_models == 2

    def test_failure_after_escrow_rolls_everything_back(
        self, platform: LedgerPlatform, register, transfers: InMemoryTransferOracle, monkeypatch
    ) -> None:
        def explode(*args, **kwargs):
            raise RuntimeError("reputation backend down")

        monkeypatch.setattr(platform.reputation, "record_registration", explode)
        with pytest.raises(RuntimeError):
            register()

        stats = platform.get_platform_stats()
        assert stats.total_models == 0
        assert stats.next_model_id == 1
        assert stats.total_staked == 0
        assert transfers.balance(ALICE) == INITIAL_BALANCE
        assert transfers.balance("escrow") == 0
        assert platform.get_stake_account(ALICE) is None
        assert platform.get_leaderboard("computer-vision").total_models == 0
        assert platform.list_models_in_category("computer-vision") == []

    def test_interrupt_after_escrow_refunds_the_stake(
        self, platform: LedgerPlatform, register, transfers: InMemoryTransferOracle, monkeypatch
    ) -> None:
        def interrupt(*args, **kwargs):
            raise KeyboardInterrupt

        monkeypatch.setattr(platform.reputation, "record_registration", interrupt)
        with pytest.raises(KeyboardInterrupt):
            register()

        assert platform.get_platform_stats().total_models == 0
        assert transfers.balance(ALICE) == INITIAL_BALANCE
        assert transfers.balance("escrow") == 0
        assert platform.get_stake_account(ALICE) is None


class TestEvaluation:
    def test_weighted_score_uses_reputation_snapshot(self, platform: LedgerPlatform, register) -> None:
        model_id = register()
        with platform.store.transaction():
            platform.store.reputations.put(BOB, ReputationProfile(participant=BOB, points=150))

        evaluation = platform.submit_evaluation(BOB, model_id, 7, "sharp edges")
        platform.submit_evaluation(CAROL, model_id, 4)

        assert evaluation.reputation_at_vote == 150
        assert evaluation.comment == "sharp edges"
        assert platform.get_evaluation(BOB, model_id) == evaluation
        assert platform.get_evaluation(CAROL, model_id).comment is None

        model = platform.get_model(model_id)
        assert model.vote_count == 2
        assert model.cumulative_score == 7 * 2 + 4 * 1
        assert model.average_rating == 18 // 2

        assert platform.get_reputation(BOB).points == 151
        assert platform.get_reputation(BOB).evaluations_submitted == 1
        assert platform.get_platform_stats().total_evaluations == 2

    def test_average_is_floor_of_cumulative_over_count(self, platform: LedgerPlatform, register) -> None:
        model_id = register()
        assert platform.get_model(model_id).average_rating == 0
        for evaluator, score in [(BOB, 10), (CAROL, 3), ("dave", 4)]:
            platform.submit_evaluation(evaluator, model_id, score)
        model = platform.get_model(model_id)
        assert model.average_rating == model.cumulative_score // model.vote_count == 5

    def test_duplicate_vote_is_a_conflict_and_changes_nothing(
        self, platform: LedgerPlatform, register
    ) -> None:
        model_id = register()
        platform.submit_evaluation(BOB, model_id, 8)
        before = platform.get_model(model_id)

        with pytest.raises(ConflictError) as exc_info:
            platform.submit_evaluation(BOB, model_id, 2)
        assert exc_info.value.error_code == "DuplicateVote"
        assert platform.get_model(model_id) == before
        assert platform.get_reputation(BOB).points == 1

    @pytest.mark.parametrize("score", [0, 11])
    def test_out_of_range_score_has_no_side_effects(
        self, platform: LedgerPlatform, register, score: int
    ) -> None:
        model_id = register()
        board_before = platform.get_leaderboard("computer-vision")

        with pytest.raises(ValidationError) as exc_info:
            platform.submit_evaluation(BOB, model_id, score)
        assert exc_info.value.error_code == "InvalidRating"

        assert platform.get_model(model_id).vote_count == 0
        assert platform.get_evaluation(BOB, model_id) is None
        assert platform.get_reputation(BOB) is None
        assert platform.get_platform_stats().total_evaluations == 0
        assert platform.get_leaderboard("computer-vision") == board_before

    def test_comment_bounds(self, platform: LedgerPlatform, register) -> None:
        model_id = register()
        with pytest.raises(ValidationError) as exc_info:
            platform.submit_evaluation(BOB, model_id, 5, "")
        assert exc_info.value.error_code == "InvalidCommentLength"
        with pytest.raises(ValidationError):
            platform.submit_evaluation(BOB, model_id, 5, "c" * 201)
        platform.submit_evaluation(BOB, model_id, 5, "c" * 200)

    def test_unknown_model(self, platform: LedgerPlatform) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            platform.submit_evaluation(BOB, 42, 5)
        assert exc_info.value.error_code == "NotFound"

    def test_deactivated_model_rejects_evaluations(self, platform: LedgerPlatform, register) -> None:
        model_id = register()
        platform.deactivate_model(ADMIN, model_id)
        with pytest.raises(StateError) as exc_info:
            platform.submit_evaluation(BOB, model_id, 5)
        assert exc_info.value.error_code == "ModelDeactivated"

    def test_concurrent_duplicate_votes_record_exactly_one(
        self, platform: LedgerPlatform, register
    ) -> None:
        model_id = register()
        barrier = threading.Barrier(8)
        results = []

        def vote() -> None:
            barrier.wait()
            results.append(run_operation(platform.submit_evaluation, BOB, model_id, 6))

        threads = [threading.Thread(target=vote) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sum(1 for r in results if r["ok"]) == 1
        assert {r["error_code"] for r in results if not r["ok"]} == {"DuplicateVote"}
        assert platform.get_model(model_id).vote_count == 1


class TestWithdrawal:
    def test_too_early(self, platform: LedgerPlatform, register, clock: ManualClock) -> None:
        model_id = register()
        clock.advance(LOCKUP)
        with pytest.raises(StateError) as exc_info:
            platform.withdraw_model_stake(ALICE, model_id)
        assert exc_info.value.error_code == "WithdrawalTooEarly"
        assert platform.is_model_active(model_id)

    def test_non_creator(self, platform: LedgerPlatform, register, clock: ManualClock) -> None:
        model_id = register()
        clock.advance(LOCKUP + 1)
        with pytest.raises(AuthorizationError) as exc_info:
            platform.withdraw_model_stake(BOB, model_id)
        assert exc_info.value.error_code == "Unauthorized"

    def test_non_creator_is_checked_before_lockup(self, platform: LedgerPlatform, register) -> None:
        model_id = register()
        with pytest.raises(AuthorizationError):
            platform.withdraw_model_stake(BOB, model_id)

    def test_valid_withdrawal_refunds_and_retires_model(
        self,
        platform: LedgerPlatform,
        register,
        clock: ManualClock,
        transfers: InMemoryTransferOracle,
    ) -> None:
        model_id = register()
        platform.submit_evaluation(BOB, model_id, 9)
        height = clock.advance(LOCKUP + 1)

        model = platform.withdraw_model_stake(ALICE, model_id)

        assert model.active is False
        assert model.stake_released is True
        assert model.updated_at == height
        assert platform.is_model_active(model_id) is False
        assert transfers.balance(ALICE) == INITIAL_BALANCE
        assert transfers.balance("escrow") == 0
        assert platform.get_stake_balance(ALICE) == 0
        assert platform.get_stake_account(ALICE).staked_models == (model_id,)
        assert platform.get_platform_stats().total_staked == 0

        board = platform.get_leaderboard("computer-vision")
        assert board.ranked_model_ids == ()
        assert board.total_models == 1
        assert board.updated_at == height

        with pytest.raises(StateError) as exc_info:
            platform.submit_evaluation(CAROL, model_id, 5)
        assert exc_info.value.error_code == "ModelDeactivated"

    def test_second_withdrawal_is_rejected(
        self, platform: LedgerPlatform, register, clock: ManualClock
    ) -> None:
        model_id = register()
        clock.advance(LOCKUP + 1)
        platform.withdraw_model_stake(ALICE, model_id)
        with pytest.raises(StateError) as exc_info:
            platform.withdraw_model_stake(ALICE, model_id)
        assert exc_info.value.error_code == "StakeAlreadyReleased"

    def test_admin_deactivated_model_can_still_release_stake(
        self,
        platform: LedgerPlatform,
        register,
        clock: ManualClock,
        transfers: InMemoryTransferOracle,
    ) -> None:
        model_id = register()
        platform.deactivate_model(ADMIN, model_id)
        clock.advance(LOCKUP + 1)
        platform.withdraw_model_stake(ALICE, model_id)
        assert transfers.balance(ALICE) == INITIAL_BALANCE

    def test_interrupt_after_refund_returns_value_to_escrow(
        self,
        platform: LedgerPlatform,
        register,
        clock: ManualClock,
        transfers: InMemoryTransferOracle,
        monkeypatch,
    ) -> None:
        model_id = register()
        clock.advance(LOCKUP + 1)

        def interrupt(*args, **kwargs):
            raise KeyboardInterrupt

        monkeypatch.setattr(platform.leaderboards, "on_change", interrupt)
        with pytest.raises(KeyboardInterrupt):
            platform.withdraw_model_stake(ALICE, model_id)

        model = platform.get_model(model_id)
        assert model.active is True
        assert model.stake_released is False
        assert transfers.balance(ALICE) == INITIAL_BALANCE - MIN_STAKE
        assert transfers.balance("escrow") == MIN_STAKE
        assert platform.get_stake_balance(ALICE) == MIN_STAKE
        assert platform.get_platform_stats().total_staked == MIN_STAKE


class TestAdministration:
    def test_deactivate_is_idempotent(
        self, platform: LedgerPlatform, register, clock: ManualClock
    ) -> None:
        model_id = register()
        first = platform.deactivate_model(ADMIN, model_id)
        clock.advance(5)
        second = platform.deactivate_model(ADMIN, model_id)
        assert first.active is second.active is False
        assert second.updated_at == first.updated_at + 5
        assert second.stake_released is False

    def test_deactivate_requires_owner(self, platform: LedgerPlatform, register) -> None:
        model_id = register()
        with pytest.raises(AuthorizationError):
            platform.deactivate_model(ALICE, model_id)
        assert platform.is_model_active(model_id)

    def test_deactivate_unknown_model(self, platform: LedgerPlatform) -> None:
        with pytest.raises(NotFoundError):
            platform.deactivate_model(ADMIN, 99)

    def test_transfer_ownership(self, platform: LedgerPlatform, register) -> None:
        model_id = register()
        with pytest.raises(AuthorizationError):
            platform.transfer_ownership(ALICE, ALICE)
        with pytest.raises(ValidationError):
            platform.transfer_ownership(ADMIN, "")

        assert platform.transfer_ownership(ADMIN, CAROL) == CAROL
        assert platform.owner == CAROL
        with pytest.raises(AuthorizationError):
            platform.deactivate_model(ADMIN, model_id)
        platform.deactivate_model(CAROL, model_id)


class TestProperties:
    def test_weight_is_monotone_in_reputation(self, platform: LedgerPlatform) -> None:
        for score in range(1, 11):
            previous = 0
            for reputation in range(0, 1_000, 7):
                current = platform.compute_weighted_score(score, reputation)
                assert current >= previous
                previous = current
        assert platform.compute_weighted_score(7, 99) == 7
        assert platform.compute_weighted_score(7, 100) == 14
        assert platform.compute_weighted_score(7, 250) == 21

    def test_reputation_never_decreases(
        self, platform: LedgerPlatform, register, clock: ManualClock
    ) -> None:
        seen = {ALICE: 0, BOB: 0, CAROL: 0}

        def check() -> None:
            for participant in seen:
                profile = platform.get_reputation(participant)
                points = profile.points if profile else 0
                assert points >= seen[participant]
                seen[participant] = points

        steps: list[Callable[[], object]] = [
            lambda: register(),
            lambda: register(creator=BOB, category="generative-models"),
            lambda: platform.submit_evaluation(CAROL, 1, 7),
            lambda: platform.submit_evaluation(CAROL, 1, 7),
            lambda: platform.submit_evaluation(ALICE, 2, 0),
            lambda: platform.submit_evaluation(ALICE, 2, 3),
            lambda: clock.advance(LOCKUP + 1),
            lambda: platform.withdraw_model_stake(ALICE, 1),
            lambda: platform.submit_evaluation(BOB, 1, 9),
            lambda: platform.deactivate_model(ADMIN, 2),
        ]
        for step in steps:
            run_operation(step)
            check()
        assert seen == {ALICE: 6, BOB: 5, CAROL: 1}


def test_run_operation_tags_rejections(platform: LedgerPlatform) -> None:
    result = run_operation(platform.submit_evaluation, BOB, 7, 5)
    assert result["ok"] is False
    assert result["operation"] == "submit_evaluation"
    assert result["error_code"] == "NotFound"
    assert result["error_kind"] == "not_found"
    assert result["details"] == {"model_id": 7}


def test_run_operation_serializes_success(platform: LedgerPlatform, register) -> None:
    model_id = register()
    result = run_operation(platform.get_model, model_id)
    assert result["ok"] is True
    assert result["value"]["id"] == model_id
    assert result["value"]["category"] == "computer-vision"


def test_run_operation_does_not_swallow_defects(platform: LedgerPlatform) -> None:
    def broken() -> None:
        raise KeyError("bug")

    with pytest.raises(KeyError):
        run_operation(broken)


def test_category_queries(platform: LedgerPlatform) -> None:
    assert platform.is_category_valid("speech-recognition") is True
    assert platform.is_category_valid("unknown-category") is False
    with pytest.raises(ValidationError):
        platform.get_leaderboard("unknown-category")
