"""
Seeded workload simulation against a fresh in-memory platform.

Drives a pseudo-random mix of registrations, evaluations, clock advances and
withdrawals (including deliberately invalid requests) through the public
operations, tallies outcomes by error code and profiles the run.

Usage:
    from model_ledger.simulation import SimulationConfig, run_simulation

    summary = run_simulation(SimulationConfig(participants=20, operations=1_000, seed=7))
    print(summary["outcomes"])

Outputs are saved to `results/` when persisted:
- `results/latest.json` (last run)
- `results/simulation-<timestamp>.json` (timestamped archive)
"""

from __future__ import annotations

import json
import random
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from model_ledger.config import Settings, get_settings
from model_ledger.domain.models import Category
from model_ledger.infrastructure.host import InMemoryTransferOracle, ManualClock
from model_ledger.platform import LedgerPlatform, OperationResult, run_operation
from model_ledger.utils.logging import get_logger
from model_ledger.utils.profiler import profile_block

log = get_logger(__name__)

# Relative weights of each action in the workload mix.
_ACTION_WEIGHTS = {
    "register": 2,
    "evaluate": 12,
    "advance": 2,
    "withdraw": 1,
}


@dataclass
class SimulationConfig:
    participants: int = 20
    operations: int = 1_000
    seed: int = 42
    funding_stakes: int = 5
    invalid_rate: float = 0.05
    max_advance: int = 40
    results_dir: Path | str = "results"
    persist: bool = False


def _content_hash(rng: random.Random) -> str:
    return "".join(rng.choice("0123456789abcdef") for _ in range(64))


def _step(
    platform: LedgerPlatform,
    clock: ManualClock,
    rng: random.Random,
    participants: List[str],
    config: SimulationConfig,
) -> OperationResult:
    action = rng.choices(list(_ACTION_WEIGHTS), weights=list(_ACTION_WEIGHTS.values()))[0]
    invalid = rng.random() < config.invalid_rate
    caller = rng.choice(participants)
    next_id = platform.get_platform_stats().next_model_id
    known_model = rng.randint(1, next_id - 1) if next_id > 1 else 1

    if action == "register":
        category = "unknown-category" if invalid else rng.choice(Category.values())
        return run_operation(
            platform.register_model,
            caller,
            f"model-{next_id}",
            f"Simulated model {next_id}",
            category,
            _content_hash(rng),
        )
    if action == "evaluate":
        score = rng.choice([0, 11]) if invalid else rng.randint(1, 10)
        comment = rng.choice([None, "solid baseline", "needs more data"])
        return run_operation(platform.submit_evaluation, caller, known_model, score, comment)
    if action == "withdraw":
        model = platform.get_model(known_model)
        creator = model.creator if model and not invalid else caller
        return run_operation(platform.withdraw_model_stake, creator, known_model)

    height = clock.advance(rng.randint(1, config.max_advance))
    return OperationResult(ok=True, operation="advance", value=height)


def run_simulation(
    config: Optional[SimulationConfig] = None,
    settings: Optional[Settings] = None,
) -> Dict[str, Any]:
    """
    Run one seeded simulation and return its summary.

    The summary holds outcome counts keyed by ``<operation>:<ok|error_code>``,
    final platform stats, the top of every leaderboard and profiler stats.
    """
    config = config or SimulationConfig()
    settings = settings or get_settings()
    rng = random.Random(config.seed)

    clock = ManualClock()
    transfers = InMemoryTransferOracle()
    platform = LedgerPlatform(settings=settings, clock=clock, transfers=transfers)
    platform.initialize(caller=platform.owner)

    participants = [f"participant-{i:03d}" for i in range(config.participants)]
    for participant in participants:
        transfers.mint(participant, settings.min_stake * config.funding_stakes)

    log.info(
        "[SIMULATION START]",
        extra={"participants": config.participants, "operations": config.operations, "seed": config.seed},
    )
    outcomes: Counter[str] = Counter()
    with profile_block("simulation") as stats:
        for _ in range(config.operations):
            result = _step(platform, clock, rng, participants, config)
            outcomes[f"{result['operation']}:{'ok' if result['ok'] else result['error_code']}"] += 1

    summary: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "seed": config.seed,
        "participants": config.participants,
        "operations": config.operations,
        "outcomes": dict(sorted(outcomes.items())),
        "stats": platform.get_platform_stats().model_dump(mode="json"),
        "leaderboards": {
            category.value: list(platform.get_leaderboard(category.value).ranked_model_ids)
            for category in Category
        },
        "profile": stats.as_dict(),
        "operations_per_sec": (
            round(config.operations / stats.duration_seconds, 2) if stats.duration_seconds else 0.0
        ),
    }

    if config.persist:
        _persist_results(summary, Path(config.results_dir))

    log.info(
        "[SIMULATION COMPLETE]",
        extra={"total_models": summary["stats"]["total_models"], "duration": stats.duration_seconds},
    )
    return summary


def _persist_results(payload: dict, results_dir: Path) -> None:
    results_dir.mkdir(parents=True, exist_ok=True)
    latest_path = results_dir / "latest.json"
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    archive_path = results_dir / f"simulation-{timestamp}.json"

    with latest_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True)
    with archive_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True)

    log.info("Results persisted", extra={"latest": str(latest_path), "archive": str(archive_path)})


__all__ = ["SimulationConfig", "run_simulation"]
