from __future__ import annotations

import json
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Generator, Optional

import typer

from model_ledger.config import Settings, get_settings
from model_ledger.domain.models import Category, CategoryLeaderboard
from model_ledger.infrastructure.repository import LedgerRepository, get_repository
from model_ledger.platform import (
    LedgerPlatform,
    OperationResult,
    load_platform,
    locked_platform,
    run_operation,
    save_platform,
)
from model_ledger.reporter import print_leaderboard, print_platform_stats, print_simulation_summary
from model_ledger.simulation import SimulationConfig, run_simulation
from model_ledger.utils.logging import configure_logging

app = typer.Typer(help="Model registry and ranking ledger CLI.")

_CALLER_HELP = "Identity performing the operation."


def _settings() -> Settings:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.json_logs)
    return settings


def _bootstrap() -> tuple[Settings, LedgerPlatform]:
    settings = _settings()
    return settings, load_platform(settings, get_repository(settings))


@contextmanager
def _session() -> Generator[tuple[LedgerPlatform, LedgerRepository], None, None]:
    """Hold the state lock from load until the block exits."""
    settings = _settings()
    repository = get_repository(settings)
    with locked_platform(settings, repository) as platform:
        yield platform, repository


def _emit(result: OperationResult) -> None:
    typer.echo(json.dumps(result, indent=2, sort_keys=True, default=str))
    if not result["ok"]:
        raise typer.Exit(code=1)


def _commit(run: Callable[[LedgerPlatform], OperationResult]) -> None:
    """Run an operation against the persisted state and save it on success."""
    with _session() as (platform, repository):
        result = run(platform)
        if result["ok"]:
            save_platform(platform, repository)
    _emit(result)


def _mutate(operation: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
    _commit(lambda platform: run_operation(getattr(platform, operation.__name__), *args, **kwargs))


def _query(name: str, *args: Any) -> None:
    _, platform = _bootstrap()
    result = run_operation(getattr(platform, name), *args)
    if result["ok"] and result.get("value") is None:
        result = OperationResult(
            ok=False,
            operation=name,
            error="no such record",
            error_code="NotFound",
            error_kind="not_found",
            details={"arguments": [str(a) for a in args]},
        )
    _emit(result)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    location = (
        f"postgres {settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name}"
        if settings.state_backend == "postgres"
        else f"file {settings.state_path}"
    )
    typer.echo(
        f"owner={settings.platform_owner} escrow={settings.escrow_account} | "
        f"min_stake={settings.min_stake} lockup={settings.lockup_period} "
        f"stake_capacity={settings.stake_capacity} leaderboard_size={settings.leaderboard_size} | "
        f"state={location}"
    )


@app.command()
def init(
    caller: Optional[str] = typer.Option(None, "--as", help="Administrator identity (defaults to owner)."),
) -> None:
    """
    Initialize the platform and seed every category leaderboard.
    """
    _commit(lambda platform: run_operation(platform.initialize, caller or platform.owner))


@app.command()
def fund(
    participant: str = typer.Argument(..., help="Identity to credit."),
    amount: int = typer.Argument(..., min=1, help="Amount to mint."),
) -> None:
    """
    Credit a participant's balance in the local transfer oracle.
    """
    with _session() as (platform, repository):
        balance = platform.transfers.mint(participant, amount)
        save_platform(platform, repository)
    typer.echo(json.dumps({"participant": participant, "balance": balance}))


@app.command()
def advance(blocks: int = typer.Argument(1, min=0, help="Height units to advance.")) -> None:
    """
    Advance the local clock.
    """
    with _session() as (platform, repository):
        height = platform.clock.advance(blocks)
        save_platform(platform, repository)
    typer.echo(json.dumps({"height": height}))


@app.command()
def register(
    caller: str = typer.Option(..., "--as", help=_CALLER_HELP),
    name: str = typer.Option(..., "--name", "-n"),
    description: str = typer.Option(..., "--description", "-d"),
    category: str = typer.Option(
        ..., "--category", "-c", help="One of: " + ", ".join(Category.values())
    ),
    content_hash: str = typer.Option(..., "--hash", help="64-character content reference."),
) -> None:
    """
    Register a model, escrowing the minimum stake.
    """
    _mutate(LedgerPlatform.register_model, caller, name, description, category, content_hash)


@app.command()
def evaluate(
    model_id: int = typer.Argument(...),
    score: int = typer.Argument(..., help="Rating from 1 to 10."),
    caller: str = typer.Option(..., "--as", help=_CALLER_HELP),
    comment: Optional[str] = typer.Option(None, "--comment"),
) -> None:
    """
    Submit a reputation-weighted evaluation.
    """
    _mutate(LedgerPlatform.submit_evaluation, caller, model_id, score, comment)


@app.command()
def withdraw(
    model_id: int = typer.Argument(...),
    caller: str = typer.Option(..., "--as", help=_CALLER_HELP),
) -> None:
    """
    Withdraw a model's stake after the lockup period; deactivates the model.
    """
    _mutate(LedgerPlatform.withdraw_model_stake, caller, model_id)


@app.command()
def deactivate(
    model_id: int = typer.Argument(...),
    caller: Optional[str] = typer.Option(None, "--as", help="Administrator identity (defaults to owner)."),
) -> None:
    """
    Deactivate a model (administrator only).
    """
    _commit(
        lambda platform: run_operation(platform.deactivate_model, caller or platform.owner, model_id)
    )


@app.command("transfer-ownership")
def transfer_ownership(
    new_owner: str = typer.Argument(...),
    caller: str = typer.Option(..., "--as", help="Current administrator."),
) -> None:
    """
    Hand platform administration to another identity.
    """
    _mutate(LedgerPlatform.transfer_ownership, caller, new_owner)


@app.command()
def model(model_id: int = typer.Argument(...)) -> None:
    """Show a registered model."""
    _query("get_model", model_id)


@app.command()
def evaluation(evaluator: str = typer.Argument(...), model_id: int = typer.Argument(...)) -> None:
    """Show one evaluator's evaluation of a model."""
    _query("get_evaluation", evaluator, model_id)


@app.command()
def reputation(participant: str = typer.Argument(...)) -> None:
    """Show a participant's reputation profile."""
    _query("get_reputation", participant)


@app.command()
def stake(participant: str = typer.Argument(...)) -> None:
    """Show a participant's stake account."""
    _query("get_stake_account", participant)


@app.command("category-models")
def category_models(category: str = typer.Argument(...)) -> None:
    """List every model registered in a category."""
    _query("list_models_in_category", category)


@app.command()
def leaderboard(
    category: str = typer.Argument(...),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table."),
) -> None:
    """
    Show a category's ranked models.
    """
    if as_json:
        _query("get_leaderboard", category)
        return
    _, platform = _bootstrap()
    result = run_operation(platform.get_leaderboard, category)
    if not result["ok"]:
        _emit(result)
    if result["value"] is None:
        typer.echo(f"Category {category} has not been seeded; run `init` first.", err=True)
        raise typer.Exit(code=1)
    board = CategoryLeaderboard.model_validate(result["value"])
    models = [platform.get_model(model_id) for model_id in board.ranked_model_ids]
    print_leaderboard(board, [m for m in models if m is not None])


@app.command()
def stats(as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table.")) -> None:
    """
    Show platform-wide statistics.
    """
    _, platform = _bootstrap()
    platform_stats = platform.get_platform_stats()
    if as_json:
        typer.echo(platform_stats.model_dump_json(indent=2))
        return
    print_platform_stats(platform_stats)


@app.command()
def simulate(
    participants: int = typer.Option(20, "--participants", "-p", min=1),
    operations: int = typer.Option(1_000, "--operations", "-o", min=1),
    seed: int = typer.Option(42, "--seed"),
    persist: bool = typer.Option(False, "--persist", help="Write results JSON under --results-dir."),
    results_dir: Path = typer.Option(Path("results"), "--results-dir"),
) -> None:
    """
    Run a seeded workload against a fresh in-memory platform.
    """
    settings = _settings()
    summary = run_simulation(
        SimulationConfig(
            participants=participants,
            operations=operations,
            seed=seed,
            results_dir=results_dir,
            persist=persist,
        ),
        settings=settings,
    )
    print_simulation_summary(summary)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
