from __future__ import annotations

from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from model_ledger.domain.models import CategoryLeaderboard, Model, PlatformStats


def print_leaderboard(
    board: CategoryLeaderboard,
    models: List[Model],
    console: Optional[Console] = None,
) -> None:
    """
    Render a category leaderboard, best model first.
    """
    console = console or Console()
    table = Table(
        title=f"{board.category.value}\n[dim]{board.total_models} registered │ updated at height {board.updated_at}[/dim]",
        box=box.ROUNDED,
        caption="Ranked by average rating, then votes",
    )
    table.add_column("#", justify="right", style="blue")
    table.add_column("ID", justify="right", style="magenta")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Creator", style="white")
    table.add_column("Avg", justify="right", style="bold green")
    table.add_column("Votes", justify="right", style="green")

    if not models:
        console.print(f"[yellow]No ranked models in {board.category.value}.[/yellow]")
        return

    for rank, model in enumerate(models, start=1):
        table.add_row(
            str(rank),
            str(model.id),
            model.name,
            model.creator,
            f"{model.average_rating:,}",
            f"{model.vote_count:,}",
        )
    console.print(table)


def print_platform_stats(stats: PlatformStats, console: Optional[Console] = None) -> None:
    console = console or Console()
    table = Table(title="Platform", box=box.ROUNDED, show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", justify="right", style="bold")
    for field, value in stats.model_dump(mode="json").items():
        table.add_row(field.replace("_", " "), "N/A" if value is None else f"{value}")
    console.print(table)


def print_simulation_summary(summary: Dict[str, Any], console: Optional[Console] = None) -> None:
    """
    Render simulation outcome counts, most frequent first.
    """
    console = console or Console()
    profile = summary.get("profile", {})
    duration = profile.get("duration_seconds") or 0.0
    peak_rss = profile.get("peak_rss_bytes") or 0

    table = Table(
        title=(
            f"Simulation seed={summary.get('seed')}\n"
            f"[dim]{summary.get('operations', 0):,} operations in {duration:.2f}s │ "
            f"{summary.get('operations_per_sec', 0.0):,.2f} ops/s │ "
            f"peak RSS {peak_rss / (1024 * 1024):.2f} MB[/dim]"
        ),
        box=box.ROUNDED,
    )
    table.add_column("Operation", style="cyan", no_wrap=True)
    table.add_column("Outcome", style="magenta")
    table.add_column("Count", justify="right", style="bold green")

    outcomes = summary.get("outcomes", {})
    for key, count in sorted(outcomes.items(), key=lambda item: item[1], reverse=True):
        operation, _, outcome = key.partition(":")
        style = "green" if outcome == "ok" else "red"
        table.add_row(operation, f"[{style}]{outcome}[/{style}]", f"{count:,}")
    console.print(table)
