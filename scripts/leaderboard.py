#!/usr/bin/env python3
"""
Monthly leaderboard.

Ranks you against peers from DISCIPLINETX_PEERS_PATH (if set), runs the
30-day reset when due and shows past winners.
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import logging

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from disciplinetx.core.config import Config
from disciplinetx.core.engine import DisciplineEngine
from disciplinetx.core.utils import format_completions, format_countdown, format_signed_pct
from disciplinetx.leaderboard.peers import JsonFilePeerSource, NoPeerSource
from disciplinetx.leaderboard.ranker import display_growth_pct, percentile

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

app = typer.Typer(help="Monthly leaderboard")
console = Console()

MEDALS = {1: "🥇", 2: "🥈", 3: "🥉"}


@app.command()
def show(
    peers: str = typer.Option(None, "--peers", "-p", help="Peers JSON file (overrides config)"),
    limit: int = typer.Option(10, "--limit", "-l", help="Rows to show"),
):
    """
    Show current rankings. Runs the monthly reset when it is due.
    """
    load_dotenv()
    config = Config.from_env()
    engine = DisciplineEngine.from_config(config)

    peers_path = peers or config.peers_path
    source = JsonFilePeerSource(Path(peers_path)) if peers_path else NoPeerSource()

    ranked, outcome = engine.view_leaderboard(source)
    user_id = engine.identity.user_id

    if outcome.transitioned:
        console.print(f"\n[bold magenta]Leaderboard reset! {outcome.record.period_label}[/bold magenta]")
        if outcome.awarded_badge:
            console.print(f"[bold green]Badge earned: {outcome.awarded_badge}[/bold green]")

    table = Table(title=f"Leaderboard (resets in {format_countdown(engine.time_until_reset())})")
    table.add_column("#", justify="right")
    table.add_column("Trader")
    table.add_column("Completions", justify="right")
    table.add_column("Discipline", justify="right")
    table.add_column("Streak", justify="right")
    table.add_column("Growth", justify="right")
    table.add_column("Badges")

    for entry in ranked[:limit]:
        name = entry.display_name
        if entry.user_id == user_id:
            name = f"[bold cyan]{name} (you)[/bold cyan]"
        table.add_row(
            f"{MEDALS.get(entry.rank, '')} {entry.rank}",
            name,
            format_completions(entry.completions),
            str(entry.discipline_score),
            str(entry.streak),
            format_signed_pct(display_growth_pct(entry.growth_pct)),
            str(len(entry.badges)),
        )

    console.print(table)

    rank = engine.leaderboard.current_user_rank
    if rank:
        console.print(
            f"\nYour rank: #{rank} of {len(ranked)} "
            f"(top {100 - percentile(rank, len(ranked)):.0f}%)"
        )


@app.command()
def history():
    """
    Show archived results of past leaderboard periods.
    """
    load_dotenv()
    engine = DisciplineEngine.from_config(Config.from_env())

    records = engine.reset_cycle.history
    if not records:
        console.print("[yellow]No completed leaderboard periods yet.[/yellow]")
        return

    for record in reversed(records):
        console.print(f"\n[bold]{record.period_label}[/bold]  (your rank: {record.your_rank or '-'})")
        for entry in record.top3:
            console.print(
                f"  {MEDALS.get(entry.rank, '')} {entry.display_name}: "
                f"{format_completions(entry.completions)} completions, "
                f"discipline {entry.discipline_score}"
            )


@app.command()
def badges():
    """
    Show earned badges.
    """
    load_dotenv()
    engine = DisciplineEngine.from_config(Config.from_env())

    earned = engine.achievements.to_list()
    if not earned:
        console.print("[yellow]No badges yet. Finish a period in the top 3 to earn one.[/yellow]")
        return

    for badge in earned:
        console.print(f"  [green]✓[/green] {badge}")


if __name__ == "__main__":
    app()
