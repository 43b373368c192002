#!/usr/bin/env python3
"""
Log a trade outcome.

Only winning, rule-compliant trades earn progress. Everything else is
kept as a journal note so the weekly review still sees it.
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import logging
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.prompt import Prompt, Confirm

from disciplinetx.core.config import Config
from disciplinetx.core.engine import DisciplineEngine
from disciplinetx.core.utils import format_completions, format_signed_pct

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

app = typer.Typer(help="Log a trade outcome")
console = Console()


def _open_engine() -> DisciplineEngine:
    load_dotenv()
    config = Config.from_env()
    engine = DisciplineEngine.from_config(config)

    if not engine.is_initialized():
        console.print("[red]No user set up yet. Run: python scripts/setup.py main[/red]")
        raise typer.Exit(1)

    return engine


def _print_progress(engine: DisciplineEngine) -> None:
    progress = engine.progress
    settings = engine.settings

    console.print(
        f"  Completions: {format_completions(progress.completions)}/{settings.target_completions} "
        f"({engine.ledger.next_completion_pct():.0f}% to next {settings.progress_object_kind.value})"
    )
    console.print(f"  Balance: {progress.current_balance:,.2f} / {engine.ledger.target_balance():,.2f}")
    console.print(f"  Discipline: {progress.discipline_score}/100")
    console.print(f"  Streak: {progress.streak} days")


@app.command()
def trade(
    gain_percent: float = typer.Argument(..., help="Trade P&L in percent (e.g. 2.5 or -1.2)"),
    compliant: Optional[bool] = typer.Option(None, "--compliant/--broke-rules", help="Did the trade follow your rules?"),
    notes: str = typer.Option("", "--notes", "-n", help="Trade notes"),
):
    """
    Record a trade and show updated progress.
    """
    engine = _open_engine()

    if compliant is None:
        compliant = Confirm.ask("Did I follow my rules?", console=console, default=True)

    if gain_percent > 0 and compliant:
        result = engine.record_trade_outcome(gain_percent, compliant)
        if not result:
            console.print(f"[red]Trade not recorded: {result.reason}[/red]")
            raise typer.Exit(1)

        console.print(
            f"\n[green]Trade {format_signed_pct(gain_percent)} logged: "
            f"+{format_completions(result.value)} completions[/green]\n"
        )
        if notes:
            engine.log_journal_entry(notes)
    else:
        if not notes:
            notes = Prompt.ask("One sentence lesson", console=console)

        result = engine.log_journal_entry(notes or "Trade logged", gain_percent=gain_percent)
        if not result:
            console.print(f"[red]Trade not recorded: {result.reason}[/red]")
            raise typer.Exit(1)

        reason = "rules were broken" if not compliant else "no gain"
        console.print(
            f"\n[yellow]Trade {format_signed_pct(gain_percent)} journaled without progress ({reason}).[/yellow]\n"
        )

    _print_progress(engine)

    if engine.ledger.goal_reached():
        console.print("\n[bold green]Goal reached! Set a new one: python scripts/log_trade.py goal[/bold green]")


@app.command()
def journal(
    text: str = typer.Argument(..., help="Journal note"),
    mood: str = typer.Option(None, "--mood", "-m", help="Mood tag"),
):
    """
    Add a journal note to the activity log.
    """
    engine = _open_engine()

    result = engine.log_journal_entry(text, mood)
    if not result:
        console.print(f"[red]{result.reason}[/red]")
        raise typer.Exit(1)

    console.print("[green]Journal entry saved.[/green]")


@app.command()
def goal(
    target: int = typer.Option(..., "--target", "-t", help="Target completions"),
    growth: float = typer.Option(..., "--growth", "-g", help="Growth per completion (percent)"),
    baseline: float = typer.Option(None, "--baseline", "-b", help="New starting balance (default: current balance)"),
):
    """
    Start a new goal. Discipline and streak carry over.
    """
    engine = _open_engine()

    if baseline is None:
        baseline = engine.progress.current_balance

    result = engine.set_goal(target, growth, baseline)
    if not result:
        console.print(f"[red]Goal not set: {result.reason}[/red]")
        raise typer.Exit(1)

    console.print(f"\n[green]New goal: {target} completions at {growth}% from {baseline:,.2f}[/green]\n")
    _print_progress(engine)


@app.command()
def status():
    """
    Show current progress.
    """
    engine = _open_engine()

    console.print("\n[bold]Progress[/bold]\n")
    _print_progress(engine)
    console.print(f"  Goal: {engine.ledger.goal_progress_pct():.1f}% complete")

    if engine.pending_keys:
        console.print(f"\n[yellow]Unsaved changes: {', '.join(engine.pending_keys)}[/yellow]")


if __name__ == "__main__":
    app()
