#!/usr/bin/env python3
"""
Weekly review script.

Shows discipline metrics and suggests ONE change for next week.
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import logging

import typer
from dotenv import load_dotenv
from rich.console import Console

from disciplinetx.core.config import Config
from disciplinetx.core.engine import DisciplineEngine
from disciplinetx.review.weekly import format_weekly_review, export_weekly_review

logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

app = typer.Typer(help="Weekly review")
console = Console()


@app.command()
def main(
    days: int = typer.Option(7, "--days", "-d", help="Number of days to review"),
    export: bool = typer.Option(False, "--export", "-e", help="Export to file"),
):
    """
    Generate weekly review.

    Shows completions, violations, win rate, and suggests ONE change.
    """
    load_dotenv()
    engine = DisciplineEngine.from_config(Config.from_env())

    if export:
        filepath = export_weekly_review(engine, days)
        console.print(f"[green]Review exported to {filepath}[/green]")
    else:
        print(format_weekly_review(engine, days))


if __name__ == "__main__":
    app()
