#!/usr/bin/env python3
"""
Full data reset.

Removes every stored key: settings, progress, rules, daily stats, the
activity log, badges and leaderboard history.
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import logging

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.prompt import Confirm

from disciplinetx.core.config import Config
from disciplinetx.core.engine import DisciplineEngine

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

app = typer.Typer(help="Reset all DisciplineTX data")
console = Console()


@app.command()
def main(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """
    Delete all stored data. This cannot be undone.
    """
    load_dotenv()
    config = Config.from_env()
    engine = DisciplineEngine.from_config(config)

    if not yes and not Confirm.ask(
        f"[red]Delete ALL data in {config.database_path}?[/red]",
        console=console,
        default=False,
    ):
        raise typer.Exit(0)

    engine.reset_all()
    console.print("[green]All data removed. Run scripts/setup.py to start again.[/green]")


if __name__ == "__main__":
    app()
