#!/usr/bin/env python3
"""
Interactive setup wizard for DisciplineTX.

Creates a fresh user from a goal preset and optionally seeds rules from
the built-in templates.
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import logging

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt, Confirm
from rich import print as rprint

from disciplinetx.core.config import Config
from disciplinetx.core.engine import DisciplineEngine
from disciplinetx.core.profiles import ProfileManager
from disciplinetx.rules.templates import CATEGORY_NAMES, RULE_TEMPLATES

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

app = typer.Typer(help="Interactive setup wizard")
console = Console()


@app.command()
def main(
    profile: str = typer.Option(None, "--profile", "-p", help="Goal preset"),
    starting_value: float = typer.Option(None, "--start", help="Override starting balance"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing user"),
):
    """
    Run interactive setup wizard.

    Prompts for any value not provided via CLI.
    """
    load_dotenv()
    config = Config.from_env()
    engine = DisciplineEngine.from_config(config)

    console.print(Panel.fit(
        "[bold cyan]DisciplineTX Setup Wizard[/bold cyan]\n\n"
        "This wizard creates your goal and starter rules.\n"
        "Press Ctrl+C at any time to cancel.",
        border_style="cyan"
    ))

    rprint("")

    if engine.is_initialized() and not force:
        if not Confirm.ask(
            "A user already exists. Start over (progress, rules and badges are cleared)?",
            console=console,
            default=False,
        ):
            raise typer.Exit(0)

    # Goal preset
    console.print("[bold yellow]Step 1/2: Goal[/bold yellow]\n")

    manager = ProfileManager()

    for name in manager.list_profile_names():
        prof = manager.get_profile(name)
        console.print(
            f"  [cyan]{name}[/cyan] - {prof.description} "
            f"({prof.target_completions} x {prof.growth_per_completion}%)"
        )

    console.print("")
    if not profile:
        profile = Prompt.ask(
            "Select preset",
            default=config.goal_profile,
            choices=manager.list_profile_names(),
            console=console,
        )

    try:
        selected = manager.get_profile(profile)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    settings = selected.to_settings()
    if starting_value is not None:
        settings.starting_value = starting_value

    result = engine.initialize_fresh_user(settings)
    if not result:
        console.print(f"[red]Setup failed: {result.reason}[/red]")
        raise typer.Exit(1)

    console.print(f"\n[green]✓ Goal: {selected.name}[/green]")
    console.print(f"  Starting value: {settings.starting_value:,.2f}")
    console.print(f"  Target: {settings.target_completions} completions at {settings.growth_per_completion}% each")
    console.print(f"  Target balance: {engine.ledger.target_balance():,.2f}")

    # Starter rules
    console.print("\n")
    console.print("[bold yellow]Step 2/2: Starter Rules[/bold yellow]\n")

    added = 0
    for category, templates in RULE_TEMPLATES.items():
        if not templates:
            continue
        if not Confirm.ask(f"Add {CATEGORY_NAMES[category]} rules?", console=console, default=False):
            continue
        for template in templates:
            if engine.add_rule_from_template(template, category):
                added += 1

    console.print(f"\n[green]✓ {added} rules added[/green]")

    console.print("\n")
    console.print(Panel.fit(
        "[bold green]Setup Complete![/bold green]\n\n"
        "Next steps:\n"
        "1. Log a winning, rule-compliant trade:\n"
        "   [dim]python scripts/log_trade.py trade 2.5[/dim]\n\n"
        "2. Manage rules:\n"
        "   [dim]python scripts/rules.py list[/dim]\n\n"
        "3. Check the leaderboard:\n"
        "   [dim]python scripts/leaderboard.py show[/dim]",
        border_style="green"
    ))


@app.command()
def validate():
    """Validate existing configuration and stored state."""
    load_dotenv()
    config = Config.from_env()

    console.print("[bold]Validating Configuration...[/bold]\n")
    console.print(config.get_summary())

    try:
        ProfileManager().get_profile(config.goal_profile)
        console.print(f"Goal preset: [green]✓ {config.goal_profile}[/green]")
    except ValueError:
        console.print(f"Goal preset: [red]✗ Unknown: {config.goal_profile}[/red]")

    db_path = Path(config.database_path)
    if not db_path.exists():
        console.print("Database: [yellow]Not initialized[/yellow]")
        console.print("  Run: [dim]python scripts/setup.py main[/dim]")
        return

    engine = DisciplineEngine.from_config(config)
    problems = engine.validate_consistency()
    if problems:
        console.print("State: [red]✗ Inconsistent[/red]")
        for problem in problems:
            console.print(f"  - {problem}")
    else:
        console.print("State: [green]✓ Consistent[/green]")


if __name__ == "__main__":
    app()
