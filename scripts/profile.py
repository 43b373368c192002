#!/usr/bin/env python3
"""
Goal preset management CLI.

View built-in and custom goal presets, and create new ones.
"""

import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import typer

from disciplinetx.core.schemas import ProgressObjectKind

app = typer.Typer(help="DisciplineTX Goal Presets")


@app.command()
def current():
    """Show current configuration."""
    from dotenv import load_dotenv
    from disciplinetx.core.config import Config

    load_dotenv()
    config = Config.from_env()

    typer.echo(config.get_summary())


@app.command("list")
def list_presets():
    """List all available goal presets."""
    from disciplinetx.core.profiles import ProfileManager

    manager = ProfileManager()

    typer.secho("\n📊 Available Goal Presets:", bold=True)
    typer.echo("─" * 50)

    for name in manager.list_profile_names():
        profile = manager.get_profile(name)
        settings = profile.to_settings()
        target = settings.starting_value * (1 + settings.growth_per_completion / 100) ** settings.target_completions

        typer.echo(f"\n{name}")
        typer.echo(f"  Name: {profile.name}")
        typer.echo(f"  Description: {profile.description}")
        typer.echo(f"  Goal: {profile.target_completions} x {profile.growth_per_completion}%")
        typer.echo(f"  Target: {profile.starting_value:,.2f} -> {target:,.2f}")
        typer.echo(f"  Object: {profile.progress_object_kind.value}")

    typer.echo("\n")


@app.command()
def create(
    name: str = typer.Argument(..., help="Preset name"),
    description: str = typer.Option("", "--description", "-d", help="Description"),
    start: float = typer.Option(100.0, "--start", help="Starting value"),
    target: int = typer.Option(50, "--target", "-t", help="Target completions"),
    growth: float = typer.Option(1.0, "--growth", "-g", help="Growth per completion (percent)"),
    kind: ProgressObjectKind = typer.Option(ProgressObjectKind.BEER, "--object", help="Progress object"),
):
    """Create a custom goal preset (saved to data/goal_profiles.json)."""
    from disciplinetx.core.profiles import ProfileManager

    manager = ProfileManager()
    try:
        manager.create_profile(name, description, start, target, growth, kind)
    except ValueError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED)
        raise typer.Exit(1)

    typer.secho(f"✓ Created preset: {name}", fg=typer.colors.GREEN)
    typer.echo(f"Use it with: python scripts/setup.py main --profile {name}")


if __name__ == "__main__":
    app()
