#!/usr/bin/env python3
"""
Rule management CLI.

Add, edit and review trading rules, and record violations or compliance.
"""

import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import logging
from typing import List

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from disciplinetx.core.config import Config
from disciplinetx.core.engine import DisciplineEngine
from disciplinetx.core.schemas import RuleCategory
from disciplinetx.core.utils import time_ago
from disciplinetx.rules.templates import CATEGORY_NAMES, RULE_TEMPLATES, find_template

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

app = typer.Typer(help="DisciplineTX Rule Management")
console = Console()


def _open_engine() -> DisciplineEngine:
    load_dotenv()
    return DisciplineEngine.from_config(Config.from_env())


def _category(value: str) -> RuleCategory:
    try:
        return RuleCategory(value.lower())
    except ValueError:
        console.print(
            f"[red]Unknown category '{value}'. "
            f"Choose from: {', '.join(c.value for c in RuleCategory)}[/red]"
        )
        raise typer.Exit(1)


def _report(result, success_message: str) -> None:
    if not result:
        console.print(f"[red]{result.reason}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]{success_message}[/green]")


@app.command("list")
def list_rules(
    category: str = typer.Option(None, "--category", "-c", help="Filter by category"),
    tag: List[str] = typer.Option(None, "--tag", "-t", help="Filter by tag (repeatable)"),
):
    """List rules with violation counts."""
    engine = _open_engine()

    rules = engine.rules.list(_category(category) if category else None, tag or None)
    if not rules:
        console.print("[yellow]No rules found.[/yellow]")
        return

    now = engine.clock()
    table = Table(title=f"Rules ({engine.rules.active_count()} active)")
    table.add_column("ID", style="dim")
    table.add_column("Rule")
    table.add_column("Category", style="cyan")
    table.add_column("Tags")
    table.add_column("Violations", justify="right")
    table.add_column("Last Violation")

    for rule in rules:
        table.add_row(
            rule.id,
            rule.text if rule.active else f"[dim]{rule.text} (inactive)[/dim]",
            rule.category.value,
            ", ".join(sorted(rule.tags)),
            str(rule.violations),
            time_ago(rule.last_violation_at, now) if rule.last_violation_at else "-",
        )

    console.print(table)


@app.command()
def add(
    text: str = typer.Argument(..., help="Rule text"),
    category: str = typer.Option("custom", "--category", "-c", help="Rule category"),
    tag: List[str] = typer.Option(None, "--tag", "-t", help="Tag (repeatable)"),
):
    """Add a rule."""
    engine = _open_engine()
    result = engine.add_rule(text, tag or [], _category(category))
    _report(result, f"Added rule {result.value.id if result else ''}")


@app.command()
def edit(
    rule_id: str = typer.Argument(..., help="Rule ID"),
    text: str = typer.Argument(..., help="New rule text"),
):
    """Change a rule's text."""
    _report(_open_engine().edit_rule(rule_id, text), f"Updated rule {rule_id}")


@app.command()
def retag(
    rule_id: str = typer.Argument(..., help="Rule ID"),
    tag: List[str] = typer.Option(None, "--tag", "-t", help="Tag (repeatable)"),
    category: str = typer.Option(None, "--category", "-c", help="New category"),
):
    """Replace a rule's tags and/or category."""
    partial = {}
    if tag:
        partial["tags"] = tag
    if category:
        partial["category"] = _category(category)
    _report(_open_engine().update_rule_meta(rule_id, partial), f"Updated rule {rule_id}")


@app.command()
def toggle(rule_id: str = typer.Argument(..., help="Rule ID")):
    """Activate or deactivate a rule."""
    result = _open_engine().toggle_rule(rule_id)
    state = "active" if result and result.value.active else "inactive"
    _report(result, f"Rule {rule_id} is now {state}")


@app.command()
def delete(
    rule_id: str = typer.Argument(..., help="Rule ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete a rule. Past violations stay in the activity log."""
    if not yes and not typer.confirm(f"Delete rule {rule_id}?"):
        raise typer.Exit(0)
    _report(_open_engine().delete_rule(rule_id), f"Deleted rule {rule_id}")


@app.command()
def violate(rule_id: str = typer.Argument(..., help="Rule ID")):
    """Record a rule violation (discipline -1)."""
    engine = _open_engine()
    result = engine.record_violation(rule_id)
    _report(result, f"Violation recorded. Discipline: {engine.progress.discipline_score}/100")


@app.command()
def comply(rule_id: str = typer.Argument(..., help="Rule ID")):
    """Record compliance with a rule (undo one violation, discipline +1)."""
    engine = _open_engine()
    result = engine.mark_compliance(rule_id)
    _report(result, f"Compliance recorded. Discipline: {engine.progress.discipline_score}/100")


@app.command()
def templates(
    category: str = typer.Option(None, "--category", "-c", help="Show one category"),
):
    """Show built-in rule templates."""
    categories = [_category(category)] if category else list(RULE_TEMPLATES)

    for cat in categories:
        entries = RULE_TEMPLATES.get(cat, [])
        if not entries:
            continue

        typer.secho(f"\n{CATEGORY_NAMES[cat]} ({cat.value})", bold=True)
        typer.echo("─" * 50)
        for index, template in enumerate(entries):
            typer.echo(f"  [{index}] {template.text}")

    typer.echo("")


@app.command("from-template")
def from_template(
    category: str = typer.Argument(..., help="Template category"),
    index: int = typer.Argument(..., help="Template number (see: templates)"),
):
    """Add a rule from a built-in template."""
    cat = _category(category)
    try:
        template = find_template(cat, index)
    except IndexError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    result = _open_engine().add_rule_from_template(template, cat)
    _report(result, f"Added rule {result.value.id if result else ''}: {template.text}")


@app.command()
def stats():
    """Per-category rule and violation counts."""
    engine = _open_engine()

    table = Table(title=f"Rule Stats ({engine.rules.total_violations()} violations)")
    table.add_column("Category")
    table.add_column("Rules", justify="right")
    table.add_column("Active", justify="right")
    table.add_column("Violations", justify="right")

    for category, counts in engine.rules.category_stats().items():
        if counts["count"] == 0:
            continue
        table.add_row(category, str(counts["count"]), str(counts["active"]), str(counts["violations"]))

    console.print(table)


if __name__ == "__main__":
    app()
