#!/usr/bin/env python3
"""
Export data to CSV.

Exports daily stats or the activity log to CSV format for external analysis.
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import csv
import json
import typer
from dotenv import load_dotenv
from rich.console import Console

from disciplinetx.core.config import Config
from disciplinetx.core.engine import DisciplineEngine

app = typer.Typer(help="Export data to CSV")
console = Console()


def _open_engine() -> DisciplineEngine:
    load_dotenv()
    return DisciplineEngine.from_config(Config.from_env())


@app.command()
def daily(
    output: str = typer.Option(None, "--output", "-o", help="Output file path"),
):
    """
    Export daily completion/violation counts to CSV.
    """
    engine = _open_engine()

    if not output:
        output = f"data/daily_export_{engine.clock().strftime('%Y%m%d_%H%M%S')}.csv"

    stats = engine.daily.stats

    with open(output, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["date", "completions", "violations"])

        for day in sorted(stats):
            writer.writerow([day.isoformat(), stats[day].completions, stats[day].violations])

    console.print(f"[green]Exported {len(stats)} days to {output}[/green]")


@app.command()
def activity(
    output: str = typer.Option(None, "--output", "-o", help="Output file path"),
):
    """
    Export the activity log to CSV.
    """
    engine = _open_engine()

    if not output:
        output = f"data/activity_export_{engine.clock().strftime('%Y%m%d_%H%M%S')}.csv"

    entries = engine.daily.entries()
    rules = {rule.id: rule.text for rule in engine.rules.rules}

    with open(output, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow([
            "timestamp",
            "type",
            "increment",
            "gain_percent",
            "rule",
            "text",
            "payload",
        ])

        for entry in entries:
            payload = entry.payload
            rule_id = payload.get("ruleId")
            writer.writerow([
                entry.timestamp.isoformat(),
                entry.type.value,
                payload.get("increment", ""),
                payload.get("gainPercent", ""),
                rules.get(rule_id, "Unknown Rule") if rule_id else "",
                payload.get("text", ""),
                json.dumps(payload, sort_keys=True),
            ])

    console.print(f"[green]Exported {len(entries)} activity entries to {output}[/green]")


if __name__ == "__main__":
    app()
