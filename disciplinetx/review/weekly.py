"""
Weekly review module.

Generates behavioral summaries for weekly reflection.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from disciplinetx.core.engine import DisciplineEngine
from disciplinetx.core.schemas import ActivityType
from disciplinetx.core.utils import format_completions
from disciplinetx.review.stats import (
    compliance_rate,
    profit_factor,
    trade_results,
    verify_streak,
    violations_by_rule,
    weekday_heatmap,
    win_rate,
)

logger = logging.getLogger(__name__)


def get_weekly_stats(engine: DisciplineEngine, days: int = 7) -> dict:
    """
    Calculate discipline statistics for the past N days.
    """
    now = engine.clock()
    today = now.date()
    cutoff = datetime.combine(today - timedelta(days=days - 1), datetime.min.time(), tzinfo=now.tzinfo)

    daily = engine.daily.last_n_days(days, today)
    completions = round(sum(stat.completions for _, stat in daily), 9)
    violations = sum(stat.violations for _, stat in daily)
    active_days = sum(1 for _, stat in daily if stat.completions > 0)

    entries = engine.daily.entries(since=cutoff)
    results = trade_results(entries)
    journal_count = sum(1 for e in entries if e.type == ActivityType.JOURNAL)

    recorded_streak = engine.progress.streak
    verified_streak = verify_streak(engine.daily.stats, today)
    if verified_streak != recorded_streak:
        logger.debug(f"Streak from daily stats ({verified_streak}) differs from ledger ({recorded_streak})")

    return {
        "days": days,
        "daily": daily,
        "completions": completions,
        "violations": violations,
        "active_days": active_days,
        "compliance_rate": compliance_rate(completions, violations),
        "total_trades": len(results),
        "win_rate": win_rate(results),
        "profit_factor": profit_factor(results),
        "journal_entries": journal_count,
        "streak": recorded_streak,
        "verified_streak": verified_streak,
        "top_violations": violations_by_rule(entries, engine.rules.rules)[:3],
        "weekday_activity": weekday_heatmap(entries, now.tzinfo),
    }


def format_weekly_review(engine: DisciplineEngine, days: int = 7) -> str:
    """
    Format weekly review as plain text.
    """
    stats = get_weekly_stats(engine, days)

    lines = [
        f"DisciplineTX - Weekly Review (Last {days} days)",
        "",
    ]

    if stats["completions"] == 0 and stats["violations"] == 0 and stats["total_trades"] == 0:
        lines.extend([
            "No activity logged in this period.",
            "",
            "Review focus:",
            "- Were trades taken but not logged?",
            "- Was the market environment unfavorable?",
            "- Are the goal settings realistic?",
        ])
        return "\n".join(lines)

    lines.extend([
        f"Completions: {format_completions(stats['completions'])}",
        f"Violations: {stats['violations']}",
        f"Active days: {stats['active_days']}/{days}",
        f"Streak: {stats['streak']} days",
        "",
    ])

    if stats["total_trades"] > 0:
        lines.extend([
            "Performance:",
            f"Trades: {stats['total_trades']}",
            f"Win rate: {stats['win_rate']:.0f}%",
        ])
        factor = stats["profit_factor"]
        if factor == float("inf"):
            lines.append("Profit factor: no losses")
        elif factor is not None:
            lines.append(f"Profit factor: {factor:.2f}")
        lines.append("")

    if stats["compliance_rate"] is not None:
        lines.extend([
            "Discipline:",
            f"Rules followed: {stats['compliance_rate']:.0f}%",
            f"Discipline score: {engine.progress.discipline_score}/100",
            f"Journal entries: {stats['journal_entries']}",
            "",
        ])

    if stats["top_violations"]:
        lines.append("Most broken rules:")
        for text, count in stats["top_violations"]:
            lines.append(f"- {text} ({count}x)")
        lines.append("")

    # Suggest ONE change
    if stats["top_violations"] and stats["violations"] > stats["active_days"]:
        lines.append("ONE CHANGE NEXT WEEK:")
        lines.append(f"-> Read \"{stats['top_violations'][0][0]}\" before every entry")
        lines.append("")
    elif stats["active_days"] < days / 2:
        lines.append("ONE CHANGE NEXT WEEK:")
        lines.append("-> Aim for one rule-compliant trade per day to build the streak")
        lines.append("")
    elif stats["journal_entries"] == 0:
        lines.append("ONE CHANGE NEXT WEEK:")
        lines.append("-> Write a journal note after every losing trade")
        lines.append("")

    return "\n".join(lines)


def print_weekly_review(engine: DisciplineEngine, days: int = 7) -> None:
    """
    Print weekly review to stdout.
    """
    review = format_weekly_review(engine, days)
    print(review)


def export_weekly_review(engine: DisciplineEngine, days: int = 7, filepath: Optional[str] = None) -> str:
    """
    Export weekly review to file.

    Returns file path.
    """
    if not filepath:
        filepath = f"data/weekly_review_{engine.clock().strftime('%Y%m%d')}.txt"

    review = format_weekly_review(engine, days)

    with open(filepath, "w") as f:
        f.write(review)

    logger.info(f"Weekly review exported to {filepath}")
    return filepath
