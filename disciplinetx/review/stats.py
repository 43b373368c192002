"""
Trade and discipline statistics.

Read-only projections over daily stats and the activity log.
"""

import logging
from collections import Counter
from datetime import date, timedelta, tzinfo
from typing import Dict, Iterable, List, Optional, Tuple

from disciplinetx.core.schemas import ActivityLogEntry, ActivityType, DailyStat, Rule

logger = logging.getLogger(__name__)

UNKNOWN_RULE = "Unknown Rule"

WEEKDAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def trade_results(entries: Iterable[ActivityLogEntry]) -> List[float]:
    """
    Collect trade P&L percentages from the activity log.

    Winning compliant trades are completion entries; other trades are
    journal entries that carry a gainPercent.
    """
    results = []
    for entry in entries:
        if entry.type not in (ActivityType.COMPLETION, ActivityType.JOURNAL):
            continue
        gain = entry.payload.get("gainPercent")
        if isinstance(gain, (int, float)) and not isinstance(gain, bool):
            results.append(float(gain))
    return results


def win_rate(results: List[float]) -> Optional[float]:
    """Percentage of winning trades, or None without trades."""
    if not results:
        return None
    wins = sum(1 for r in results if r > 0)
    return wins / len(results) * 100


def profit_factor(results: List[float]) -> Optional[float]:
    """
    Gross gains over gross losses.

    None without trades; infinite when there are gains but no losses.
    """
    if not results:
        return None

    gains = sum(r for r in results if r > 0)
    losses = -sum(r for r in results if r < 0)

    if losses == 0:
        return float("inf") if gains > 0 else None
    return gains / losses


def verify_streak(stats: Dict[date, DailyStat], today: date) -> int:
    """
    Recount the streak from daily stats.

    Consecutive days with completions, ending today or yesterday.
    """
    day = today
    if not _has_completions(stats, day):
        day = today - timedelta(days=1)

    streak = 0
    while _has_completions(stats, day):
        streak += 1
        day -= timedelta(days=1)
    return streak


def _has_completions(stats: Dict[date, DailyStat], day: date) -> bool:
    stat = stats.get(day)
    return stat is not None and stat.completions > 0


def hourly_heatmap(entries: Iterable[ActivityLogEntry], tz: Optional[tzinfo] = None) -> Dict[int, int]:
    """Activity count per hour of day (0-23)."""
    counts = {hour: 0 for hour in range(24)}
    for entry in entries:
        ts = entry.timestamp.astimezone(tz) if tz else entry.timestamp
        counts[ts.hour] += 1
    return counts


def weekday_heatmap(entries: Iterable[ActivityLogEntry], tz: Optional[tzinfo] = None) -> Dict[str, int]:
    """Activity count per weekday, Monday first."""
    counts = {name: 0 for name in WEEKDAYS}
    for entry in entries:
        ts = entry.timestamp.astimezone(tz) if tz else entry.timestamp
        counts[WEEKDAYS[ts.weekday()]] += 1
    return counts


def violations_by_rule(entries: Iterable[ActivityLogEntry], rules: List[Rule]) -> List[Tuple[str, int]]:
    """
    Violation counts per rule, most violated first.

    Violations of deleted rules are reported as "Unknown Rule".
    """
    known = {rule.id: rule.text for rule in rules}
    counter: Counter = Counter()

    for entry in entries:
        if entry.type != ActivityType.VIOLATION:
            continue
        counter[known.get(entry.payload.get("ruleId"), UNKNOWN_RULE)] += 1

    return counter.most_common()


def compliance_rate(completions: float, violations: int) -> Optional[float]:
    """Share of rule-following events, as a percentage."""
    total = completions + violations
    if total <= 0:
        return None
    return completions / total * 100
