"""
Daily activity aggregator.

Per-day completion/violation counters plus the append-only activity log.
Updated in lockstep with the progress ledger: the record_* methods change
memory only and hand back the payload the ledger writes together with its
own state.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from disciplinetx.core.schemas import (
    ActivityLogEntry,
    ActivityType,
    DailyStat,
    activity_log_from_list,
    daily_stats_from_dict,
    daily_stats_to_dict,
)
from disciplinetx.core.store import ACTIVITY_LOG, DAILY_STATS, WriteBuffer, read_entity

logger = logging.getLogger(__name__)


class DailyActivityAggregator:
    """Daily counters and activity history."""

    def __init__(self, buffer: WriteBuffer):
        self.buffer = buffer
        self._stats: Dict[date, DailyStat] = {}
        self._log: List[ActivityLogEntry] = []

    def load(self, keys: Optional[List[str]] = None) -> None:
        """Re-read daily stats and/or the activity log."""
        store = self.buffer.store
        if keys is None or DAILY_STATS in keys:
            self._stats = read_entity(store, DAILY_STATS, daily_stats_from_dict, self._stats)
        if keys is None or ACTIVITY_LOG in keys:
            self._log = read_entity(store, ACTIVITY_LOG, activity_log_from_list, self._log)

    def clear(self) -> None:
        self._stats = {}
        self._log = []

    # Writes (memory only, caller persists the returned payload)

    def record_completion(self, at: datetime, increment: float, payload: Dict[str, Any]) -> Dict[str, Any]:
        stat = self._stat_for(at.date())
        stat.completions = round(stat.completions + increment, 9)
        self._log.append(ActivityLogEntry(at, ActivityType.COMPLETION, payload))
        return self.snapshot()

    def record_violation(self, at: datetime, payload: Dict[str, Any]) -> Dict[str, Any]:
        stat = self._stat_for(at.date())
        stat.violations += 1
        self._log.append(ActivityLogEntry(at, ActivityType.VIOLATION, payload))
        return self.snapshot()

    def append(self, at: datetime, entry_type: ActivityType, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Append a log entry that does not count toward daily stats."""
        self._log.append(ActivityLogEntry(at, entry_type, payload))
        return {ACTIVITY_LOG: [e.to_dict() for e in self._log]}

    def snapshot(self) -> Dict[str, Any]:
        return {
            DAILY_STATS: daily_stats_to_dict(self._stats),
            ACTIVITY_LOG: [e.to_dict() for e in self._log],
        }

    def _stat_for(self, day: date) -> DailyStat:
        if day not in self._stats:
            self._stats[day] = DailyStat()
        return self._stats[day]

    # Range queries

    def get(self, day: date) -> DailyStat:
        stat = self._stats.get(day)
        return DailyStat(stat.completions, stat.violations) if stat else DailyStat()

    def last_n_days(self, n: int, today: date) -> List[tuple]:
        """
        One (date, DailyStat) pair per day ending today, oldest first.

        Days without activity are zero-filled.
        """
        return [
            (day, self.get(day))
            for day in (today - timedelta(days=i) for i in range(n - 1, -1, -1))
        ]

    def entries(
        self,
        since: Optional[datetime] = None,
        entry_type: Optional[ActivityType] = None,
    ) -> List[ActivityLogEntry]:
        """Activity entries in append order, optionally filtered."""
        return [
            e for e in self._log
            if (since is None or e.timestamp >= since)
            and (entry_type is None or e.type == entry_type)
        ]

    def recent(self, limit: int = 5) -> List[ActivityLogEntry]:
        """Most recent entries first."""
        return sorted(self._log, key=lambda e: e.timestamp, reverse=True)[:limit]

    @property
    def stats(self) -> Dict[date, DailyStat]:
        return {day: DailyStat(s.completions, s.violations) for day, s in self._stats.items()}
