"""
Leaderboard reset cycle.

Evaluated on demand (e.g. when the leaderboard is viewed). While fewer than
reset_period_days have passed since the last reset nothing happens. After
that, exactly one reset transition runs: the top 3 are archived, the
current user may earn one badge tier, and the window restarts at `now`.
Missed windows are not back-filled.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, List, Optional

from disciplinetx.core.schemas import (
    LeaderboardEntry,
    LeaderboardHistoryRecord,
    achievements_from_list,
    format_timestamp,
    history_from_list,
    parse_timestamp,
)
from disciplinetx.core.store import (
    LEADERBOARD_HISTORY,
    LEADERBOARD_LAST_RESET,
    USER_ACHIEVEMENTS,
    WriteBuffer,
    read_entity,
)
from disciplinetx.leaderboard.ranker import find_rank

logger = logging.getLogger(__name__)

RESET_PERIOD_DAYS = 30

BADGES_BY_RANK = {
    1: "gold_champion",
    2: "silver_champion",
    3: "bronze_champion",
}


class Achievements:
    """Earned badge ids. Additive, never revoked."""

    def __init__(self, buffer: WriteBuffer):
        self.buffer = buffer
        self.badges: List[str] = []

    def load(self) -> None:
        self.badges = read_entity(
            self.buffer.store, USER_ACHIEVEMENTS, achievements_from_list, self.badges
        )

    def clear(self) -> None:
        self.badges = []

    def has(self, badge: str) -> bool:
        return badge in self.badges

    def award(self, badge: str) -> bool:
        """Add badge in memory. Returns False if already held."""
        if badge in self.badges:
            return False
        self.badges.append(badge)
        return True

    def to_list(self) -> List[str]:
        return list(self.badges)


class ResetOutcome:
    """What one evaluation did."""

    def __init__(
        self,
        transitioned: bool,
        days_since_reset: int,
        awarded_badge: Optional[str] = None,
        record: Optional[LeaderboardHistoryRecord] = None,
    ):
        self.transitioned = transitioned
        self.days_since_reset = days_since_reset
        self.awarded_badge = awarded_badge
        self.record = record

    def __repr__(self) -> str:
        if not self.transitioned:
            return f"<ResetOutcome active day={self.days_since_reset}>"
        return f"<ResetOutcome reset badge={self.awarded_badge}>"


def _last_reset_from_value(data: Any) -> datetime:
    return parse_timestamp(data)


class ResetCycle:
    """ACTIVE / RESET state machine over leaderboard_last_reset."""

    def __init__(
        self,
        buffer: WriteBuffer,
        achievements: Achievements,
        period_days: int = RESET_PERIOD_DAYS,
    ):
        self.buffer = buffer
        self.achievements = achievements
        self.period_days = period_days
        self.last_reset: Optional[datetime] = None
        self.history: List[LeaderboardHistoryRecord] = []

    def load(self) -> None:
        store = self.buffer.store
        self.last_reset = read_entity(store, LEADERBOARD_LAST_RESET, _last_reset_from_value, self.last_reset)
        self.history = read_entity(store, LEADERBOARD_HISTORY, history_from_list, self.history)

    def clear(self) -> None:
        self.last_reset = None
        self.history = []

    def days_since_reset(self, now: datetime) -> int:
        """Whole days since the last reset; a clock behind the last reset counts as 0."""
        if self.last_reset is None:
            return 0
        elapsed = now - self.last_reset
        if elapsed < timedelta(0):
            logger.warning(f"Clock is behind last reset ({self.last_reset.isoformat()}), treating as day 0")
            return 0
        return elapsed.days

    def time_until_reset(self, now: datetime) -> timedelta:
        if self.last_reset is None:
            return timedelta(days=self.period_days)
        remaining = self.last_reset + timedelta(days=self.period_days) - now
        return max(remaining, timedelta(0))

    def ensure_started(self, now: datetime) -> bool:
        """
        Start the first window at the first day of the current month.

        Returns True if a start date was written.
        """
        if self.last_reset is not None:
            return False

        self.last_reset = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        self.buffer.write({LEADERBOARD_LAST_RESET: format_timestamp(self.last_reset)})
        logger.info(f"Leaderboard window started at {self.last_reset.isoformat()}")
        return True

    def evaluate(self, now: datetime, ranked: List[LeaderboardEntry], user_id: str) -> ResetOutcome:
        """
        Run the reset transition if the window has elapsed.

        `ranked` must already be ranked (rank set, best first).
        """
        if self.ensure_started(now):
            return ResetOutcome(False, self.days_since_reset(now))

        days = self.days_since_reset(now)
        if days < self.period_days:
            return ResetOutcome(False, days)

        your_rank = find_rank(ranked, user_id)
        awarded = None
        badge = BADGES_BY_RANK.get(your_rank)
        if badge and self.achievements.award(badge):
            awarded = badge

        record = LeaderboardHistoryRecord(
            period_label=f"{self.last_reset:%Y-%m-%d} to {now:%Y-%m-%d}",
            top3=list(ranked[:3]),
            your_rank=your_rank,
        )
        self.history.append(record)
        self.last_reset = now

        self.buffer.write({
            LEADERBOARD_HISTORY: [r.to_dict() for r in self.history],
            USER_ACHIEVEMENTS: self.achievements.to_list(),
            LEADERBOARD_LAST_RESET: format_timestamp(now),
        })

        logger.info(
            f"Leaderboard reset after {days} days: rank #{your_rank}, "
            f"badge {awarded or 'none'}"
        )
        return ResetOutcome(True, days, awarded, record)
