"""
Leaderboard ranking.

Deterministic ordering over a supplied list of entries. The latest ranked
snapshot and the current user's rank are cached in the store for other
readers; both can be recomputed at any time.
"""

import logging
from dataclasses import replace
from typing import Any, Iterable, List, Optional

from disciplinetx.core.schemas import (
    LeaderboardEntry,
    MalformedPersistedState,
)
from disciplinetx.core.store import (
    CURRENT_USER_RANK,
    MONTHLY_LEADERBOARD_DATA,
    WriteBuffer,
    read_entity,
)

logger = logging.getLogger(__name__)


def growth_pct(current_balance: float, starting_value: float) -> float:
    """Unrounded percentage growth over the starting value."""
    if starting_value <= 0:
        return 0.0
    return (current_balance - starting_value) / starting_value * 100


def display_growth_pct(value: float) -> float:
    """Rounded for display only; never rank on this."""
    return round(value, 1)


def _sort_key(entry: LeaderboardEntry):
    return (-entry.completions, -entry.discipline_score, -entry.streak, -entry.growth_pct)


def rank(entries: Iterable[LeaderboardEntry]) -> List[LeaderboardEntry]:
    """
    Rank entries.

    Order: completions, discipline score, streak, growth (all descending).
    Full ties keep their input order. Returns new entries with rank set;
    the input is not modified.
    """
    ordered = sorted(entries, key=_sort_key)
    return [replace(entry, rank=i + 1) for i, entry in enumerate(ordered)]


def find_rank(ranked: List[LeaderboardEntry], user_id: str) -> Optional[int]:
    for entry in ranked:
        if entry.user_id == user_id:
            return entry.rank
    return None


def percentile(user_rank: int, total: int) -> float:
    """Share of ranked users below the given rank."""
    if total <= 0:
        return 0.0
    return round((total - user_rank) / total * 100, 2)


def _entries_from_list(data: Any) -> List[LeaderboardEntry]:
    if not isinstance(data, list):
        raise MalformedPersistedState("monthly_leaderboard_data: expected array")
    return [LeaderboardEntry.from_dict(item) for item in data]


def _rank_from_value(data: Any) -> Optional[int]:
    if data is None:
        return None
    if isinstance(data, bool) or not isinstance(data, int) or data < 1:
        raise MalformedPersistedState(f"current_user_rank: invalid value {data!r}")
    return data


class Leaderboard:
    """Ranks the current user against supplied peers and caches the result."""

    def __init__(self, buffer: WriteBuffer):
        self.buffer = buffer
        self.snapshot: List[LeaderboardEntry] = []
        self.current_user_rank: Optional[int] = None

    def load(self) -> None:
        store = self.buffer.store
        self.snapshot = read_entity(store, MONTHLY_LEADERBOARD_DATA, _entries_from_list, self.snapshot)
        self.current_user_rank = read_entity(
            store, CURRENT_USER_RANK, _rank_from_value, self.current_user_rank
        )

    def clear(self) -> None:
        self.snapshot = []
        self.current_user_rank = None

    def refresh(self, own: LeaderboardEntry, peers: Iterable[LeaderboardEntry]) -> List[LeaderboardEntry]:
        """
        Rank own entry with the peers and persist the snapshot.

        Peer rows carrying the current user's id are dropped in favor of
        the fresh local entry.
        """
        entries = [p for p in peers if p.user_id != own.user_id]
        entries.append(own)

        ranked = rank(entries)
        self.snapshot = ranked
        self.current_user_rank = find_rank(ranked, own.user_id)

        self.buffer.write({
            MONTHLY_LEADERBOARD_DATA: [e.to_dict() for e in ranked],
            CURRENT_USER_RANK: self.current_user_rank,
        })

        logger.info(f"Ranked {len(ranked)} entries, current user #{self.current_user_rank}")
        return ranked
