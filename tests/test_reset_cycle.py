"""
Unit tests for the leaderboard reset cycle and badge awards.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from disciplinetx.core.schemas import LeaderboardEntry
from disciplinetx.core.store import (
    LEADERBOARD_HISTORY,
    LEADERBOARD_LAST_RESET,
    USER_ACHIEVEMENTS,
)
from disciplinetx.leaderboard.peers import StaticPeerSource
from disciplinetx.leaderboard.ranker import rank
from disciplinetx.leaderboard.reset_cycle import Achievements, ResetCycle


def ranked_with_me_at(position, total=5):
    entries = []
    for i in range(total):
        user_id = "me" if i + 1 == position else f"peer{i}"
        entries.append(LeaderboardEntry(user_id, user_id, float(total - i), 50, 1, 0.0))
    return rank(entries)


@pytest.fixture
def achievements(buffer):
    return Achievements(buffer)


@pytest.fixture
def cycle(buffer, achievements):
    return ResetCycle(buffer, achievements)


class TestStart:
    """Test the first evaluation."""

    def test_missing_last_reset_starts_at_first_of_month(self, cycle, clock, store):
        outcome = cycle.evaluate(clock(), ranked_with_me_at(1), "me")

        assert not outcome.transitioned
        assert cycle.last_reset == datetime(2026, 3, 1, tzinfo=timezone.utc)
        assert store.get(LEADERBOARD_LAST_RESET) == "2026-03-01T00:00:00+00:00"
        assert store.get(LEADERBOARD_HISTORY) is None

    def test_days_since_reset(self, cycle, clock):
        cycle.ensure_started(clock())

        assert cycle.days_since_reset(clock()) == 9


class TestActivePeriod:
    """Test evaluations inside the window."""

    def test_no_side_effects_before_30_days(self, cycle, clock, store):
        cycle.last_reset = clock() - timedelta(days=29, hours=23)

        with patch.object(store, "set_many", wraps=store.set_many) as spy:
            outcome = cycle.evaluate(clock(), ranked_with_me_at(1), "me")

        assert not outcome.transitioned
        assert outcome.days_since_reset == 29
        assert spy.call_count == 0

    def test_clock_behind_last_reset_counts_as_zero(self, cycle, clock):
        cycle.last_reset = clock() + timedelta(days=3)

        outcome = cycle.evaluate(clock(), ranked_with_me_at(1), "me")

        assert not outcome.transitioned
        assert outcome.days_since_reset == 0

    def test_time_until_reset(self, cycle, clock):
        cycle.last_reset = clock() - timedelta(days=10)

        assert cycle.time_until_reset(clock()) == timedelta(days=20)

    def test_time_until_reset_never_negative(self, cycle, clock):
        cycle.last_reset = clock() - timedelta(days=45)

        assert cycle.time_until_reset(clock()) == timedelta(0)


class TestReset:
    """Test the reset transition."""

    @pytest.mark.parametrize("position,badge", [
        (1, "gold_champion"),
        (2, "silver_champion"),
        (3, "bronze_champion"),
    ])
    def test_top_three_earn_badge(self, cycle, achievements, clock, store, position, badge):
        cycle.last_reset = clock() - timedelta(days=30)

        outcome = cycle.evaluate(clock(), ranked_with_me_at(position), "me")

        assert outcome.transitioned
        assert outcome.awarded_badge == badge
        assert achievements.has(badge)
        assert store.get(USER_ACHIEVEMENTS) == [badge]

    def test_rank_four_earns_nothing(self, cycle, achievements, clock):
        cycle.last_reset = clock() - timedelta(days=30)

        outcome = cycle.evaluate(clock(), ranked_with_me_at(4), "me")

        assert outcome.transitioned
        assert outcome.awarded_badge is None
        assert achievements.to_list() == []

    def test_history_record_archived(self, cycle, clock, store):
        cycle.last_reset = datetime(2026, 2, 1, tzinfo=timezone.utc)
        ranked = ranked_with_me_at(2)

        outcome = cycle.evaluate(clock(), ranked, "me")

        record = outcome.record
        assert record.your_rank == 2
        assert [e.user_id for e in record.top3] == [e.user_id for e in ranked[:3]]
        assert record.period_label == "2026-02-01 to 2026-03-10"
        assert len(store.get(LEADERBOARD_HISTORY)) == 1

    def test_last_reset_moves_to_now(self, cycle, clock, store):
        cycle.last_reset = clock() - timedelta(days=31)

        cycle.evaluate(clock(), ranked_with_me_at(1), "me")

        assert cycle.last_reset == clock()
        assert store.get(LEADERBOARD_LAST_RESET) == clock().isoformat()

    def test_reset_happens_once(self, cycle, clock):
        cycle.last_reset = clock() - timedelta(days=30)

        first = cycle.evaluate(clock(), ranked_with_me_at(1), "me")
        second = cycle.evaluate(clock.advance(minutes=1), ranked_with_me_at(1), "me")

        assert first.transitioned
        assert not second.transitioned
        assert len(cycle.history) == 1

    def test_skipped_windows_not_back_filled(self, cycle, clock):
        cycle.last_reset = clock() - timedelta(days=95)

        cycle.evaluate(clock(), ranked_with_me_at(1), "me")

        assert len(cycle.history) == 1
        assert cycle.achievements.to_list() == ["gold_champion"]

    def test_badges_are_additive(self, cycle, achievements, clock):
        achievements.award("gold_champion")
        cycle.last_reset = clock() - timedelta(days=30)

        outcome = cycle.evaluate(clock(), ranked_with_me_at(1), "me")

        assert outcome.awarded_badge is None
        assert achievements.to_list() == ["gold_champion"]

        clock.advance(days=30)
        cycle.evaluate(clock(), ranked_with_me_at(3), "me")

        assert achievements.to_list() == ["gold_champion", "bronze_champion"]

    def test_state_reloads(self, cycle, buffer, achievements, clock):
        cycle.last_reset = clock() - timedelta(days=30)
        cycle.evaluate(clock(), ranked_with_me_at(2), "me")

        other_badges = Achievements(buffer)
        other_badges.load()
        other = ResetCycle(buffer, other_badges)
        other.load()

        assert other.last_reset == clock()
        assert other.history == cycle.history
        assert other_badges.to_list() == ["silver_champion"]


class TestViaEngine:
    """Test the reset cycle through the engine facade."""

    def test_view_leaderboard_ranks_and_awards(self, engine, clock):
        engine.record_trade_outcome(10.0, True)
        peers = StaticPeerSource([
            LeaderboardEntry("p1", "Peer One", 4.0, 90, 8, 4.1),
            LeaderboardEntry("p2", "Peer Two", 20.0, 90, 8, 22.0),
        ])

        ranked, outcome = engine.view_leaderboard(peers)
        assert [e.user_id for e in ranked] == ["p2", "local-user", "p1"]
        assert not outcome.transitioned

        clock.advance(days=30)
        ranked, outcome = engine.view_leaderboard(peers)

        assert outcome.transitioned
        assert outcome.awarded_badge == "silver_champion"
        assert engine.achievements.has("silver_champion")
        mine = [e for e in ranked if e.user_id == "local-user"][0]
        assert mine.badges == ["silver_champion"]

    def test_own_entry_growth_unrounded(self, engine):
        engine.record_trade_outcome(1.5, True)

        own = engine.own_entry()

        assert own.growth_pct == pytest.approx((1.01 ** 1.5 - 1) * 100)
        assert own.completions == pytest.approx(1.5)
