"""
Unit tests for persisted schema validation and legacy migration.
"""

from datetime import date, datetime, timezone

import pytest

from disciplinetx.core.schemas import (
    ActivityLogEntry,
    ActivityType,
    LeaderboardEntry,
    LeaderboardHistoryRecord,
    MalformedPersistedState,
    MutationResult,
    Progress,
    ProgressObjectKind,
    Rule,
    RuleCategory,
    Settings,
    parse_timestamp,
    rules_from_list,
)


class TestSettings:
    """Test Settings validation."""

    def test_round_trip(self):
        settings = Settings(250.0, 20, 2.5, ProgressObjectKind.TROPHY)

        assert Settings.from_dict(settings.to_dict()) == settings

    def test_to_dict_carries_version(self):
        assert Settings().to_dict()["schemaVersion"] == 1

    def test_legacy_shape_migrated(self):
        """Unversioned blobs are merged over defaults."""
        settings = Settings.from_dict({
            "startingPortfolio": 500,
            "progressObject": "wine",
            "rules": [],
        })

        assert settings.starting_value == 500.0
        assert settings.progress_object_kind == ProgressObjectKind.WINE
        assert settings.target_completions == 50
        assert settings.growth_per_completion == 1.0

    def test_unknown_version_rejected(self):
        data = Settings().to_dict()
        data["schemaVersion"] = 7

        with pytest.raises(MalformedPersistedState):
            Settings.from_dict(data)

    def test_unknown_field_rejected(self):
        data = Settings().to_dict()
        data["theme"] = "dark"

        with pytest.raises(MalformedPersistedState):
            Settings.from_dict(data)

    @pytest.mark.parametrize("field,value", [
        ("startingValue", "100"),
        ("startingValue", 0),
        ("targetCompletions", 2.5),
        ("targetCompletions", 0),
        ("growthPerCompletion", -1),
        ("growthPerCompletion", True),
        ("progressObjectKind", "pizza"),
    ])
    def test_bad_values_rejected(self, field, value):
        data = Settings().to_dict()
        data[field] = value

        with pytest.raises(MalformedPersistedState):
            Settings.from_dict(data)

    def test_non_object_rejected(self):
        with pytest.raises(MalformedPersistedState):
            Settings.from_dict([1, 2, 3])


class TestProgress:
    """Test Progress validation."""

    def test_round_trip(self):
        progress = Progress(2.5, 102.52, 7, 3, date(2026, 3, 10))

        assert Progress.from_dict(progress.to_dict()) == progress

    def test_legacy_shape_migrated(self):
        progress = Progress.from_dict({"completions": 3, "currentBalance": 103.03, "nextProgressPct": 0})

        assert progress.completions == 3.0
        assert progress.discipline_score == 0
        assert progress.last_streak_date is None

    @pytest.mark.parametrize("field,value", [
        ("completions", -1),
        ("completions", float("nan")),
        ("disciplineScore", 101),
        ("streak", -2),
        ("lastStreakDate", "yesterday"),
    ])
    def test_bad_values_rejected(self, field, value):
        data = Progress().to_dict()
        data[field] = value

        with pytest.raises(MalformedPersistedState):
            Progress.from_dict(data)


class TestRules:
    """Test Rule validation."""

    def test_round_trip(self):
        now = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
        rule = Rule(
            id="abc",
            text="Always use stops",
            violations=2,
            last_violation_at=now,
            tags=frozenset({"risk"}),
            category=RuleCategory.RISK,
            created_at=now,
            updated_at=now,
        )

        assert Rule.from_dict(rule.to_dict()) == rule

    def test_legacy_rule_migrated(self):
        rule = Rule.from_dict({"id": 17, "text": "No FOMO", "violations": 1, "lastViolation": 1772366400000})

        assert rule.id == "17"
        assert rule.category == RuleCategory.CUSTOM
        assert rule.last_violation_at.tzinfo is not None

    def test_legacy_rule_requires_text(self):
        with pytest.raises(MalformedPersistedState):
            Rule.from_dict({"id": 1})

    def test_duplicate_ids_rejected(self):
        data = [Rule(id="a", text="one").to_dict(), Rule(id="a", text="two").to_dict()]

        with pytest.raises(MalformedPersistedState):
            rules_from_list(data)

    def test_negative_violations_rejected(self):
        data = Rule(id="a", text="one").to_dict()
        data["violations"] = -1

        with pytest.raises(MalformedPersistedState):
            Rule.from_dict(data)


class TestActivityLog:
    """Test activity entries."""

    def test_legacy_flat_entry_migrated(self):
        entry = ActivityLogEntry.from_dict({"ts": 1772366400000, "type": "completion", "increment": 0.5})

        assert entry.type == ActivityType.COMPLETION
        assert entry.payload == {"increment": 0.5}

    def test_unknown_type_rejected(self):
        data = {"schemaVersion": 1, "timestamp": "2026-03-10T12:00:00Z", "type": "party", "payload": {}}

        with pytest.raises(MalformedPersistedState):
            ActivityLogEntry.from_dict(data)


class TestTimestamps:
    """Test timestamp parsing."""

    def test_iso_with_z(self):
        assert parse_timestamp("2026-03-10T12:00:00Z") == datetime(2026, 3, 10, 12, tzinfo=timezone.utc)

    def test_naive_iso_is_utc(self):
        assert parse_timestamp("2026-03-10T12:00:00").tzinfo is not None

    def test_epoch_millis(self):
        assert parse_timestamp(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_garbage_rejected(self):
        with pytest.raises(MalformedPersistedState):
            parse_timestamp("last tuesday")

    @pytest.mark.parametrize("value", [1e20, -1e20, float("nan"), float("inf")])
    def test_out_of_range_epoch_rejected(self, value):
        with pytest.raises(MalformedPersistedState):
            parse_timestamp(value)

    def test_out_of_range_rule_timestamp_rejected(self):
        with pytest.raises(MalformedPersistedState):
            Rule.from_dict({"id": "r1", "text": "x", "lastViolation": 1e20})


class TestLeaderboardShapes:
    """Test leaderboard entries and history records."""

    def test_entry_round_trip(self):
        entry = LeaderboardEntry("u1", "Alice", 12.5, 80, 4, 13.2, ["gold_champion"], 1)

        assert LeaderboardEntry.from_dict(entry.to_dict()) == entry

    def test_entry_without_rank_or_badges(self):
        entry = LeaderboardEntry.from_dict({
            "identity": {"userId": "u2", "displayName": "Bob"},
            "completions": 3,
            "disciplineScore": 40,
            "streak": 1,
            "growthPct": 3.03,
        })

        assert entry.rank == 0
        assert entry.badges == []

    def test_history_round_trip(self):
        top = [LeaderboardEntry("u1", "Alice", 12.5, 80, 4, 13.2, [], 1)]
        record = LeaderboardHistoryRecord("2026-02-01 to 2026-03-03", top, None)

        assert LeaderboardHistoryRecord.from_dict(record.to_dict()) == record


class TestMutationResult:
    """Test mutation results."""

    def test_truthiness(self):
        assert MutationResult.success(5)
        assert not MutationResult.rejected("nope")

    def test_rejected_carries_reason(self):
        result = MutationResult.rejected("Unknown rule: x")

        assert result.ok is False
        assert result.reason == "Unknown rule: x"
        assert result.value is None
