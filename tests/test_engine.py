"""
Unit tests for the engine facade.

Tests loading, reconciliation between contexts, fresh-user setup, full
reset and consistency checks.
"""

import pytest

from disciplinetx.core.config import Config
from disciplinetx.core.engine import DisciplineEngine
from disciplinetx.core.identity import ConfigIdentityProvider, Identity, LocalIdentityProvider
from disciplinetx.core.schemas import ProgressObjectKind, Settings
from disciplinetx.core.store import (
    ALL_KEYS,
    LEADERBOARD_LAST_RESET,
    USER_PROGRESS,
    USER_RULES,
    USER_SETTINGS,
    SqlStore,
)


class TestLoading:
    """Test loading state from the store."""

    def test_empty_store_gives_defaults(self, engine):
        assert engine.settings == Settings()
        assert engine.progress.completions == 0
        assert engine.progress.current_balance == 100.0
        assert engine.rules.rules == []
        assert not engine.is_initialized()

    def test_malformed_progress_falls_back(self, store, clock, caplog):
        store.set(USER_PROGRESS, {"schemaVersion": 1, "completions": "many"})

        engine = DisciplineEngine(store, clock=clock)
        engine.load()

        assert engine.progress.completions == 0
        assert "Ignoring malformed user_progress" in caplog.text

    def test_invalid_json_falls_back(self, store, clock):
        store._data[USER_SETTINGS] = "{oops"

        engine = DisciplineEngine(store, clock=clock)
        engine.load()

        assert engine.settings == Settings()

    def test_out_of_range_timestamp_falls_back(self, store, clock):
        store.set(USER_RULES, [{"id": "r1", "text": "x", "lastViolation": 1e20}])

        engine = DisciplineEngine(store, clock=clock)
        engine.load()

        assert engine.rules.rules == []

    def test_malformed_update_keeps_last_known_good(self, engine, store):
        engine.record_trade_outcome(2.0, True)

        store.set(USER_PROGRESS, {"garbage": True, "schemaVersion": 1})
        engine.reload([USER_PROGRESS])

        assert engine.progress.completions == pytest.approx(2.0)

    def test_legacy_settings_migrated_on_load(self, store, clock):
        store.set(USER_SETTINGS, {"startingPortfolio": 1000, "progressObject": "diamond"})

        engine = DisciplineEngine(store, clock=clock)
        engine.load()

        assert engine.settings.starting_value == 1000.0
        assert engine.settings.progress_object_kind == ProgressObjectKind.DIAMOND


class TestReconciliation:
    """Test two contexts sharing one store."""

    def test_reload_on_change_notification(self, store, clock):
        first = DisciplineEngine(store, clock=clock)
        second = DisciplineEngine(store, clock=clock)
        first.load()
        second.load()
        store.subscribe(second.reload)

        first.record_trade_outcome(3.0, True)
        rule_id = first.add_rule("Stop loss always").value.id

        assert second.progress.completions == pytest.approx(3.0)
        assert second.rules.get(rule_id) is not None
        assert second.daily.get(clock().date()).completions == pytest.approx(3.0)

    def test_reload_ignores_unknown_keys(self, engine):
        engine.reload(["something_else"])

        assert engine.progress.completions == 0

    def test_reload_rereads_whole_entity(self, engine, store):
        engine.add_rule("Rule one")
        store.set(USER_RULES, [])

        engine.reload([USER_RULES])

        assert engine.rules.rules == []

    def test_last_write_wins(self, store, clock):
        first = DisciplineEngine(store, clock=clock)
        second = DisciplineEngine(store, clock=clock)
        first.load()
        second.load()

        first.record_trade_outcome(3.0, True)
        second.record_trade_outcome(1.0, True)
        first.reload([USER_PROGRESS])

        assert first.progress.completions == pytest.approx(1.0)


class TestFreshUser:
    """Test initializing a new user."""

    def test_initialize_fresh_user(self, engine, store):
        engine.record_trade_outcome(5.0, True)
        engine.add_rule("Old rule")

        result = engine.initialize_fresh_user(Settings(1000.0, 10, 2.0, ProgressObjectKind.WINE))

        assert result.ok
        assert engine.is_initialized()
        assert engine.progress.completions == 0
        assert engine.progress.current_balance == 1000.0
        assert engine.progress.discipline_score == 0
        assert engine.rules.rules == []
        assert engine.daily.entries() == []
        assert store.get(USER_SETTINGS)["startingValue"] == 1000.0
        assert store.get(USER_RULES) == []

    def test_leaderboard_window_opens_at_first_of_month(self, engine, store):
        engine.initialize_fresh_user(Settings())

        assert store.get(LEADERBOARD_LAST_RESET) == "2026-03-01T00:00:00+00:00"

    def test_invalid_settings_rejected(self, engine, store):
        result = engine.initialize_fresh_user(Settings(target_completions=0))

        assert not result
        assert store.get(USER_SETTINGS) is None


class TestResetAll:
    """Test full data reset."""

    def test_reset_all_removes_every_key(self, engine, store):
        engine.initialize_fresh_user(Settings(500.0, 10, 1.0))
        rule_id = engine.add_rule("Rule one").value.id
        engine.record_violation(rule_id)
        engine.record_trade_outcome(2.0, True)

        engine.reset_all()

        assert all(store.get(key) is None for key in ALL_KEYS)
        assert engine.settings == Settings()
        assert engine.progress.completions == 0
        assert engine.rules.rules == []
        assert engine.achievements.to_list() == []
        assert engine.reset_cycle.last_reset is None


class TestConsistency:
    """Test consistency validation."""

    def test_fresh_state_is_consistent(self, engine):
        assert engine.validate_consistency() == []

    def test_consistent_after_activity(self, engine):
        engine.record_trade_outcome(70.0, True)
        engine.set_goal(5, 1.0, 250.0)

        assert engine.validate_consistency() == []

    def test_detects_completions_over_target(self, engine, caplog):
        engine.ledger.progress.completions = 60

        problems = engine.validate_consistency()

        assert len(problems) == 1
        assert "exceed target" in problems[0]
        assert "Inconsistent state" in caplog.text

    def test_detects_balance_mismatch_at_zero(self, engine):
        engine.ledger.progress.current_balance = 150.0

        problems = engine.validate_consistency()

        assert any("baseline" in p for p in problems)


class TestIdentity:
    """Test identity providers."""

    def test_local_identity_by_default(self, engine):
        assert engine.identity == Identity("local-user", "Trading Pro")
        assert engine.own_entry().user_id == "local-user"

    def test_config_identity(self):
        provider = ConfigIdentityProvider(Config(user_id="u-42", display_name="Ana"))

        assert provider.current() == Identity("u-42", "Ana")

    def test_config_identity_degrades_to_local(self):
        provider = ConfigIdentityProvider(Config())

        assert provider.current() == LocalIdentityProvider().current()


class TestFromConfig:
    """Test opening an engine from configuration."""

    def test_from_config_uses_sqlite(self, tmp_path):
        config = Config(database_path=str(tmp_path / "engine.db"), user_id="u-1")

        engine = DisciplineEngine.from_config(config)
        engine.initialize_fresh_user(Settings())
        engine.record_trade_outcome(2.0, True)

        reopened = DisciplineEngine.from_config(config)

        assert isinstance(reopened.store, SqlStore)
        assert reopened.progress.completions == pytest.approx(2.0)
        assert reopened.identity.user_id == "u-1"

    def test_wall_clock_is_aware(self, tmp_path):
        config = Config(database_path=str(tmp_path / "engine.db"), timezone="Asia/Jakarta")

        engine = DisciplineEngine.from_config(config)

        assert engine.clock().utcoffset() is not None
