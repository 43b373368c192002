"""
Discipline engine.

Single handle over all gamification state: settings, progress, rules,
daily stats, activity log, badges and the leaderboard cycle. Callers own
the instance and pass it around explicitly.

The engine never listens to the store on its own. A caller that shares a
store between contexts subscribes to it and calls reload(keys):

    engine = DisciplineEngine(store)
    engine.load()
    unsubscribe = store.subscribe(engine.reload)
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from disciplinetx.core.config import Config
from disciplinetx.core.identity import ConfigIdentityProvider, Identity, LocalIdentityProvider
from disciplinetx.core.schemas import (
    LeaderboardEntry,
    MalformedPersistedState,
    MutationResult,
    Progress,
    RuleCategory,
    Settings,
)
from disciplinetx.core.store import (
    ACTIVITY_LOG,
    ALL_KEYS,
    CURRENT_USER_RANK,
    DAILY_STATS,
    LEADERBOARD_HISTORY,
    LEADERBOARD_LAST_RESET,
    MONTHLY_LEADERBOARD_DATA,
    USER_ACHIEVEMENTS,
    USER_PROGRESS,
    USER_RULES,
    USER_SETTINGS,
    SqlStore,
    StoreAdapter,
    StoreWriteError,
    WriteBuffer,
)
from disciplinetx.leaderboard.ranker import Leaderboard, growth_pct
from disciplinetx.leaderboard.reset_cycle import Achievements, ResetCycle, ResetOutcome
from disciplinetx.ledger.daily import DailyActivityAggregator
from disciplinetx.ledger.progress import MAX_DISCIPLINE, ProgressLedger
from disciplinetx.rules.registry import RuleRegistry
from disciplinetx.rules.templates import TemplateRule

logger = logging.getLogger(__name__)


def wall_clock(config: Config) -> Callable[[], datetime]:
    """Aware 'now' in the configured timezone."""
    tz = ZoneInfo(config.timezone)
    return lambda: datetime.now(tz)


class DisciplineEngine:
    """Facade over the ledger, rule registry, daily stats and leaderboard."""

    def __init__(
        self,
        store: StoreAdapter,
        clock: Optional[Callable[[], datetime]] = None,
        identity_provider=None,
        config: Optional[Config] = None,
    ):
        self.config = config or Config()
        self.store = store
        self.clock = clock or wall_clock(self.config)
        self.identity_provider = identity_provider or LocalIdentityProvider()

        self.buffer = WriteBuffer(store)
        self.rules = RuleRegistry(self.buffer, self.clock)
        self.daily = DailyActivityAggregator(self.buffer)
        self.ledger = ProgressLedger(self.buffer, self.rules, self.daily, self.clock)
        self.achievements = Achievements(self.buffer)
        self.leaderboard = Leaderboard(self.buffer)
        self.reset_cycle = ResetCycle(self.buffer, self.achievements, self.config.reset_period_days)

    @classmethod
    def from_config(cls, config: Config) -> "DisciplineEngine":
        """Open the SQLite store from config and load everything."""
        engine = cls(
            SqlStore.from_config(config),
            identity_provider=ConfigIdentityProvider(config),
            config=config,
        )
        engine.load()
        return engine

    # ===== Loading & reconciliation =====

    def load(self) -> None:
        """Read every entity from the store."""
        self.reload(ALL_KEYS)

    def reload(self, keys: Iterable[str]) -> None:
        """
        Reconcile after an external change.

        Re-reads the named entities from the store; unknown keys are ignored.
        Pending unflushed values for these keys are dropped (last write wins).
        """
        keys = [k for k in keys if k in ALL_KEYS]
        if not keys:
            return

        self.buffer.discard(keys)

        if USER_SETTINGS in keys or USER_PROGRESS in keys:
            self.ledger.load(keys)
        if USER_RULES in keys:
            self.rules.load()
        if DAILY_STATS in keys or ACTIVITY_LOG in keys:
            self.daily.load(keys)
        if USER_ACHIEVEMENTS in keys:
            self.achievements.load()
        if MONTHLY_LEADERBOARD_DATA in keys or CURRENT_USER_RANK in keys:
            self.leaderboard.load()
        if LEADERBOARD_LAST_RESET in keys or LEADERBOARD_HISTORY in keys:
            self.reset_cycle.load()

        logger.debug(f"Reloaded {keys}")

    def is_initialized(self) -> bool:
        """True once a user has been set up in the store."""
        try:
            return self.store.get(USER_SETTINGS) is not None
        except MalformedPersistedState:
            return True

    @property
    def settings(self) -> Settings:
        return self.ledger.settings

    @property
    def progress(self) -> Progress:
        return self.ledger.progress

    @property
    def identity(self) -> Identity:
        return self.identity_provider.current()

    @property
    def pending_keys(self) -> List[str]:
        """Keys whose last write failed and are still waiting to be flushed."""
        return self.buffer.pending_keys

    # ===== Ledger =====

    def record_trade_outcome(self, gain_percent: float, compliant: bool) -> MutationResult:
        return self.ledger.record_trade_outcome(gain_percent, compliant)

    def record_violation(self, rule_id: str) -> MutationResult:
        return self.ledger.record_violation(rule_id)

    def mark_compliance(self, rule_id: str) -> MutationResult:
        return self.ledger.mark_compliance(rule_id)

    def set_goal(self, target_completions: int, growth_per_completion: float, new_baseline: float) -> MutationResult:
        return self.ledger.set_goal(target_completions, growth_per_completion, new_baseline)

    def update_settings(self, settings: Settings) -> MutationResult:
        return self.ledger.update_settings(settings)

    def log_journal_entry(self, text: str, mood: Optional[str] = None,
                          gain_percent: Optional[float] = None) -> MutationResult:
        return self.ledger.log_journal_entry(text, mood, gain_percent)

    # ===== Rules =====

    def add_rule(self, text: str, tags: Iterable[str] = (), category=RuleCategory.CUSTOM) -> MutationResult:
        return self.rules.add(text, tags, category)

    def add_rule_from_template(self, template: TemplateRule, category: RuleCategory) -> MutationResult:
        return self.rules.add_from_template(template, category)

    def edit_rule(self, rule_id: str, text: str) -> MutationResult:
        return self.rules.edit(rule_id, text)

    def update_rule_meta(self, rule_id: str, partial: dict) -> MutationResult:
        return self.rules.update_meta(rule_id, partial)

    def toggle_rule(self, rule_id: str) -> MutationResult:
        return self.rules.toggle_active(rule_id)

    def delete_rule(self, rule_id: str) -> MutationResult:
        return self.rules.delete(rule_id)

    # ===== Leaderboard =====

    def own_entry(self) -> LeaderboardEntry:
        """Current user's leaderboard row, built from the ledger and badges."""
        identity = self.identity
        progress = self.ledger.progress
        return LeaderboardEntry(
            user_id=identity.user_id,
            display_name=identity.display_name,
            completions=progress.completions,
            discipline_score=progress.discipline_score,
            streak=progress.streak,
            growth_pct=growth_pct(progress.current_balance, self.ledger.settings.starting_value),
            badges=self.achievements.to_list(),
        )

    def view_leaderboard(self, peer_source) -> Tuple[List[LeaderboardEntry], ResetOutcome]:
        """
        Rank the current user against the peers and run the reset cycle.

        Returns the ranked entries and what the reset evaluation did.
        """
        peers = peer_source.fetch()
        ranked = self.leaderboard.refresh(self.own_entry(), peers)

        outcome = self.reset_cycle.evaluate(self.clock(), ranked, self.identity.user_id)
        if outcome.awarded_badge:
            ranked = self.leaderboard.refresh(self.own_entry(), peers)

        return ranked, outcome

    def time_until_reset(self) -> timedelta:
        return self.reset_cycle.time_until_reset(self.clock())

    # ===== Lifecycle =====

    def initialize_fresh_user(self, settings: Settings) -> MutationResult:
        """
        Start over with the given goal.

        Clears progress, rules, daily stats, the activity log, badges and
        leaderboard history, then opens a new leaderboard window.
        """
        try:
            settings = Settings.from_dict(settings.to_dict())
        except (MalformedPersistedState, AttributeError, ValueError) as e:
            logger.info(f"Rejected fresh user settings: {e}")
            return MutationResult.rejected(f"Invalid settings: {e}")

        self._clear_memory()
        self.ledger.reset(settings)

        writes = {
            USER_SETTINGS: settings.to_dict(),
            USER_PROGRESS: self.ledger.progress.to_dict(),
            USER_ACHIEVEMENTS: [],
            LEADERBOARD_HISTORY: [],
        }
        writes.update(self.rules.snapshot())
        writes.update(self.daily.snapshot())
        self.buffer.discard(ALL_KEYS)
        self.buffer.write(writes)

        for key in (LEADERBOARD_LAST_RESET, CURRENT_USER_RANK, MONTHLY_LEADERBOARD_DATA):
            self._remove(key)
        self.reset_cycle.ensure_started(self.clock())

        logger.info(
            f"Initialized fresh user: {settings.target_completions} completions "
            f"x {settings.growth_per_completion}% from {settings.starting_value:.2f}"
        )
        return MutationResult.success(settings)

    def reset_all(self) -> None:
        """Remove every storage key and return to defaults."""
        self.buffer.discard(ALL_KEYS)
        for key in ALL_KEYS:
            self._remove(key)

        self._clear_memory()
        self.ledger.reset(Settings())
        logger.info("All data reset")

    def validate_consistency(self) -> List[str]:
        """
        Check settings and progress for contradictions.

        Returns a list of problems (empty when consistent).
        """
        settings = self.ledger.settings
        progress = self.ledger.progress
        problems = []

        if progress.completions > settings.target_completions:
            problems.append(
                f"completions {progress.completions} exceed target {settings.target_completions}"
            )
        if progress.completions < 0:
            problems.append(f"completions {progress.completions} are negative")
        if not 0 <= progress.discipline_score <= MAX_DISCIPLINE:
            problems.append(f"discipline score {progress.discipline_score} outside [0, {MAX_DISCIPLINE}]")
        if progress.streak < 0:
            problems.append(f"streak {progress.streak} is negative")
        if progress.completions == 0 and not math.isclose(
            progress.current_balance, settings.starting_value, rel_tol=1e-9
        ):
            problems.append(
                f"balance {progress.current_balance} differs from baseline "
                f"{settings.starting_value} at zero completions"
            )

        for problem in problems:
            logger.warning(f"Inconsistent state: {problem}")
        return problems

    # ===== Internals =====

    def _clear_memory(self) -> None:
        self.rules.clear()
        self.daily.clear()
        self.achievements.clear()
        self.leaderboard.clear()
        self.reset_cycle.clear()

    def _remove(self, key: str) -> None:
        try:
            self.store.remove(key)
        except StoreWriteError as e:
            logger.error(f"Failed to remove {key}: {e}")
