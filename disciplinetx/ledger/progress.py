"""
Progress ledger.

Turns trade outcomes and rule events into fractional completions, a
compounding balance, the discipline score and the daily streak.

Every operation validates first, then changes memory (ledger, rules, daily
stats, activity log), then flushes all touched keys in a single write.
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from disciplinetx.core.schemas import (
    ActivityType,
    MalformedPersistedState,
    MutationResult,
    Progress,
    Settings,
)
from disciplinetx.core.store import USER_PROGRESS, USER_SETTINGS, WriteBuffer, read_entity
from disciplinetx.ledger.daily import DailyActivityAggregator
from disciplinetx.rules.registry import RuleRegistry

logger = logging.getLogger(__name__)

MAX_DISCIPLINE = 100
MIN_DISCIPLINE = 0

# Completions are stored rounded to this many decimals so that e.g.
# 0.7 + 0.3 lands exactly on a whole completion.
COMPLETION_PRECISION = 9


def _finite(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _clamp_discipline(score: int) -> int:
    return max(MIN_DISCIPLINE, min(MAX_DISCIPLINE, score))


class ProgressLedger:
    """Owns Settings and Progress; the only writer of either."""

    def __init__(
        self,
        buffer: WriteBuffer,
        registry: RuleRegistry,
        daily: DailyActivityAggregator,
        clock: Callable[[], datetime],
    ):
        self.buffer = buffer
        self.registry = registry
        self.daily = daily
        self.clock = clock
        self.settings = Settings()
        self.progress = Progress.fresh(self.settings)

    def load(self, keys=None) -> None:
        """Re-read Settings and/or Progress; malformed blobs keep the current values."""
        store = self.buffer.store
        if keys is None or USER_SETTINGS in keys:
            self.settings = read_entity(store, USER_SETTINGS, Settings.from_dict, self.settings)
        if keys is None or USER_PROGRESS in keys:
            self.progress = read_entity(store, USER_PROGRESS, Progress.from_dict, self.progress)

    def reset(self, settings: Settings) -> None:
        self.settings = settings
        self.progress = Progress.fresh(settings)

    # Mutations

    def record_trade_outcome(self, gain_percent: float, compliant: bool) -> MutationResult:
        """
        Credit a rule-compliant winning trade.

        The gain is converted to fractional completions at the configured
        growth rate; the balance compounds continuously with that fraction.
        """
        if not _finite(gain_percent):
            return self._reject(f"Gain is not a finite number: {gain_percent!r}")
        if not isinstance(compliant, bool):
            return self._reject(f"Compliance must be a boolean, got {compliant!r}")
        if not compliant:
            return self._reject("Trade was not rule-compliant")
        if gain_percent <= 0:
            return self._reject("Only winning trades add progress")

        rate = self.settings.growth_per_completion
        if not _finite(rate) or rate <= 0:
            return self._reject(f"Growth per completion must be positive, got {rate}")

        now = self.clock()
        progress = self.progress
        old = progress.completions
        target = self.settings.target_completions

        new = round(min(old + gain_percent / rate, target), COMPLETION_PRECISION)
        new = max(new, old)
        applied = round(new - old, COMPLETION_PRECISION)

        progress.completions = new
        progress.current_balance *= (1 + rate / 100) ** applied
        progress.discipline_score = _clamp_discipline(
            progress.discipline_score + math.floor(new) - math.floor(old)
        )
        self._advance_streak(now)

        writes = self.daily.record_completion(now, applied, {
            "increment": applied,
            "gainPercent": gain_percent,
            "completions": new,
        })
        writes[USER_PROGRESS] = progress.to_dict()
        self.buffer.write(writes)

        logger.info(
            f"Trade +{gain_percent}%: completions {old:.3f} -> {new:.3f}, "
            f"balance {progress.current_balance:.2f}, discipline {progress.discipline_score}"
        )
        return MutationResult.success(applied)

    def record_violation(self, rule_id: str) -> MutationResult:
        rule = self.registry.get(rule_id)
        if rule is None:
            return self._reject(f"Unknown rule: {rule_id}")

        now = self.clock()
        self.progress.discipline_score = _clamp_discipline(self.progress.discipline_score - 1)

        writes: Dict[str, Any] = {}
        writes.update(self.registry.apply_violation(rule_id, now))
        writes.update(self.daily.record_violation(now, {"ruleId": rule_id, "ruleText": rule.text}))
        writes[USER_PROGRESS] = self.progress.to_dict()
        self.buffer.write(writes)

        logger.info(f"Violation of rule {rule_id}, discipline {self.progress.discipline_score}")
        return MutationResult.success(self.registry.get(rule_id))

    def mark_compliance(self, rule_id: str) -> MutationResult:
        """
        Undo one violation of a rule and reward discipline.

        Counters stop at their floors (violations 0, discipline 100).
        """
        if self.registry.get(rule_id) is None:
            return self._reject(f"Unknown rule: {rule_id}")

        self.progress.discipline_score = _clamp_discipline(self.progress.discipline_score + 1)

        writes = self.registry.apply_compliance(rule_id)
        writes[USER_PROGRESS] = self.progress.to_dict()
        self.buffer.write(writes)

        logger.info(f"Compliance on rule {rule_id}, discipline {self.progress.discipline_score}")
        return MutationResult.success(self.registry.get(rule_id))

    def set_goal(
        self,
        target_completions: int,
        growth_per_completion: float,
        new_baseline: float,
    ) -> MutationResult:
        """
        Start a new goal from new_baseline.

        Completions restart at zero; discipline and streak carry over.
        """
        if isinstance(target_completions, bool) or not isinstance(target_completions, int) \
                or target_completions < 1:
            return self._reject(f"Target completions must be a positive integer, got {target_completions!r}")
        if not _finite(growth_per_completion) or growth_per_completion <= 0:
            return self._reject(f"Growth per completion must be positive, got {growth_per_completion!r}")
        if not _finite(new_baseline) or new_baseline <= 0:
            return self._reject(f"Baseline must be positive, got {new_baseline!r}")

        now = self.clock()
        previous_balance = self.progress.current_balance

        self.settings = Settings(
            starting_value=float(new_baseline),
            target_completions=target_completions,
            growth_per_completion=float(growth_per_completion),
            progress_object_kind=self.settings.progress_object_kind,
        )
        self.progress.completions = 0.0
        self.progress.current_balance = float(new_baseline)

        writes = self.daily.append(now, ActivityType.GROWTH, {
            "previousBalance": previous_balance,
            "newBaseline": float(new_baseline),
            "targetCompletions": target_completions,
            "growthPerCompletion": float(growth_per_completion),
        })
        writes[USER_SETTINGS] = self.settings.to_dict()
        writes[USER_PROGRESS] = self.progress.to_dict()
        self.buffer.write(writes)

        logger.info(f"New goal: {target_completions} x {growth_per_completion}% from {new_baseline:.2f}")
        return MutationResult.success(self.settings)

    def update_settings(self, settings: Settings) -> MutationResult:
        """
        Replace Settings wholesale. Progress is left as it is.

        A target below the completions already earned is rejected; use
        set_goal to start over.
        """
        try:
            validated = Settings.from_dict(settings.to_dict())
        except (MalformedPersistedState, AttributeError, ValueError) as e:
            return self._reject(f"Invalid settings: {e}")

        if validated.target_completions < self.progress.completions:
            return self._reject(
                f"Target {validated.target_completions} is below current completions "
                f"{self.progress.completions}"
            )

        self.settings = validated
        self.buffer.write({USER_SETTINGS: validated.to_dict()})
        return MutationResult.success(validated)

    def log_journal_entry(
        self,
        text: str,
        mood: Optional[str] = None,
        gain_percent: Optional[float] = None,
    ) -> MutationResult:
        """
        Append a journal note to the activity log. Ledger numbers are untouched.

        gain_percent records the P&L of a trade that earned no progress
        (a loss, or a win that broke the rules) for later review.
        """
        text = (text or "").strip()
        if not text:
            return self._reject("Journal entry is empty")
        if gain_percent is not None and not _finite(gain_percent):
            return self._reject(f"Gain is not a finite number: {gain_percent!r}")

        payload: Dict[str, Any] = {"text": text}
        if mood:
            payload["mood"] = mood
        if gain_percent is not None:
            payload["gainPercent"] = gain_percent

        self.buffer.write(self.daily.append(self.clock(), ActivityType.JOURNAL, payload))
        return MutationResult.success()

    # Read-only projections

    def next_completion_pct(self) -> float:
        """How far (0-100) the user is toward the next whole completion."""
        completions = self.progress.completions
        if completions >= self.settings.target_completions:
            return 100.0
        return (completions - math.floor(completions)) * 100

    def target_balance(self) -> float:
        s = self.settings
        return s.starting_value * (1 + s.growth_per_completion / 100) ** s.target_completions

    def goal_progress_pct(self) -> float:
        return self.progress.completions / self.settings.target_completions * 100

    def goal_reached(self) -> bool:
        return self.progress.completions >= self.settings.target_completions

    # Internals

    def _advance_streak(self, now: datetime) -> None:
        """
        Count today once.

        Yesterday's streak continues; a gap restarts it at 1; a second
        qualifying event on the same day (or a date in the future) changes
        nothing.
        """
        today = now.date()
        last = self.progress.last_streak_date

        if last is not None and last >= today:
            return

        if last == today - timedelta(days=1):
            self.progress.streak += 1
        else:
            self.progress.streak = 1
        self.progress.last_streak_date = today

    def _reject(self, reason: str) -> MutationResult:
        logger.info(f"Rejected ledger mutation: {reason}")
        return MutationResult.rejected(reason)
