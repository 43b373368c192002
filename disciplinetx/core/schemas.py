"""
Persisted schemas for DisciplineTX.

Every stored blob carries a schemaVersion. Loading goes through an explicit
validate/migrate step: version 0 (the legacy shape without a version tag,
merged over defaults) is upgraded to version 1, anything else that does not
match the expected shape is rejected with MalformedPersistedState.
"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

SCHEMA_VERSION = 1


class MalformedPersistedState(Exception):
    """Stored JSON failed to parse or failed shape validation."""
    pass


class ProgressObjectKind(str, Enum):
    """What the user is 'filling up' as completions accrue."""
    BEER = "beer"
    WINE = "wine"
    DONUT = "donut"
    DIAMOND = "diamond"
    TROPHY = "trophy"


class RuleCategory(str, Enum):
    """Rule grouping used by templates and filters."""
    PSYCHOLOGY = "psychology"
    RISK = "risk"
    ENTRY_EXIT = "entry-exit"
    ANALYSIS = "analysis"
    DISCIPLINE = "discipline"
    MONEY = "money"
    CUSTOM = "custom"


class ActivityType(str, Enum):
    """Kind of activity log entry."""
    COMPLETION = "completion"
    VIOLATION = "violation"
    JOURNAL = "journal"
    GROWTH = "growth"


class MutationResult:
    """
    Outcome of an engine mutation.

    Invalid input is rejected as a no-op with a reason instead of raising.
    `value` carries the created/affected object when there is one.
    """

    def __init__(self, ok: bool, reason: str = "", value: Any = None):
        self.ok = ok
        self.reason = reason
        self.value = value

    @classmethod
    def success(cls, value: Any = None) -> "MutationResult":
        return cls(True, value=value)

    @classmethod
    def rejected(cls, reason: str) -> "MutationResult":
        return cls(False, reason)

    def __bool__(self) -> bool:
        return self.ok

    def __repr__(self) -> str:
        return "<MutationResult ok>" if self.ok else f"<MutationResult rejected: {self.reason}>"


# ===== Field helpers =====


def _check_keys(name: str, data: Any, required: FrozenSet[str], optional: FrozenSet[str] = frozenset()):
    if not isinstance(data, dict):
        raise MalformedPersistedState(f"{name}: expected object, got {type(data).__name__}")

    missing = required - data.keys()
    if missing:
        raise MalformedPersistedState(f"{name}: missing fields {sorted(missing)}")

    unknown = data.keys() - required - optional
    if unknown:
        raise MalformedPersistedState(f"{name}: unknown fields {sorted(unknown)}")


def _number(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedPersistedState(f"{name}: expected number, got {value!r}")
    if not math.isfinite(value):
        raise MalformedPersistedState(f"{name}: not a finite number")
    return float(value)


def _integer(name: str, value: Any) -> int:
    number = _number(name, value)
    if number != int(number):
        raise MalformedPersistedState(f"{name}: expected integer, got {value!r}")
    return int(number)


def _string(name: str, value: Any) -> str:
    if not isinstance(value, str):
        raise MalformedPersistedState(f"{name}: expected string, got {value!r}")
    return value


def _enum(name: str, enum_cls, value: Any):
    try:
        return enum_cls(value)
    except ValueError as e:
        raise MalformedPersistedState(f"{name}: invalid value {value!r}") from e


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO timestamp (or epoch milliseconds) into an aware datetime."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        millis = _number("timestamp", value)
        try:
            return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise MalformedPersistedState(f"timestamp: out of range {value!r}") from e

    text = _string("timestamp", value)
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError as e:
        raise MalformedPersistedState(f"timestamp: invalid value {text!r}") from e

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    return value.isoformat()


def parse_date(value: Any) -> date:
    text = _string("date", value)
    try:
        return date.fromisoformat(text[:10])
    except ValueError as e:
        raise MalformedPersistedState(f"date: invalid value {text!r}") from e


def _version(name: str, data: Any) -> int:
    if not isinstance(data, dict):
        raise MalformedPersistedState(f"{name}: expected object, got {type(data).__name__}")
    version = data.get("schemaVersion", 0)
    if version not in (0, SCHEMA_VERSION):
        raise MalformedPersistedState(f"{name}: unsupported schemaVersion {version!r}")
    return version


# ===== Settings =====


@dataclass
class Settings:
    """User-owned goal configuration. Replaced wholesale on update."""

    starting_value: float = 100.0
    target_completions: int = 50
    growth_per_completion: float = 1.0
    progress_object_kind: ProgressObjectKind = ProgressObjectKind.BEER

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "schemaVersion": SCHEMA_VERSION,
            "startingValue": self.starting_value,
            "targetCompletions": self.target_completions,
            "growthPerCompletion": self.growth_per_completion,
            "progressObjectKind": self.progress_object_kind.value,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Settings":
        """Validate and build from stored JSON, migrating legacy shapes."""
        if _version("user_settings", data) == 0:
            data = _migrate_settings_v0(data)

        _check_keys(
            "user_settings",
            data,
            frozenset({"schemaVersion", "startingValue", "targetCompletions",
                       "growthPerCompletion", "progressObjectKind"}),
        )

        settings = cls(
            starting_value=_number("startingValue", data["startingValue"]),
            target_completions=_integer("targetCompletions", data["targetCompletions"]),
            growth_per_completion=_number("growthPerCompletion", data["growthPerCompletion"]),
            progress_object_kind=_enum("progressObjectKind", ProgressObjectKind, data["progressObjectKind"]),
        )

        if settings.starting_value <= 0:
            raise MalformedPersistedState("startingValue must be positive")
        if settings.target_completions < 1:
            raise MalformedPersistedState("targetCompletions must be at least 1")
        if settings.growth_per_completion <= 0:
            raise MalformedPersistedState("growthPerCompletion must be positive")

        return settings


def _migrate_settings_v0(data: dict) -> dict:
    _check_keys(
        "user_settings(v0)",
        data,
        frozenset(),
        frozenset({"startingPortfolio", "targetCompletions", "growthPerCompletion",
                   "progressObject", "rules"}),
    )
    defaults = Settings()
    return {
        "schemaVersion": SCHEMA_VERSION,
        "startingValue": data.get("startingPortfolio", defaults.starting_value),
        "targetCompletions": data.get("targetCompletions", defaults.target_completions),
        "growthPerCompletion": data.get("growthPerCompletion", defaults.growth_per_completion),
        "progressObjectKind": data.get("progressObject", defaults.progress_object_kind.value),
    }


# ===== Progress =====


@dataclass
class Progress:
    """Ledger state. Mutated only through ProgressLedger operations."""

    completions: float = 0.0
    current_balance: float = 100.0
    discipline_score: int = 0
    streak: int = 0
    last_streak_date: Optional[date] = None

    @classmethod
    def fresh(cls, settings: Settings) -> "Progress":
        """Zero progress against the given goal."""
        return cls(current_balance=settings.starting_value)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "schemaVersion": SCHEMA_VERSION,
            "completions": self.completions,
            "currentBalance": self.current_balance,
            "disciplineScore": self.discipline_score,
            "streak": self.streak,
            "lastStreakDate": self.last_streak_date.isoformat() if self.last_streak_date else None,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Progress":
        """Validate and build from stored JSON, migrating legacy shapes."""
        if _version("user_progress", data) == 0:
            data = _migrate_progress_v0(data)

        _check_keys(
            "user_progress",
            data,
            frozenset({"schemaVersion", "completions", "currentBalance",
                       "disciplineScore", "streak", "lastStreakDate"}),
        )

        last = data["lastStreakDate"]
        progress = cls(
            completions=_number("completions", data["completions"]),
            current_balance=_number("currentBalance", data["currentBalance"]),
            discipline_score=_integer("disciplineScore", data["disciplineScore"]),
            streak=_integer("streak", data["streak"]),
            last_streak_date=parse_date(last) if last is not None else None,
        )

        if progress.completions < 0:
            raise MalformedPersistedState("completions must not be negative")
        if not 0 <= progress.discipline_score <= 100:
            raise MalformedPersistedState("disciplineScore must be within [0, 100]")
        if progress.streak < 0:
            raise MalformedPersistedState("streak must not be negative")

        return progress


def _migrate_progress_v0(data: dict) -> dict:
    _check_keys(
        "user_progress(v0)",
        data,
        frozenset(),
        frozenset({"completions", "currentBalance", "disciplineScore", "streak",
                   "nextProgressPct", "lastStreakDate"}),
    )
    defaults = Progress()
    return {
        "schemaVersion": SCHEMA_VERSION,
        "completions": data.get("completions", defaults.completions),
        "currentBalance": data.get("currentBalance", defaults.current_balance),
        "disciplineScore": data.get("disciplineScore", defaults.discipline_score),
        "streak": data.get("streak", defaults.streak),
        "lastStreakDate": data.get("lastStreakDate"),
    }


# ===== Rules =====


@dataclass
class Rule:
    """A user-defined trading rule with violation counters."""

    id: str
    text: str
    active: bool = True
    violations: int = 0
    last_violation_at: Optional[datetime] = None
    tags: FrozenSet[str] = frozenset()
    category: RuleCategory = RuleCategory.CUSTOM
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "schemaVersion": SCHEMA_VERSION,
            "id": self.id,
            "text": self.text,
            "active": self.active,
            "violations": self.violations,
            "lastViolationTimestamp": (
                format_timestamp(self.last_violation_at) if self.last_violation_at else None
            ),
            "tags": sorted(self.tags),
            "category": self.category.value,
            "createdAt": format_timestamp(self.created_at) if self.created_at else None,
            "updatedAt": format_timestamp(self.updated_at) if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Rule":
        """Validate and build from stored JSON, migrating legacy shapes."""
        if _version("rule", data) == 0:
            data = _migrate_rule_v0(data)

        _check_keys(
            "rule",
            data,
            frozenset({"schemaVersion", "id", "text", "active", "violations",
                       "lastViolationTimestamp", "tags", "category",
                       "createdAt", "updatedAt"}),
        )

        if not isinstance(data["active"], bool):
            raise MalformedPersistedState(f"rule.active: expected bool, got {data['active']!r}")
        if not isinstance(data["tags"], list):
            raise MalformedPersistedState("rule.tags: expected list")

        violations = _integer("rule.violations", data["violations"])
        if violations < 0:
            raise MalformedPersistedState("rule.violations must not be negative")

        def optional_ts(value):
            return parse_timestamp(value) if value is not None else None

        return cls(
            id=_string("rule.id", data["id"]),
            text=_string("rule.text", data["text"]),
            active=data["active"],
            violations=violations,
            last_violation_at=optional_ts(data["lastViolationTimestamp"]),
            tags=frozenset(_string("rule.tags[]", t) for t in data["tags"]),
            category=_enum("rule.category", RuleCategory, data["category"]),
            created_at=optional_ts(data["createdAt"]),
            updated_at=optional_ts(data["updatedAt"]),
        )


def _migrate_rule_v0(data: dict) -> dict:
    _check_keys(
        "rule(v0)",
        data,
        frozenset({"id", "text"}),
        frozenset({"active", "violations", "lastViolation", "tags", "category"}),
    )
    return {
        "schemaVersion": SCHEMA_VERSION,
        "id": str(data["id"]),
        "text": data["text"],
        "active": data.get("active", True),
        "violations": data.get("violations", 0),
        "lastViolationTimestamp": data.get("lastViolation"),
        "tags": data.get("tags", []),
        "category": data.get("category") or RuleCategory.CUSTOM.value,
        "createdAt": None,
        "updatedAt": None,
    }


def rules_from_list(data: Any) -> List[Rule]:
    """Validate the whole user_rules array; duplicate ids are rejected."""
    if not isinstance(data, list):
        raise MalformedPersistedState("user_rules: expected array")

    rules = [Rule.from_dict(item) for item in data]
    ids = [r.id for r in rules]
    if len(ids) != len(set(ids)):
        raise MalformedPersistedState("user_rules: duplicate rule ids")
    return rules


# ===== Daily stats & activity log =====


@dataclass
class DailyStat:
    """Per-day counters. Increment-only."""

    completions: float = 0.0
    violations: int = 0

    def to_dict(self) -> dict:
        return {"completions": self.completions, "violations": self.violations}


def daily_stats_from_dict(data: Any) -> Dict[date, DailyStat]:
    """
    Validate the daily_stats map (ISO date -> counters).

    The map holds date keys only; a schemaVersion key written by earlier
    builds is skipped.
    """
    if not isinstance(data, dict):
        raise MalformedPersistedState("daily_stats: expected object")

    stats: Dict[date, DailyStat] = {}
    for key, value in data.items():
        if key == "schemaVersion":
            continue
        _check_keys(f"daily_stats[{key}]", value, frozenset({"completions", "violations"}))
        stats[parse_date(key)] = DailyStat(
            completions=_number("completions", value["completions"]),
            violations=_integer("violations", value["violations"]),
        )
    return stats


def daily_stats_to_dict(stats: Dict[date, DailyStat]) -> dict:
    data: Dict[str, Any] = {}
    for day in sorted(stats):
        data[day.isoformat()] = stats[day].to_dict()
    return data


@dataclass
class ActivityLogEntry:
    """Append-only record of a user action, display-only history."""

    timestamp: datetime
    type: ActivityType
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "schemaVersion": SCHEMA_VERSION,
            "timestamp": format_timestamp(self.timestamp),
            "type": self.type.value,
            "payload": dict(self.payload),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "ActivityLogEntry":
        if _version("activity_log[]", data) == 0:
            # Legacy entries were flat: {ts: epoch-ms, type, ...fields}
            _check_keys("activity_log[](v0)", data, frozenset({"ts", "type"}), frozenset(data.keys()))
            payload = {k: v for k, v in data.items() if k not in ("ts", "type")}
            data = {
                "schemaVersion": SCHEMA_VERSION,
                "timestamp": data["ts"],
                "type": data["type"],
                "payload": payload,
            }

        _check_keys("activity_log[]", data, frozenset({"schemaVersion", "timestamp", "type", "payload"}))
        if not isinstance(data["payload"], dict):
            raise MalformedPersistedState("activity_log[].payload: expected object")

        return cls(
            timestamp=parse_timestamp(data["timestamp"]),
            type=_enum("activity_log[].type", ActivityType, data["type"]),
            payload=dict(data["payload"]),
        )


def activity_log_from_list(data: Any) -> List[ActivityLogEntry]:
    if not isinstance(data, list):
        raise MalformedPersistedState("activity_log: expected array")
    return [ActivityLogEntry.from_dict(item) for item in data]


def achievements_from_list(data: Any) -> List[str]:
    if not isinstance(data, list):
        raise MalformedPersistedState("user_achievements: expected array")
    return [_string("user_achievements[]", badge) for badge in data]


# ===== Leaderboard =====


@dataclass
class LeaderboardEntry:
    """Derived ranking row. Recomputed on every ranking pass."""

    user_id: str
    display_name: str
    completions: float
    discipline_score: int
    streak: int
    growth_pct: float
    badges: List[str] = field(default_factory=list)
    rank: int = 0

    def to_dict(self) -> dict:
        return {
            "identity": {"userId": self.user_id, "displayName": self.display_name},
            "completions": self.completions,
            "disciplineScore": self.discipline_score,
            "streak": self.streak,
            "growthPct": self.growth_pct,
            "badges": list(self.badges),
            "rank": self.rank,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "LeaderboardEntry":
        _check_keys(
            "leaderboard_entry",
            data,
            frozenset({"identity", "completions", "disciplineScore", "streak", "growthPct"}),
            frozenset({"badges", "rank"}),
        )
        identity = data["identity"]
        _check_keys("leaderboard_entry.identity", identity, frozenset({"userId", "displayName"}))

        badges = data.get("badges", [])
        if not isinstance(badges, list):
            raise MalformedPersistedState("leaderboard_entry.badges: expected array")

        return cls(
            user_id=_string("identity.userId", identity["userId"]),
            display_name=_string("identity.displayName", identity["displayName"]),
            completions=_number("completions", data["completions"]),
            discipline_score=_integer("disciplineScore", data["disciplineScore"]),
            streak=_integer("streak", data["streak"]),
            growth_pct=_number("growthPct", data["growthPct"]),
            badges=[_string("badges[]", b) for b in badges],
            rank=_integer("rank", data.get("rank", 0)),
        )


@dataclass
class LeaderboardHistoryRecord:
    """Archived result of one reset transition. Permanent."""

    period_label: str
    top3: List[LeaderboardEntry]
    your_rank: Optional[int]

    def to_dict(self) -> dict:
        return {
            "schemaVersion": SCHEMA_VERSION,
            "periodLabel": self.period_label,
            "top3": [entry.to_dict() for entry in self.top3],
            "yourRank": self.your_rank,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "LeaderboardHistoryRecord":
        _version("leaderboard_history[]", data)
        _check_keys(
            "leaderboard_history[]",
            data,
            frozenset({"periodLabel", "top3", "yourRank"}),
            frozenset({"schemaVersion"}),
        )
        if not isinstance(data["top3"], list):
            raise MalformedPersistedState("leaderboard_history[].top3: expected array")

        your_rank = data["yourRank"]
        return cls(
            period_label=_string("periodLabel", data["periodLabel"]),
            top3=[LeaderboardEntry.from_dict(e) for e in data["top3"]],
            your_rank=_integer("yourRank", your_rank) if your_rank is not None else None,
        )


def history_from_list(data: Any) -> List[LeaderboardHistoryRecord]:
    if not isinstance(data, list):
        raise MalformedPersistedState("leaderboard_history: expected array")
    return [LeaderboardHistoryRecord.from_dict(item) for item in data]
