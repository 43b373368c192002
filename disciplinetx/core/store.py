"""
Key-value store adapters.

Opaque get/set/remove of JSON values by key, plus a change-notification
channel. Subscribers are told WHICH keys changed, never the new values;
they must re-read the store.
"""

import json
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from disciplinetx.core.config import Config
from disciplinetx.core.db import get_engine, init_db, session_scope
from disciplinetx.core.models import KeyValueEntry
from disciplinetx.core.schemas import MalformedPersistedState

logger = logging.getLogger(__name__)

# Storage contract shared with reports, profile and dashboard readers
USER_SETTINGS = "user_settings"
USER_PROGRESS = "user_progress"
USER_RULES = "user_rules"
DAILY_STATS = "daily_stats"
ACTIVITY_LOG = "activity_log"
USER_ACHIEVEMENTS = "user_achievements"
LEADERBOARD_LAST_RESET = "leaderboard_last_reset"
LEADERBOARD_HISTORY = "leaderboard_history"
CURRENT_USER_RANK = "current_user_rank"
MONTHLY_LEADERBOARD_DATA = "monthly_leaderboard_data"

ALL_KEYS = [
    USER_SETTINGS,
    USER_PROGRESS,
    USER_RULES,
    DAILY_STATS,
    ACTIVITY_LOG,
    USER_ACHIEVEMENTS,
    LEADERBOARD_LAST_RESET,
    LEADERBOARD_HISTORY,
    CURRENT_USER_RANK,
    MONTHLY_LEADERBOARD_DATA,
]

ChangeListener = Callable[[List[str]], None]


class StoreWriteError(Exception):
    """A write could not be persisted (quota, disk, database error)."""
    pass


class StoreAdapter:
    """
    Base class for key-value stores.

    Subclasses implement the raw text operations; encoding and change
    broadcasting live here.
    """

    def __init__(self):
        self._listeners: List[ChangeListener] = []

    # Raw operations

    def _read(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def _write_many(self, items: Dict[str, str]) -> None:
        raise NotImplementedError

    def _delete(self, key: str) -> bool:
        raise NotImplementedError

    # Public API

    def get(self, key: str) -> Any:
        """
        Get decoded JSON value for key, or None if missing.

        Raises MalformedPersistedState if the stored text is not valid JSON.
        """
        raw = self._read(key)
        if raw is None:
            return None

        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            raise MalformedPersistedState(f"{key}: stored value is not JSON ({e})") from e

    def set(self, key: str, value: Any) -> None:
        """Replace the value stored under key."""
        self.set_many({key: value})

    def set_many(self, values: Dict[str, Any]) -> None:
        """
        Replace several keys in one write.

        Either every key is written or none is.
        """
        if not values:
            return

        encoded = {key: json.dumps(value) for key, value in values.items()}
        self._write_many(encoded)
        self._broadcast(list(encoded.keys()))

    def remove(self, key: str) -> None:
        """Delete key if present."""
        if self._delete(key):
            self._broadcast([key])

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """
        Register a change listener.

        Returns a function that unsubscribes it.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _broadcast(self, keys: List[str]) -> None:
        for listener in list(self._listeners):
            try:
                listener(keys)
            except Exception as e:
                logger.error(f"Change listener failed for {keys}: {e}")


class WriteBuffer:
    """
    Best-effort writer in front of a store.

    A failed write is logged and kept pending; the in-memory state stays
    authoritative and the pending values ride along with the next write.
    """

    def __init__(self, store: StoreAdapter):
        self.store = store
        self._pending: Dict[str, Any] = {}

    @property
    def pending_keys(self) -> List[str]:
        return sorted(self._pending)

    def write(self, values: Dict[str, Any]) -> bool:
        """Write values (plus anything still pending). Returns success."""
        self._pending.update(values)

        try:
            self.store.set_many(self._pending)
        except StoreWriteError as e:
            logger.error(f"Store write failed, keeping in-memory state: {e}")
            return False

        self._pending = {}
        return True

    def discard(self, keys: Iterable[str]) -> None:
        """Drop pending values that were superseded by a reload."""
        for key in keys:
            self._pending.pop(key, None)


def read_entity(store: StoreAdapter, key: str, parse: Callable[[Any], Any], fallback: Any) -> Any:
    """
    Read and validate one stored entity.

    Missing keys and malformed blobs both yield the fallback (the
    last-known-good in-memory value, or defaults on first load).
    """
    try:
        raw = store.get(key)
        if raw is None:
            return fallback
        return parse(raw)
    except MalformedPersistedState as e:
        logger.warning(f"Ignoring malformed {key}: {e}")
        return fallback


class MemoryStore(StoreAdapter):
    """
    In-process store.

    Holds JSON text like browser storage does, so readers never share
    mutable objects with writers. Optional byte quota simulates storage
    limits.
    """

    def __init__(self, max_bytes: Optional[int] = None):
        super().__init__()
        self._data: Dict[str, str] = {}
        self.max_bytes = max_bytes

    def _read(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def _write_many(self, items: Dict[str, str]) -> None:
        if self.max_bytes is not None:
            projected = dict(self._data)
            projected.update(items)
            size = sum(len(k) + len(v) for k, v in projected.items())
            if size > self.max_bytes:
                raise StoreWriteError(
                    f"Quota exceeded: {size} bytes > {self.max_bytes} bytes"
                )

        self._data.update(items)

    def _delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self) -> Iterable[str]:
        return list(self._data.keys())


class SqlStore(StoreAdapter):
    """
    SQLite-backed store.

    One kv_entries row per key. Several processes may open the same file;
    each sees the others' writes on the next read.
    """

    def __init__(self, engine):
        super().__init__()
        self.engine = engine
        init_db(engine)
        self._factory = sessionmaker(bind=engine)

    @classmethod
    def from_config(cls, config: Config) -> "SqlStore":
        """Open the store at config.database_path."""
        return cls(get_engine(config))

    def _read(self, key: str) -> Optional[str]:
        with session_scope(self._factory) as session:
            entry = session.get(KeyValueEntry, key)
            return entry.value if entry else None

    def _write_many(self, items: Dict[str, str]) -> None:
        try:
            with session_scope(self._factory) as session:
                for key, value in items.items():
                    session.merge(KeyValueEntry(key=key, value=value))
        except SQLAlchemyError as e:
            raise StoreWriteError(f"Failed to write {list(items)}: {e}") from e

    def _delete(self, key: str) -> bool:
        try:
            with session_scope(self._factory) as session:
                entry = session.get(KeyValueEntry, key)
                if not entry:
                    return False
                session.delete(entry)
                return True
        except SQLAlchemyError as e:
            raise StoreWriteError(f"Failed to remove {key}: {e}") from e
