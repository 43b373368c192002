"""
Shared test fixtures.

All engine tests run against an in-memory store and a fixed clock.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from disciplinetx.core.engine import DisciplineEngine
from disciplinetx.core.store import MemoryStore, WriteBuffer

START = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def buffer(store):
    return WriteBuffer(store)


@pytest.fixture
def engine(store, clock):
    engine = DisciplineEngine(store, clock=clock)
    engine.load()
    return engine
