"""
Peer data sources for the leaderboard.

The engine never invents peers; whoever builds the leaderboard decides
where they come from (a real service, a fixture file, a test double).
"""

import logging
from dataclasses import replace
from pathlib import Path
from typing import List

from disciplinetx.core.config import Config
from disciplinetx.core.schemas import LeaderboardEntry, MalformedPersistedState

logger = logging.getLogger(__name__)


class StaticPeerSource:
    """Fixed list of peers."""

    def __init__(self, entries: List[LeaderboardEntry]):
        self.entries = list(entries)

    def fetch(self) -> List[LeaderboardEntry]:
        return [replace(e) for e in self.entries]


class JsonFilePeerSource:
    """
    Peers from a JSON file holding an array of leaderboard entries.

    A missing or malformed file yields no peers.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def fetch(self) -> List[LeaderboardEntry]:
        try:
            data = Config._load_json(self.path)
        except FileNotFoundError:
            logger.warning(f"Peers file not found: {self.path}")
            return []
        except ValueError as e:
            logger.warning(f"Peers file is not valid JSON: {self.path} ({e})")
            return []

        if not isinstance(data, list):
            logger.warning(f"Peers file must hold an array: {self.path}")
            return []

        peers: List[LeaderboardEntry] = []
        for item in data:
            try:
                peers.append(LeaderboardEntry.from_dict(item))
            except MalformedPersistedState as e:
                logger.warning(f"Skipping malformed peer entry: {e}")

        logger.debug(f"Loaded {len(peers)} peers from {self.path}")
        return peers


class NoPeerSource:
    """Solo leaderboard."""

    def fetch(self) -> List[LeaderboardEntry]:
        return []
