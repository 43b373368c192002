"""
Leaderboard module for DisciplineTX.

Ranking against supplied peers and the periodic reset with badge awards.
"""

from disciplinetx.leaderboard.ranker import Leaderboard, rank
from disciplinetx.leaderboard.peers import JsonFilePeerSource, NoPeerSource, StaticPeerSource
from disciplinetx.leaderboard.reset_cycle import Achievements, ResetCycle

__all__ = [
    "Leaderboard",
    "rank",
    "JsonFilePeerSource",
    "NoPeerSource",
    "StaticPeerSource",
    "Achievements",
    "ResetCycle",
]
