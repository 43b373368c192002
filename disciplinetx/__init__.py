"""
DisciplineTX - Gamified Trading Discipline Tracker

A self-hosted Python engine that turns rule-following behavior into
simulated compounding growth, streaks, and a monthly leaderboard.

This system rewards consistency, not activity.
"""

__version__ = "0.1.0"
