"""
Configuration management for DisciplineTX.

Loads settings from environment variables and goal presets.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Dict, Any


@dataclass
class Config:
    """Application configuration."""

    # Storage
    database_path: str = "data/disciplinetx.db"

    # Calendar days (streaks, daily stats) are evaluated in this timezone
    timezone: str = "UTC"

    # Goal preset used when a fresh user is initialized
    goal_profile: str = "balanced"

    # Leaderboard
    reset_period_days: int = 30
    peers_path: Optional[str] = None

    # Identity (falls back to a local, unauthenticated user)
    user_id: Optional[str] = None
    display_name: Optional[str] = None

    @classmethod
    def _load_json(cls, json_path: Path) -> Dict[str, Any]:
        """Load JSON configuration file."""
        if not json_path.exists():
            raise FileNotFoundError(f"Config file not found: {json_path}")

        with open(json_path, 'r') as f:
            return json.load(f)

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        reset_days = os.getenv("LEADERBOARD_RESET_DAYS", "30")

        config = cls(
            database_path=os.getenv("DISCIPLINETX_DB_PATH", "data/disciplinetx.db"),
            timezone=os.getenv("TIMEZONE", "UTC"),
            goal_profile=os.getenv("GOAL_PROFILE", "balanced").lower(),
            reset_period_days=int(reset_days) if reset_days.isdigit() and int(reset_days) >= 1 else 30,
            peers_path=os.getenv("DISCIPLINETX_PEERS_PATH"),
            user_id=os.getenv("DISCIPLINETX_USER_ID"),
            display_name=os.getenv("DISCIPLINETX_DISPLAY_NAME"),
        )

        return config

    def get_summary(self) -> str:
        """Get a summary of current settings."""
        return f"""Database: {self.database_path}
Timezone: {self.timezone}
Goal Profile: {self.goal_profile}

Leaderboard:
  Reset Period: {self.reset_period_days} days
  Peers File: {self.peers_path or "none"}

Identity:
  User ID: {self.user_id or "local-user"}
  Display Name: {self.display_name or "Trading Pro"}
"""
