"""
Goal presets.

Pre-configured goal settings for different trading styles. A fresh user
starts from one of these; custom presets live in data/goal_profiles.json.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

from disciplinetx.core.schemas import ProgressObjectKind, Settings

logger = logging.getLogger(__name__)


@dataclass
class GoalProfile:
    """Pre-configured goal settings."""
    name: str
    description: str
    starting_value: float
    target_completions: int
    growth_per_completion: float
    progress_object_kind: ProgressObjectKind = ProgressObjectKind.BEER

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "description": self.description,
            "starting_value": self.starting_value,
            "target_completions": self.target_completions,
            "growth_per_completion": self.growth_per_completion,
            "progress_object_kind": self.progress_object_kind.value,
        }

    @classmethod
    def from_dict(cls, name: str, data: dict) -> "GoalProfile":
        """Create from dictionary."""
        return cls(
            name=name,
            description=data.get("description", ""),
            starting_value=data.get("starting_value", 100.0),
            target_completions=data.get("target_completions", 50),
            growth_per_completion=data.get("growth_per_completion", 1.0),
            progress_object_kind=ProgressObjectKind(data.get("progress_object_kind", "beer")),
        )

    def to_settings(self) -> Settings:
        return Settings(
            starting_value=self.starting_value,
            target_completions=self.target_completions,
            growth_per_completion=self.growth_per_completion,
            progress_object_kind=self.progress_object_kind,
        )


# Built-in profiles
BUILT_IN_PROFILES: Dict[str, GoalProfile] = {
    "conservative": GoalProfile(
        name="Conservative",
        description="Small steps, long goal, slow compounding",
        starting_value=100.0,
        target_completions=100,
        growth_per_completion=0.5,
        progress_object_kind=ProgressObjectKind.DONUT,
    ),
    "balanced": GoalProfile(
        name="Balanced",
        description="Fifty completions at 1% each",
        starting_value=100.0,
        target_completions=50,
        growth_per_completion=1.0,
        progress_object_kind=ProgressObjectKind.BEER,
    ),
    "aggressive": GoalProfile(
        name="Aggressive",
        description="Short goal, large steps per completion",
        starting_value=100.0,
        target_completions=20,
        growth_per_completion=5.0,
        progress_object_kind=ProgressObjectKind.DIAMOND,
    ),
}


class ProfileManager:
    """Manage built-in and custom goal presets."""

    def __init__(self, config_path: Path = None):
        """
        Initialize profile manager.

        Args:
            config_path: Path to data directory (defaults to data/)
        """
        if config_path is None:
            config_path = Path("data")

        self.config_path = config_path
        self.custom_profiles: Dict[str, GoalProfile] = {}
        self.load_custom_profiles()

    def load_custom_profiles(self):
        """Load user-defined presets from JSON file."""
        profiles_file = self.config_path / "goal_profiles.json"

        if not profiles_file.exists():
            logger.debug(f"No custom profiles file at {profiles_file}")
            return

        try:
            data = json.loads(profiles_file.read_text())

            for name, params in data.items():
                self.custom_profiles[name] = GoalProfile.from_dict(name, params)

            logger.info(f"Loaded {len(self.custom_profiles)} custom profiles")

        except (OSError, ValueError) as e:
            logger.error(f"Failed to load custom profiles: {e}")

    def get_profile(self, name: str) -> GoalProfile:
        """
        Get profile by name.

        Raises:
            ValueError: If profile not found
        """
        if name in BUILT_IN_PROFILES:
            return BUILT_IN_PROFILES[name]

        if name in self.custom_profiles:
            return self.custom_profiles[name]

        raise ValueError(
            f"Profile '{name}' not found. "
            f"Available: {', '.join(self.list_profile_names())}"
        )

    def list_profiles(self) -> List[GoalProfile]:
        """List all available profiles (built-in + custom)."""
        return list(BUILT_IN_PROFILES.values()) + list(self.custom_profiles.values())

    def list_profile_names(self) -> List[str]:
        """List all profile names."""
        return list(BUILT_IN_PROFILES.keys()) + list(self.custom_profiles.keys())

    def create_profile(
        self,
        name: str,
        description: str,
        starting_value: float = 100.0,
        target_completions: int = 50,
        growth_per_completion: float = 1.0,
        progress_object_kind: ProgressObjectKind = ProgressObjectKind.BEER,
    ) -> GoalProfile:
        """
        Create and save a custom preset.

        Raises:
            ValueError: If any goal value is out of range
        """
        if starting_value <= 0 or target_completions < 1 or growth_per_completion <= 0:
            raise ValueError("Goal values must be positive")

        profile = GoalProfile(
            name=name,
            description=description,
            starting_value=starting_value,
            target_completions=target_completions,
            growth_per_completion=growth_per_completion,
            progress_object_kind=progress_object_kind,
        )

        self.custom_profiles[name] = profile
        self.save_profiles()

        logger.info(f"Created custom profile: {name}")
        return profile

    def save_profiles(self):
        """Persist custom presets to JSON file."""
        profiles_file = self.config_path / "goal_profiles.json"

        self.config_path.mkdir(parents=True, exist_ok=True)

        data = {
            name: profile.to_dict()
            for name, profile in self.custom_profiles.items()
        }

        try:
            profiles_file.write_text(json.dumps(data, indent=2))
            logger.info(f"Saved {len(self.custom_profiles)} custom profiles")

        except OSError as e:
            logger.error(f"Failed to save custom profiles: {e}")
