"""
Identity providers.

Supplies the stable user id and display name used as the leaderboard
identity. Nothing in the engine requires a reachable provider; without one
the user is a local, unauthenticated identity.
"""

import logging
from dataclasses import dataclass

from disciplinetx.core.config import Config

logger = logging.getLogger(__name__)

LOCAL_USER_ID = "local-user"
LOCAL_DISPLAY_NAME = "Trading Pro"


@dataclass(frozen=True)
class Identity:
    """Who the current user is on the leaderboard."""
    user_id: str
    display_name: str


class LocalIdentityProvider:
    """Unauthenticated fallback identity."""

    def current(self) -> Identity:
        return Identity(LOCAL_USER_ID, LOCAL_DISPLAY_NAME)


class ConfigIdentityProvider:
    """
    Identity from configuration (DISCIPLINETX_USER_ID / DISCIPLINETX_DISPLAY_NAME).

    Degrades to the local identity when no user id is configured.
    """

    def __init__(self, config: Config):
        self.config = config

    def current(self) -> Identity:
        if not self.config.user_id:
            logger.debug("No user id configured, using local identity")
            return LocalIdentityProvider().current()

        return Identity(
            user_id=self.config.user_id,
            display_name=self.config.display_name or LOCAL_DISPLAY_NAME,
        )
