"""
OAuth anti-forgery state store.

Every login gets its own random state value, remembered in process memory
until the callback consumes it or it expires. Values are single use.
"""
import logging
import secrets
import threading
import time
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


class OAuthStateStore:
    """Issues and consumes one-time OAuth state values."""

    def __init__(self, ttl_seconds: int = 600, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._states: Dict[str, float] = {}  # state -> expiry
        self._lock = threading.Lock()

    def issue(self) -> str:
        state = secrets.token_urlsafe(32)
        now = self._clock()
        with self._lock:
            self._prune(now)
            self._states[state] = now + self.ttl_seconds
        return state

    def consume(self, state: Optional[str]) -> Optional[str]:
        """
        Return the stored state and forget it.

        Returns None for unknown, already used or expired values.
        """
        if not state:
            return None

        with self._lock:
            expires_at = self._states.pop(state, None)

        if expires_at is None:
            return None
        if expires_at <= self._clock():
            logger.info("OAuth state expired before callback")
            return None
        return state

    def _prune(self, now: float):
        expired = [s for s, expires_at in self._states.items() if expires_at <= now]
        for s in expired:
            del self._states[s]

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)
