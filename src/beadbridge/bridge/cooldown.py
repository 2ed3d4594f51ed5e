"""
Cooldown Windows.

Per-key rate limiting: at most one action per key within a window.
Shared by the claimed-work nudges, jack expiry re-notification and the
JIRA sync-back dedup.
"""

import threading
import time
from collections.abc import Callable


class CooldownMap:
    """Key -> last-action time, with lazy eviction.

    Thread-safe for concurrent access.

    Usage:
        cooldown = CooldownMap(window_seconds=300)
        if cooldown.try_acquire(bead_id):
            ...  # act, then nothing else for this bead for 5 minutes
    """

    def __init__(
        self,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the map.

        Args:
            window_seconds: Minimum time between actions for a key
            clock: Monotonic time source (injectable for tests)
        """
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self._window = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._last: dict[str, float] = {}

    @property
    def window_seconds(self) -> float:
        return self._window

    def try_acquire(self, key: str) -> bool:
        """Record an action for key unless one happened within the window.

        Entries older than the window are evicted as a side effect.

        Returns:
            True if the caller may act now
        """
        with self._lock:
            now = self._clock()
            self._evict_locked(now)
            last = self._last.get(key)
            if last is not None and now - last < self._window:
                return False
            self._last[key] = now
            return True

    def is_cooling(self, key: str) -> bool:
        """Check whether key is inside its window, without recording."""
        with self._lock:
            last = self._last.get(key)
            return last is not None and self._clock() - last < self._window

    def __len__(self) -> int:
        with self._lock:
            return len(self._last)

    def _evict_locked(self, now: float) -> None:
        # Caller must hold self._lock.
        stale = [k for k, t in self._last.items() if now - t >= self._window]
        for k in stale:
            del self._last[k]
