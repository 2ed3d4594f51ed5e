"""
Event Deduplication.

Tracks processed events by prefixed keys ("created:dec-1",
"resolved:dec-1") so that replays from a reconnecting event stream, or a
restart followed by catch-up, do not produce duplicate notifications.
State lives for the process lifetime only.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Optional

from beadbridge.bridge.interfaces import BeadStore, DecisionNotifier

logger = logging.getLogger(__name__)

# Minimum spacing between catch-up notifications (~1 per second).
CATCH_UP_THROTTLE_SECONDS = 1.1

# Field holding the answer of a resolved decision.
DECISION_CHOSEN_FIELD = "chosen"


@dataclass
class CatchUpResult:
    """Outcome of a decision catch-up pass.

    Attributes:
        total: Decisions returned by the store
        notified: Notifications delivered
        skipped_seen: Decisions already known to the registry
        resolved: Decisions that already carried an answer
        failed: Notifications that raised
    """

    total: int = 0
    notified: int = 0
    skipped_seen: int = 0
    resolved: int = 0
    failed: int = 0


class DedupRegistry:
    """Process-lifetime "seen it?" cache keyed by prefixed strings.

    Keys for different verbs on the same entity are independent. There is
    no eviction; growth is bounded by the number of beads.

    Thread-safe for concurrent access.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._seen: set[str] = set()

    def seen(self, key: str) -> bool:
        """Check-and-set a key.

        Args:
            key: Prefixed dedup key

        Returns:
            True if the key was already marked; otherwise marks it and
            returns False
        """
        with self._lock:
            if key in self._seen:
                return True
            self._seen.add(key)
            return False

    def mark(self, key: str) -> None:
        """Mark a key without reporting prior state."""
        with self._lock:
            self._seen.add(key)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._seen

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)

    async def catch_up_decisions(
        self,
        store: Optional[BeadStore],
        notifier: Optional[DecisionNotifier],
        throttle_seconds: float = CATCH_UP_THROTTLE_SECONDS,
    ) -> CatchUpResult:
        """Pre-populate the registry from pending decisions.

        Unresolved decisions not yet seen are notified (throttled);
        resolved ones are marked under their "resolved" key instead.
        Without a notifier, decisions are only marked.

        Args:
            store: Bead store to list decisions from (None = no-op)
            notifier: Decision notifier (None = mark only)
            throttle_seconds: Pause after each notification

        Returns:
            Counts for the pass
        """
        result = CatchUpResult()
        if store is None:
            return result

        try:
            decisions = await store.list_decision_beads()
        except Exception as e:
            logger.warning(f"Catch-up: failed to list pending decisions: {e}")
            return result

        result.total = len(decisions)
        for decision in decisions:
            if self.seen(f"created:{decision.id}"):
                result.skipped_seen += 1
                continue

            if decision.fields.get(DECISION_CHOSEN_FIELD):
                self.mark(f"resolved:{decision.id}")
                result.resolved += 1
                continue

            if notifier is None:
                continue

            try:
                await notifier.notify_decision(decision.to_event())
                result.notified += 1
            except Exception as e:
                result.failed += 1
                logger.error(f"Catch-up: failed to notify decision {decision.id}: {e}")
            await asyncio.sleep(throttle_seconds)

        logger.info(
            f"Decision catch-up complete: total={result.total} "
            f"notified={result.notified} resolved={result.resolved} "
            f"skipped_seen={result.skipped_seen}"
        )
        return result
