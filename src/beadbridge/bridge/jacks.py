"""
Jack Lifecycle Watcher.

Jacks are temporary infrastructure-change markers. This watcher follows
``type=jack`` beads and notifies chat when one is:

- raised (created), individually up to BATCH_THRESHOLD per window, with
  the overflow collapsed into a single summary
- lowered (closed), once per jack
- expired (updated with the "expired" label), at most once per
  EXPIRY_RENOTIFY_WINDOW per jack
"""

import logging
import time
from collections.abc import Callable, Sequence
from typing import Optional

from beadbridge.bridge.batch import BatchAggregator
from beadbridge.bridge.cooldown import CooldownMap
from beadbridge.bridge.dedup import DedupRegistry
from beadbridge.bridge.dispatcher import (
    TOPIC_BEAD_CLOSED,
    TOPIC_BEAD_CREATED,
    TOPIC_BEAD_UPDATED,
    EventDispatcher,
    Payload,
)
from beadbridge.bridge.interfaces import JackNotifier
from beadbridge.models import BeadEvent, parse_bead_event

logger = logging.getLogger(__name__)

JACK_TYPE = "jack"

BATCH_THRESHOLD = 10
BATCH_WINDOW = 60.0
EXPIRY_RENOTIFY_WINDOW = 6 * 60 * 60.0
EXPIRED_LABEL = "expired"


class JackWatcher:
    """Watches jack beads and notifies their lifecycle.

    Attributes:
        batch: Aggregator for raised notifications
    """

    def __init__(
        self,
        notifier: Optional[JackNotifier],
        batch_threshold: int = BATCH_THRESHOLD,
        batch_window: float = BATCH_WINDOW,
        expiry_window: float = EXPIRY_RENOTIFY_WINDOW,
        expired_label: str = EXPIRED_LABEL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the watcher.

        Args:
            notifier: Chat notifier; None logs events without notifying
            batch_threshold: Raised notifications sent individually per window
            batch_window: Seconds before the overflow summary is sent
            expiry_window: Minimum seconds between expiry notices per jack
            expired_label: Label that marks an expired jack
            clock: Monotonic time source
        """
        self._notifier = notifier
        self._expired_label = expired_label
        self._lowered = DedupRegistry()
        self._expired = CooldownMap(expiry_window, clock=clock)
        self.batch: BatchAggregator[BeadEvent] = BatchAggregator(
            threshold=batch_threshold,
            window_seconds=batch_window,
            on_flush=self._send_batch,
        )

    def register(self, dispatcher: EventDispatcher) -> None:
        dispatcher.on(TOPIC_BEAD_CREATED, self.handle_created)
        dispatcher.on(TOPIC_BEAD_CLOSED, self.handle_closed)
        dispatcher.on(TOPIC_BEAD_UPDATED, self.handle_updated)
        logger.info("Jack watcher registered for bead created/closed/updated events")

    async def flush_now(self) -> None:
        """Send any held overflow immediately."""
        await self.batch.flush_now()

    async def handle_created(self, payload: Payload) -> None:
        bead = self._parse(payload)
        if bead is None:
            return

        logger.info(
            f"Jack raised: {bead.id} target={bead.field_value('target')} "
            f"ttl={bead.field_value('ttl')} agent={bead.assignee}"
        )
        if self._notifier is None:
            return

        if not self.batch.add(bead):
            return
        try:
            await self._notifier.notify_jack_raised(bead)
        except Exception as e:
            logger.error(f"Failed to notify jack raised {bead.id}: {e}")

    async def handle_closed(self, payload: Payload) -> None:
        bead = self._parse(payload)
        if bead is None:
            return

        logger.info(f"Jack lowered: {bead.id} target={bead.field_value('target')}")
        if self._lowered.seen(f"lowered:{bead.id}"):
            return
        if self._notifier is None:
            return
        try:
            await self._notifier.notify_jack_lowered(bead)
        except Exception as e:
            logger.error(f"Failed to notify jack lowered {bead.id}: {e}")

    async def handle_updated(self, payload: Payload) -> None:
        bead = self._parse(payload)
        if bead is None or not bead.has_label(self._expired_label):
            return

        logger.info(f"Jack expired: {bead.id} target={bead.field_value('target')}")
        if not self._expired.try_acquire(bead.id):
            logger.debug(f"Expiry notice for {bead.id} suppressed by cooldown")
            return
        if self._notifier is None:
            return
        try:
            await self._notifier.notify_jack_expired(bead)
        except Exception as e:
            logger.error(f"Failed to notify jack expired {bead.id}: {e}")

    async def _send_batch(self, overflow: Sequence[BeadEvent]) -> None:
        if self._notifier is None:
            return
        logger.info(f"Sending jack batch summary for {len(overflow)} jacks")
        await self._notifier.notify_jack_batch(list(overflow))

    def _parse(self, payload: Payload) -> Optional[BeadEvent]:
        bead = parse_bead_event(payload)
        if bead is None or bead.type != JACK_TYPE:
            return None
        return bead
