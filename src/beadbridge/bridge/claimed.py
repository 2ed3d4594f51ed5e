"""
Claimed Work Watcher.

Nudges the assignee when a bead they have claimed is updated or closed,
so agents notice changes to in-progress work without polling. Update
events carry no "updated by", so self-updates nudge too; the per-bead
cooldown keeps that from turning into spam.
"""

import logging
import time
from collections.abc import Callable
from typing import Optional

from beadbridge.bridge.cooldown import CooldownMap
from beadbridge.bridge.dispatcher import (
    TOPIC_BEAD_CLOSED,
    TOPIC_BEAD_UPDATED,
    EventDispatcher,
    Payload,
)
from beadbridge.bridge.interfaces import BeadStore
from beadbridge.bridge.nudge import CoopNudger, NudgeError, resolve_coop_url
from beadbridge.models import BeadEvent, parse_bead_event

logger = logging.getLogger(__name__)

# Minimum interval between nudges for the same bead (either kind).
CLAIMED_NUDGE_WINDOW = 5 * 60.0

# System and infrastructure bead types that are not actionable work.
SKIP_CLAIMED_TYPES = frozenset({"agent", "decision", "mail", "project", "report"})


def updated_message(bead: BeadEvent) -> str:
    return (
        f'Your claimed bead {bead.id} "{bead.title}" was updated '
        f"— run 'kd show {bead.id}' to review"
    )


def closed_message(bead: BeadEvent) -> str:
    return (
        f'Your claimed bead {bead.id} "{bead.title}" was closed '
        f"— create a decision checkpoint"
    )


class ClaimedWatcher:
    """Nudges agents about changes to beads they have claimed."""

    def __init__(
        self,
        store: BeadStore,
        nudger: CoopNudger,
        window_seconds: float = CLAIMED_NUDGE_WINDOW,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the watcher.

        Args:
            store: Bead store used to resolve agent beads
            nudger: Coop nudge delivery
            window_seconds: Per-bead cooldown shared by both nudge kinds
            clock: Monotonic time source
        """
        self._store = store
        self._nudger = nudger
        self._cooldown = CooldownMap(window_seconds, clock=clock)

    def register(self, dispatcher: EventDispatcher) -> None:
        dispatcher.on(TOPIC_BEAD_UPDATED, self.handle_updated)
        dispatcher.on(TOPIC_BEAD_CLOSED, self.handle_closed)
        logger.info("Claimed watcher registered for bead updated/closed events")

    async def handle_updated(self, payload: Payload) -> None:
        bead = self._accept(payload, "updated")
        if bead is None:
            return
        logger.info(f"Claimed bead {bead.id} updated, nudging {bead.assignee}")
        await self._nudge(bead, updated_message(bead))

    async def handle_closed(self, payload: Payload) -> None:
        bead = self._accept(payload, "closed")
        if bead is None:
            return
        logger.info(f"Claimed bead {bead.id} closed, nudging {bead.assignee} for checkpoint")
        await self._nudge(bead, closed_message(bead))

    def _accept(self, payload: Payload, kind: str) -> Optional[BeadEvent]:
        bead = parse_bead_event(payload)
        if bead is None:
            logger.debug(f"Skipping malformed bead {kind} event")
            return None
        if not bead.assignee or bead.type in SKIP_CLAIMED_TYPES:
            return None
        if not self._cooldown.try_acquire(bead.id):
            logger.debug(f"Claimed nudge for {bead.id} suppressed by cooldown")
            return None
        return bead

    async def _nudge(self, bead: BeadEvent, message: str) -> None:
        try:
            coop_url = await resolve_coop_url(self._store, bead.assignee)
        except Exception as e:
            logger.error(
                f"Failed to get agent bead {bead.assignee} for claimed bead {bead.id}: {e}"
            )
            return

        if coop_url is None:
            logger.warning(
                f"Agent {bead.assignee} has no coop_url, cannot nudge about {bead.id}"
            )
            return

        try:
            await self._nudger.nudge(coop_url, message)
        except NudgeError as e:
            logger.error(f"Failed to nudge {bead.assignee} at {coop_url}: {e}")
            return

        logger.info(f"Nudged {bead.assignee} about claimed bead {bead.id}")
