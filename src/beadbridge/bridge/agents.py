"""
Agent Crash Watcher.

Posts a crash notice when an agent bead is updated or closed with
``agent_state=failed`` or ``pod_phase=failed``. Each agent bead is
reported once per process, so reconnect replays and repeated updates
stay quiet.
"""

import logging
from typing import Optional

from beadbridge.bridge.dedup import DedupRegistry
from beadbridge.bridge.dispatcher import (
    TOPIC_BEAD_CLOSED,
    TOPIC_BEAD_UPDATED,
    EventDispatcher,
    Payload,
)
from beadbridge.bridge.interfaces import AgentNotifier
from beadbridge.models import BeadEvent, parse_bead_event

logger = logging.getLogger(__name__)

AGENT_TYPE = "agent"
FAILED = "failed"


def is_crashed(bead: BeadEvent) -> bool:
    return bead.field_value("agent_state") == FAILED or bead.field_value("pod_phase") == FAILED


class AgentWatcher:
    """Reports failed agents."""

    def __init__(
        self,
        notifier: Optional[AgentNotifier],
        dedup: Optional[DedupRegistry] = None,
    ) -> None:
        self._notifier = notifier
        self._dedup = dedup if dedup is not None else DedupRegistry()

    def register(self, dispatcher: EventDispatcher) -> None:
        dispatcher.on(TOPIC_BEAD_UPDATED, self.handle_event)
        dispatcher.on(TOPIC_BEAD_CLOSED, self.handle_event)
        logger.info("Agent watcher registered for bead updated/closed events")

    async def handle_event(self, payload: Payload) -> None:
        bead = parse_bead_event(payload)
        if bead is None or bead.type != AGENT_TYPE or not is_crashed(bead):
            return
        if self._dedup.seen(f"crashed:{bead.id}"):
            return

        logger.info(
            f"Agent crash detected: {bead.id} ({bead.assignee or bead.title}) "
            f"agent_state={bead.field_value('agent_state') or '-'} "
            f"pod_phase={bead.field_value('pod_phase') or '-'}"
        )
        if self._notifier is None:
            return
        try:
            await self._notifier.notify_agent_crash(bead)
        except Exception as e:
            logger.error(f"Failed to notify agent crash {bead.id}: {e}")
