"""
Decision Watcher.

Notifies chat about ``type=decision`` beads: once when posted, once when
resolved. Shares the dedup registry with the startup catch-up, so
decisions replayed by a reconnecting stream are not announced twice.
On resolution the assignee is nudged so an idle agent picks up the
answer.
"""

import logging
from typing import Optional

from beadbridge.bridge.dedup import DECISION_CHOSEN_FIELD, DedupRegistry
from beadbridge.bridge.dispatcher import (
    TOPIC_BEAD_CLOSED,
    TOPIC_BEAD_CREATED,
    EventDispatcher,
    Payload,
)
from beadbridge.bridge.interfaces import BeadStore, DecisionNotifier
from beadbridge.bridge.nudge import CoopNudger, NudgeError, resolve_coop_url
from beadbridge.models import BeadEvent, parse_bead_event

logger = logging.getLogger(__name__)

DECISION_TYPE = "decision"
RATIONALE_FIELD = "rationale"


def resolved_message(chosen: str, rationale: str = "") -> str:
    message = f"Decision resolved: {chosen}"
    if rationale:
        message += f" — {rationale}"
    return message


class DecisionWatcher:
    """Announces decision beads and their resolution."""

    def __init__(
        self,
        dedup: DedupRegistry,
        notifier: Optional[DecisionNotifier],
        store: Optional[BeadStore] = None,
        nudger: Optional[CoopNudger] = None,
    ) -> None:
        """Initialize the watcher.

        Args:
            dedup: Registry shared with decision catch-up
            notifier: Chat notifier (None = track only)
            store: Bead store, used to fill in missing close-time fields
                and to resolve the assignee for nudging
            nudger: Coop nudge delivery (None = no nudges)
        """
        self._dedup = dedup
        self._notifier = notifier
        self._store = store
        self._nudger = nudger

    def register(self, dispatcher: EventDispatcher) -> None:
        dispatcher.on(TOPIC_BEAD_CREATED, self.handle_created)
        dispatcher.on(TOPIC_BEAD_CLOSED, self.handle_closed)
        logger.info("Decision watcher registered for bead created/closed events")

    async def handle_created(self, payload: Payload) -> None:
        bead = parse_bead_event(payload)
        if bead is None:
            logger.debug("Skipping malformed bead created event")
            return
        if bead.type != DECISION_TYPE:
            return
        if self._dedup.seen(f"created:{bead.id}"):
            logger.debug(f"Decision {bead.id} already announced")
            return

        logger.info(f"Decision created: {bead.id} {bead.title!r} assignee={bead.assignee}")
        if self._notifier is None:
            return
        try:
            await self._notifier.notify_decision(bead)
        except Exception as e:
            logger.error(f"Failed to notify decision {bead.id}: {e}")

    async def handle_closed(self, payload: Payload) -> None:
        bead = parse_bead_event(payload)
        if bead is None:
            logger.debug("Skipping malformed bead closed event")
            return
        if bead.type != DECISION_TYPE:
            return
        if self._dedup.seen(f"resolved:{bead.id}"):
            logger.debug(f"Decision {bead.id} resolution already announced")
            return

        chosen = bead.field_value(DECISION_CHOSEN_FIELD)
        rationale = bead.field_value(RATIONALE_FIELD)
        assignee = bead.assignee

        # Close events may omit close-time fields; the store has them.
        if not chosen and self._store is not None:
            try:
                detail = await self._store.get_bead(bead.id)
            except Exception as e:
                logger.warning(f"Could not fetch decision {bead.id} for close fields: {e}")
            else:
                chosen = detail.fields.get(DECISION_CHOSEN_FIELD, "")
                rationale = rationale or detail.fields.get(RATIONALE_FIELD, "")
                assignee = assignee or detail.assignee

        logger.info(f"Decision resolved: {bead.id} chosen={chosen!r}")
        if self._notifier is not None:
            try:
                await self._notifier.notify_decision_resolved(bead.id, chosen)
            except Exception as e:
                logger.error(f"Failed to notify decision resolved {bead.id}: {e}")

        await self._nudge_assignee(bead, assignee, resolved_message(chosen, rationale))

    async def _nudge_assignee(self, bead: BeadEvent, assignee: str, message: str) -> None:
        if self._nudger is None or self._store is None:
            return
        if not assignee:
            logger.warning(f"Decision {bead.id} has no assignee, cannot nudge")
            return

        try:
            coop_url = await resolve_coop_url(self._store, assignee)
        except Exception as e:
            logger.error(f"Failed to get agent bead {assignee} for decision {bead.id}: {e}")
            return
        if coop_url is None:
            logger.warning(f"Agent {assignee} has no coop_url, cannot nudge about {bead.id}")
            return

        try:
            await self._nudger.nudge(coop_url, message)
        except NudgeError as e:
            logger.error(f"Failed to nudge {assignee} about decision {bead.id}: {e}")
            return
        logger.info(f"Nudged {assignee} after decision {bead.id} resolved")
