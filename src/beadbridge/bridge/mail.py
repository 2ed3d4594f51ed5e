"""
Mail Watcher.

Nudges the recipient of a new mail bead right away when the sender asked
for interrupt delivery or the mail is high priority (0 or 1). Everything
else waits for the agent's periodic hooks.
"""

import logging

from beadbridge.bridge.dispatcher import TOPIC_BEAD_CREATED, EventDispatcher, Payload
from beadbridge.bridge.interfaces import BeadStore
from beadbridge.bridge.nudge import CoopNudger, NudgeError, resolve_coop_url
from beadbridge.models import BeadEvent, parse_bead_event

logger = logging.getLogger(__name__)

MAIL_TYPE = "mail"
INTERRUPT_LABEL = "delivery:interrupt"
SENDER_LABEL_PREFIX = "from:"
# Priorities at or above this urgency (lower number) interrupt.
URGENT_PRIORITY = 1


def should_nudge(bead: BeadEvent) -> bool:
    return bead.has_label(INTERRUPT_LABEL) or bead.priority <= URGENT_PRIORITY


def mail_sender(bead: BeadEvent) -> str:
    for label in bead.labels:
        if label.startswith(SENDER_LABEL_PREFIX):
            return label[len(SENDER_LABEL_PREFIX):]
    return "unknown"


def mail_message(bead: BeadEvent) -> str:
    return (
        f"New mail from {mail_sender(bead)}: {bead.title} "
        f"— run 'kd show {bead.id}' to read"
    )


class MailWatcher:
    """Nudges agents about urgent mail."""

    def __init__(self, store: BeadStore, nudger: CoopNudger) -> None:
        self._store = store
        self._nudger = nudger

    def register(self, dispatcher: EventDispatcher) -> None:
        dispatcher.on(TOPIC_BEAD_CREATED, self.handle_created)
        logger.info("Mail watcher registered for bead created events")

    async def handle_created(self, payload: Payload) -> None:
        bead = parse_bead_event(payload)
        if bead is None:
            logger.debug("Skipping malformed bead created event")
            return
        if bead.type != MAIL_TYPE:
            return

        logger.info(f"Mail bead created: {bead.id} to {bead.assignee or '-'} (p{bead.priority})")
        if not should_nudge(bead):
            return
        if not bead.assignee:
            logger.warning(f"Mail bead {bead.id} has no assignee, cannot nudge")
            return

        try:
            coop_url = await resolve_coop_url(self._store, bead.assignee)
        except Exception as e:
            logger.error(f"Failed to get agent bead {bead.assignee} for mail {bead.id}: {e}")
            return
        if coop_url is None:
            logger.warning(f"Agent {bead.assignee} has no coop_url, cannot nudge about {bead.id}")
            return

        try:
            await self._nudger.nudge(coop_url, mail_message(bead))
        except NudgeError as e:
            logger.error(f"Failed to nudge {bead.assignee} for mail {bead.id}: {e}")
            return

        logger.info(f"Nudged {bead.assignee} for urgent mail {bead.id} from {mail_sender(bead)}")
