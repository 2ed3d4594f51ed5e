"""
JIRA Sync-Back Watcher.

Follows updates and closes of beads that originated in JIRA and mirrors
progress onto the source issue: merge-request links as remote links plus
a comment, and a closing comment with a best-effort "Review" transition.
"""

import logging
import time
from collections.abc import Callable

from beadbridge.bridge.cooldown import CooldownMap
from beadbridge.bridge.dispatcher import (
    TOPIC_BEAD_CLOSED,
    TOPIC_BEAD_UPDATED,
    EventDispatcher,
    Payload,
)
from beadbridge.bridge.interfaces import IssueTracker
from beadbridge.models import BeadEvent, parse_bead_event

logger = logging.getLogger(__name__)

# Dedup window for sync-back operations.
SYNC_WINDOW = 10 * 60.0

JIRA_KEY_FIELD = "jira_key"
MR_URL_FIELD = "mr_url"
REVIEW_TRANSITION = "Review"

_JIRA_KEY_LABEL = "jira:"
_JIRA_LABEL_PREFIX = "jira-label:"


def jira_key_from_bead(bead: BeadEvent) -> str:
    """Find the JIRA key of a bead.

    The ``jira_key`` field (set by the poller) wins; otherwise the first
    ``jira:<KEY>`` label is used. ``jira-label:`` labels never match.

    Returns:
        The key, or "" if the bead is not linked to JIRA
    """
    key = bead.field_value(JIRA_KEY_FIELD)
    if key:
        return key
    for label in bead.labels:
        if label.startswith(_JIRA_KEY_LABEL) and not label.startswith(_JIRA_LABEL_PREFIX):
            return label[len(_JIRA_KEY_LABEL) :]
    return ""


class JiraSyncWatcher:
    """Mirrors bead progress back onto the originating JIRA issue."""

    def __init__(
        self,
        tracker: IssueTracker,
        disable_transitions: bool = False,
        window_seconds: float = SYNC_WINDOW,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the watcher.

        Args:
            tracker: JIRA client
            disable_transitions: Skip the "Review" transition on close
            window_seconds: Dedup window per sync operation
            clock: Monotonic time source
        """
        self._tracker = tracker
        self._disable_transitions = disable_transitions
        self._recent = CooldownMap(window_seconds, clock=clock)

    def register(self, dispatcher: EventDispatcher) -> None:
        dispatcher.on(TOPIC_BEAD_UPDATED, self.handle_updated)
        dispatcher.on(TOPIC_BEAD_CLOSED, self.handle_closed)
        logger.info("JIRA sync watcher registered for bead updated/closed events")

    async def handle_updated(self, payload: Payload) -> None:
        bead = parse_bead_event(payload)
        if bead is None:
            return
        jira_key = jira_key_from_bead(bead)
        mr_url = bead.field_value(MR_URL_FIELD)
        if not jira_key or not mr_url:
            return
        if not self._recent.try_acquire(f"mr:{bead.id}:{mr_url}"):
            return

        logger.info(f"Syncing MR link for {bead.id} to {jira_key}: {mr_url}")
        try:
            await self._tracker.add_remote_link(jira_key, mr_url, f"Merge Request: {bead.title}")
        except Exception as e:
            logger.error(f"Failed to add JIRA remote link on {jira_key}: {e}")
            return

        try:
            await self._tracker.add_comment(jira_key, f"Automated MR created: {mr_url}")
        except Exception as e:
            logger.error(f"Failed to add JIRA MR comment on {jira_key}: {e}")

    async def handle_closed(self, payload: Payload) -> None:
        bead = parse_bead_event(payload)
        if bead is None:
            return
        jira_key = jira_key_from_bead(bead)
        if not jira_key:
            return
        if not self._recent.try_acquire(f"close:{bead.id}"):
            return

        logger.info(f"Syncing closure of {bead.id} to {jira_key}")
        comment = f"Task bead closed in beads system (bead {bead.id})."
        mr_url = bead.field_value(MR_URL_FIELD)
        if mr_url:
            comment += f" MR: {mr_url}"
        try:
            await self._tracker.add_comment(jira_key, comment)
        except Exception as e:
            logger.error(f"Failed to add JIRA closing comment on {jira_key}: {e}")

        if self._disable_transitions:
            return
        try:
            await self._tracker.transition_issue(jira_key, REVIEW_TRANSITION)
        except Exception as e:
            logger.warning(
                f"Failed to transition {jira_key} to {REVIEW_TRANSITION} "
                f"(may not be available): {e}"
            )
