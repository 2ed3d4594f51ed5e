"""
Event Dispatcher.

In-process topic -> handlers registry. The SSE stream feeds it in
production; tests call ``dispatch`` directly with raw payloads.
"""

import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Union

logger = logging.getLogger(__name__)

TOPIC_BEAD_CREATED = "beads.bead.created"
TOPIC_BEAD_UPDATED = "beads.bead.updated"
TOPIC_BEAD_CLOSED = "beads.bead.closed"

BEAD_TOPICS = (TOPIC_BEAD_CREATED, TOPIC_BEAD_UPDATED, TOPIC_BEAD_CLOSED)

Payload = Union[bytes, str]
Handler = Callable[[Payload], Awaitable[None]]


class EventDispatcher:
    """Routes (topic, payload) pairs to registered async handlers.

    Handlers for a topic run in registration order. A failing handler is
    logged and does not stop the ones after it.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    @property
    def topics(self) -> list[str]:
        """Topics with at least one handler, in registration order."""
        return [topic for topic, handlers in self._handlers.items() if handlers]

    def on(self, topic: str, handler: Handler) -> None:
        """Register a handler for a topic."""
        self._handlers[topic].append(handler)

    def handlers(self, topic: str) -> list[Handler]:
        return list(self._handlers.get(topic, ()))

    async def dispatch(self, topic: str, payload: Payload) -> int:
        """Deliver a payload to every handler of a topic.

        Returns:
            Number of handlers that completed without raising
        """
        handlers = self._handlers.get(topic)
        if not handlers:
            logger.debug(f"No handlers for topic {topic}")
            return 0

        ok = 0
        for handler in list(handlers):
            try:
                await handler(payload)
                ok += 1
            except Exception:
                name = getattr(handler, "__qualname__", repr(handler))
                logger.exception(f"Handler {name} failed for topic {topic}")
        return ok
