"""
SSE Event Stream.

Connects to the beads daemon's Server-Sent Events endpoint and feeds
bead lifecycle events into an EventDispatcher. Reconnects with
exponential backoff and resumes from the last event ID. With a dedup
registry attached, created and closed events replayed after a reconnect
are dispatched only once per bead.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from beadbridge.bridge.dedup import DedupRegistry
from beadbridge.bridge.dispatcher import BEAD_TOPICS, TOPIC_BEAD_UPDATED, EventDispatcher
from beadbridge.models import parse_bead_event

logger = logging.getLogger(__name__)

STREAM_PATH = "/v1/events/stream"
INITIAL_BACKOFF_SECONDS = 1.0
MAX_BACKOFF_SECONDS = 30.0


@dataclass
class SSEEvent:
    """One server-sent event."""

    id: str = ""
    event: str = ""
    data: str = ""


class SSEParser:
    """Line-oriented SSE parser.

    Feed it lines without their terminators; a blank line completes the
    pending event. Comment lines (leading ":") are ignored.

    Attributes:
        last_id: ID of the most recently completed event
    """

    def __init__(self, last_id: str = "") -> None:
        self.last_id = last_id
        self._id = ""
        self._event = ""
        self._data: list[str] = []

    def feed_line(self, line: str) -> Optional[SSEEvent]:
        """Consume one line.

        Returns:
            The completed event when line ends one that has both an event
            name and data, else None
        """
        if line == "":
            event = None
            if self._data and self._event:
                event = SSEEvent(id=self._id, event=self._event, data="\n".join(self._data))
            if self._id:
                self.last_id = self._id
            self._id = ""
            self._event = ""
            self._data = []
            return event

        if line.startswith(":"):
            return None

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "id":
            self._id = value
        elif name == "event":
            self._event = value
        elif name == "data":
            self._data.append(value)
        return None


class SSEStream:
    """Streams daemon events into a dispatcher.

    Each event is dispatched as its own task so slow handlers do not
    stall the connection.
    """

    def __init__(
        self,
        dispatcher: EventDispatcher,
        base_url: str,
        topics: Optional[list[str]] = None,
        last_event_id: str = "",
        client: Optional[httpx.AsyncClient] = None,
        initial_backoff: float = INITIAL_BACKOFF_SECONDS,
        max_backoff: float = MAX_BACKOFF_SECONDS,
        dedup: Optional[DedupRegistry] = None,
    ) -> None:
        """Initialize the stream.

        Args:
            dispatcher: Receives (topic, payload) for each event
            base_url: Beads daemon HTTP address
            topics: Topics to subscribe to (defaults to bead lifecycle topics)
            last_event_id: Resume point for the first connection
            client: Shared HTTP client (one without read timeout is created
                when None)
            initial_backoff: First reconnect delay in seconds
            max_backoff: Reconnect delay cap in seconds
            dedup: Drops created/closed events already dispatched for a
                bead (keyed "<topic>:<bead id>"); updates always pass
        """
        self._dispatcher = dispatcher
        self._base_url = base_url.rstrip("/")
        self._topics = list(topics) if topics is not None else list(BEAD_TOPICS)
        self._parser = SSEParser(last_id=last_event_id)
        self._client = client
        self._owns_client = client is None
        self._initial_backoff = initial_backoff
        self._max_backoff = max_backoff
        self._dedup = dedup
        self._connected = False
        self._pending: set[asyncio.Task] = set()

    @property
    def last_event_id(self) -> str:
        return self._parser.last_id

    @property
    def url(self) -> str:
        url = self._base_url + STREAM_PATH
        if self._topics:
            url += "?topics=" + ",".join(self._topics)
        return url

    async def __aenter__(self) -> "SSEStream":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(None, connect=10.0))
        return self._client

    async def close(self) -> None:
        """Wait for in-flight handlers, then close an owned client."""
        await self.drain()
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def drain(self) -> None:
        """Wait for dispatched handler tasks to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Stream until stop_event is set, reconnecting on failure."""
        stop_event = stop_event or asyncio.Event()
        backoff = self._initial_backoff

        while not stop_event.is_set():
            self._connected = False
            try:
                await self.stream_once()
                error: Any = "stream ended"
            except httpx.HTTPError as e:
                error = e
            if self._connected:
                backoff = self._initial_backoff
            if stop_event.is_set():
                break

            logger.warning(
                f"SSE connection lost, reconnecting in {backoff:g}s: {error} "
                f"(last_id={self.last_event_id or '-'})"
            )
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=backoff)
            except asyncio.TimeoutError:
                pass
            backoff = min(backoff * 2, self._max_backoff)

        logger.info("SSE stream stopped")

    async def stream_once(self) -> bool:
        """Open one connection and dispatch events until it closes.

        Returns:
            True if the connection was established

        Raises:
            httpx.HTTPError: On connect or read failure, or a non-200 reply
        """
        headers = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}
        if self.last_event_id:
            headers["Last-Event-ID"] = self.last_event_id

        client = self._ensure_client()
        async with client.stream("GET", self.url, headers=headers) as response:
            if response.status_code != 200:
                body = (await response.aread())[:512].decode(errors="replace")
                raise httpx.HTTPStatusError(
                    f"SSE endpoint returned {response.status_code}: {body}",
                    request=response.request,
                    response=response,
                )

            self._connected = True
            logger.info(f"SSE stream connected: {self.url} (last_id={self.last_event_id or '-'})")
            async for line in response.aiter_lines():
                event = self._parser.feed_line(line.rstrip("\r\n"))
                if event is not None:
                    self._spawn(event)
        return True

    def _spawn(self, event: SSEEvent) -> None:
        if self._dedup is not None and event.event != TOPIC_BEAD_UPDATED:
            bead = parse_bead_event(event.data)
            if bead is not None and self._dedup.seen(f"{event.event}:{bead.id}"):
                logger.debug(
                    f"Skipping duplicate {event.event} for {bead.id} (sse_id={event.id or '-'})"
                )
                return

        task = asyncio.get_running_loop().create_task(
            self._dispatcher.dispatch(event.event, event.data.encode())
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
