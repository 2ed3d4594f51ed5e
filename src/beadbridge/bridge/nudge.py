"""
Coop Nudge Delivery.

Delivers short text messages to an agent's coop endpoint
(``POST <coop_url>/api/v1/agent/nudge``). An agent that reports itself
busy (``{"delivered": false}``) is retried with exponential backoff.
"""

import logging
from typing import Any, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from beadbridge.bridge.interfaces import BeadStore
from beadbridge.models import parse_notes

logger = logging.getLogger(__name__)

NUDGE_PATH = "/api/v1/agent/nudge"
COOP_URL_NOTE = "coop_url"

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_SECONDS = 2.0
DEFAULT_MAX_DELAY_SECONDS = 8.0


class NudgeError(Exception):
    """Raised when a nudge cannot be delivered."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NudgeNotDeliveredError(NudgeError):
    """The agent answered but reported the nudge as not delivered (busy)."""

    def __init__(self, reason: str):
        super().__init__(f"nudge not delivered: {reason}")
        self.reason = reason


async def resolve_coop_url(store: BeadStore, agent_name: str) -> Optional[str]:
    """Look up an agent's coop URL from its agent bead notes.

    Args:
        store: Bead store
        agent_name: Agent identity (the agent bead's ``agent`` field)

    Returns:
        The coop URL, or None when the agent bead has none

    Raises:
        Whatever the store raises when the agent bead cannot be found
    """
    agent_bead = await store.find_agent_bead(agent_name)
    coop_url = parse_notes(agent_bead.notes).get(COOP_URL_NOTE, "")
    return coop_url.rstrip("/") or None


class CoopNudger:
    """HTTP delivery of nudge messages with busy-retry.

    Usage:
        async with CoopNudger() as nudger:
            await nudger.nudge("http://agent:9000", "wake up")
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY_SECONDS,
        max_delay: float = DEFAULT_MAX_DELAY_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize the nudger.

        Args:
            timeout: Per-request timeout in seconds
            max_attempts: Attempts while the agent reports busy
            base_delay: First backoff delay in seconds (doubles per retry)
            max_delay: Backoff cap in seconds
            client: Shared HTTP client (one is created lazily when None)
        """
        self._timeout = timeout
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "CoopNudger":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this nudger created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def nudge(self, coop_url: str, message: str) -> None:
        """Deliver a nudge, retrying while the agent reports busy.

        Args:
            coop_url: Agent coop base URL
            message: Text to deliver

        Raises:
            NudgeError: On transport failure, non-2xx status, or when
                every attempt came back not delivered
        """
        url = coop_url.rstrip("/") + NUDGE_PATH
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._base_delay, max=self._max_delay),
            retry=retry_if_exception_type(NudgeNotDeliveredError),
            reraise=True,
        ):
            with attempt:
                attempt_num = attempt.retry_state.attempt_number
                if attempt_num > 1:
                    logger.debug(f"Nudge retry {attempt_num}/{self._max_attempts} to {url}")
                await self._post_once(url, message)

    async def _post_once(self, url: str, message: str) -> None:
        client = self._ensure_client()
        try:
            response = await client.post(url, json={"message": message})
        except httpx.HTTPError as e:
            raise NudgeError(f"nudge request failed: {e}") from e

        if not response.is_success:
            raise NudgeError(
                f"nudge returned status {response.status_code}",
                status_code=response.status_code,
            )

        # Empty or unparseable bodies come from older coop versions: delivered.
        try:
            result = response.json()
        except ValueError:
            return
        if not isinstance(result, dict):
            return
        if not result.get("delivered", False):
            raise NudgeNotDeliveredError(str(result.get("reason", "")))
