"""
Beads Daemon Client.

Async HTTP/JSON client for the beads daemon REST API (``/v1/beads``).

Features:
- Typed results (BeadDetail) from list and get endpoints
- Automatic retry with exponential backoff on 429 and 5xx responses
- Agent bead lookup by agent name
"""

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from beadbridge.bridge.interfaces import BeadStore
from beadbridge.config.models import BeadsConfig
from beadbridge.models import BeadDetail, CreateBeadRequest

logger = logging.getLogger(__name__)

BEADS_PATH = "/v1/beads"

# Statuses that represent non-closed beads.
ACTIVE_STATUSES = ("open", "in_progress", "blocked", "deferred")

CLOSED_BY = "beadbridge"


class BeadsError(Exception):
    """Base exception for beads daemon errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(BeadsError):
    """Raised when a bead (or agent bead) does not exist."""

    pass


class BeadsUnavailableError(BeadsError):
    """Raised for rate limiting and server-side failures (retried)."""

    pass


class BeadsClient(BeadStore):
    """Client for the beads daemon HTTP API.

    Usage:
        async with BeadsClient(BeadsConfig(http_addr="http://beads:8080")) as client:
            tasks = await client.list_task_beads()
    """

    def __init__(
        self,
        config: Optional[BeadsConfig] = None,
        max_retries: int = 3,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Daemon address and timeout
            max_retries: Attempts for retryable failures
            client: Pre-built HTTP client (tests); created lazily when None
        """
        self.config = config or BeadsConfig()
        self._max_retries = max_retries
        self._client = client
        self._owns_client = client is None

    @property
    def base_url(self) -> str:
        addr = self.config.http_addr
        if not addr.startswith(("http://", "https://")):
            addr = "http://" + addr
        return addr.rstrip("/")

    async def __aenter__(self) -> "BeadsClient":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.config.timeout_seconds,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def list_beads(
        self,
        types: tuple[str, ...] = (),
        statuses: tuple[str, ...] = ACTIVE_STATUSES,
    ) -> list[BeadDetail]:
        """List beads filtered by type and status.

        The list endpoint does not populate labels.

        Args:
            types: Bead types to include (empty = all)
            statuses: Statuses to include (empty = all)

        Returns:
            Matching beads
        """
        params: dict[str, str] = {}
        if types:
            params["type"] = ",".join(types)
        if statuses:
            params["status"] = ",".join(statuses)

        data = await self._request("GET", BEADS_PATH, params=params)
        beads = (data or {}).get("beads") or []
        return [BeadDetail.from_json(b) for b in beads if isinstance(b, dict)]

    async def list_task_beads(self) -> list[BeadDetail]:
        return await self.list_beads(types=("task",))

    async def list_decision_beads(self) -> list[BeadDetail]:
        return await self.list_beads(types=("decision",))

    async def get_bead(self, bead_id: str) -> BeadDetail:
        """Fetch a single bead.

        Raises:
            NotFoundError: If the bead does not exist
        """
        data = await self._request("GET", f"{BEADS_PATH}/{quote(bead_id, safe='')}")
        return BeadDetail.from_json(data or {})

    async def find_agent_bead(self, agent_name: str) -> BeadDetail:
        """Find the active agent bead whose ``agent`` field is agent_name.

        Raises:
            NotFoundError: If no active agent bead matches
        """
        for bead in await self.list_beads(types=("agent",)):
            if bead.fields.get("agent") == agent_name:
                return bead
        raise NotFoundError(f"agent bead not found for agent {agent_name!r}")

    async def create_bead(self, request: CreateBeadRequest) -> str:
        """Create a bead.

        Returns:
            The new bead ID
        """
        data = await self._request("POST", BEADS_PATH, json=request.to_json())
        bead_id = (data or {}).get("id")
        if not bead_id:
            raise BeadsError("create bead response did not include an id")
        logger.debug(f"Created bead {bead_id}: {request.title}")
        return str(bead_id)

    async def close_bead(self, bead_id: str, fields: dict[str, str] | None = None) -> None:
        """Close a bead, merging fields into the close request."""
        body: dict[str, Any] = {"closed_by": CLOSED_BY}
        body.update(fields or {})
        await self._request("POST", f"{BEADS_PATH}/{quote(bead_id, safe='')}/close", json=body)

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, str]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> Any:
        client = self._ensure_client()
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_retries),
            wait=wait_exponential(multiplier=0.5, max=5),
            retry=retry_if_exception_type(BeadsUnavailableError),
            reraise=True,
        ):
            with attempt:
                try:
                    response = await client.request(method, path, params=params, json=json)
                except httpx.HTTPError as e:
                    raise BeadsError(f"{method} {path} failed: {e}") from e
                return self._handle_response(method, path, response)
        raise BeadsError(f"{method} {path}: retries exhausted")

    def _handle_response(self, method: str, path: str, response: httpx.Response) -> Any:
        if response.status_code == 204:
            return None

        if response.status_code >= 400:
            message = response.text
            try:
                error = response.json().get("error")
                if error:
                    message = str(error)
            except (ValueError, AttributeError):
                pass
            text = f"{method} {path}: HTTP {response.status_code}: {message}"
            if response.status_code == 404:
                raise NotFoundError(text, status_code=404)
            if response.status_code == 429 or response.status_code >= 500:
                logger.warning(f"Beads daemon unavailable: {text}")
                raise BeadsUnavailableError(text, status_code=response.status_code)
            raise BeadsError(text, status_code=response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise BeadsError(f"{method} {path}: invalid JSON response: {e}") from e
