"""
JIRA REST Client.

Async client for the JIRA Cloud REST API v3 covering what the bridge
needs: JQL search, single-issue fetch, workflow transitions, comments
and remote links. Authenticates with basic auth (email + API token).
"""

import logging
from collections.abc import Sequence
from typing import Any, Optional
from urllib.parse import quote

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from beadbridge.bridge.adf import adf_paragraph
from beadbridge.bridge.interfaces import IssueTracker
from beadbridge.config.environment import get_secret
from beadbridge.config.models import JiraConfig
from beadbridge.models import JiraIssue, JiraTransition

logger = logging.getLogger(__name__)

API_PREFIX = "/rest/api/3"
ERROR_BODY_LIMIT = 512


class JiraError(Exception):
    """Base exception for JIRA API errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class JiraRateLimitError(JiraError):
    """Raised on 429 and 5xx responses (retried)."""

    pass


class TransitionNotAvailableError(JiraError):
    """Raised when no transition matches the requested name."""

    pass


def _truncate(text: str, limit: int = ERROR_BODY_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


class JiraClient(IssueTracker):
    """Client for the JIRA REST API v3.

    Usage:
        async with JiraClient(base_url, email, token) as jira:
            issues = await jira.search_issues('project IN ("PE")')
    """

    def __init__(
        self,
        base_url: str,
        email: str,
        api_token: str,
        timeout: float = 30.0,
        max_retries: int = 3,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: JIRA site URL
            email: Account email
            api_token: API token
            timeout: Request timeout in seconds
            max_retries: Attempts for retryable failures
            client: Pre-built HTTP client (tests); created lazily when None
        """
        self.base_url = base_url.rstrip("/")
        self._auth = httpx.BasicAuth(email, api_token)
        self._timeout = timeout
        self._max_retries = max_retries
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_config(cls, config: JiraConfig) -> "JiraClient":
        """Build a client from configuration and environment secrets.

        Raises:
            JiraError: If the API token or email is missing
        """
        token = get_secret(config.api_token_env)
        email = config.email or get_secret("JIRA_EMAIL")
        if not token:
            raise JiraError(f"JIRA API token not set (export {config.api_token_env})")
        if not email:
            raise JiraError("JIRA email not set (jira.email or JIRA_EMAIL)")
        return cls(config.base_url, email, token, timeout=config.timeout_seconds)

    async def __aenter__(self) -> "JiraClient":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                auth=self._auth,
                timeout=self._timeout,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def search_issues(
        self,
        query: str,
        fields: Sequence[str] = (),
        max_results: int = 50,
    ) -> list[JiraIssue]:
        """Search issues with JQL.

        Args:
            query: JQL query
            fields: Fields to return (empty = JIRA default)
            max_results: Page size

        Returns:
            Matching issues
        """
        params: dict[str, str] = {"jql": query}
        if fields:
            params["fields"] = ",".join(fields)
        if max_results > 0:
            params["maxResults"] = str(max_results)

        data = await self._request("GET", f"{API_PREFIX}/search/jql", params=params)
        issues = (data or {}).get("issues") or []
        return [JiraIssue.model_validate(issue) for issue in issues]

    async def get_issue(self, key: str) -> JiraIssue:
        data = await self._request("GET", self._issue_path(key))
        return JiraIssue.model_validate(data or {"key": key})

    async def get_transitions(self, key: str) -> list[JiraTransition]:
        """List the transitions currently available on an issue."""
        data = await self._request("GET", self._issue_path(key, "transitions"))
        return [JiraTransition.model_validate(t) for t in (data or {}).get("transitions") or []]

    async def transition_issue(self, key: str, transition_name: str) -> None:
        """Apply the first transition whose name or target status matches.

        Raises:
            TransitionNotAvailableError: If no transition matches
        """
        transition = next(
            (t for t in await self.get_transitions(key) if t.matches(transition_name)),
            None,
        )
        if transition is None:
            raise TransitionNotAvailableError(
                f"JIRA transition {transition_name!r} not available for {key}"
            )
        await self._request(
            "POST",
            self._issue_path(key, "transitions"),
            json={"transition": {"id": transition.id}},
        )
        logger.info(f"Transitioned {key} via {transition.name or transition.id}")

    async def add_comment(self, key: str, text: str) -> None:
        await self._request(
            "POST",
            self._issue_path(key, "comment"),
            json={"body": adf_paragraph(text)},
        )

    async def add_remote_link(self, key: str, url: str, title: str) -> None:
        await self._request(
            "POST",
            self._issue_path(key, "remotelink"),
            json={"object": {"url": url, "title": title}},
        )

    @staticmethod
    def _issue_path(key: str, suffix: str = "") -> str:
        path = f"{API_PREFIX}/issue/{quote(key, safe='')}"
        return f"{path}/{suffix}" if suffix else path

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
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type(JiraRateLimitError),
            reraise=True,
        ):
            with attempt:
                try:
                    response = await client.request(method, path, params=params, json=json)
                except httpx.HTTPError as e:
                    raise JiraError(f"JIRA request {method} {path} failed: {e}") from e

                if response.status_code == 204:
                    return None
                if response.status_code >= 400:
                    message = (
                        f"JIRA API {method} {path} returned {response.status_code}: "
                        f"{_truncate(response.text)}"
                    )
                    if response.status_code == 429 or response.status_code >= 500:
                        logger.warning(message)
                        raise JiraRateLimitError(message, status_code=response.status_code)
                    raise JiraError(message, status_code=response.status_code)

                if not response.content:
                    return None
                try:
                    return response.json()
                except ValueError as e:
                    raise JiraError(f"Failed to decode JIRA response: {e}") from e
        raise JiraError(f"JIRA request {method} {path}: retries exhausted")
