"""
Slack Notifier.

Posts jack, decision and agent crash notifications to Slack via the Web API
(``chat.postMessage`` / ``chat.update``). The destination channel comes
from the ChannelRouter, keyed by the bead's assignee (or creator).
"""

import json
import logging
import threading
from collections.abc import Sequence
from typing import Any, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from beadbridge.bridge.interfaces import AgentNotifier, DecisionNotifier, JackNotifier
from beadbridge.bridge.router import ChannelRouter
from beadbridge.config.environment import get_secret
from beadbridge.config.models import SlackConfig
from beadbridge.models import BeadEvent

logger = logging.getLogger(__name__)

# Jacks listed individually in a batch summary.
BATCH_LIST_LIMIT = 5


class SlackError(Exception):
    """Slack Web API error.

    Attributes:
        error_code: Slack ``error`` string (e.g., "channel_not_found")
    """

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        self.error_code = error_code


class SlackRateLimitError(SlackError):
    """Raised on HTTP 429 and 5xx responses (retried)."""

    pass


def bead_title(bead: BeadEvent) -> str:
    """Render "title (id)", or just the ID when the title is empty."""
    return f"{bead.title} ({bead.id})" if bead.title else bead.id


def parse_options(raw: str) -> list[str]:
    """Parse a decision's ``options`` field (JSON array, else one option)."""
    if not raw:
        return []
    try:
        options = json.loads(raw)
    except ValueError:
        return [raw]
    if isinstance(options, list):
        return [str(o) for o in options]
    return [raw]


def _section(text: str) -> dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def jack_raised_text(bead: BeadEvent) -> str:
    text = f":wrench: *Jack Raised: {bead_title(bead)}*\nTarget: `{bead.field_value('target')}`"
    if bead.assignee:
        text += f"\nAgent: `{bead.assignee}`"
    if bead.field_value("ttl"):
        text += f"\nTTL: {bead.field_value('ttl')}"
    if bead.field_value("reason"):
        text += f"\n> {bead.field_value('reason')}"
    return text


def jack_batch_text(beads: Sequence[BeadEvent]) -> str:
    text = f":wrench: *{len(beads)} additional jacks raised* (batch)\n"
    for bead in beads[:BATCH_LIST_LIMIT]:
        line = f"• {bead_title(bead)} - target: `{bead.field_value('target')}`"
        if bead.assignee:
            line += f" ({bead.assignee})"
        text += line + "\n"
    if len(beads) > BATCH_LIST_LIMIT:
        text += f"_...and {len(beads) - BATCH_LIST_LIMIT} more_\n"
    return text


def jack_lowered_text(bead: BeadEvent) -> str:
    text = (
        f":white_check_mark: *Jack Lowered: {bead_title(bead)}*\n"
        f"Target: `{bead.field_value('target')}`"
    )
    if bead.assignee:
        text += f"\nAgent: `{bead.assignee}`"
    if bead.field_value("reason"):
        text += f"\n> {bead.field_value('reason')}"
    return text


def jack_expired_text(bead: BeadEvent) -> str:
    text = f":warning: *Jack Expired: {bead_title(bead)}*\nTarget: `{bead.field_value('target')}`"
    if bead.assignee:
        text += f"\nAgent: `{bead.assignee}`"
    if bead.field_value("reason"):
        text += f"\n> {bead.field_value('reason')}"
    text += f"\n_Review revert plan and close with_ `bd jack off {bead.id}`"
    return text


def agent_name(bead: BeadEvent) -> str:
    return bead.assignee or bead.title or bead.id


def agent_crash_text(bead: BeadEvent) -> str:
    text = f":warning: *Agent crashed: {agent_name(bead)}*"
    pod_phase = bead.field_value("pod_phase")
    if pod_phase == "failed" and bead.field_value("agent_state") != "failed":
        text += f"\n> Pod phase: `{pod_phase}`"
    if bead.field_value("pod_name"):
        text += f"\n> Pod: `{bead.field_value('pod_name')}`"
    return text


class SlackNotifier(JackNotifier, DecisionNotifier, AgentNotifier):
    """Slack backend for jack, decision and agent notifications.

    Decision messages are remembered by bead ID so the resolution can
    edit the original post in place.
    """

    def __init__(
        self,
        router: ChannelRouter,
        bot_token: str,
        api_base_url: str = "https://slack.com/api",
        timeout: float = 5.0,
        dry_run: bool = False,
        max_retries: int = 3,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize the notifier.

        Args:
            router: Resolves agent identities to channels
            bot_token: Slack bot token (xoxb-...)
            api_base_url: Web API base URL
            timeout: Request timeout in seconds
            dry_run: Log messages instead of posting them
            max_retries: Attempts for rate-limited requests
            client: Pre-built HTTP client (tests); created lazily when None
        """
        self.router = router
        self._token = bot_token
        self._api_base_url = api_base_url.rstrip("/")
        self._timeout = timeout
        self.dry_run = dry_run
        self._max_retries = max_retries
        self._client = client
        self._owns_client = client is None
        self._lock = threading.Lock()
        # bead ID -> (channel, ts) of the posted decision message
        self._decision_messages: dict[str, tuple[str, str]] = {}

    @classmethod
    def from_config(
        cls,
        config: SlackConfig,
        router: ChannelRouter,
        dry_run: bool = False,
    ) -> "SlackNotifier":
        """Build a notifier from configuration and environment secrets.

        Raises:
            SlackError: If the bot token is missing and dry_run is off
        """
        token = get_secret(config.bot_token_env) or ""
        if not token and not dry_run:
            raise SlackError(f"Slack bot token not set (export {config.bot_token_env})")
        return cls(
            router,
            token,
            api_base_url=config.api_base_url,
            timeout=config.timeout_seconds,
            dry_run=dry_run,
        )

    async def __aenter__(self) -> "SlackNotifier":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers={"Authorization": f"Bearer {self._token}"},
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def channel_for(self, bead: BeadEvent) -> str:
        """Route by assignee, falling back to the creator identity."""
        return self.router.resolve(bead.assignee or bead.created_by).channel

    # Jacks

    async def notify_jack_raised(self, bead: BeadEvent) -> None:
        target = bead.field_value("target")
        await self.post_message(
            self.channel_for(bead),
            f"Jack raised: {bead.id} on {target}",
            [_section(jack_raised_text(bead))],
        )
        logger.info(f"Posted jack raised to Slack: {bead.id} (target={target})")

    async def notify_jack_batch(self, beads: Sequence[BeadEvent]) -> None:
        await self.post_message(
            self.router.default_channel,
            f"{len(beads)} additional jacks raised",
            [_section(jack_batch_text(beads))],
        )
        logger.info(f"Posted jack batch to Slack: {len(beads)} jacks")

    async def notify_jack_lowered(self, bead: BeadEvent) -> None:
        await self.post_message(
            self.channel_for(bead),
            f"Jack lowered: {bead.id}",
            [_section(jack_lowered_text(bead))],
        )
        logger.info(f"Posted jack lowered to Slack: {bead.id}")

    async def notify_jack_expired(self, bead: BeadEvent) -> None:
        await self.post_message(
            self.channel_for(bead),
            f"Jack expired: {bead.id} on {bead.field_value('target')}",
            [_section(jack_expired_text(bead))],
        )
        logger.info(f"Posted jack expired to Slack: {bead.id}")

    # Decisions

    async def notify_decision(self, bead: BeadEvent) -> None:
        """Post a decision prompt with one button per option."""
        question = bead.field_value("question")
        blocks: list[dict[str, Any]] = [
            {"type": "header", "text": {"type": "plain_text", "text": "Decision Needed"}},
            _section(f"*{question}*"),
        ]
        if bead.assignee:
            blocks.append(
                {
                    "type": "context",
                    "elements": [
                        {"type": "mrkdwn", "text": f"Agent: `{bead.assignee}` | Bead: `{bead.id}`"}
                    ],
                }
            )

        buttons = []
        for i, option in enumerate(parse_options(bead.field_value("options"))):
            button: dict[str, Any] = {
                "type": "button",
                "text": {"type": "plain_text", "text": option},
                "value": option,
                "action_id": f"decision_{bead.id}_{i}",
            }
            if i == 0:
                button["style"] = "primary"
            buttons.append(button)
        if buttons:
            blocks.append({"type": "actions", "block_id": f"decision_{bead.id}", "elements": buttons})

        channel = self.channel_for(bead)
        data = await self.post_message(channel, f"Decision needed: {question}", blocks)
        ts = str(data.get("ts") or "")
        if ts:
            with self._lock:
                self._decision_messages[bead.id] = (str(data.get("channel") or channel), ts)
        logger.info(f"Posted decision to Slack: {bead.id} (channel={channel})")

    async def notify_decision_resolved(self, bead_id: str, chosen: str) -> None:
        """Edit the original decision message to show the resolution.

        Decisions posted before this process started have no recorded
        message and are skipped.
        """
        with self._lock:
            message = self._decision_messages.get(bead_id)
        if message is None:
            logger.debug(f"No Slack message found for resolved decision {bead_id}")
            return

        channel, ts = message
        await self._call(
            "chat.update",
            {
                "channel": channel,
                "ts": ts,
                "text": f"Decision resolved: {chosen}",
                "blocks": [_section(f"~Decision needed~ - *Resolved*: {chosen}")],
            },
        )
        with self._lock:
            self._decision_messages.pop(bead_id, None)
        logger.info(f"Updated Slack decision {bead_id}: resolved with {chosen}")

    # Agents

    async def notify_agent_crash(self, bead: BeadEvent) -> None:
        name = agent_name(bead)
        channel = self.router.resolve(bead.assignee or bead.title).channel
        await self.post_message(
            channel,
            f"Agent crashed: {name}",
            [
                _section(agent_crash_text(bead)),
                {
                    "type": "context",
                    "elements": [{"type": "mrkdwn", "text": f"Agent: `{name}`"}],
                },
            ],
        )
        logger.info(f"Posted agent crash to Slack: {name} (bead={bead.id}, channel={channel})")

    # Web API

    async def post_message(
        self,
        channel: str,
        text: str,
        blocks: Optional[list[dict[str, Any]]] = None,
    ) -> dict[str, Any]:
        """Post a message.

        Args:
            channel: Channel ID
            text: Fallback text
            blocks: Block Kit blocks

        Returns:
            Slack response body
        """
        if not channel:
            raise SlackError("No Slack channel resolved (set router.default_channel)")
        payload: dict[str, Any] = {"channel": channel, "text": text}
        if blocks:
            payload["blocks"] = blocks
        return await self._call("chat.postMessage", payload)

    async def _call(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        if self.dry_run:
            logger.info(f"[dry-run] Slack {method} to {payload.get('channel')}: {payload['text']}")
            return {"ok": True, "channel": payload.get("channel"), "ts": ""}

        client = self._ensure_client()
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_retries),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type(SlackRateLimitError),
            reraise=True,
        ):
            with attempt:
                try:
                    response = await client.post(f"{self._api_base_url}/{method}", json=payload)
                except httpx.HTTPError as e:
                    raise SlackError(f"Slack {method} request failed: {e}") from e

                if response.status_code == 429 or response.status_code >= 500:
                    logger.warning(f"Slack {method} returned {response.status_code}, retrying")
                    raise SlackRateLimitError(
                        f"Slack {method} returned {response.status_code}",
                        error_code="ratelimited" if response.status_code == 429 else None,
                    )
                if response.status_code >= 400:
                    raise SlackError(f"Slack {method} returned {response.status_code}")

                try:
                    data = response.json()
                except ValueError as e:
                    raise SlackError(f"Slack {method}: invalid JSON response: {e}") from e
                if not data.get("ok"):
                    error = data.get("error") or "unknown_error"
                    raise SlackError(f"Slack {method} failed: {error}", error_code=error)
                return data
        raise SlackError(f"Slack {method}: retries exhausted")
