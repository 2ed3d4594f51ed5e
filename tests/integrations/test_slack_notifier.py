"""Tests for the Slack notifier."""

import json

import pytest
import respx
from httpx import Response

from beadbridge.bridge.router import ChannelRouter
from beadbridge.config.models import RouterConfig, SlackConfig
from beadbridge.integrations.slack import (
    SlackError,
    SlackNotifier,
    SlackRateLimitError,
    agent_crash_text,
    bead_title,
    jack_batch_text,
    jack_expired_text,
    jack_raised_text,
    parse_options,
)
from beadbridge.models import BeadEvent

API = "https://slack.test/api"


@pytest.fixture
def router() -> ChannelRouter:
    return ChannelRouter(
        RouterConfig(
            default_channel="C-DEFAULT",
            channels={"gasboat/crews/*": "C-CREWS"},
        )
    )


@pytest.fixture
def slack(router) -> SlackNotifier:
    return SlackNotifier(router, "xoxb-test", api_base_url=API, max_retries=1)


def jack(bead_id="jk-1", assignee="gasboat/crews/k8s", **fields) -> BeadEvent:
    defaults = {"target": "deploy/api", "ttl": "30m", "reason": "hotfix"}
    defaults.update(fields)
    return BeadEvent(id=bead_id, type="jack", title="Patch api", assignee=assignee, fields=defaults)


def sent(route, index=0) -> dict:
    return json.loads(route.calls[index].request.content)


class TestMessageText:
    """Tests for message rendering."""

    def test_bead_title(self):
        assert bead_title(BeadEvent(id="jk-1", title="Patch")) == "Patch (jk-1)"
        assert bead_title(BeadEvent(id="jk-1")) == "jk-1"

    def test_raised(self):
        assert jack_raised_text(jack()) == (
            ":wrench: *Jack Raised: Patch api (jk-1)*\n"
            "Target: `deploy/api`\n"
            "Agent: `gasboat/crews/k8s`\n"
            "TTL: 30m\n"
            "> hotfix"
        )

    def test_expired_has_close_hint(self):
        assert jack_expired_text(jack()).endswith(
            "_Review revert plan and close with_ `bd jack off jk-1`"
        )

    def test_batch_lists_five(self):
        beads = [jack(f"jk-{i}") for i in range(7)]

        text = jack_batch_text(beads)

        assert text.startswith(":wrench: *7 additional jacks raised* (batch)\n")
        assert "jk-4" in text
        assert "jk-5" not in text
        assert text.endswith("_...and 2 more_\n")

    def test_parse_options(self):
        assert parse_options('["A", "B"]') == ["A", "B"]
        assert parse_options("just one") == ["just one"]
        assert parse_options('{"a": 1}') == ['{"a": 1}']
        assert parse_options("") == []


class TestFromConfig:
    """Tests for SlackNotifier.from_config."""

    def test_missing_token(self, router):
        with pytest.raises(SlackError, match="SLACK_BOT_TOKEN"):
            SlackNotifier.from_config(SlackConfig(enabled=True), router)

    def test_dry_run_without_token(self, router):
        notifier = SlackNotifier.from_config(SlackConfig(enabled=True), router, dry_run=True)

        assert notifier.dry_run

    def test_token_from_environment(self, router, monkeypatch):
        monkeypatch.setenv("SLACK_BOT_TOKEN", "xoxb-env")

        assert not SlackNotifier.from_config(SlackConfig(enabled=True), router).dry_run


class TestSlackNotifier:
    """Tests for posting."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_jack_raised_routed_by_assignee(self, slack):
        route = respx.post(f"{API}/chat.postMessage").mock(
            return_value=Response(200, json={"ok": True, "ts": "1.0"})
        )

        async with slack:
            await slack.notify_jack_raised(jack())

        body = sent(route)
        assert body["channel"] == "C-CREWS"
        assert body["text"] == "Jack raised: jk-1 on deploy/api"
        assert body["blocks"][0]["text"]["text"].startswith(":wrench: *Jack Raised")
        assert route.calls[0].request.headers["Authorization"] == "Bearer xoxb-test"

    @pytest.mark.asyncio
    @respx.mock
    async def test_unassigned_routes_by_creator_then_default(self, slack):
        route = respx.post(f"{API}/chat.postMessage").mock(
            return_value=Response(200, json={"ok": True})
        )
        by_creator = BeadEvent(id="jk-1", type="jack", created_by="gasboat/crews/x")

        async with slack:
            await slack.notify_jack_lowered(by_creator)
            await slack.notify_jack_expired(BeadEvent(id="jk-2", type="jack"))

        assert sent(route, 0)["channel"] == "C-CREWS"
        assert sent(route, 1)["channel"] == "C-DEFAULT"

    @pytest.mark.asyncio
    @respx.mock
    async def test_batch_goes_to_default_channel(self, slack):
        route = respx.post(f"{API}/chat.postMessage").mock(
            return_value=Response(200, json={"ok": True})
        )

        async with slack:
            await slack.notify_jack_batch([jack("jk-1"), jack("jk-2")])

        assert sent(route)["channel"] == "C-DEFAULT"
        assert sent(route)["text"] == "2 additional jacks raised"

    @pytest.mark.asyncio
    @respx.mock
    async def test_decision_buttons_and_resolution(self, slack):
        post = respx.post(f"{API}/chat.postMessage").mock(
            return_value=Response(200, json={"ok": True, "channel": "C-CREWS", "ts": "171.5"})
        )
        update = respx.post(f"{API}/chat.update").mock(
            return_value=Response(200, json={"ok": True})
        )
        decision = BeadEvent(
            id="dc-1",
            type="decision",
            assignee="gasboat/crews/k8s",
            fields={"question": "Roll back?", "options": '["Yes", "No"]'},
        )

        async with slack:
            await slack.notify_decision(decision)
            await slack.notify_decision_resolved("dc-1", "Yes")
            await slack.notify_decision_resolved("dc-1", "Yes")

        blocks = sent(post)["blocks"]
        assert blocks[0]["type"] == "header"
        actions = blocks[-1]
        assert [b["action_id"] for b in actions["elements"]] == ["decision_dc-1_0", "decision_dc-1_1"]
        assert actions["elements"][0]["style"] == "primary"
        assert "style" not in actions["elements"][1]

        assert update.call_count == 1
        body = sent(update)
        assert (body["channel"], body["ts"]) == ("C-CREWS", "171.5")
        assert body["text"] == "Decision resolved: Yes"

    @pytest.mark.asyncio
    @respx.mock
    async def test_agent_crash_routed_by_assignee(self, slack):
        route = respx.post(f"{API}/chat.postMessage").mock(
            return_value=Response(200, json={"ok": True, "ts": "1.0"})
        )
        crashed = BeadEvent(
            id="ag-1",
            type="agent",
            title="k8s",
            assignee="gasboat/crews/k8s",
            fields={"agent_state": "running", "pod_phase": "failed", "pod_name": "k8s-0"},
        )

        async with slack:
            await slack.notify_agent_crash(crashed)

        body = sent(route)
        assert body["channel"] == "C-CREWS"
        assert body["text"] == "Agent crashed: gasboat/crews/k8s"
        text = body["blocks"][0]["text"]["text"]
        assert "Pod phase: `failed`" in text
        assert "Pod: `k8s-0`" in text
        assert body["blocks"][1]["elements"][0]["text"] == "Agent: `gasboat/crews/k8s`"

    def test_agent_crash_text_without_pod_details(self):
        bead = BeadEvent(id="ag-2", type="agent", fields={"agent_state": "failed"})

        assert agent_crash_text(bead) == ":warning: *Agent crashed: ag-2*"

    @pytest.mark.asyncio
    @respx.mock
    async def test_resolution_without_posted_message_is_skipped(self, slack):
        update = respx.post(f"{API}/chat.update")

        async with slack:
            await slack.notify_decision_resolved("dc-unknown", "A")

        assert not update.called

    @pytest.mark.asyncio
    @respx.mock
    async def test_api_error(self, slack):
        respx.post(f"{API}/chat.postMessage").mock(
            return_value=Response(200, json={"ok": False, "error": "channel_not_found"})
        )

        async with slack:
            with pytest.raises(SlackError) as exc_info:
                await slack.notify_jack_raised(jack())

        assert exc_info.value.error_code == "channel_not_found"

    @pytest.mark.asyncio
    @respx.mock
    async def test_rate_limited(self, slack):
        route = respx.post(f"{API}/chat.postMessage").mock(return_value=Response(429))

        async with slack:
            with pytest.raises(SlackRateLimitError) as exc_info:
                await slack.notify_jack_raised(jack())

        assert exc_info.value.error_code == "ratelimited"
        assert route.call_count == 1

    @pytest.mark.asyncio
    async def test_no_channel(self):
        slack = SlackNotifier(ChannelRouter(RouterConfig()), "xoxb-test", dry_run=True)

        with pytest.raises(SlackError, match="No Slack channel"):
            await slack.notify_jack_raised(jack(assignee=""))

    @pytest.mark.asyncio
    @respx.mock
    async def test_dry_run_posts_nothing(self, router):
        route = respx.post(f"{API}/chat.postMessage")
        slack = SlackNotifier(router, "", api_base_url=API, dry_run=True)

        await slack.notify_jack_raised(jack())

        assert not route.called
