"""Tests for the claimed-work nudge watcher."""

import pytest
from fakes import FakeBeadStore, FakeNudger, bead_payload

from beadbridge.bridge.claimed import CLAIMED_NUDGE_WINDOW, ClaimedWatcher
from beadbridge.bridge.nudge import NudgeError
from beadbridge.models import BeadDetail

COOP_URL = "http://crew-bot.agents:9000"


def agent_bead(name: str, notes: str) -> BeadDetail:
    return BeadDetail(id=f"ag-{name}", type="agent", notes=notes, fields={"agent": name})


@pytest.fixture
def store() -> FakeBeadStore:
    return FakeBeadStore(
        agent_beads=[
            agent_bead("crew-bot", f"role: crew\ncoop_url: {COOP_URL}/"),
            agent_bead("no-coop", "role: crew"),
        ]
    )


@pytest.fixture
def watcher(store, nudger, clock) -> ClaimedWatcher:
    return ClaimedWatcher(store, nudger, clock=clock)


def claimed(bead_id: str, assignee: str = "crew-bot", type: str = "task") -> bytes:
    return bead_payload(bead_id, type=type, title="Fix the build", assignee=assignee)


class TestClaimedWatcher:
    """Tests for ClaimedWatcher."""

    @pytest.mark.asyncio
    async def test_update_nudges_assignee(self, watcher, nudger):
        await watcher.handle_updated(claimed("kd-1"))

        assert nudger.nudges == [
            (
                COOP_URL,
                "Your claimed bead kd-1 \"Fix the build\" was updated "
                "— run 'kd show kd-1' to review",
            )
        ]

    @pytest.mark.asyncio
    async def test_close_asks_for_checkpoint(self, watcher, nudger):
        await watcher.handle_closed(claimed("kd-1"))

        assert nudger.nudges[0][1].endswith("was closed — create a decision checkpoint")

    @pytest.mark.asyncio
    async def test_same_bead_within_window_nudges_once(self, watcher, nudger, clock):
        await watcher.handle_updated(claimed("kd-1"))
        clock.advance(60)
        await watcher.handle_updated(claimed("kd-1"))
        await watcher.handle_updated(claimed("kd-2"))

        assert sum("kd-1" in m for _, m in nudger.nudges) == 1
        assert len(nudger.nudges) == 2

    @pytest.mark.asyncio
    async def test_update_and_close_share_cooldown(self, watcher, nudger, clock):
        await watcher.handle_updated(claimed("kd-1"))
        await watcher.handle_closed(claimed("kd-1"))
        assert len(nudger.nudges) == 1

        clock.advance(CLAIMED_NUDGE_WINDOW)
        await watcher.handle_closed(claimed("kd-1"))
        assert len(nudger.nudges) == 2

    @pytest.mark.asyncio
    async def test_unassigned_and_skipped_types_ignored(self, watcher, nudger):
        await watcher.handle_updated(claimed("kd-1", assignee=""))
        await watcher.handle_updated(claimed("kd-2", type="decision"))
        await watcher.handle_updated(claimed("kd-3", type="agent"))
        await watcher.handle_updated(b"{")

        assert nudger.nudges == []

    @pytest.mark.asyncio
    async def test_missing_coop_url_abandons(self, watcher, nudger, caplog):
        await watcher.handle_updated(claimed("kd-1", assignee="no-coop"))

        assert nudger.nudges == []
        assert "has no coop_url" in caplog.text

    @pytest.mark.asyncio
    async def test_unknown_agent_abandons(self, watcher, nudger, caplog):
        await watcher.handle_updated(claimed("kd-1", assignee="ghost"))

        assert nudger.nudges == []
        assert "Failed to get agent bead ghost" in caplog.text

    @pytest.mark.asyncio
    async def test_failed_nudge_not_retried_within_window(self, store, clock):
        nudger = FakeNudger()
        nudger.fail = NudgeError("connection refused")
        watcher = ClaimedWatcher(store, nudger, clock=clock)

        await watcher.handle_updated(claimed("kd-1"))
        nudger.fail = None
        await watcher.handle_updated(claimed("kd-1"))

        assert nudger.nudges == []
