"""Tests for the mail nudge watcher."""

import pytest
from fakes import FakeBeadStore, FakeNudger, bead_payload

from beadbridge.bridge.dispatcher import TOPIC_BEAD_CREATED, EventDispatcher
from beadbridge.bridge.mail import MailWatcher, mail_sender, should_nudge
from beadbridge.bridge.nudge import NudgeError
from beadbridge.models import BeadDetail, parse_bead_event

COOP_URL = "http://crew-bot.agents:9000"


@pytest.fixture
def store() -> FakeBeadStore:
    return FakeBeadStore(
        agent_beads=[
            BeadDetail(
                id="ag-1",
                type="agent",
                notes=f"coop_url: {COOP_URL}",
                fields={"agent": "crew-bot"},
            )
        ]
    )


@pytest.fixture
def watcher(store, nudger) -> MailWatcher:
    return MailWatcher(store, nudger)


def mail(
    bead_id: str = "ml-1",
    priority: int = 2,
    labels: list[str] | None = None,
    assignee: str = "crew-bot",
    type: str = "mail",
) -> bytes:
    return bead_payload(
        bead_id,
        type=type,
        title="Deploy frozen",
        assignee=assignee,
        labels=labels,
        priority=priority,
    )


class TestHelpers:
    """Tests for the mail helpers."""

    @pytest.mark.parametrize(
        "priority,labels,expected",
        [
            (0, None, True),
            (1, None, True),
            (2, None, False),
            (3, ["delivery:interrupt"], True),
            (3, ["delivery:batch"], False),
        ],
    )
    def test_should_nudge(self, priority, labels, expected):
        assert should_nudge(parse_bead_event(mail(priority=priority, labels=labels))) is expected

    def test_sender_from_label(self):
        assert mail_sender(parse_bead_event(mail(labels=["x", "from:mayor"]))) == "mayor"
        assert mail_sender(parse_bead_event(mail())) == "unknown"


class TestMailWatcher:
    """Tests for MailWatcher."""

    def test_register(self, watcher):
        dispatcher = EventDispatcher()

        watcher.register(dispatcher)

        assert dispatcher.topics == [TOPIC_BEAD_CREATED]

    @pytest.mark.asyncio
    async def test_interrupt_mail_nudges_assignee(self, watcher, nudger):
        await watcher.handle_created(mail(labels=["delivery:interrupt", "from:mayor"]))

        assert nudger.nudges == [
            (COOP_URL, "New mail from mayor: Deploy frozen — run 'kd show ml-1' to read")
        ]

    @pytest.mark.asyncio
    async def test_high_priority_nudges(self, watcher, nudger):
        await watcher.handle_created(mail(priority=1))

        assert len(nudger.nudges) == 1

    @pytest.mark.asyncio
    async def test_normal_mail_waits(self, watcher, nudger):
        await watcher.handle_created(mail(priority=2))
        await watcher.handle_created(mail(priority=0, type="task"))
        await watcher.handle_created(b"not json")

        assert nudger.nudges == []

    @pytest.mark.asyncio
    async def test_unassigned_mail_warns(self, watcher, nudger, caplog):
        await watcher.handle_created(mail(priority=0, assignee=""))

        assert nudger.nudges == []
        assert "has no assignee" in caplog.text

    @pytest.mark.asyncio
    async def test_unknown_agent_abandons(self, watcher, nudger, caplog):
        await watcher.handle_created(mail(priority=0, assignee="ghost"))

        assert nudger.nudges == []
        assert "Failed to get agent bead ghost" in caplog.text

    @pytest.mark.asyncio
    async def test_nudge_failure_logged(self, store, caplog):
        nudger = FakeNudger()
        nudger.fail = NudgeError("connection refused")

        await MailWatcher(store, nudger).handle_created(mail(priority=0))

        assert "Failed to nudge crew-bot for mail ml-1" in caplog.text
