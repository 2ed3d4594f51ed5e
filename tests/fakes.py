"""
Recording fakes for the collaborator interfaces.

Each fake records the calls it receives and can be told to fail, so
watcher tests assert on behavior without any network.
"""

import json
from collections.abc import Sequence
from typing import Any, Optional

from beadbridge.beads import NotFoundError
from beadbridge.bridge.interfaces import (
    AgentNotifier,
    BeadStore,
    DecisionNotifier,
    IssueTracker,
    JackNotifier,
)
from beadbridge.bridge.nudge import NudgeError
from beadbridge.models import BeadDetail, BeadEvent, CreateBeadRequest, JiraIssue


def bead_payload(
    bead_id: str,
    type: str = "task",
    title: str = "",
    assignee: str = "",
    labels: Optional[list[str]] = None,
    fields: Optional[dict[str, Any]] = None,
    created_by: str = "",
    priority: Optional[int] = None,
) -> bytes:
    """Build a bead lifecycle event payload as the daemon sends it."""
    bead: dict[str, Any] = {"id": bead_id, "type": type, "title": title}
    if assignee:
        bead["assignee"] = assignee
    if labels:
        bead["labels"] = labels
    if fields:
        bead["fields"] = fields
    if created_by:
        bead["created_by"] = created_by
    if priority is not None:
        bead["priority"] = priority
    return json.dumps({"bead": bead}).encode()


class FakeBeadStore(BeadStore):
    """In-memory bead store."""

    def __init__(
        self,
        task_beads: Optional[list[BeadDetail]] = None,
        decision_beads: Optional[list[BeadDetail]] = None,
        agent_beads: Optional[list[BeadDetail]] = None,
    ) -> None:
        self.task_beads = list(task_beads or [])
        self.decision_beads = list(decision_beads or [])
        self.agent_beads = list(agent_beads or [])
        self.beads: dict[str, BeadDetail] = {}
        self.created: list[CreateBeadRequest] = []
        self.closed: list[tuple[str, dict[str, str]]] = []
        self.list_calls = 0
        self.fail_list: Optional[Exception] = None
        self.fail_create: Optional[Exception] = None
        self.fail_agent_lookup: Optional[Exception] = None
        self._next_id = 1

    async def list_task_beads(self) -> list[BeadDetail]:
        self.list_calls += 1
        if self.fail_list is not None:
            raise self.fail_list
        return list(self.task_beads)

    async def list_decision_beads(self) -> list[BeadDetail]:
        if self.fail_list is not None:
            raise self.fail_list
        return list(self.decision_beads)

    async def get_bead(self, bead_id: str) -> BeadDetail:
        if bead_id not in self.beads:
            raise NotFoundError(f"bead {bead_id} not found", status_code=404)
        return self.beads[bead_id]

    async def find_agent_bead(self, agent_name: str) -> BeadDetail:
        if self.fail_agent_lookup is not None:
            raise self.fail_agent_lookup
        for bead in self.agent_beads:
            if bead.fields.get("agent") == agent_name:
                return bead
        raise NotFoundError(f"agent bead not found for agent {agent_name!r}")

    async def create_bead(self, request: CreateBeadRequest) -> str:
        if self.fail_create is not None:
            raise self.fail_create
        self.created.append(request)
        bead_id = f"kd-{self._next_id}"
        self._next_id += 1
        return bead_id

    async def close_bead(self, bead_id: str, fields: dict[str, str] | None = None) -> None:
        self.closed.append((bead_id, dict(fields or {})))


class FakeJackNotifier(JackNotifier):
    """Records jack notifications."""

    def __init__(self) -> None:
        self.raised: list[BeadEvent] = []
        self.batches: list[list[BeadEvent]] = []
        self.lowered: list[BeadEvent] = []
        self.expired: list[BeadEvent] = []
        self.fail: Optional[Exception] = None

    async def notify_jack_raised(self, bead: BeadEvent) -> None:
        if self.fail is not None:
            raise self.fail
        self.raised.append(bead)

    async def notify_jack_batch(self, beads: Sequence[BeadEvent]) -> None:
        if self.fail is not None:
            raise self.fail
        self.batches.append(list(beads))

    async def notify_jack_lowered(self, bead: BeadEvent) -> None:
        if self.fail is not None:
            raise self.fail
        self.lowered.append(bead)

    async def notify_jack_expired(self, bead: BeadEvent) -> None:
        if self.fail is not None:
            raise self.fail
        self.expired.append(bead)


class FakeDecisionNotifier(DecisionNotifier):
    """Records decision notifications."""

    def __init__(self) -> None:
        self.decisions: list[BeadEvent] = []
        self.resolved: list[tuple[str, str]] = []
        self.fail: Optional[Exception] = None

    async def notify_decision(self, bead: BeadEvent) -> None:
        if self.fail is not None:
            raise self.fail
        self.decisions.append(bead)

    async def notify_decision_resolved(self, bead_id: str, chosen: str) -> None:
        if self.fail is not None:
            raise self.fail
        self.resolved.append((bead_id, chosen))


class FakeAgentNotifier(AgentNotifier):
    """Records agent crash notifications."""

    def __init__(self) -> None:
        self.crashes: list[BeadEvent] = []
        self.fail: Optional[Exception] = None

    async def notify_agent_crash(self, bead: BeadEvent) -> None:
        if self.fail is not None:
            raise self.fail
        self.crashes.append(bead)


class FakeIssueTracker(IssueTracker):
    """Records tracker calls and serves canned search results."""

    def __init__(self, issues: Optional[list[JiraIssue]] = None) -> None:
        self.issues = list(issues or [])
        self.queries: list[str] = []
        self.comments: list[tuple[str, str]] = []
        self.links: list[tuple[str, str, str]] = []
        self.transitions: list[tuple[str, str]] = []
        self.fail_search: Optional[Exception] = None
        self.fail_link: Optional[Exception] = None
        self.fail_transition: Optional[Exception] = None

    @property
    def call_count(self) -> int:
        return len(self.queries) + len(self.comments) + len(self.links) + len(self.transitions)

    async def search_issues(
        self,
        query: str,
        fields: Sequence[str] = (),
        max_results: int = 50,
    ) -> list[JiraIssue]:
        self.queries.append(query)
        if self.fail_search is not None:
            raise self.fail_search
        return list(self.issues)

    async def get_issue(self, key: str) -> JiraIssue:
        for issue in self.issues:
            if issue.key == key:
                return issue
        raise LookupError(key)

    async def transition_issue(self, key: str, transition_name: str) -> None:
        self.transitions.append((key, transition_name))
        if self.fail_transition is not None:
            raise self.fail_transition

    async def add_comment(self, key: str, text: str) -> None:
        self.comments.append((key, text))

    async def add_remote_link(self, key: str, url: str, title: str) -> None:
        self.links.append((key, url, title))
        if self.fail_link is not None:
            raise self.fail_link


class FakeNudger:
    """Stands in for CoopNudger."""

    def __init__(self) -> None:
        self.nudges: list[tuple[str, str]] = []
        self.fail: Optional[NudgeError] = None

    async def nudge(self, coop_url: str, message: str) -> None:
        if self.fail is not None:
            raise self.fail
        self.nudges.append((coop_url, message))

    async def close(self) -> None:
        pass
