"""
Collaborator Interfaces.

Capability interfaces the watchers depend on. Each has one real backend
(beads daemon, Slack, JIRA) and recording fakes in the test suite.
Implementations raise on failure; the watchers decide what to log.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from beadbridge.models import BeadDetail, BeadEvent, CreateBeadRequest, JiraIssue


class BeadStore(ABC):
    """Work-item store (the beads daemon)."""

    @abstractmethod
    async def list_task_beads(self) -> list[BeadDetail]:
        """List active task beads."""

    @abstractmethod
    async def list_decision_beads(self) -> list[BeadDetail]:
        """List active decision beads."""

    @abstractmethod
    async def get_bead(self, bead_id: str) -> BeadDetail:
        """Fetch a single bead by ID."""

    @abstractmethod
    async def find_agent_bead(self, agent_name: str) -> BeadDetail:
        """Find the active agent bead whose ``agent`` field is agent_name."""

    @abstractmethod
    async def create_bead(self, request: CreateBeadRequest) -> str:
        """Create a bead and return its ID."""

    @abstractmethod
    async def close_bead(self, bead_id: str, fields: dict[str, str] | None = None) -> None:
        """Close a bead, recording the given fields."""


class JackNotifier(ABC):
    """Chat notifications for the jack lifecycle."""

    @abstractmethod
    async def notify_jack_raised(self, bead: BeadEvent) -> None:
        """A jack bead was created."""

    @abstractmethod
    async def notify_jack_batch(self, beads: Sequence[BeadEvent]) -> None:
        """Overflow jacks collapsed into one summary."""

    @abstractmethod
    async def notify_jack_lowered(self, bead: BeadEvent) -> None:
        """A jack bead was closed."""

    @abstractmethod
    async def notify_jack_expired(self, bead: BeadEvent) -> None:
        """A jack bead is past its TTL."""


class DecisionNotifier(ABC):
    """Chat notifications for decision beads."""

    @abstractmethod
    async def notify_decision(self, bead: BeadEvent) -> None:
        """A decision was posted and awaits an answer."""

    @abstractmethod
    async def notify_decision_resolved(self, bead_id: str, chosen: str) -> None:
        """A decision was resolved."""


class IssueTracker(ABC):
    """External issue tracker (JIRA)."""

    @abstractmethod
    async def search_issues(
        self,
        query: str,
        fields: Sequence[str] = (),
        max_results: int = 50,
    ) -> list[JiraIssue]:
        """Search issues with a query string."""

    @abstractmethod
    async def get_issue(self, key: str) -> JiraIssue:
        """Fetch a single issue by key."""

    @abstractmethod
    async def transition_issue(self, key: str, transition_name: str) -> None:
        """Move an issue through the transition matching transition_name."""

    @abstractmethod
    async def add_comment(self, key: str, text: str) -> None:
        """Add a plain-text comment."""

    @abstractmethod
    async def add_remote_link(self, key: str, url: str, title: str) -> None:
        """Attach a remote link."""


class AgentNotifier(ABC):
    """Chat notifications for agent failures."""

    @abstractmethod
    async def notify_agent_crash(self, bead: BeadEvent) -> None:
        """An agent bead reported a failed agent or pod."""
