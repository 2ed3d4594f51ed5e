"""
JIRA Poller.

Periodically searches JIRA for issues matching the configured projects,
statuses and issue types, and creates a task bead for each issue not
yet tracked. The tracked map (JIRA key -> bead ID) is rebuilt from the
bead store at startup and reconciled at the start of every poll, so a
restart or a failed catch-up never produces duplicate beads.
"""

import asyncio
import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Optional

from beadbridge.bridge.adf import adf_to_markdown
from beadbridge.bridge.interfaces import BeadStore, IssueTracker
from beadbridge.config.models import JiraConfig
from beadbridge.models import CreateBeadRequest, JiraIssue

logger = logging.getLogger(__name__)

JIRA_KEY_FIELD = "jira_key"
CREATED_BY = "jira-bridge"

SEARCH_FIELDS = (
    "summary",
    "description",
    "status",
    "issuetype",
    "priority",
    "reporter",
    "labels",
    "parent",
    "created",
    "updated",
)

_PRIORITY_MAP = {
    "highest": 0,
    "critical": 0,
    "blocker": 0,
    "high": 1,
    "medium": 2,
    "low": 3,
    "lowest": 3,
    "trivial": 3,
}
DEFAULT_PRIORITY = 2


def map_jira_priority(name: Optional[str]) -> int:
    """Map a JIRA priority name to a bead priority (0 = highest).

    Unknown or empty names map to medium (2).
    """
    if not name:
        return DEFAULT_PRIORITY
    return _PRIORITY_MAP.get(name.lower(), DEFAULT_PRIORITY)


def quote_jql(values: Sequence[str]) -> str:
    """Double-quote values for a JQL IN clause."""
    return ",".join('"' + v.replace('"', '\\"') + '"' for v in values)


@dataclass
class PollerConfig:
    """Poller settings.

    Attributes:
        base_url: JIRA site URL, used for ``jira_url`` fields
        projects: Project keys to search
        statuses: Statuses to ingest
        issue_types: Issue types to ingest
        project_map: JIRA project key (upper case) -> project name
        poll_interval: Seconds between polls
        page_size: Max results per search
    """

    base_url: str = ""
    projects: list[str] = field(default_factory=list)
    statuses: list[str] = field(default_factory=list)
    issue_types: list[str] = field(default_factory=list)
    project_map: dict[str, str] = field(default_factory=dict)
    poll_interval: float = 60.0
    page_size: int = 50

    @classmethod
    def from_config(cls, config: JiraConfig) -> "PollerConfig":
        return cls(
            base_url=config.base_url,
            projects=list(config.projects),
            statuses=list(config.statuses),
            issue_types=list(config.issue_types),
            project_map=dict(config.project_map),
            poll_interval=config.poll_interval_seconds,
            page_size=config.page_size,
        )

    def build_jql(self) -> str:
        """Build the search query, newest issues first."""
        clauses = []
        if self.projects:
            clauses.append(f"project IN ({quote_jql(self.projects)})")
        if self.statuses:
            clauses.append(f"status IN ({quote_jql(self.statuses)})")
        if self.issue_types:
            clauses.append(f"issuetype IN ({quote_jql(self.issue_types)})")
        return " ".join([" AND ".join(clauses), "ORDER BY created DESC"]).strip()


@dataclass
class PollResult:
    """Outcome of one poll cycle.

    Attributes:
        found: Issues returned by the search
        created: Beads created
        skipped: Issues already tracked
        failed: Bead creations that raised
        error: Search error message, if the search itself failed
    """

    found: int = 0
    created: int = 0
    skipped: int = 0
    failed: int = 0
    error: Optional[str] = None


class JiraPoller:
    """Ingests JIRA issues as task beads."""

    def __init__(
        self,
        tracker: IssueTracker,
        store: BeadStore,
        config: Optional[PollerConfig] = None,
    ) -> None:
        """Initialize the poller.

        Args:
            tracker: JIRA client
            store: Bead store to create beads in
            config: Poller settings
        """
        self._tracker = tracker
        self._store = store
        self.config = config or PollerConfig()
        if self.config.poll_interval <= 0:
            self.config.poll_interval = 60.0
        self._lock = threading.Lock()
        self._tracked: dict[str, str] = {}

    def is_tracked(self, key: str) -> bool:
        with self._lock:
            return key in self._tracked

    @property
    def tracked_count(self) -> int:
        with self._lock:
            return len(self._tracked)

    def tracked_bead(self, key: str) -> Optional[str]:
        """Bead ID created for a JIRA key, if tracked."""
        with self._lock:
            return self._tracked.get(key)

    async def catch_up(self) -> int:
        """Track every existing task bead that carries a ``jira_key`` field.

        The list endpoint does not return labels, so the field is the
        only reliable marker. Existing mappings are kept.

        Returns:
            Number of beads with a JIRA key
        """
        try:
            beads = await self._store.list_task_beads()
        except Exception as e:
            logger.warning(f"JIRA poller catch-up: failed to list task beads: {e}")
            return 0

        count = 0
        with self._lock:
            for bead in beads:
                key = bead.fields.get(JIRA_KEY_FIELD, "")
                if key:
                    self._tracked.setdefault(key, bead.id)
                    count += 1

        logger.info(f"JIRA poller catch-up complete: tracked={count}")
        return count

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Catch up, poll immediately, then poll every interval.

        Returns when stop_event is set; also exits on task cancellation.
        """
        stop_event = stop_event or asyncio.Event()
        await self.catch_up()

        logger.info(
            f"JIRA poller started: projects={self.config.projects} "
            f"statuses={self.config.statuses} issue_types={self.config.issue_types} "
            f"interval={self.config.poll_interval:g}s"
        )

        while not stop_event.is_set():
            await self.poll_once()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.config.poll_interval)
            except asyncio.TimeoutError:
                continue

        logger.info("JIRA poller stopped")

    async def poll_once(self) -> PollResult:
        """Run one reconcile-then-search cycle."""
        await self._reconcile()

        result = PollResult()
        try:
            issues = await self._tracker.search_issues(
                self.config.build_jql(),
                fields=SEARCH_FIELDS,
                max_results=self.config.page_size,
            )
        except Exception as e:
            logger.error(f"JIRA poll failed: {e}")
            result.error = str(e)
            return result

        result.found = len(issues)
        for issue in issues:
            if self.is_tracked(issue.key):
                result.skipped += 1
                continue

            try:
                bead_id = await self._store.create_bead(self.build_bead_request(issue))
            except Exception as e:
                result.failed += 1
                logger.error(f"Failed to create bead for JIRA issue {issue.key}: {e}")
                continue

            with self._lock:
                self._tracked[issue.key] = bead_id
            result.created += 1
            logger.info(
                f"Created bead {bead_id} for JIRA issue {issue.key}: {issue.fields.summary}"
            )

        if result.created:
            logger.info(
                f"JIRA poll complete: found={result.found} "
                f"created={result.created} skipped={result.skipped}"
            )
        else:
            logger.debug(f"JIRA poll complete: found={result.found} skipped={result.skipped}")
        return result

    async def _reconcile(self) -> None:
        try:
            beads = await self._store.list_task_beads()
        except Exception as e:
            logger.debug(f"JIRA poll reconciliation skipped: {e}")
            return
        with self._lock:
            for bead in beads:
                key = bead.fields.get(JIRA_KEY_FIELD, "")
                if key and key not in self._tracked:
                    self._tracked[key] = bead.id

    def build_bead_request(self, issue: JiraIssue) -> CreateBeadRequest:
        """Translate a JIRA issue into a task bead request."""
        fields = issue.fields
        prefix = issue.project_prefix.upper()

        labels = ["source:jira", f"jira:{issue.key}"]
        if prefix:
            project = self.config.project_map.get(prefix) or prefix.lower()
            labels.append(f"project:{project}")
        labels.extend(f"jira-label:{label}" for label in fields.labels)

        bead_fields = {
            "jira_key": issue.key,
            "jira_project": prefix,
            "jira_url": f"{self.config.base_url.rstrip('/')}/browse/{issue.key}",
        }
        if fields.issuetype is not None:
            bead_fields["jira_type"] = fields.issuetype.name
        if fields.status is not None:
            bead_fields["jira_status"] = fields.status.name
        if fields.parent is not None and fields.parent.key:
            bead_fields["jira_epic"] = fields.parent.key
        if fields.reporter is not None:
            bead_fields["jira_reporter"] = fields.reporter.display_name

        return CreateBeadRequest(
            title=f"[{issue.key}] {fields.summary}",
            type="task",
            description=adf_to_markdown(fields.description),
            labels=labels,
            priority=map_jira_priority(fields.priority.name if fields.priority else None),
            created_by=CREATED_BY,
            fields=bead_fields,
        )
