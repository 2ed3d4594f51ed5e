"""
beadbridge - Data Models

Shapes shared across the bridge:

- Bead events and daemon bead records
- Create requests for the beads daemon
- JIRA issue and transition views
"""

from beadbridge.models.events import (
    BeadDetail,
    BeadEvent,
    CreateBeadRequest,
    parse_bead_event,
    parse_fields_json,
    parse_notes,
)
from beadbridge.models.jira import (
    JiraIssue,
    JiraIssueFields,
    JiraNamedRef,
    JiraParentRef,
    JiraTransition,
    JiraUser,
)

__all__ = [
    # Beads
    "BeadEvent",
    "BeadDetail",
    "CreateBeadRequest",
    "parse_bead_event",
    "parse_fields_json",
    "parse_notes",
    # JIRA
    "JiraIssue",
    "JiraIssueFields",
    "JiraNamedRef",
    "JiraParentRef",
    "JiraTransition",
    "JiraUser",
]
