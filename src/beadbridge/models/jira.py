"""
JIRA Issue Models.

Typed views over the subset of the JIRA REST v3 issue payload the bridge
reads. Unknown keys are ignored; every nested object is optional.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class JiraNamedRef(BaseModel):
    """A JIRA object identified by name (status, priority, issuetype)."""

    model_config = ConfigDict(extra="ignore")

    name: str = ""


class JiraUser(BaseModel):
    """A JIRA user reference."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    display_name: str = Field(default="", alias="displayName")
    account_id: str = Field(default="", alias="accountId")


class JiraParentRef(BaseModel):
    """Reference to a parent issue (epic)."""

    model_config = ConfigDict(extra="ignore")

    key: str = ""
    fields: dict[str, Any] = Field(default_factory=dict)

    @property
    def summary(self) -> str:
        return str(self.fields.get("summary") or "")


class JiraIssueFields(BaseModel):
    """Fields of a JIRA issue.

    Attributes:
        summary: Issue summary line
        description: Description in Atlassian Document Format (raw JSON)
        status: Workflow status
        issuetype: Issue type
        priority: Priority
        reporter: Reporting user
        assignee: Assigned user
        labels: JIRA labels
        parent: Parent issue (epic link)
        created: Creation timestamp string
        updated: Update timestamp string
    """

    model_config = ConfigDict(extra="ignore")

    summary: str = ""
    description: Optional[Any] = None
    status: Optional[JiraNamedRef] = None
    issuetype: Optional[JiraNamedRef] = None
    priority: Optional[JiraNamedRef] = None
    reporter: Optional[JiraUser] = None
    assignee: Optional[JiraUser] = None
    labels: list[str] = Field(default_factory=list)
    parent: Optional[JiraParentRef] = None
    created: str = ""
    updated: str = ""


class JiraIssue(BaseModel):
    """A JIRA issue as returned by search and get-issue."""

    model_config = ConfigDict(extra="ignore")

    key: str
    id: str = ""
    fields: JiraIssueFields = Field(default_factory=JiraIssueFields)

    @property
    def project_prefix(self) -> str:
        """Project key portion of the issue key ("PE" from "PE-7001")."""
        prefix, sep, _ = self.key.partition("-")
        return prefix if sep else ""


class JiraTransition(BaseModel):
    """An available workflow transition."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    name: str = ""
    to: Optional[JiraNamedRef] = None

    def matches(self, name: str) -> bool:
        """Case-insensitive match against the transition or destination name."""
        wanted = name.casefold()
        if self.name.casefold() == wanted:
            return True
        return self.to is not None and self.to.name.casefold() == wanted
