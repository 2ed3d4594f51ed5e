"""
Configuration Data Models.

Defines all configuration schemas using Pydantic for validation
and type safety.
"""

import re
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class LogLevel(str, Enum):
    """Supported log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def _split_csv(value: Any) -> Any:
    # Env overrides arrive as "PE,DEVOPS"; YAML lists pass through.
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


def parse_duration(value: Any) -> Any:
    """Parse "90s", "2m", "1h30m" style durations into seconds.

    Numbers pass through unchanged; unparseable strings are returned
    as-is so field validation reports them.
    """
    if not isinstance(value, str):
        return value
    text = value.strip().lower()
    matches = re.findall(r"(\d+(?:\.\d+)?)(ms|s|m|h)", text)
    if not matches or "".join(n + u for n, u in matches) != text:
        return value
    return sum(float(number) * _DURATION_UNITS[unit] for number, unit in matches)


def parse_project_map(value: Any) -> Any:
    """Parse ``name=git_url:PREFIX`` entries into {PREFIX: name}.

    Example: "gasboat=https://github.com/org/gasboat.git:kd" maps "KD"
    to "gasboat". Malformed entries are skipped. Mappings pass through
    with upper-cased keys.
    """
    if isinstance(value, dict):
        return {str(k).upper(): v for k, v in value.items()}
    if not isinstance(value, str):
        return value

    result: dict[str, str] = {}
    for entry in value.split(","):
        entry = entry.strip()
        name, sep, rest = entry.partition("=")
        if not sep:
            continue
        _, colon, prefix = rest.rpartition(":")
        prefix = prefix.strip().upper()
        if colon and prefix and name:
            result[prefix] = name
    return result


class BeadsConfig(BaseModel):
    """Configuration for the beads daemon connection.

    Attributes:
        http_addr: Base URL of the daemon HTTP API
        timeout_seconds: Request timeout
    """

    http_addr: str = Field(
        default="http://localhost:8080",
        description="Beads daemon HTTP address",
        examples=["http://beads:8080"],
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Request timeout",
    )

    @field_validator("http_addr")
    @classmethod
    def validate_http_addr(cls, v: str) -> str:
        """Validate that the address is not empty and drop a trailing slash."""
        if not v.strip():
            raise ValueError("Beads http_addr cannot be empty")
        return v.strip().rstrip("/")


class JiraConfig(BaseModel):
    """Configuration for JIRA polling and sync-back.

    Attributes:
        enabled: Whether the JIRA integration runs
        base_url: JIRA site URL
        email: Account email for basic auth (falls back to JIRA_EMAIL)
        api_token_env: Environment variable holding the API token
        projects: Project keys to poll
        statuses: Issue statuses to ingest
        issue_types: Issue types to ingest
        project_map: JIRA project key -> project name for bead labels
        poll_interval_seconds: Time between polls
        page_size: Max issues per search
        disable_transitions: Skip the "Review" transition on close
        timeout_seconds: Request timeout
    """

    enabled: bool = Field(
        default=False,
        description="Enable JIRA integration",
    )
    base_url: str = Field(
        default="",
        description="JIRA site URL",
        examples=["https://your-org.atlassian.net"],
    )
    email: str = Field(
        default="",
        description="JIRA account email",
    )
    api_token_env: str = Field(
        default="JIRA_API_TOKEN",
        description="Env var for API token",
    )
    projects: list[str] = Field(
        default_factory=lambda: ["PE", "DEVOPS"],
        description="Project keys to poll",
    )
    statuses: list[str] = Field(
        default_factory=lambda: ["To Do", "Ready for Development"],
        description="Statuses to ingest",
    )
    issue_types: list[str] = Field(
        default_factory=lambda: ["Bug", "Task", "Story"],
        description="Issue types to ingest",
    )
    project_map: dict[str, str] = Field(
        default_factory=dict,
        description="JIRA project key to project name",
    )
    poll_interval_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Poll interval",
    )
    page_size: int = Field(
        default=50,
        ge=1,
        le=100,
        description="Max results per search",
    )
    disable_transitions: bool = Field(
        default=False,
        description="Do not transition issues on close",
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Request timeout",
    )

    @field_validator("projects", "statuses", "issue_types", mode="before")
    @classmethod
    def split_lists(cls, v: Any) -> Any:
        """Accept comma-separated strings."""
        return _split_csv(v)

    @field_validator("poll_interval_seconds", mode="before")
    @classmethod
    def parse_interval(cls, v: Any) -> Any:
        """Accept durations like "60s" or "5m"."""
        return parse_duration(v)

    @field_validator("project_map", mode="before")
    @classmethod
    def parse_map(cls, v: Any) -> Any:
        return parse_project_map(v)

    @field_validator("base_url")
    @classmethod
    def strip_base_url(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @model_validator(mode="after")
    def validate_enabled(self) -> "JiraConfig":
        """An enabled integration needs a site URL and at least one project."""
        if self.enabled:
            if not self.base_url:
                raise ValueError("jira.base_url is required when JIRA is enabled")
            if not self.projects:
                raise ValueError("jira.projects cannot be empty when JIRA is enabled")
        return self


class SlackConfig(BaseModel):
    """Configuration for Slack notifications.

    Attributes:
        enabled: Whether notifications are posted
        bot_token_env: Environment variable holding the bot token
        api_base_url: Slack Web API base URL
        timeout_seconds: Request timeout
    """

    enabled: bool = Field(
        default=False,
        description="Enable Slack notifications",
    )
    bot_token_env: str = Field(
        default="SLACK_BOT_TOKEN",
        description="Env var for bot token",
    )
    api_base_url: str = Field(
        default="https://slack.com/api",
        description="Slack Web API base URL",
    )
    timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Request timeout",
    )


class RouterConfig(BaseModel):
    """Channel routing rules.

    Attributes:
        default_channel: Fallback channel ID
        channels: Pattern ("project/role/*") -> channel ID
        overrides: Exact agent identity -> channel ID
    """

    default_channel: str = Field(
        default="",
        description="Fallback channel",
    )
    channels: dict[str, str] = Field(
        default_factory=dict,
        description="Pattern rules",
    )
    overrides: dict[str, str] = Field(
        default_factory=dict,
        description="Per-agent overrides",
    )

    @field_validator("channels")
    @classmethod
    def validate_patterns(cls, v: dict[str, str]) -> dict[str, str]:
        """Reject patterns with empty segments."""
        for pattern in v:
            if not pattern or any(segment == "" for segment in pattern.split("/")):
                raise ValueError(f"Invalid route pattern: {pattern!r}")
        return v


class WatchersConfig(BaseModel):
    """Which watchers to register.

    Attributes:
        jacks: Jack lifecycle notifications
        claimed: Claimed-work nudges
        decisions: Decision notifications
        jira_sync: JIRA sync-back
        agents: Agent crash notifications
        mail: Urgent mail nudges
        catch_up_decisions: Replay pending decisions at startup
    """

    jacks: bool = Field(default=True)
    claimed: bool = Field(default=True)
    decisions: bool = Field(default=True)
    jira_sync: bool = Field(default=True)
    agents: bool = Field(default=True)
    mail: bool = Field(default=True)
    catch_up_decisions: bool = Field(default=True)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Root level for the beadbridge logger
        file: Optional log file path
        rich: Use rich console formatting
    """

    level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Log level",
    )
    file: Optional[str] = Field(
        default=None,
        description="Log file path",
    )
    rich: bool = Field(
        default=True,
        description="Use rich console output",
    )

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.upper()
        return v


class BridgeConfig(BaseModel):
    """Root configuration for the bridge.

    Attributes:
        beads: Beads daemon connection
        jira: JIRA integration
        slack: Slack integration
        router: Channel routing
        watchers: Watcher toggles
        logging: Logging setup
        debug: Enable debug mode
        dry_run: Log outbound actions instead of performing them
    """

    beads: BeadsConfig = Field(
        default_factory=BeadsConfig,
        description="Beads daemon",
    )
    jira: JiraConfig = Field(
        default_factory=JiraConfig,
        description="JIRA integration",
    )
    slack: SlackConfig = Field(
        default_factory=SlackConfig,
        description="Slack integration",
    )
    router: RouterConfig = Field(
        default_factory=RouterConfig,
        description="Channel routing",
    )
    watchers: WatchersConfig = Field(
        default_factory=WatchersConfig,
        description="Watcher toggles",
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    dry_run: bool = Field(
        default=False,
        description="Run without making changes",
    )

    @model_validator(mode="after")
    def validate_slack_routing(self) -> "BridgeConfig":
        """Slack notifications need somewhere to go."""
        if self.slack.enabled and not self.router.default_channel:
            raise ValueError("router.default_channel is required when Slack is enabled")
        return self

    def to_yaml_dict(self) -> dict[str, Any]:
        """Convert to YAML-friendly dictionary.

        Returns:
            Dict suitable for YAML serialization
        """
        return self.model_dump(mode="json", exclude_none=True)
