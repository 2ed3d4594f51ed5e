"""
beadbridge - External Integrations

HTTP clients for the services the bridge talks to:

- JIRA REST v3 (issue ingestion and sync-back)
- Slack Web API (jack and decision notifications)
"""

from beadbridge.integrations.jira import (
    JiraClient,
    JiraError,
    JiraRateLimitError,
    TransitionNotAvailableError,
)
from beadbridge.integrations.slack import (
    SlackError,
    SlackNotifier,
    SlackRateLimitError,
)

__all__ = [
    # JIRA
    "JiraClient",
    "JiraError",
    "JiraRateLimitError",
    "TransitionNotAvailableError",
    # Slack
    "SlackError",
    "SlackNotifier",
    "SlackRateLimitError",
]
