"""
beadbridge - Bridge Core

Event-driven components that connect the beads work-item store to chat
and issue tracking:

- EventDispatcher: topic -> handler fan-out
- SSEStream: beads daemon event stream with resume
- JackWatcher / DecisionWatcher / ClaimedWatcher: lifecycle notifications
- AgentWatcher / MailWatcher: agent crash alerts and urgent mail nudges
- JiraPoller / JiraSyncWatcher: JIRA ingestion and sync-back
- ChannelRouter, DedupRegistry, CooldownMap, BatchAggregator: shared policy
"""

from beadbridge.bridge.adf import adf_paragraph, adf_to_markdown
from beadbridge.bridge.agents import AgentWatcher
from beadbridge.bridge.batch import BatchAggregator, BatchState
from beadbridge.bridge.claimed import CLAIMED_NUDGE_WINDOW, ClaimedWatcher
from beadbridge.bridge.cooldown import CooldownMap
from beadbridge.bridge.decisions import DecisionWatcher
from beadbridge.bridge.dedup import CatchUpResult, DedupRegistry
from beadbridge.bridge.dispatcher import (
    BEAD_TOPICS,
    TOPIC_BEAD_CLOSED,
    TOPIC_BEAD_CREATED,
    TOPIC_BEAD_UPDATED,
    EventDispatcher,
)
from beadbridge.bridge.interfaces import (
    AgentNotifier,
    BeadStore,
    DecisionNotifier,
    IssueTracker,
    JackNotifier,
)
from beadbridge.bridge.jacks import JackWatcher
from beadbridge.bridge.jira_poller import JiraPoller, PollerConfig, PollResult
from beadbridge.bridge.jira_sync import JiraSyncWatcher, jira_key_from_bead
from beadbridge.bridge.mail import MailWatcher
from beadbridge.bridge.nudge import CoopNudger, NudgeError, resolve_coop_url
from beadbridge.bridge.router import ChannelRouter, RouteResult
from beadbridge.bridge.sse import SSEEvent, SSEParser, SSEStream

__all__ = [
    # Interfaces
    "AgentNotifier",
    "BeadStore",
    "DecisionNotifier",
    "IssueTracker",
    "JackNotifier",
    # Dispatch
    "BEAD_TOPICS",
    "TOPIC_BEAD_CLOSED",
    "TOPIC_BEAD_CREATED",
    "TOPIC_BEAD_UPDATED",
    "EventDispatcher",
    "SSEEvent",
    "SSEParser",
    "SSEStream",
    # Policy
    "BatchAggregator",
    "BatchState",
    "ChannelRouter",
    "CooldownMap",
    "CatchUpResult",
    "DedupRegistry",
    "RouteResult",
    # Watchers
    "AgentWatcher",
    "CLAIMED_NUDGE_WINDOW",
    "ClaimedWatcher",
    "DecisionWatcher",
    "JackWatcher",
    "JiraPoller",
    "JiraSyncWatcher",
    "MailWatcher",
    "PollerConfig",
    "PollResult",
    "jira_key_from_bead",
    # Nudges
    "CoopNudger",
    "NudgeError",
    "resolve_coop_url",
    # ADF
    "adf_paragraph",
    "adf_to_markdown",
]
