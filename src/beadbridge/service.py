"""
Bridge Service.

Wires configuration, HTTP clients, watchers and the event stream into
one long-running service:

- Builds the beads, Slack and JIRA clients from BridgeConfig
- Registers the enabled watchers on a shared EventDispatcher
- Replays pending decisions, then streams events and polls JIRA
- Flushes pending jack batches and closes clients on shutdown
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from beadbridge.beads import BeadsClient
from beadbridge.bridge import (
    AgentWatcher,
    ChannelRouter,
    ClaimedWatcher,
    CoopNudger,
    DecisionWatcher,
    DedupRegistry,
    EventDispatcher,
    JackWatcher,
    JiraPoller,
    JiraSyncWatcher,
    MailWatcher,
    PollerConfig,
    SSEStream,
)
from beadbridge.config.models import BridgeConfig
from beadbridge.integrations import JiraClient, JiraError, SlackError, SlackNotifier

logger = logging.getLogger(__name__)


class BridgePhase(str, Enum):
    """Lifecycle phase of the service."""

    NOT_STARTED = "not_started"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


@dataclass
class BridgeComponents:
    """Everything the service built, exposed for inspection and tests.

    Attributes:
        beads: Beads daemon client
        router: Channel router
        dispatcher: Event dispatcher
        dedup: Dedup registry shared by the stream and watchers
        nudger: Coop nudge client
        slack: Slack notifier, if enabled
        jira: JIRA client, if enabled
        jacks: Jack watcher, if enabled
        decisions: Decision watcher, if enabled
        claimed: Claimed-work watcher, if enabled
        agents: Agent crash watcher, if enabled
        mail: Mail nudge watcher, if enabled
        jira_sync: JIRA sync-back watcher, if enabled
        poller: JIRA poller, if enabled
    """

    beads: BeadsClient
    router: ChannelRouter
    dispatcher: EventDispatcher
    dedup: DedupRegistry
    nudger: CoopNudger
    slack: Optional[SlackNotifier] = None
    jira: Optional[JiraClient] = None
    jacks: Optional[JackWatcher] = None
    decisions: Optional[DecisionWatcher] = None
    claimed: Optional[ClaimedWatcher] = None
    agents: Optional[AgentWatcher] = None
    mail: Optional[MailWatcher] = None
    jira_sync: Optional[JiraSyncWatcher] = None
    poller: Optional[JiraPoller] = None
    watchers: list[str] = field(default_factory=list)


class BridgeError(Exception):
    """Raised when the service cannot be assembled."""

    pass


class BridgeService:
    """Runs the beads bridge.

    Usage:
        service = BridgeService(config)
        await service.run(stop_event)
    """

    def __init__(
        self,
        config: BridgeConfig,
        enable_jira: bool = True,
        enable_slack: bool = True,
    ) -> None:
        """Initialize the service.

        Args:
            config: Bridge configuration
            enable_jira: Allow the JIRA integration (still needs jira.enabled)
            enable_slack: Allow Slack notifications (still needs slack.enabled)
        """
        self.config = config
        self._enable_jira = enable_jira and config.jira.enabled
        self._enable_slack = enable_slack and config.slack.enabled
        self._phase = BridgePhase.NOT_STARTED
        self._components: Optional[BridgeComponents] = None
        self._stream: Optional[SSEStream] = None

    @property
    def phase(self) -> BridgePhase:
        return self._phase

    @property
    def components(self) -> BridgeComponents:
        if self._components is None:
            self._components = self.build()
        return self._components

    def build(self) -> BridgeComponents:
        """Construct clients and watchers and register them.

        Raises:
            BridgeError: If an enabled integration is missing credentials
        """
        config = self.config
        components = BridgeComponents(
            beads=BeadsClient(config.beads),
            router=ChannelRouter(config.router),
            dispatcher=EventDispatcher(),
            dedup=DedupRegistry(),
            nudger=CoopNudger(),
        )

        if self._enable_slack:
            try:
                components.slack = SlackNotifier.from_config(
                    config.slack, components.router, dry_run=config.dry_run
                )
            except SlackError as e:
                raise BridgeError(f"Slack setup failed: {e}") from e

        if self._enable_jira:
            try:
                components.jira = JiraClient.from_config(config.jira)
            except JiraError as e:
                raise BridgeError(f"JIRA setup failed: {e}") from e

        watchers = config.watchers
        if watchers.jacks:
            components.jacks = JackWatcher(components.slack)
            components.jacks.register(components.dispatcher)
            components.watchers.append("jacks")
        if watchers.decisions:
            components.decisions = DecisionWatcher(
                components.dedup,
                components.slack,
                store=components.beads,
                nudger=components.nudger,
            )
            components.decisions.register(components.dispatcher)
            components.watchers.append("decisions")
        if watchers.claimed:
            components.claimed = ClaimedWatcher(components.beads, components.nudger)
            components.claimed.register(components.dispatcher)
            components.watchers.append("claimed")
        if watchers.agents:
            components.agents = AgentWatcher(components.slack, components.dedup)
            components.agents.register(components.dispatcher)
            components.watchers.append("agents")
        if watchers.mail:
            components.mail = MailWatcher(components.beads, components.nudger)
            components.mail.register(components.dispatcher)
            components.watchers.append("mail")
        if components.jira is not None:
            if watchers.jira_sync:
                components.jira_sync = JiraSyncWatcher(
                    components.jira,
                    disable_transitions=config.jira.disable_transitions,
                )
                components.jira_sync.register(components.dispatcher)
                components.watchers.append("jira_sync")
            components.poller = JiraPoller(
                components.jira,
                components.beads,
                PollerConfig.from_config(config.jira),
            )

        logger.info(
            f"Bridge assembled: watchers={components.watchers} "
            f"slack={'on' if components.slack else 'off'} "
            f"jira={'on' if components.jira else 'off'} dry_run={config.dry_run}"
        )
        return components

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Run until stop_event is set.

        Replays pending decisions first, then runs the event stream and
        (when enabled) the JIRA poller side by side.
        """
        stop_event = stop_event or asyncio.Event()
        components = self.components
        self._phase = BridgePhase.STARTING

        try:
            if self.config.watchers.catch_up_decisions and components.decisions is not None:
                await components.dedup.catch_up_decisions(components.beads, components.slack)

            self._stream = SSEStream(
                components.dispatcher, components.beads.base_url, dedup=components.dedup
            )
            tasks = [asyncio.create_task(self._stream.run(stop_event), name="sse")]
            if components.poller is not None:
                tasks.append(asyncio.create_task(components.poller.run(stop_event), name="poller"))

            self._phase = BridgePhase.RUNNING
            logger.info(f"Bridge running: beads={components.beads.base_url}")
            await stop_event.wait()
            # The stream blocks on an open connection; the poller exits on its own.
            tasks[0].cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        """Flush pending batches and close every client."""
        if self._phase is BridgePhase.STOPPED:
            return
        self._phase = BridgePhase.STOPPING
        components = self._components

        if components is not None:
            if components.jacks is not None:
                await components.jacks.flush_now()
            if self._stream is not None:
                await self._stream.close()
            await components.nudger.close()
            if components.slack is not None:
                await components.slack.close()
            if components.jira is not None:
                await components.jira.close()
            await components.beads.close()

        self._phase = BridgePhase.STOPPED
        logger.info("Bridge stopped")
