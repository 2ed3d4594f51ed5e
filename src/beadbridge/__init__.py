"""
beadbridge: Event-driven bridge from beads to Slack and JIRA.

Watches the beads work-item event stream and turns lifecycle events into
targeted notifications, keeps JIRA in sync with bead progress, and
periodically ingests JIRA issues as new beads.

Key Features:
- Replay-safe notifications (dedup registry with startup catch-up)
- Cooldown windows and overflow batching under bursty input
- Pattern-based Slack channel routing per agent identity
- Two-phase JIRA polling that reconciles against the bead store

Example:
    from beadbridge.bridge import EventDispatcher, JackWatcher

    dispatcher = EventDispatcher()
    JackWatcher(notifier).register(dispatcher)
    await dispatcher.dispatch("beads.bead.created", payload)
"""

from beadbridge.version import __version__

__all__ = [
    "__version__",
]
