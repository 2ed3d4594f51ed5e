"""
beadbridge - Beads Daemon Integration

HTTP client for the beads daemon: listing, fetching, creating and
closing beads, and resolving agent beads.
"""

from beadbridge.beads.client import (
    ACTIVE_STATUSES,
    BeadsClient,
    BeadsError,
    BeadsUnavailableError,
    NotFoundError,
)

__all__ = [
    "ACTIVE_STATUSES",
    "BeadsClient",
    "BeadsError",
    "BeadsUnavailableError",
    "NotFoundError",
]
