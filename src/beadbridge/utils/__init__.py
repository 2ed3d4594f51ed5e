"""
beadbridge Utilities Module.

Shared helpers used across the bridge:

- Logging setup with Rich formatting
"""

from beadbridge.utils.logging import PACKAGE_LOGGER, configure_logging

__all__ = [
    "PACKAGE_LOGGER",
    "configure_logging",
]
