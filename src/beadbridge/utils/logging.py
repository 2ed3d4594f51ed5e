"""
Logging Setup.

Installs handlers on the ``beadbridge`` logger: rich console output when
attached to a terminal-friendly console, a plain formatter otherwise, and
an optional log file.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from beadbridge.config.models import LoggingConfig

PACKAGE_LOGGER = "beadbridge"

PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Chatty third-party loggers kept at WARNING unless verbose
_NOISY_LOGGERS = ("httpx", "httpcore")


def configure_logging(
    config: Optional[LoggingConfig] = None,
    verbose: bool = False,
    console: Optional[Console] = None,
) -> logging.Logger:
    """Configure the package logger.

    Replaces handlers previously installed by this function, so calling
    it twice does not duplicate output.

    Args:
        config: Logging settings (defaults apply when None)
        verbose: Force DEBUG level
        console: Rich console to log to (stderr when None)

    Returns:
        The configured ``beadbridge`` logger
    """
    config = config or LoggingConfig()
    level = logging.DEBUG if verbose else getattr(logging, config.level.value)

    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if getattr(handler, "_beadbridge", False):
            logger.removeHandler(handler)
            handler.close()

    handlers: list[logging.Handler] = []
    if config.rich:
        handlers.append(
            RichHandler(
                console=console or Console(stderr=True),
                show_path=verbose,
                rich_tracebacks=True,
                markup=False,
            )
        )
    else:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
        handlers.append(stream_handler)

    if config.file:
        file_handler = logging.FileHandler(config.file)
        file_handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
        handlers.append(file_handler)

    for handler in handlers:
        handler._beadbridge = True  # type: ignore[attr-defined]
        logger.addHandler(handler)

    logger.setLevel(level)
    logger.propagate = False

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)

    return logger
