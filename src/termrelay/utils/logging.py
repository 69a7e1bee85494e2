"""Logging setup for the relay process."""

from __future__ import annotations

import logging
import sys

from termrelay.config.settings import LoggingConfig


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Point the ``termrelay`` logger at stderr and, optionally, a file.

    Handlers from an earlier call are closed and replaced, so the CLI can
    reconfigure after ``--verbose`` without duplicating output.
    """
    config = config or LoggingConfig()

    logger = logging.getLogger("termrelay")
    logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(config.format)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.file:
        handlers.append(logging.FileHandler(config.file))
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.debug("Logging configured at %s (file: %s)", config.level, config.file or "none")
