"""
sqeval/core/log.py

Logging setup for the sqeval logger hierarchy.

Library modules log through logging.getLogger(__name__); nothing here
touches the root logger.
"""

from __future__ import annotations

import logging
from typing import Optional

LOGGER_NAME = "sqeval"
DEFAULT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get the package logger or one of its children."""
    if name is None or name == LOGGER_NAME:
        return logging.getLogger(LOGGER_NAME)
    if not name.startswith(LOGGER_NAME + "."):
        name = f"{LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def enable_console_logging(level: int = logging.INFO, fmt: str = DEFAULT_FORMAT) -> logging.Handler:
    """
    Attach a stream handler to the sqeval logger.

    Calling it again replaces the handler installed by the previous call
    instead of stacking a second one.

    Returns:
        The installed handler
    """
    logger = get_logger()
    for h in list(logger.handlers):
        if getattr(h, "_sqeval_console", False):
            logger.removeHandler(h)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt))
    handler._sqeval_console = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(level)
    return handler


logging.getLogger(LOGGER_NAME).addHandler(logging.NullHandler())
