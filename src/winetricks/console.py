"""
Console output and logging setup for front-ends.

The library only emits records through ``logging``; front-ends call
configure_logging() to route them through rich.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

LEVELS = {
    0: logging.WARNING,
    1: logging.INFO,
    2: logging.DEBUG,
}


def configure_logging(verbosity: int = 0, console: Console | None = None) -> logging.Logger:
    """Attach a RichHandler to the ``winetricks`` logger for the given verbosity."""
    logger = logging.getLogger("winetricks")
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=verbosity >= 2,
        show_time=verbosity >= 2,
    )
    logger.addHandler(handler)
    logger.setLevel(LEVELS.get(verbosity, logging.DEBUG))
    return logger
