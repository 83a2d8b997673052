"""Logging setup for the shell.

Library modules only create loggers; the shell decides where records go.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler


class LogLevel:
    """Log level constants with numeric values for comparison.

    Standard logging hierarchy: DEBUG < INFO < WARNING < ERROR
    """

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR

    _from_string = {
        "debug": DEBUG,
        "info": INFO,
        "warning": WARNING,
        "error": ERROR,
    }

    @classmethod
    def from_string(cls, level_str: str) -> int:
        """Convert string to log level. Returns WARNING if invalid."""
        return cls._from_string.get(level_str.lower(), cls.WARNING)


def configure_logging(level: str = "warning", console: Console | None = None) -> None:
    """Route ``modelchat`` loggers through a Rich handler.

    Args:
        level: Level name (debug, info, warning, error)
        console: Console to write to (defaults to stderr)
    """
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    logger = logging.getLogger("modelchat")
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(LogLevel.from_string(level))
    logger.propagate = False
