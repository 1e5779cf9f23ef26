"""Logging setup for the curatarr CLI."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

VALID_LOG_LEVELS = ("debug", "info", "warning", "error", "critical")
DEFAULT_LOG_LEVEL = "info"

# Chatty third-party loggers kept at WARNING unless debugging
_NOISY_LOGGERS = ("httpx", "httpcore")


def parse_log_level(level: str) -> int:
    """Convert a level name to a logging constant, case-insensitively.

    Raises:
        ValueError: If the name is not a valid level
    """
    name = level.strip().lower()
    if name not in VALID_LOG_LEVELS:
        raise ValueError(
            f"Invalid log level: {level!r}. Valid levels: {', '.join(VALID_LOG_LEVELS)}"
        )
    return getattr(logging, name.upper())


def configure_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    """Route log records to stderr through a RichHandler.

    Args:
        level: Level name (debug, info, warning, error, critical)

    Raises:
        ValueError: If the level name is invalid
    """
    numeric = parse_log_level(level)
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s", datefmt="[%X]"))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(numeric)

    quiet = numeric if numeric <= logging.DEBUG else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet)
