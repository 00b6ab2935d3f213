"""Logging set-up for the package."""

from __future__ import annotations

import logging
import sys

PACKAGE_LOGGER = "citrea_net"

_LEVELS = {
    "trace": 5,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_FORMAT = (
    "%(asctime)s %(levelname)s %(threadName)s %(name)s "
    "%(filename)s:%(lineno)d: %(message)s"
)


def _resolve_level(level: int | str) -> int:
    if isinstance(level, bool):
        raise ValueError(f"invalid log level: {level!r}")
    if isinstance(level, int):
        if level < 0:
            raise ValueError(f"invalid log level: {level}")
        return level
    if isinstance(level, str):
        try:
            return _LEVELS[level.strip().lower()]
        except KeyError:
            raise ValueError(f"invalid log level: {level!r}") from None
    raise ValueError(f"invalid log level: {level!r}")


def init_subscriber(handler: logging.Handler) -> None:
    """Install a handler as the package's global log output.

    Raises RuntimeError if an output is already installed.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    if logger.handlers:
        raise RuntimeError(
            "Failed to set global default subscriber: "
            "a global default has already been set"
        )
    logger.addHandler(handler)


def init_logging(level: int | str) -> logging.Handler:
    """Log package messages at the given level and above to standard output."""
    resolved = _resolve_level(level)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))
    init_subscriber(handler)
    logging.getLogger(PACKAGE_LOGGER).setLevel(resolved)
    return handler


def init_default_logging() -> logging.Handler:
    """Set up logging with development defaults (debug level)."""
    return init_logging(logging.DEBUG)