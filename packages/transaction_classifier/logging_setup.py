"""Logging configuration for ``transaction_classifier``.

Entry points (the CLI, or a host application) call ``configure_logging`` once;
library modules only ever call ``get_logger("transaction_classifier.<mod>")``
and never attach handlers themselves. Until configured, the package logger
carries a ``NullHandler`` so embedding applications see no stray output.

The level is taken from the ``level`` argument, then the
``TXN_CLASSIFIER_LOG_LEVEL`` environment variable, then ``WARNING``.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

PKG_LOGGER_NAME = "transaction_classifier"
LOG_LEVEL_ENV = "TXN_CLASSIFIER_LOG_LEVEL"
DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_handler: logging.Handler | None = None


def resolve_level(level: int | str | None) -> int:
    """Translate an int, numeric string or level name into a logging level."""

    if level is None:
        level = os.getenv(LOG_LEVEL_ENV) or logging.WARNING
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    numeric = logging.getLevelName(name)
    if isinstance(numeric, int):
        return numeric
    raise ValueError(f"unknown log level: {level!r}")


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Attach one ``StreamHandler`` to the package logger (idempotent).

    A repeated call only adjusts the level, so an explicit ``--log-level``
    given after an implicit default still takes effect.
    """

    global _handler
    logger = logging.getLogger(PKG_LOGGER_NAME)
    numeric = resolve_level(level)

    if _handler is None:
        for h in list(logger.handlers):
            if isinstance(h, logging.NullHandler):
                logger.removeHandler(h)
        _handler = logging.StreamHandler(stream or sys.stderr)
        _handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))
        logger.addHandler(_handler)
        logger.propagate = False

    _handler.setLevel(numeric)
    logger.setLevel(numeric)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)``, keeping the package quiet by default."""

    pkg_logger = logging.getLogger(PKG_LOGGER_NAME)
    if _handler is None and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "resolve_level"]
