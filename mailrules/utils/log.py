"""Structured logging entry point.

Every module does ``from mailrules.utils.log import log`` and emits
event-style messages with key/value context::

    log.info("provider-skipped", provider="google", reason="no-refresh-token")

Token material and client secrets must never be passed as values.
"""

from __future__ import annotations

import logging
from typing import Any

import structlog

if not structlog.is_configured():
    # Events are routed through the stdlib "mailrules" logger so its level
    # (set from LOG_LEVEL by the application) filters them at call time.
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
    )

# Keep the logger global so every import shares the same base instance.
log = structlog.get_logger("mailrules")


def configure_level(level_name: str) -> int:
    """Apply *level_name* (e.g. ``"WARNING"``) to the package logger; return the level."""

    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.getLogger("mailrules").setLevel(level)
    return level


def get_logger(**bindings: Any):  # noqa: D401 – factory helper
    """Return a bound logger carrying *bindings* on every event."""

    return log.bind(**bindings)


__all__ = ["log", "get_logger", "configure_level"]
