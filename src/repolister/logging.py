from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from pathlib import Path

_LOGGING_CONFIGURED = False

SECRET_KEYS = frozenset({"token", "effective_token", "authorization", "password"})
REDACTED = "***"


def redact_secrets(
    _logger: Any,  # noqa: ANN401
    _method: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Mask the value of any event key that may carry a credential."""
    for key in event_dict:
        if key.lower() in SECRET_KEYS and event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def setup_logging(
    filename: str | Path | None = None,
    *,
    level: int = logging.INFO,
) -> structlog.BoundLogger:
    """Set up structured logging for the repolister package.

    The first call wins: the CLI calls this before anything else logs, and
    later calls return the already configured logger.

    Args:
        filename: Optional path to a log file. If None, events go to stderr.
        level: Minimum level of the emitted events.

    Returns:
        A structlog logger instance bound to the ``repolister`` name.
    """
    global _LOGGING_CONFIGURED  # noqa: PLW0603
    if not _LOGGING_CONFIGURED:
        handler: logging.Handler
        if filename:
            handler = logging.FileHandler(str(filename), encoding="utf-8")
        else:
            handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(message)s"))

        stdlib_logger = logging.getLogger("repolister")
        stdlib_logger.addHandler(handler)
        stdlib_logger.setLevel(level)
        stdlib_logger.propagate = False

        structlog.configure(
            processors=[
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.add_log_level,
                redact_secrets,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(level),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _LOGGING_CONFIGURED = True

    return structlog.get_logger("repolister")


# Bound lazily: events logged before setup_logging use structlog's defaults.
logger = structlog.get_logger("repolister")
