"""Process logging for the workforce API.

One console handler on the root logger, a request correlation id carried in a
:class:`~contextvars.ContextVar`, and :func:`log_context` for building
``extra`` payloads. Records render as a single line with any extra fields
appended as ``key=value`` pairs.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

from workforce_api.settings import Settings

# ---------------------------------------------------------------------------
# Context and constants
# ---------------------------------------------------------------------------

# Set and cleared by RequestContextMiddleware.
_CORRELATION_ID: ContextVar[str | None] = ContextVar(
    "workforce_api_correlation_id",
    default=None,
)

# LogRecord attributes that never appear in the key=value tail.
_STANDARD_ATTRS: frozenset[str] = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "message",
        "asctime",
        "correlation_id",
        "taskName",
        "color_message",
    }
)

_CONFIGURED_FLAG = "_wfm_configured"

_PROPAGATING_LOGGERS = (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "alembic",
    "alembic.runtime.migration",
    "sqlalchemy",
)


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------


class ConsoleLogFormatter(logging.Formatter):
    """Single-line console output.

    Example::

        2026-03-02T09:14:07.120Z INFO  workforce_api.features.approvals.service
        [cid=5f1c2e0a] approvals.decide.approved request_id=... level=1
    """

    _time_format = "%Y-%m-%dT%H:%M:%S"

    def __init__(self) -> None:
        fmt = "%(asctime)s %(levelname)-5s %(name)s [cid=%(correlation_id)s] %(message)s"
        super().__init__(fmt=fmt, datefmt=self._time_format)

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=UTC)
        return f"{stamp.strftime(datefmt or self._time_format)}.{int(record.msecs):03d}Z"

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - std signature
        record.correlation_id = (
            getattr(record, "correlation_id", None) or _CORRELATION_ID.get() or "-"
        )
        line = super().format(record)

        extras = [
            f"{key}={_format_extra_value(value)}"
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS and not key.startswith("_")
        ]
        if extras:
            return f"{line} " + " ".join(extras)
        return line


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def setup_logging(settings: Settings) -> None:
    """Install the console handler on the root logger.

    The level comes from ``settings.logging_level`` (``WFM_LOGGING_LEVEL``).
    Repeated calls only adjust the level. uvicorn, alembic and sqlalchemy
    loggers are routed through the root handler so every line shares one
    format.
    """
    root_logger = logging.getLogger()
    level = getattr(logging, settings.logging_level.upper(), logging.INFO)

    if getattr(root_logger, _CONFIGURED_FLAG, False):
        root_logger.setLevel(level)
        return

    handler = logging.StreamHandler()
    handler.setFormatter(ConsoleLogFormatter())
    root_logger.handlers = [handler]
    root_logger.setLevel(level)

    for name in _PROPAGATING_LOGGERS:
        third_party = logging.getLogger(name)
        third_party.handlers.clear()
        third_party.propagate = True

    setattr(root_logger, _CONFIGURED_FLAG, True)


# ---------------------------------------------------------------------------
# Context helpers
# ---------------------------------------------------------------------------


def bind_request_context(correlation_id: str | None) -> None:
    """Bind a correlation id for the current request."""
    _CORRELATION_ID.set(correlation_id)


def clear_request_context() -> None:
    _CORRELATION_ID.set(None)


def current_correlation_id() -> str | None:
    return _CORRELATION_ID.get()


def log_context(
    *,
    workspace_id: object | None = None,
    user_id: object | None = None,
    request_id: object | None = None,
    scope_type: object | None = None,
    scope_id: object | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Build a consistent ``extra`` payload for structured logs.

    ``request_id`` is an approval request id, not the HTTP correlation id.

    Example::

        logger.info(
            "approvals.submit.routed",
            extra=log_context(request_id=request.id, user_id=actor_id, level=1),
        )
    """
    ctx: dict[str, Any] = {}
    for key, value in (
        ("workspace_id", workspace_id),
        ("user_id", user_id),
        ("request_id", request_id),
        ("scope_type", scope_type),
        ("scope_id", scope_id),
    ):
        if value is not None:
            ctx[key] = value
    ctx.update(extra)
    return ctx


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _format_extra_value(value: Any) -> str:
    if value is None:
        return "null"
    if hasattr(value, "value") and isinstance(getattr(value, "value"), str):
        # str enums render as their wire value
        return value.value
    return str(value)


__all__ = [
    "ConsoleLogFormatter",
    "bind_request_context",
    "clear_request_context",
    "current_correlation_id",
    "log_context",
    "setup_logging",
]
