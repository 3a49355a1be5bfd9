"""Structured logging for store, session and cache events.

Every record carries a correlation ID taken from a context variable, so all
store commands issued while serving one request (or one CLI command) can be
grouped. Store keys that embed bearer secrets are truncated before any
handler sees them.

Example:
    configure_logging(settings)

    with correlation_scope():
        await manager.revoke_user("user-123")
"""

import contextvars
import json
import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from session_core.config import Settings

NO_CORRELATION_ID = "no-correlation-id"

correlation_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id",
    default=None,
)

# Extras promoted to top-level JSON keys when present on a record
STRUCTURED_FIELDS = (
    "user_id",
    "key",
    "operation",
    "attempt",
    "max_attempts",
    "state",
    "count",
    "ttl_seconds",
    "error",
)

# Key namespaces whose suffix is a bearer secret or a token digest
_SECRET_KEY_PREFIXES = ("session:", "refresh_token:")
_VISIBLE_SECRET_CHARS = 8


def get_correlation_id() -> str:
    """Return the current correlation ID, creating one if the context has none."""
    correlation_id = correlation_id_var.get()
    if correlation_id is None:
        correlation_id = uuid.uuid4().hex
        correlation_id_var.set(correlation_id)
    return correlation_id


@contextmanager
def correlation_scope(correlation_id: str | None = None) -> Iterator[str]:
    """Bind a correlation ID for the duration of a block.

    Args:
        correlation_id: ID to bind (a new one is generated if omitted)

    Yields:
        The bound correlation ID
    """
    bound = correlation_id or uuid.uuid4().hex
    token = correlation_id_var.set(bound)
    try:
        yield bound
    finally:
        correlation_id_var.reset(token)


def redact_key(key: str) -> str:
    """Truncate the secret part of session and refresh-token keys.

    Other keys (indexes, cache entries, patterns) are returned unchanged.
    """
    for prefix in _SECRET_KEY_PREFIXES:
        if key.startswith(prefix):
            secret = key[len(prefix) :]
            if len(secret) > _VISIBLE_SECRET_CHARS:
                return f"{prefix}{secret[:_VISIBLE_SECRET_CHARS]}..."
    return key


class StoreContextFilter(logging.Filter):
    """Attach the correlation ID and redact secret-bearing store keys."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get() or NO_CORRELATION_ID  # type: ignore[attr-defined]
        key = getattr(record, "key", None)
        if isinstance(key, str):
            record.key = redact_key(key)  # type: ignore[attr-defined]
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", NO_CORRELATION_ID),
        }
        entry.update(
            {field: getattr(record, field) for field in STRUCTURED_FIELDS if hasattr(record, field)}
        )

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


_TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s [%(correlation_id)s] %(message)s"


def _handler(handler: logging.Handler, level: str, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.addFilter(StoreContextFilter())
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: str | None = None,
) -> None:
    """Route the root logger to stderr (and optionally a JSON log file).

    Args:
        level: Log level name
        json_format: JSON lines on stderr instead of human-readable text
        log_file: Optional path; file output is always JSON
    """
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    console_formatter: logging.Formatter = (
        JSONFormatter() if json_format else logging.Formatter(_TEXT_FORMAT, "%Y-%m-%d %H:%M:%S")
    )
    root.addHandler(_handler(logging.StreamHandler(sys.stderr), level, console_formatter))
    if log_file:
        root.addHandler(_handler(logging.FileHandler(log_file), level, JSONFormatter()))

    # redis-py logs every connection churn at DEBUG
    logging.getLogger("redis").setLevel(logging.WARNING)


def configure_logging(settings: "Settings") -> None:
    """Apply the logging section of the settings (debug forces DEBUG level)."""
    setup_logging(
        level="DEBUG" if settings.debug else settings.log_level,
        json_format=settings.log_format == "json",
        log_file=settings.log_file,
    )


__all__ = [
    "NO_CORRELATION_ID",
    "STRUCTURED_FIELDS",
    "correlation_id_var",
    "correlation_scope",
    "get_correlation_id",
    "redact_key",
    "StoreContextFilter",
    "JSONFormatter",
    "setup_logging",
    "configure_logging",
]
