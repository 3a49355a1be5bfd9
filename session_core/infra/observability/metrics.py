"""Prometheus metrics for observability.

Provides metrics collection for store commands, connection supervision,
and session, refresh-token and cache operations.
"""

import logging

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

# Global registry for metrics
_registry = CollectorRegistry()


# Store Command Metrics
store_operations_total = Counter(
    "session_core_store_operations_total",
    "Total number of key-value store commands",
    ["operation", "status"],
    registry=_registry,
)

store_operation_duration_seconds = Histogram(
    "session_core_store_operation_duration_seconds",
    "Duration of key-value store commands in seconds",
    ["operation"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
    registry=_registry,
)

# Connection Supervision Metrics
store_connected = Gauge(
    "session_core_store_connected",
    "Store connection state (1=ready, 0=not ready)",
    registry=_registry,
)

store_reconnect_attempts = Gauge(
    "session_core_store_reconnect_attempts",
    "Consecutive reconnection attempts since the last successful connection",
    registry=_registry,
)

# Domain Operation Metrics
session_operations_total = Counter(
    "session_core_session_operations_total",
    "Total number of session store operations",
    ["operation", "status"],
    registry=_registry,
)

refresh_token_operations_total = Counter(
    "session_core_refresh_token_operations_total",
    "Total number of refresh token store operations",
    ["operation", "status"],
    registry=_registry,
)

cache_operations_total = Counter(
    "session_core_cache_operations_total",
    "Total number of generic cache operations",
    ["operation", "status"],
    registry=_registry,
)


def get_registry() -> CollectorRegistry:
    """Get the metrics registry.

    Returns:
        Prometheus collector registry
    """
    return _registry


def get_metrics_text() -> str:
    """Get metrics in Prometheus text format.

    Returns:
        Metrics in Prometheus exposition format
    """
    return generate_latest(_registry).decode("utf-8")


def record_store_operation(operation: str, duration: float, status: str) -> None:
    """Record metrics for a single store command.

    Args:
        operation: Command name (get, set, sadd, ...)
        duration: Command duration in seconds
        status: success or error
    """
    store_operations_total.labels(operation=operation, status=status).inc()
    store_operation_duration_seconds.labels(operation=operation).observe(duration)


def record_connection_state(ready: bool, reconnect_attempts: int) -> None:
    """Record the supervisor's connection state.

    Args:
        ready: Whether the connection is ready for commands
        reconnect_attempts: Current reconnection attempt counter
    """
    store_connected.set(1 if ready else 0)
    store_reconnect_attempts.set(reconnect_attempts)


def record_session_operation(operation: str, status: str) -> None:
    """Record a session store operation outcome."""
    session_operations_total.labels(operation=operation, status=status).inc()


def record_refresh_token_operation(operation: str, status: str) -> None:
    """Record a refresh token store operation outcome."""
    refresh_token_operations_total.labels(operation=operation, status=status).inc()


def record_cache_operation(operation: str, status: str) -> None:
    """Record a generic cache operation outcome."""
    cache_operations_total.labels(operation=operation, status=status).inc()


__all__ = [
    "get_registry",
    "get_metrics_text",
    "record_store_operation",
    "record_connection_state",
    "record_session_operation",
    "record_refresh_token_operation",
    "record_cache_operation",
]
