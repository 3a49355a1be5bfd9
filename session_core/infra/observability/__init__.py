"""Observability infrastructure for the session core.

Provides structured logging and Prometheus metrics for monitoring
store health and session/token/cache traffic.
"""

from session_core.infra.observability.logging import (
    JSONFormatter,
    StoreContextFilter,
    configure_logging,
    correlation_id_var,
    correlation_scope,
    get_correlation_id,
    redact_key,
    setup_logging,
)
from session_core.infra.observability.metrics import (
    get_metrics_text,
    get_registry,
    record_cache_operation,
    record_connection_state,
    record_refresh_token_operation,
    record_session_operation,
    record_store_operation,
)

__all__ = [
    # Logging
    "correlation_id_var",
    "correlation_scope",
    "get_correlation_id",
    "redact_key",
    "StoreContextFilter",
    "JSONFormatter",
    "setup_logging",
    "configure_logging",
    # Metrics
    "get_registry",
    "get_metrics_text",
    "record_store_operation",
    "record_connection_state",
    "record_session_operation",
    "record_refresh_token_operation",
    "record_cache_operation",
]
