"""Tests for Prometheus metrics helpers."""

from session_core.infra.observability.metrics import (
    get_metrics_text,
    get_registry,
    record_cache_operation,
    record_connection_state,
    record_session_operation,
    record_store_operation,
)


def _sample(name: str, labels: dict[str, str] | None = None) -> float:
    return get_registry().get_sample_value(name, labels or {}) or 0.0


def test_record_store_operation() -> None:
    labels = {"operation": "test_get", "status": "success"}
    before = _sample("session_core_store_operations_total", labels)

    record_store_operation("test_get", 0.002, "success")

    assert _sample("session_core_store_operations_total", labels) == before + 1
    assert (
        _sample("session_core_store_operation_duration_seconds_count", {"operation": "test_get"})
        >= 1
    )


def test_record_connection_state() -> None:
    record_connection_state(ready=False, reconnect_attempts=3)

    assert _sample("session_core_store_connected") == 0
    assert _sample("session_core_store_reconnect_attempts") == 3

    record_connection_state(ready=True, reconnect_attempts=0)

    assert _sample("session_core_store_connected") == 1
    assert _sample("session_core_store_reconnect_attempts") == 0


def test_domain_counters() -> None:
    session_labels = {"operation": "create", "status": "success"}
    cache_labels = {"operation": "get", "status": "miss"}
    session_before = _sample("session_core_session_operations_total", session_labels)
    cache_before = _sample("session_core_cache_operations_total", cache_labels)

    record_session_operation("create", "success")
    record_cache_operation("get", "miss")

    assert _sample("session_core_session_operations_total", session_labels) == session_before + 1
    assert _sample("session_core_cache_operations_total", cache_labels) == cache_before + 1


def test_metrics_text_exposition() -> None:
    record_store_operation("test_set", 0.001, "error")

    text = get_metrics_text()

    assert "session_core_store_operations_total" in text
    assert 'operation="test_set"' in text
