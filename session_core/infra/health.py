"""Health reporting for the key-value store connection.

Health states:
- healthy: PING round trip succeeded; server metadata attached
- unhealthy: store unreachable; last error and reconnect attempts attached
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any


class HealthStatus(str, Enum):
    """Health status enumeration."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class StoreHealth:
    """Result of an active store health check."""

    def __init__(
        self,
        status: HealthStatus,
        connected: bool,
        response_time_ms: float | None = None,
        version: str | None = None,
        uptime_seconds: int | None = None,
        connected_clients: int | None = None,
        used_memory: str | None = None,
        error: str | None = None,
        reconnect_attempts: int | None = None,
        timestamp: datetime | None = None,
    ) -> None:
        """Initialize store health.

        Args:
            status: Overall health status
            connected: Supervisor connection state at check time
            response_time_ms: PING round trip in milliseconds
            version: Server version (healthy only)
            uptime_seconds: Server uptime (healthy only)
            connected_clients: Server client count (healthy only)
            used_memory: Human-readable server memory usage (healthy only)
            error: Last known error (unhealthy only)
            reconnect_attempts: Reconnection attempt counter (unhealthy only)
            timestamp: Check timestamp (defaults to now)
        """
        self.status = status
        self.connected = connected
        self.response_time_ms = response_time_ms
        self.version = version
        self.uptime_seconds = uptime_seconds
        self.connected_clients = connected_clients
        self.used_memory = used_memory
        self.error = error
        self.reconnect_attempts = reconnect_attempts
        self.timestamp = timestamp or datetime.now(UTC)

    @property
    def healthy(self) -> bool:
        return self.status is HealthStatus.HEALTHY

    @classmethod
    def from_server_info(
        cls,
        connected: bool,
        response_time_ms: float,
        info: dict[str, Any],
    ) -> "StoreHealth":
        """Build a healthy result from a Redis ``INFO`` reply.

        Args:
            connected: Supervisor connection state
            response_time_ms: PING round trip in milliseconds
            info: Parsed INFO mapping

        Returns:
            Healthy StoreHealth
        """
        version = info.get("redis_version")
        return cls(
            status=HealthStatus.HEALTHY,
            connected=connected,
            response_time_ms=response_time_ms,
            version=str(version) if version is not None else None,
            uptime_seconds=_as_int(info.get("uptime_in_seconds")),
            connected_clients=_as_int(info.get("connected_clients")),
            used_memory=info.get("used_memory_human"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization.

        Details that were not collected are omitted.

        Returns:
            ``{"status": ..., "details": {...}}``
        """
        details: dict[str, Any] = {"connected": self.connected}
        if self.response_time_ms is not None:
            details["response_time_ms"] = round(self.response_time_ms, 2)
        optional = {
            "version": self.version,
            "uptime_seconds": self.uptime_seconds,
            "connected_clients": self.connected_clients,
            "used_memory": self.used_memory,
            "error": self.error,
            "reconnect_attempts": self.reconnect_attempts,
        }
        details.update({k: v for k, v in optional.items() if v is not None})
        return {
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "details": details,
        }


def _as_int(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


__all__ = [
    "HealthStatus",
    "StoreHealth",
]
