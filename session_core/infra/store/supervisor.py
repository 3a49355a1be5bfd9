"""Supervised connection to the Redis key-value store.

The supervisor is the only component that owns the live client and knows
its transport state. Every store command is routed through
``StoreConnectionSupervisor.execute`` so transport failures can be noticed
and recovered from in one place.

State machine:
    disconnected -> connecting -> ready
    ready -> reconnecting -> ready            (probe succeeded, counter reset)
    ready -> reconnecting -> disconnected     (max attempts reached)

Reconnection is bounded: after ``max_reconnect_attempts`` failed probes the
client and pool are closed and the supervisor stays disconnected until
``connect()`` is called again.

Example:
    supervisor = StoreConnectionSupervisor.from_settings(settings)
    await supervisor.connect()

    value = await supervisor.execute("get", "session:abc", lambda c: c.get("session:abc"))

    await supervisor.disconnect()
"""

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, TypeVar

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from session_core.config import Settings
from session_core.infra.health import HealthStatus, StoreHealth
from session_core.infra.observability.metrics import (
    record_connection_state,
    record_store_operation,
)
from session_core.infra.store.exceptions import StoreConnectionError, StoreOperationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

ClientFactory = Callable[[], Redis]

DEFAULT_MAX_RECONNECT_ATTEMPTS = 5
DEFAULT_CONNECT_TIMEOUT_SECONDS = 5.0

# Errors that mean the transport itself is broken, not the command
_TRANSPORT_ERRORS = (RedisConnectionError, RedisTimeoutError)


class ConnectionState(str, Enum):
    """Connection lifecycle states."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"
    RECONNECTING = "reconnecting"


class StoreConnectionSupervisor:
    """Owns the Redis client, tracks health and bounds reconnection."""

    def __init__(
        self,
        redis_url: str,
        pool_size: int = 10,
        timeout_seconds: float = 5.0,
        connect_timeout_seconds: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
        max_reconnect_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS,
        reconnect_delay_seconds: float = 1.0,
        client_factory: ClientFactory | None = None,
    ) -> None:
        """Initialize the supervisor without connecting.

        Args:
            redis_url: Redis connection URL
            pool_size: Connection pool size
            timeout_seconds: Socket timeout for commands
            connect_timeout_seconds: Bound on connect and reconnect probes
            max_reconnect_attempts: Failed probes before forcing a disconnect
            reconnect_delay_seconds: Pause between failed probes
            client_factory: Optional factory returning a ready-made client
                (used instead of building a connection pool)
        """
        self.redis_url = redis_url
        self.pool_size = pool_size
        self.timeout_seconds = timeout_seconds
        self.connect_timeout_seconds = connect_timeout_seconds
        self.max_reconnect_attempts = max_reconnect_attempts
        self.reconnect_delay_seconds = reconnect_delay_seconds
        self._client_factory = client_factory

        self._pool: ConnectionPool | None = None
        self._client: Redis | None = None
        self._state = ConnectionState.DISCONNECTED
        self._reconnect_attempts = 0
        self._last_error: str | None = None
        self._reconnect_task: asyncio.Task[None] | None = None

    @classmethod
    def from_settings(
        cls, settings: Settings, client_factory: ClientFactory | None = None
    ) -> "StoreConnectionSupervisor":
        """Build a supervisor from application settings."""
        return cls(
            redis_url=settings.store_url,
            pool_size=settings.redis_pool_size,
            timeout_seconds=settings.redis_timeout_seconds,
            connect_timeout_seconds=settings.redis_connect_timeout_seconds,
            max_reconnect_attempts=settings.redis_max_reconnect_attempts,
            reconnect_delay_seconds=settings.redis_reconnect_delay_seconds,
            client_factory=client_factory,
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_healthy(self) -> bool:
        """Current connection state, without a network round trip."""
        return self._state is ConnectionState.READY

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def reconnect_task(self) -> asyncio.Task[None] | None:
        """Background reconnection task scheduled by the last transport failure."""
        return self._reconnect_task

    def _set_state(self, state: ConnectionState) -> None:
        self._state = state
        record_connection_state(state is ConnectionState.READY, self._reconnect_attempts)

    def _mark_ready(self) -> None:
        self._reconnect_attempts = 0
        self._last_error = None
        self._set_state(ConnectionState.READY)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _create_client(self) -> Redis:
        if self._client_factory is not None:
            return self._client_factory()

        self._pool = ConnectionPool.from_url(
            self.redis_url,
            max_connections=self.pool_size,
            socket_timeout=self.timeout_seconds,
            socket_connect_timeout=self.connect_timeout_seconds,
            decode_responses=True,  # Auto-decode to strings
        )
        return Redis(connection_pool=self._pool)

    async def connect(self) -> None:
        """Establish the connection and verify it with a PING.

        No-op if already connected.

        Raises:
            StoreConnectionError: If the store is unreachable within the connect timeout
        """
        if self._state is ConnectionState.READY:
            return

        self._set_state(ConnectionState.CONNECTING)
        logger.info("Redis client connecting", extra={"state": self._state.value})

        try:
            if self._client is None:
                self._client = self._create_client()
            await asyncio.wait_for(
                self._client.ping(),  # type: ignore[misc]
                timeout=self.connect_timeout_seconds,
            )
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            self._last_error = str(e) or type(e).__name__
            await self._close_client()
            self._set_state(ConnectionState.DISCONNECTED)
            logger.error("Failed to connect to Redis", extra={"error": self._last_error})
            raise StoreConnectionError(f"Failed to connect to Redis: {self._last_error}") from e

        self._mark_ready()
        logger.info("Redis connection established", extra={"state": self._state.value})

    async def disconnect(self) -> None:
        """Close the connection. Idempotent if already disconnected."""
        task = self._reconnect_task
        self._reconnect_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        was_open = self._client is not None
        await self._close_client()
        self._set_state(ConnectionState.DISCONNECTED)
        if was_open:
            logger.info("Redis connection closed")

    async def _close_client(self) -> None:
        """Best-effort teardown of client and pool.

        Internal references are cleared first so no caller sees a half-closed client.
        """
        client = self._client
        pool = self._pool
        self._client = None
        self._pool = None

        if client is not None:
            try:
                await client.aclose()
            except (RedisError, OSError) as exc:
                logger.error("Error while closing Redis client", exc_info=exc)

        if pool is not None:
            try:
                await pool.aclose()
            except (RedisError, OSError) as exc:
                logger.error("Error while closing Redis connection pool", exc_info=exc)

    # ------------------------------------------------------------------
    # Command execution
    # ------------------------------------------------------------------

    async def execute(
        self,
        operation: str,
        key: str,
        command: Callable[[Redis], Awaitable[T]],
    ) -> T:
        """Run a single store command against the live client.

        Args:
            operation: Command name for logs and metrics
            key: Key (or pattern) the command targets
            command: Coroutine factory receiving the client

        Returns:
            Command result

        Raises:
            StoreOperationError: If not connected or the command failed
        """
        client = self._client
        if client is None or self._state is ConnectionState.DISCONNECTED:
            record_store_operation(operation, 0.0, "error")
            raise StoreOperationError(
                operation, key, StoreConnectionError("Redis connection is not established")
            )

        start = time.perf_counter()
        try:
            result = await command(client)
        except _TRANSPORT_ERRORS as e:
            record_store_operation(operation, time.perf_counter() - start, "error")
            logger.error(
                "Redis transport failure",
                extra={"operation": operation, "key": key, "error": str(e)},
            )
            self.notify_connection_lost(e)
            raise StoreOperationError(operation, key, e) from e
        except RedisError as e:
            record_store_operation(operation, time.perf_counter() - start, "error")
            logger.error(
                "Redis command failed",
                extra={"operation": operation, "key": key, "error": str(e)},
            )
            raise StoreOperationError(operation, key, e) from e

        record_store_operation(operation, time.perf_counter() - start, "success")
        return result

    # ------------------------------------------------------------------
    # Reconnection
    # ------------------------------------------------------------------

    def notify_connection_lost(self, error: BaseException) -> None:
        """Schedule background reconnection after an unsolicited disconnect.

        Ignored unless the connection is currently ready, so concurrent
        failures start at most one reconnection loop.
        """
        if self._state is not ConnectionState.READY:
            return
        self._last_error = str(error) or type(error).__name__
        self._set_state(ConnectionState.RECONNECTING)
        self._reconnect_task = asyncio.create_task(self._reconnect_loop())

    async def handle_connection_lost(self, error: BaseException) -> None:
        """Handle an unsolicited disconnect and wait for the outcome.

        Returns once the connection is ready again or the attempt cap forced
        a full disconnect.
        """
        self.notify_connection_lost(error)
        task = self._reconnect_task
        if task is not None:
            await task

    async def _reconnect_loop(self) -> None:
        while True:
            client = self._client
            if client is None:
                # disconnect() raced us; nothing left to probe
                self._set_state(ConnectionState.DISCONNECTED)
                return

            self._reconnect_attempts += 1
            self._set_state(ConnectionState.RECONNECTING)
            logger.info(
                "Redis client reconnecting",
                extra={
                    "attempt": self._reconnect_attempts,
                    "max_attempts": self.max_reconnect_attempts,
                },
            )

            try:
                await asyncio.wait_for(
                    client.ping(),  # type: ignore[misc]
                    timeout=self.connect_timeout_seconds,
                )
            except (RedisError, OSError, asyncio.TimeoutError) as e:
                self._last_error = str(e) or type(e).__name__
                if self._reconnect_attempts >= self.max_reconnect_attempts:
                    logger.error(
                        "Max Redis reconnection attempts reached",
                        extra={"attempt": self._reconnect_attempts, "error": self._last_error},
                    )
                    await self._close_client()
                    self._set_state(ConnectionState.DISCONNECTED)
                    return
                await asyncio.sleep(self.reconnect_delay_seconds)
                continue

            self._mark_ready()
            logger.info("Redis client reconnected", extra={"state": self._state.value})
            return

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def health_check(self) -> StoreHealth:
        """Actively probe the store.

        Returns:
            StoreHealth with server metadata when healthy, or the last error
            and reconnect attempt count when unhealthy
        """
        client = self._client
        start = time.perf_counter()

        if client is None:
            return StoreHealth(
                status=HealthStatus.UNHEALTHY,
                connected=False,
                error=self._last_error or "Redis connection is not established",
                reconnect_attempts=self._reconnect_attempts,
            )

        try:
            await client.ping()  # type: ignore[misc]
            response_time_ms = (time.perf_counter() - start) * 1000
            info: dict[str, Any] = await client.info()
        except (RedisError, OSError) as e:
            logger.warning("Redis health check failed", extra={"error": str(e)})
            return StoreHealth(
                status=HealthStatus.UNHEALTHY,
                connected=False,
                response_time_ms=(time.perf_counter() - start) * 1000,
                error=str(e) or type(e).__name__,
                reconnect_attempts=self._reconnect_attempts,
            )

        if not self.is_healthy:
            # Probe answered, but the reconnect loop has not confirmed the connection yet
            return StoreHealth(
                status=HealthStatus.UNHEALTHY,
                connected=False,
                response_time_ms=response_time_ms,
                error=self._last_error or f"Redis connection is {self._state.value}",
                reconnect_attempts=self._reconnect_attempts,
            )

        return StoreHealth.from_server_info(True, response_time_ms, info)


__all__ = [
    "ConnectionState",
    "StoreConnectionSupervisor",
    "DEFAULT_MAX_RECONNECT_ATTEMPTS",
]
