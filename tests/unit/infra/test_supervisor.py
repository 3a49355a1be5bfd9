"""Unit tests for the store connection supervisor."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from session_core.config import Settings
from session_core.infra.health import HealthStatus
from session_core.infra.store.exceptions import StoreConnectionError, StoreOperationError
from session_core.infra.store.supervisor import ConnectionState, StoreConnectionSupervisor


def _mock_client() -> AsyncMock:
    client = AsyncMock(spec=Redis)
    client.ping = AsyncMock(return_value=True)
    client.info = AsyncMock(return_value={})
    client.aclose = AsyncMock()
    return client


def _supervisor(*clients: AsyncMock, **kwargs) -> StoreConnectionSupervisor:
    remaining = iter(clients)
    kwargs.setdefault("reconnect_delay_seconds", 0.0)
    return StoreConnectionSupervisor(
        redis_url="redis://localhost:6379/0",
        client_factory=lambda: next(remaining),
        **kwargs,
    )


class TestConnect:
    """Tests for connection establishment."""

    @pytest.mark.asyncio
    async def test_connect_creates_pool_and_client(self) -> None:
        """connect() should build a pool from the URL and verify it with PING."""
        supervisor = StoreConnectionSupervisor(
            redis_url="redis://localhost:6379/0",
            pool_size=5,
            timeout_seconds=3.0,
            connect_timeout_seconds=2.0,
        )

        with (
            patch("session_core.infra.store.supervisor.ConnectionPool") as mock_pool_class,
            patch("session_core.infra.store.supervisor.Redis") as mock_redis_class,
        ):
            mock_pool = MagicMock()
            mock_pool_class.from_url.return_value = mock_pool
            mock_client = _mock_client()
            mock_redis_class.return_value = mock_client

            await supervisor.connect()

            mock_pool_class.from_url.assert_called_once_with(
                "redis://localhost:6379/0",
                max_connections=5,
                socket_timeout=3.0,
                socket_connect_timeout=2.0,
                decode_responses=True,
            )
            mock_redis_class.assert_called_once_with(connection_pool=mock_pool)
            mock_client.ping.assert_called_once()

        assert supervisor.state is ConnectionState.READY
        assert supervisor.is_healthy is True

    @pytest.mark.asyncio
    async def test_connect_failure_raises_connection_error(self) -> None:
        """connect() should raise StoreConnectionError and stay disconnected."""
        client = _mock_client()
        client.ping = AsyncMock(side_effect=RedisConnectionError("Connection refused"))
        supervisor = _supervisor(client)

        with pytest.raises(StoreConnectionError, match="Failed to connect to Redis"):
            await supervisor.connect()

        assert supervisor.state is ConnectionState.DISCONNECTED
        assert supervisor.is_healthy is False
        assert supervisor.last_error == "Connection refused"
        client.aclose.assert_called_once()

    @pytest.mark.asyncio
    async def test_connect_times_out(self) -> None:
        """A PING that never answers is bounded by the connect timeout."""

        async def hang() -> bool:
            await asyncio.sleep(10)
            return True

        client = _mock_client()
        client.ping = AsyncMock(side_effect=hang)
        supervisor = _supervisor(client, connect_timeout_seconds=0.01)

        with pytest.raises(StoreConnectionError):
            await supervisor.connect()

        assert supervisor.state is ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_connect_is_noop_when_ready(self) -> None:
        client = _mock_client()
        supervisor = _supervisor(client)

        await supervisor.connect()
        await supervisor.connect()

        client.ping.assert_called_once()

    @pytest.mark.asyncio
    async def test_from_settings(self) -> None:
        """from_settings() should carry connection and reconnection settings."""
        settings = Settings(
            redis_host="cache.internal",
            redis_port=6380,
            redis_db=2,
            redis_pool_size=20,
            redis_max_reconnect_attempts=3,
            redis_reconnect_delay_seconds=0.5,
        )

        supervisor = StoreConnectionSupervisor.from_settings(settings)

        assert supervisor.redis_url == "redis://cache.internal:6380/2"
        assert supervisor.pool_size == 20
        assert supervisor.max_reconnect_attempts == 3
        assert supervisor.reconnect_delay_seconds == 0.5
        assert supervisor.state is ConnectionState.DISCONNECTED


class TestDisconnect:
    """Tests for connection teardown."""

    @pytest.mark.asyncio
    async def test_disconnect_closes_client(self) -> None:
        client = _mock_client()
        supervisor = _supervisor(client)
        await supervisor.connect()

        await supervisor.disconnect()

        client.aclose.assert_called_once()
        assert supervisor.state is ConnectionState.DISCONNECTED
        assert supervisor.is_healthy is False

    @pytest.mark.asyncio
    async def test_disconnect_is_idempotent(self) -> None:
        """disconnect() on a disconnected supervisor should not raise."""
        client = _mock_client()
        supervisor = _supervisor(client)
        await supervisor.connect()

        await supervisor.disconnect()
        await supervisor.disconnect()

        client.aclose.assert_called_once()

    @pytest.mark.asyncio
    async def test_disconnect_before_connect(self) -> None:
        supervisor = _supervisor()

        await supervisor.disconnect()

        assert supervisor.state is ConnectionState.DISCONNECTED


class TestExecute:
    """Tests for command execution and error mapping."""

    @pytest.mark.asyncio
    async def test_execute_returns_command_result(self) -> None:
        client = _mock_client()
        client.get = AsyncMock(return_value="value")
        supervisor = _supervisor(client)
        await supervisor.connect()

        result = await supervisor.execute("get", "k", lambda c: c.get("k"))

        assert result == "value"
        client.get.assert_called_once_with("k")

    @pytest.mark.asyncio
    async def test_execute_when_disconnected_raises(self) -> None:
        """Commands issued without a connection fail with a connection cause."""
        supervisor = _supervisor()

        with pytest.raises(StoreOperationError) as exc_info:
            await supervisor.execute("get", "k", lambda c: c.get("k"))

        assert exc_info.value.operation == "get"
        assert exc_info.value.key == "k"
        assert isinstance(exc_info.value.cause, StoreConnectionError)

    @pytest.mark.asyncio
    async def test_command_error_keeps_connection(self) -> None:
        """A protocol error fails the command but not the connection."""
        client = _mock_client()
        client.get = AsyncMock(side_effect=ResponseError("WRONGTYPE"))
        supervisor = _supervisor(client)
        await supervisor.connect()

        with pytest.raises(StoreOperationError, match="WRONGTYPE") as exc_info:
            await supervisor.execute("get", "session:abc", lambda c: c.get("session:abc"))

        assert exc_info.value.key == "session:abc"
        assert supervisor.state is ConnectionState.READY
        assert supervisor.reconnect_task is None

    @pytest.mark.asyncio
    async def test_transport_error_schedules_reconnect(self) -> None:
        """A transport failure triggers one background reconnection."""
        client = _mock_client()
        client.get = AsyncMock(side_effect=RedisConnectionError("Connection reset"))
        supervisor = _supervisor(client)
        await supervisor.connect()

        with pytest.raises(StoreOperationError):
            await supervisor.execute("get", "k", lambda c: c.get("k"))

        assert supervisor.state is ConnectionState.RECONNECTING
        task = supervisor.reconnect_task
        assert task is not None

        await task

        assert supervisor.state is ConnectionState.READY
        assert supervisor.reconnect_attempts == 0

    @pytest.mark.asyncio
    async def test_concurrent_failures_start_one_reconnect(self) -> None:
        client = _mock_client()
        client.get = AsyncMock(side_effect=RedisConnectionError("Connection reset"))
        supervisor = _supervisor(client)
        await supervisor.connect()

        results = await asyncio.gather(
            supervisor.execute("get", "a", lambda c: c.get("a")),
            supervisor.execute("get", "b", lambda c: c.get("b")),
            return_exceptions=True,
        )
        task = supervisor.reconnect_task

        assert all(isinstance(r, StoreOperationError) for r in results)
        assert task is not None
        await task
        # One PING from connect(), one from the single reconnect probe
        assert client.ping.call_count == 2


class TestReconnection:
    """Tests for bounded reconnection."""

    @pytest.mark.asyncio
    async def test_recovers_and_resets_counter(self) -> None:
        """Two failed probes then a success leave the supervisor ready with a zero counter."""
        client = _mock_client()
        client.ping = AsyncMock(
            side_effect=[
                True,
                RedisConnectionError("down"),
                RedisConnectionError("down"),
                True,
            ]
        )
        supervisor = _supervisor(client)
        await supervisor.connect()

        await supervisor.handle_connection_lost(RedisConnectionError("lost"))

        assert supervisor.state is ConnectionState.READY
        assert supervisor.reconnect_attempts == 0
        assert supervisor.last_error is None
        assert client.ping.call_count == 4

    @pytest.mark.asyncio
    async def test_max_attempts_forces_disconnect(self) -> None:
        """Five failed probes close the client and stop reconnecting."""
        client = _mock_client()
        client.ping = AsyncMock(side_effect=[True] + [RedisConnectionError("down")] * 5)
        supervisor = _supervisor(client, max_reconnect_attempts=5)
        await supervisor.connect()

        await supervisor.handle_connection_lost(RedisConnectionError("lost"))

        assert supervisor.state is ConnectionState.DISCONNECTED
        assert supervisor.is_healthy is False
        assert supervisor.reconnect_attempts == 5
        assert client.ping.call_count == 6
        client.aclose.assert_called_once()

        health = await supervisor.health_check()
        assert health.status is HealthStatus.UNHEALTHY
        assert health.to_dict()["details"]["reconnect_attempts"] == 5
        assert health.to_dict()["details"]["error"] == "down"

    @pytest.mark.asyncio
    async def test_connect_after_forced_disconnect_resets_counter(self) -> None:
        failing = _mock_client()
        failing.ping = AsyncMock(side_effect=[True] + [RedisConnectionError("down")] * 5)
        healthy = _mock_client()
        supervisor = _supervisor(failing, healthy)
        await supervisor.connect()
        await supervisor.handle_connection_lost(RedisConnectionError("lost"))
        assert supervisor.reconnect_attempts == 5

        await supervisor.connect()

        assert supervisor.state is ConnectionState.READY
        assert supervisor.reconnect_attempts == 0
        healthy.ping.assert_called_once()

    @pytest.mark.asyncio
    async def test_commands_fail_fast_after_forced_disconnect(self) -> None:
        client = _mock_client()
        client.ping = AsyncMock(side_effect=[True] + [RedisConnectionError("down")] * 2)
        supervisor = _supervisor(client, max_reconnect_attempts=2)
        await supervisor.connect()
        await supervisor.handle_connection_lost(RedisConnectionError("lost"))

        with pytest.raises(StoreOperationError) as exc_info:
            await supervisor.execute("get", "k", lambda c: c.get("k"))

        assert isinstance(exc_info.value.cause, StoreConnectionError)

    @pytest.mark.asyncio
    async def test_connection_lost_ignored_unless_ready(self) -> None:
        supervisor = _supervisor()

        await supervisor.handle_connection_lost(RedisConnectionError("lost"))

        assert supervisor.state is ConnectionState.DISCONNECTED
        assert supervisor.reconnect_task is None

    @pytest.mark.asyncio
    async def test_disconnect_cancels_reconnect(self) -> None:
        """disconnect() during a reconnect loop cancels it and ends disconnected."""
        client = _mock_client()
        client.ping = AsyncMock(side_effect=[True] + [RedisConnectionError("down")] * 100)
        supervisor = _supervisor(client, max_reconnect_attempts=100, reconnect_delay_seconds=1.0)
        await supervisor.connect()

        supervisor.notify_connection_lost(RedisConnectionError("lost"))
        await asyncio.sleep(0)
        await supervisor.disconnect()

        assert supervisor.state is ConnectionState.DISCONNECTED
        assert supervisor.reconnect_task is None


class TestHealthCheck:
    """Tests for active health probing."""

    @pytest.mark.asyncio
    async def test_health_check_healthy(self) -> None:
        client = _mock_client()
        client.info = AsyncMock(
            return_value={
                "redis_version": "7.2.4",
                "uptime_in_seconds": 3600,
                "connected_clients": 4,
                "used_memory_human": "1.50M",
            }
        )
        supervisor = _supervisor(client)
        await supervisor.connect()

        health = await supervisor.health_check()

        assert health.healthy is True
        details = health.to_dict()["details"]
        assert details["connected"] is True
        assert details["version"] == "7.2.4"
        assert details["uptime_seconds"] == 3600
        assert details["connected_clients"] == 4
        assert details["used_memory"] == "1.50M"
        assert details["response_time_ms"] >= 0

    @pytest.mark.asyncio
    async def test_health_check_ping_failure(self) -> None:
        client = _mock_client()
        client.ping = AsyncMock(side_effect=[True, RedisConnectionError("Connection reset")])
        supervisor = _supervisor(client)
        await supervisor.connect()

        health = await supervisor.health_check()

        assert health.status is HealthStatus.UNHEALTHY
        assert health.error == "Connection reset"
        assert health.connected is False

    @pytest.mark.asyncio
    async def test_health_check_never_connected(self) -> None:
        supervisor = _supervisor()

        health = await supervisor.health_check()

        assert health.healthy is False
        assert health.error == "Redis connection is not established"
        assert health.reconnect_attempts == 0

    @pytest.mark.asyncio
    async def test_health_check_while_reconnecting_is_unhealthy(self) -> None:
        """A successful probe does not report healthy until the connection is READY."""
        client = _mock_client()
        supervisor = _supervisor(client)
        await supervisor.connect()
        supervisor._last_error = "Connection reset"
        supervisor._set_state(ConnectionState.RECONNECTING)

        health = await supervisor.health_check()

        assert health.status is HealthStatus.UNHEALTHY
        assert health.connected is False
        assert health.error == "Connection reset"
        assert health.response_time_ms is not None
