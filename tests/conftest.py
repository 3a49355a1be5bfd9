"""Shared pytest fixtures.

These fixtures live at `tests/` scope so they are available to every test
module.

Key goals:
- Prevent the global settings singleton from leaking state across tests.
- Provide an in-memory Redis (fakeredis) behind a real supervisor so store
  tests exercise actual command semantics (TTL, SET XX, SCAN, MULTI/EXEC).
"""

from __future__ import annotations

import fakeredis
import fakeredis.aioredis
import pytest

from session_core import config
from session_core.config import Settings
from session_core.infra.cache import DataCache
from session_core.infra.session.store import SessionStore
from session_core.infra.session.tokens import RefreshTokenStore
from session_core.infra.store.redis_store import RedisKeyValueStore
from session_core.infra.store.supervisor import StoreConnectionSupervisor


@pytest.fixture(autouse=True)
def _reset_global_settings() -> None:
    """Ensure the settings singleton does not leak between tests."""
    config._settings = None
    yield
    config._settings = None


@pytest.fixture
def settings() -> Settings:
    """Settings with fast reconnection for tests."""
    return Settings(
        redis_url="redis://localhost:6379/15",
        redis_reconnect_delay_seconds=0.0,
        redis_connect_timeout_seconds=1.0,
    )


@pytest.fixture
def fake_server() -> fakeredis.FakeServer:
    """Isolated in-memory Redis server per test."""
    return fakeredis.FakeServer()


@pytest.fixture
def client_factory(fake_server: fakeredis.FakeServer):
    """Factory producing fakeredis clients bound to the per-test server."""

    def _factory() -> fakeredis.aioredis.FakeRedis:
        return fakeredis.aioredis.FakeRedis(server=fake_server, decode_responses=True)

    return _factory


@pytest.fixture
async def supervisor(settings: Settings, client_factory) -> StoreConnectionSupervisor:
    """Connected supervisor backed by fakeredis."""
    supervisor = StoreConnectionSupervisor.from_settings(settings, client_factory=client_factory)
    await supervisor.connect()

    yield supervisor

    await supervisor.disconnect()


@pytest.fixture
async def redis_client(client_factory) -> fakeredis.aioredis.FakeRedis:
    """Direct client on the same fake server, for arranging and inspecting raw state."""
    client = client_factory()

    yield client

    await client.aclose()


@pytest.fixture
def kv(supervisor: StoreConnectionSupervisor) -> RedisKeyValueStore:
    return RedisKeyValueStore(supervisor)


@pytest.fixture
def session_store(kv: RedisKeyValueStore) -> SessionStore:
    return SessionStore(kv)


@pytest.fixture
def token_store(kv: RedisKeyValueStore) -> RefreshTokenStore:
    return RefreshTokenStore(kv, scan_batch_size=10)


@pytest.fixture
def data_cache(kv: RedisKeyValueStore) -> DataCache:
    return DataCache(kv, scan_batch_size=10)
