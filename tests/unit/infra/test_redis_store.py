"""Unit tests for the Redis key-value primitives."""

import typing
from unittest.mock import AsyncMock

import pytest
from redis.asyncio import Redis
from redis.exceptions import ResponseError

from session_core.infra.store.base import TTL_KEY_MISSING, TTL_NO_EXPIRY, KeyValueStore
from session_core.infra.store.exceptions import StoreOperationError
from session_core.infra.store.redis_store import RedisKeyValueStore
from session_core.infra.store.supervisor import StoreConnectionSupervisor


class TestKeyValueStoreInterface:
    """Tests for KeyValueStore abstract interface."""

    def test_key_value_store_is_abstract(self) -> None:
        """KeyValueStore cannot be instantiated directly."""
        with pytest.raises(TypeError, match="Can't instantiate abstract class"):
            KeyValueStore()  # type: ignore

    @pytest.mark.parametrize("cls", [KeyValueStore, RedisKeyValueStore])
    def test_set_annotations_resolve_to_builtin(self, cls: type) -> None:
        """A method named `set` must not shadow the builtin in signatures."""
        hints = typing.get_type_hints(cls.smembers)

        assert hints["return"] == set[str]


class TestStrings:
    """Tests for string keys and TTL handling."""

    @pytest.mark.asyncio
    async def test_set_and_get(self, kv: RedisKeyValueStore) -> None:
        assert await kv.set("greeting", "hello") is True

        assert await kv.get("greeting") == "hello"
        assert await kv.ttl("greeting") == TTL_NO_EXPIRY

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, kv: RedisKeyValueStore) -> None:
        assert await kv.get("absent") is None

    @pytest.mark.asyncio
    async def test_set_with_ttl(self, kv: RedisKeyValueStore) -> None:
        await kv.set("greeting", "hello", ttl_seconds=60)

        ttl = await kv.ttl("greeting")
        assert 0 < ttl <= 60

    @pytest.mark.asyncio
    async def test_ttl_of_missing_key(self, kv: RedisKeyValueStore) -> None:
        assert await kv.ttl("absent") == TTL_KEY_MISSING

    @pytest.mark.asyncio
    async def test_set_rejects_non_positive_ttl(self, kv: RedisKeyValueStore) -> None:
        with pytest.raises(ValueError, match="ttl_seconds must be positive"):
            await kv.set("greeting", "hello", ttl_seconds=0)

    @pytest.mark.asyncio
    async def test_set_only_if_exists_skips_missing_key(self, kv: RedisKeyValueStore) -> None:
        """SET XX never creates a key."""
        written = await kv.set("absent", "value", ttl_seconds=60, only_if_exists=True)

        assert written is False
        assert await kv.exists("absent") is False

    @pytest.mark.asyncio
    async def test_set_only_if_exists_overwrites(self, kv: RedisKeyValueStore) -> None:
        await kv.set("present", "old", ttl_seconds=10)

        written = await kv.set("present", "new", ttl_seconds=600, only_if_exists=True)

        assert written is True
        assert await kv.get("present") == "new"
        assert await kv.ttl("present") > 10

    @pytest.mark.asyncio
    async def test_set_with_ttl_is_single_command(self) -> None:
        """Value and expiry are written by one SET EX, never SET then EXPIRE."""
        client = AsyncMock(spec=Redis)
        client.ping = AsyncMock(return_value=True)
        client.set = AsyncMock(return_value=True)
        supervisor = StoreConnectionSupervisor(
            redis_url="redis://localhost:6379/0", client_factory=lambda: client
        )
        await supervisor.connect()
        kv = RedisKeyValueStore(supervisor)

        await kv.set("session:abc", "{}", ttl_seconds=900)

        client.set.assert_called_once_with("session:abc", "{}", ex=900, xx=False)
        client.expire.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_counts_existing_keys(self, kv: RedisKeyValueStore) -> None:
        await kv.set("a", "1")
        await kv.set("b", "2")

        assert await kv.delete("a", "b", "c") == 2
        assert await kv.delete("a") == 0

    @pytest.mark.asyncio
    async def test_delete_without_keys(self, kv: RedisKeyValueStore) -> None:
        assert await kv.delete() == 0

    @pytest.mark.asyncio
    async def test_exists_and_expire(self, kv: RedisKeyValueStore) -> None:
        await kv.set("a", "1")

        assert await kv.exists("a") is True
        assert await kv.expire("a", 30) is True
        assert 0 < await kv.ttl("a") <= 30
        assert await kv.expire("absent", 30) is False


class TestHashes:
    """Tests for hash primitives."""

    @pytest.mark.asyncio
    async def test_hash_round_trip(self, kv: RedisKeyValueStore) -> None:
        assert await kv.hset("profile:1", "name", "Ada") == 1
        await kv.hset("profile:1", "lang", "en")

        assert await kv.hget("profile:1", "name") == "Ada"
        assert await kv.hget("profile:1", "missing") is None
        assert await kv.hgetall("profile:1") == {"name": "Ada", "lang": "en"}

    @pytest.mark.asyncio
    async def test_hdel(self, kv: RedisKeyValueStore) -> None:
        await kv.hset("profile:1", "name", "Ada")

        assert await kv.hdel("profile:1", "name") == 1
        assert await kv.hgetall("profile:1") == {}


class TestSets:
    """Tests for set primitives."""

    @pytest.mark.asyncio
    async def test_sadd_with_ttl(self, kv: RedisKeyValueStore) -> None:
        assert await kv.sadd("members", "a", "b", ttl_seconds=120) == 2
        assert await kv.sadd("members", "a", ttl_seconds=120) == 0

        assert await kv.smembers("members") == {"a", "b"}
        assert 0 < await kv.ttl("members") <= 120

    @pytest.mark.asyncio
    async def test_srem_last_member_removes_set(self, kv: RedisKeyValueStore) -> None:
        await kv.sadd("members", "a", ttl_seconds=120)

        assert await kv.srem("members", "a", ttl_seconds=120) == 1

        assert await kv.exists("members") is False
        assert await kv.smembers("members") == set()

    @pytest.mark.asyncio
    async def test_sadd_and_srem_without_members(self, kv: RedisKeyValueStore) -> None:
        assert await kv.sadd("members") == 0
        assert await kv.srem("members") == 0


class TestScan:
    """Tests for cursor-based key enumeration."""

    @pytest.mark.asyncio
    async def test_scan_keys_matches_pattern(self, kv: RedisKeyValueStore) -> None:
        for i in range(25):
            await kv.set(f"cache:user:U:{i}", "x")
        await kv.set("cache:user:V:0", "x")

        keys = [key async for key in kv.scan_keys("cache:user:U:*", count=10)]

        assert len(keys) == 25
        assert len(set(keys)) == 25
        assert all(key.startswith("cache:user:U:") for key in keys)

    @pytest.mark.asyncio
    async def test_scan_keys_no_match(self, kv: RedisKeyValueStore) -> None:
        keys = [key async for key in kv.scan_keys("nothing:*")]

        assert keys == []


class TestErrorMapping:
    """Store errors surface as StoreOperationError with command context."""

    @pytest.mark.asyncio
    async def test_wrong_type_raises_operation_error(self, kv: RedisKeyValueStore) -> None:
        await kv.set("plain", "value")

        with pytest.raises(StoreOperationError) as exc_info:
            await kv.smembers("plain")

        assert exc_info.value.operation == "smembers"
        assert exc_info.value.key == "plain"
        assert isinstance(exc_info.value.cause, ResponseError)

    @pytest.mark.asyncio
    async def test_disconnected_store_raises(self, kv: RedisKeyValueStore) -> None:
        await kv.supervisor.disconnect()

        with pytest.raises(StoreOperationError):
            await kv.get("anything")
