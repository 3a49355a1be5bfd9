"""Redis implementation of the key-value primitive layer.

Every command is routed through the StoreConnectionSupervisor, which maps
redis errors to StoreOperationError and reacts to transport failures.

Atomicity:
- set with TTL is one ``SET key value EX ttl`` (never SET then EXPIRE)
- sadd/srem with TTL run SADD/SREM and EXPIRE in one MULTI/EXEC transaction
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from redis.asyncio import Redis

from session_core.infra.store.base import KeyValueStore
from session_core.infra.store.supervisor import StoreConnectionSupervisor

logger = logging.getLogger(__name__)


class RedisKeyValueStore(KeyValueStore):
    """Typed Redis primitives on top of a supervised connection.

    Example:
        supervisor = StoreConnectionSupervisor.from_settings(settings)
        await supervisor.connect()
        kv = RedisKeyValueStore(supervisor)

        await kv.set("cache:greeting", "hello", ttl_seconds=60)
        value = await kv.get("cache:greeting")
    """

    def __init__(self, supervisor: StoreConnectionSupervisor) -> None:
        self._supervisor = supervisor

    @property
    def supervisor(self) -> StoreConnectionSupervisor:
        return self._supervisor

    async def set(
        self,
        key: str,
        value: str,
        ttl_seconds: int | None = None,
        *,
        only_if_exists: bool = False,
    ) -> bool:
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")

        written = await self._supervisor.execute(
            "set",
            key,
            lambda client: client.set(key, value, ex=ttl_seconds, xx=only_if_exists),
        )
        logger.debug("Redis SET", extra={"key": key, "ttl_seconds": ttl_seconds})
        return bool(written)

    async def get(self, key: str) -> str | None:
        value: str | None = await self._supervisor.execute(
            "get", key, lambda client: client.get(key)
        )
        logger.debug("Redis GET", extra={"key": key, "count": int(value is not None)})
        return value

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        deleted = await self._supervisor.execute(
            "delete", keys[0], lambda client: client.delete(*keys)
        )
        logger.debug("Redis DEL", extra={"key": keys[0], "count": deleted})
        return int(deleted)

    async def exists(self, key: str) -> bool:
        count = await self._supervisor.execute("exists", key, lambda client: client.exists(key))
        return bool(count)

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        was_set = await self._supervisor.execute(
            "expire", key, lambda client: client.expire(key, ttl_seconds)
        )
        return bool(was_set)

    async def ttl(self, key: str) -> int:
        remaining = await self._supervisor.execute("ttl", key, lambda client: client.ttl(key))
        return int(remaining)

    async def hset(self, key: str, field: str, value: str) -> int:
        added = await self._supervisor.execute(
            "hset",
            key,
            lambda client: client.hset(key, field, value),  # type: ignore[misc]
        )
        logger.debug("Redis HSET", extra={"key": f"{key}.{field}"})
        return int(added)

    async def hget(self, key: str, field: str) -> str | None:
        value: str | None = await self._supervisor.execute(
            "hget",
            key,
            lambda client: client.hget(key, field),  # type: ignore[misc]
        )
        return value

    async def hgetall(self, key: str) -> dict[str, str]:
        mapping: dict[str, str] = await self._supervisor.execute(
            "hgetall",
            key,
            lambda client: client.hgetall(key),  # type: ignore[misc]
        )
        logger.debug("Redis HGETALL", extra={"key": key, "count": len(mapping)})
        return dict(mapping)

    async def hdel(self, key: str, field: str) -> int:
        removed = await self._supervisor.execute(
            "hdel",
            key,
            lambda client: client.hdel(key, field),  # type: ignore[misc]
        )
        return int(removed)

    async def sadd(self, key: str, *members: str, ttl_seconds: int | None = None) -> int:
        if not members:
            return 0

        async def _sadd(client: Redis) -> int:
            async with client.pipeline(transaction=True) as pipe:
                pipe.sadd(key, *members)
                if ttl_seconds is not None:
                    pipe.expire(key, ttl_seconds)
                results = await pipe.execute()
            return int(results[0])

        added = await self._supervisor.execute("sadd", key, _sadd)
        logger.debug("Redis SADD", extra={"key": key, "count": added, "ttl_seconds": ttl_seconds})
        return added

    async def srem(self, key: str, *members: str, ttl_seconds: int | None = None) -> int:
        if not members:
            return 0

        async def _srem(client: Redis) -> int:
            async with client.pipeline(transaction=True) as pipe:
                pipe.srem(key, *members)
                if ttl_seconds is not None:
                    # No-op if SREM emptied (and so deleted) the set
                    pipe.expire(key, ttl_seconds)
                results = await pipe.execute()
            return int(results[0])

        removed = await self._supervisor.execute("srem", key, _srem)
        logger.debug("Redis SREM", extra={"key": key, "count": removed})
        return removed

    async def smembers(self, key: str) -> set[str]:
        members = await self._supervisor.execute(
            "smembers",
            key,
            lambda client: client.smembers(key),  # type: ignore[misc]
        )
        return set(members)

    async def scan_keys(self, pattern: str, count: int = 500) -> AsyncIterator[str]:
        cursor = 0
        seen: set[str] = set()
        while True:
            cursor, keys = await self._supervisor.execute(
                "scan",
                pattern,
                lambda client: client.scan(cursor=cursor, match=pattern, count=count),
            )
            for key in keys:
                # SCAN may return a key more than once across iterations
                if key not in seen:
                    seen.add(key)
                    yield key
            if int(cursor) == 0:
                return


__all__ = ["RedisKeyValueStore"]
