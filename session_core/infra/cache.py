"""Namespaced generic cache with pattern-based bulk invalidation.

All entries live under the ``cache:`` prefix. Per-user data follows the
``cache:user:{user_id}:{name}`` convention so that one user's entries can be
invalidated together.

Cached data is always reconstructible from its source of truth, so reads are
fail-soft: undecodable values and store errors are logged and reported as a
miss. Writes and deletes propagate errors.

Example:
    cache = DataCache(kv)

    await cache.cache_data(user_cache_key("user-123", "profile"), profile, ttl_seconds=600)
    profile = await cache.get_cached_data(user_cache_key("user-123", "profile"))

    await cache.invalidate_user_cache("user-123")
"""

import json
import logging
from typing import Any

from session_core.infra.observability.metrics import record_cache_operation
from session_core.infra.store.base import KeyValueStore
from session_core.infra.store.exceptions import SerializationError, StoreOperationError
from session_core.security.identifiers import validate_identifier

logger = logging.getLogger(__name__)

CACHE_PREFIX = "cache:"

DEFAULT_CACHE_TTL_SECONDS = 60 * 60


def user_cache_key(user_id: str, name: str) -> str:
    """Build a per-user cache key (without the ``cache:`` prefix).

    Args:
        user_id: Owning user identifier
        name: Entry name within the user's namespace

    Returns:
        Key in format "user:{user_id}:{name}"
    """
    return f"user:{validate_identifier(user_id, 'user_id')}:{name}"


class DataCache:
    """Generic JSON cache on top of a key-value store."""

    def __init__(
        self,
        kv: KeyValueStore,
        default_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        scan_batch_size: int = 500,
        key_prefix: str = CACHE_PREFIX,
    ) -> None:
        """Initialize data cache.

        Args:
            kv: Key-value primitives
            default_ttl_seconds: TTL used when callers do not pass one
            scan_batch_size: SCAN COUNT hint and delete batch size for invalidation
            key_prefix: Namespace prefix for cache entries
        """
        self._kv = kv
        self.default_ttl_seconds = default_ttl_seconds
        self.scan_batch_size = scan_batch_size
        self.key_prefix = key_prefix

    def _make_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def cache_data(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Serialize and cache a value.

        Args:
            key: Application key (namespace prefix is added here)
            value: JSON-serializable value
            ttl_seconds: TTL override (defaults to default_ttl_seconds)

        Raises:
            SerializationError: If the value is not JSON-serializable
            StoreOperationError: If the write fails
        """
        cache_key = self._make_key(key)
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds

        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            record_cache_operation("set", "error")
            raise SerializationError(cache_key, str(e)) from e

        try:
            await self._kv.set(cache_key, payload, ttl)
        except StoreOperationError:
            record_cache_operation("set", "error")
            logger.error("Failed to cache data", extra={"key": cache_key})
            raise

        record_cache_operation("set", "success")
        logger.debug("Data cached", extra={"key": cache_key, "ttl_seconds": ttl})

    async def get_cached_data(self, key: str) -> Any | None:
        """Get a cached value.

        Args:
            key: Application key

        Returns:
            Deserialized value, or None on miss, decode failure or store error
        """
        cache_key = self._make_key(key)

        try:
            raw = await self._kv.get(cache_key)
        except StoreOperationError as e:
            record_cache_operation("get", "error")
            logger.warning("Cache get error", extra={"key": cache_key, "error": str(e)})
            return None

        if raw is None:
            record_cache_operation("get", "miss")
            logger.debug("Cache miss", extra={"key": cache_key})
            return None

        try:
            value = json.loads(raw)
        except json.JSONDecodeError as e:
            record_cache_operation("get", "error")
            logger.warning("Undecodable cache entry", extra={"key": cache_key, "error": str(e)})
            return None

        record_cache_operation("get", "hit")
        logger.debug("Cache hit", extra={"key": cache_key})
        return value

    async def delete_cached_data(self, key: str) -> bool:
        """Delete a cached value.

        Returns:
            True if an entry was deleted

        Raises:
            StoreOperationError: If the delete fails
        """
        cache_key = self._make_key(key)
        deleted = await self._kv.delete(cache_key)

        record_cache_operation("delete", "success" if deleted else "not_found")
        logger.debug("Cached data deleted", extra={"key": cache_key, "count": deleted})
        return deleted > 0

    async def invalidate_pattern(self, pattern: str) -> int:
        """Delete all and only cache entries matching a glob pattern.

        Uses an incremental SCAN cursor and deletes in batches, so large key
        spaces never block the store.

        Args:
            pattern: Glob pattern relative to the cache namespace

        Returns:
            Number of keys deleted

        Raises:
            StoreOperationError: If scanning or deleting fails
        """
        full_pattern = self._make_key(pattern)
        deleted = 0
        batch: list[str] = []

        async for key in self._kv.scan_keys(full_pattern, self.scan_batch_size):
            batch.append(key)
            if len(batch) >= self.scan_batch_size:
                deleted += await self._kv.delete(*batch)
                batch = []
        if batch:
            deleted += await self._kv.delete(*batch)

        record_cache_operation("invalidate", "success")
        logger.info("Cache invalidated", extra={"key": full_pattern, "count": deleted})
        return deleted

    async def invalidate_user_cache(self, user_id: str) -> int:
        """Delete every cache entry under ``cache:user:{user_id}:*``.

        Returns:
            Number of keys deleted
        """
        validate_identifier(user_id, "user_id")
        return await self.invalidate_pattern(f"user:{user_id}:*")


__all__ = [
    "CACHE_PREFIX",
    "DEFAULT_CACHE_TTL_SECONDS",
    "DataCache",
    "user_cache_key",
]
