"""Narrow key-value capability interface.

Session, refresh-token and cache stores depend only on this interface, so
the backing store can be swapped without touching their logic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

# ttl() sentinels
TTL_NO_EXPIRY = -1
TTL_KEY_MISSING = -2


class KeyValueStore(ABC):
    """Abstract base class for key-value primitives.

    All methods raise StoreOperationError when the underlying command fails.
    Absent keys are reported as ``None``/``False``/``0``, never as errors.
    """

    @abstractmethod
    async def set(
        self,
        key: str,
        value: str,
        ttl_seconds: int | None = None,
        *,
        only_if_exists: bool = False,
    ) -> bool:
        """Store a value, atomically applying the TTL when given.

        Args:
            key: Key to write
            value: Serialized value
            ttl_seconds: Optional TTL, applied in the same command
            only_if_exists: Only overwrite an existing key (never recreate one)

        Returns:
            True if written, False if ``only_if_exists`` and the key was absent
        """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Get a value, or None if absent or expired."""

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        """Delete keys.

        Returns:
            Number of keys removed
        """

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check whether a key exists."""

    @abstractmethod
    async def expire(self, key: str, ttl_seconds: int) -> bool:
        """Set a key's TTL.

        Returns:
            True if the TTL was set, False if the key does not exist
        """

    @abstractmethod
    async def ttl(self, key: str) -> int:
        """Remaining seconds, TTL_NO_EXPIRY or TTL_KEY_MISSING."""

    @abstractmethod
    async def hset(self, key: str, field: str, value: str) -> int:
        """Set a hash field; returns 1 if the field is new, 0 if updated."""

    @abstractmethod
    async def hget(self, key: str, field: str) -> str | None:
        """Get a hash field, or None if absent."""

    @abstractmethod
    async def hgetall(self, key: str) -> dict[str, str]:
        """Get all hash fields (empty mapping if the key is absent)."""

    @abstractmethod
    async def hdel(self, key: str, field: str) -> int:
        """Delete a hash field; returns number of fields removed."""

    @abstractmethod
    async def sadd(self, key: str, *members: str, ttl_seconds: int | None = None) -> int:
        """Add members to a set, atomically refreshing the TTL when given.

        Returns:
            Number of members newly added
        """

    @abstractmethod
    async def srem(self, key: str, *members: str, ttl_seconds: int | None = None) -> int:
        """Remove members from a set, atomically refreshing the TTL when given.

        An emptied set no longer exists.

        Returns:
            Number of members removed
        """

    @abstractmethod
    async def smembers(self, key: str) -> set[str]:
        """Get set members (empty set if the key is absent)."""

    @abstractmethod
    def scan_keys(self, pattern: str, count: int = 500) -> AsyncIterator[str]:
        """Iterate keys matching a glob pattern with an incremental cursor.

        Never blocks the store for a full keyspace listing.
        """
