"""Key-value store access: supervised connection and typed primitives.

- StoreConnectionSupervisor: owns the Redis client, bounded reconnection
- KeyValueStore: narrow capability interface consumed by the stores
- RedisKeyValueStore: Redis implementation routed through the supervisor
"""

from session_core.infra.store.base import TTL_KEY_MISSING, TTL_NO_EXPIRY, KeyValueStore
from session_core.infra.store.exceptions import (
    SerializationError,
    StoreConnectionError,
    StoreError,
    StoreOperationError,
)
from session_core.infra.store.redis_store import RedisKeyValueStore
from session_core.infra.store.supervisor import ConnectionState, StoreConnectionSupervisor

__all__ = [
    "ConnectionState",
    "KeyValueStore",
    "RedisKeyValueStore",
    "SerializationError",
    "StoreConnectionError",
    "StoreConnectionSupervisor",
    "StoreError",
    "StoreOperationError",
    "TTL_KEY_MISSING",
    "TTL_NO_EXPIRY",
]
