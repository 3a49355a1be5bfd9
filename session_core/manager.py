"""Facade exposing session, refresh-token and cache operations.

Route handlers depend on one explicitly constructed ``SessionManager``
rather than on a process-wide global. It is started once at application
startup and closed once at shutdown.

Example:
    settings = Settings()

    async with SessionManager.from_settings(settings) as manager:
        session_id = manager.generate_session_id()
        await manager.create_session(session_id, session_data)

        raw_refresh = secrets.token_urlsafe(48)
        await manager.store_refresh_token(manager.hash_token(raw_refresh), token_data)

        health = await manager.health_check()
"""

import logging
from types import TracebackType
from typing import Any, TypedDict

from session_core.config import Settings
from session_core.infra.cache import DataCache
from session_core.infra.health import StoreHealth
from session_core.infra.session.models import RefreshTokenData, SessionData
from session_core.infra.session.store import SessionStore
from session_core.infra.session.tokens import RefreshTokenStore
from session_core.infra.store.redis_store import RedisKeyValueStore
from session_core.infra.store.supervisor import ClientFactory, StoreConnectionSupervisor
from session_core.security.crypto import PayloadEncryption
from session_core.security.identifiers import generate_session_id, generate_token_id, hash_token

logger = logging.getLogger(__name__)


class RevocationSummary(TypedDict):
    """Counts removed by ``SessionManager.revoke_user``."""

    sessions: int
    refresh_tokens: int
    cache_entries: int


class SessionManager:
    """Session, refresh token and cache management over one supervised store."""

    def __init__(
        self,
        supervisor: StoreConnectionSupervisor,
        settings: Settings | None = None,
    ) -> None:
        """Wire stores onto a supervisor.

        Args:
            supervisor: Store connection supervisor (not yet connected is fine)
            settings: Lifetimes, batch sizes and encryption key (defaults apply if omitted)
        """
        settings = settings or Settings()
        encryption = (
            PayloadEncryption(settings.encryption_key, settings.encryption_previous_keys)
            if settings.encryption_key
            else None
        )

        self.supervisor = supervisor
        self.kv = RedisKeyValueStore(supervisor)
        self.sessions = SessionStore(
            self.kv,
            ttl_seconds=settings.session_ttl_seconds,
            encryption=encryption,
        )
        self.refresh_tokens = RefreshTokenStore(
            self.kv,
            ttl_seconds=settings.refresh_token_ttl_seconds,
            encryption=encryption,
            scan_batch_size=settings.cache_scan_batch_size,
        )
        self.cache = DataCache(
            self.kv,
            default_ttl_seconds=settings.cache_default_ttl_seconds,
            scan_batch_size=settings.cache_scan_batch_size,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, client_factory: ClientFactory | None = None
    ) -> "SessionManager":
        """Build a manager and its supervisor from settings."""
        supervisor = StoreConnectionSupervisor.from_settings(settings, client_factory)
        return cls(supervisor, settings)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Connect to the store.

        Raises:
            StoreConnectionError: If the store is unreachable
        """
        await self.supervisor.connect()
        logger.info("Session manager started")

    async def close(self) -> None:
        await self.supervisor.disconnect()
        logger.info("Session manager closed")

    async def __aenter__(self) -> "SessionManager":
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def is_healthy(self) -> bool:
        return self.supervisor.is_healthy

    async def health_check(self) -> StoreHealth:
        return await self.supervisor.health_check()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def create_session(self, session_id: str, data: SessionData) -> None:
        await self.sessions.create_session(session_id, data)

    async def get_session(self, session_id: str) -> SessionData | None:
        return await self.sessions.get_session(session_id)

    async def delete_session(self, session_id: str) -> bool:
        return await self.sessions.delete_session(session_id)

    async def delete_all_user_sessions(self, user_id: str) -> int:
        return await self.sessions.delete_all_user_sessions(user_id)

    async def list_user_sessions(self, user_id: str) -> list[str]:
        return await self.sessions.list_user_sessions(user_id)

    # ------------------------------------------------------------------
    # Refresh tokens
    # ------------------------------------------------------------------

    async def store_refresh_token(self, token_hash: str, data: RefreshTokenData) -> None:
        await self.refresh_tokens.store_refresh_token(token_hash, data)

    async def get_refresh_token(self, token_hash: str) -> RefreshTokenData | None:
        return await self.refresh_tokens.get_refresh_token(token_hash)

    async def delete_refresh_token(self, token_hash: str) -> bool:
        return await self.refresh_tokens.delete_refresh_token(token_hash)

    async def delete_all_user_refresh_tokens(self, user_id: str, full_scan: bool = False) -> int:
        return await self.refresh_tokens.delete_all_user_refresh_tokens(user_id, full_scan)

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    async def cache_data(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        await self.cache.cache_data(key, value, ttl_seconds)

    async def get_cached_data(self, key: str) -> Any | None:
        return await self.cache.get_cached_data(key)

    async def delete_cached_data(self, key: str) -> bool:
        return await self.cache.delete_cached_data(key)

    async def invalidate_user_cache(self, user_id: str) -> int:
        return await self.cache.invalidate_user_cache(user_id)

    # ------------------------------------------------------------------
    # Composite
    # ------------------------------------------------------------------

    async def revoke_user(self, user_id: str, full_scan: bool = False) -> RevocationSummary:
        """Log a user out everywhere: sessions, refresh tokens and cached data.

        Args:
            user_id: User to revoke
            full_scan: Also sweep the token keyspace for records written
                outside the refresh token store (the index already covers
                every token it stored)

        Returns:
            Counts of removed sessions, refresh tokens and cache entries
        """
        summary = RevocationSummary(
            sessions=await self.delete_all_user_sessions(user_id),
            refresh_tokens=await self.delete_all_user_refresh_tokens(user_id, full_scan),
            cache_entries=await self.invalidate_user_cache(user_id),
        )
        logger.info("User revoked", extra={"user_id": user_id, "count": sum(summary.values())})
        return summary

    # ------------------------------------------------------------------
    # Identifiers
    # ------------------------------------------------------------------

    @staticmethod
    def generate_session_id() -> str:
        return generate_session_id()

    @staticmethod
    def generate_token_id() -> str:
        return generate_token_id()

    @staticmethod
    def hash_token(raw_token: str) -> str:
        return hash_token(raw_token)


__all__ = ["RevocationSummary", "SessionManager"]
