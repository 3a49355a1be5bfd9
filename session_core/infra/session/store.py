"""Session storage with sliding TTL and a per-user session index.

Key layout:
    session:{session_id}        -> JSON session payload, 15 minute sliding TTL
    user_sessions:{user_id}     -> Redis set of the user's session IDs

The index is a native set maintained with SADD/SREM, so concurrent session
creation for the same user never loses an entry. It carries the TTL of the
most recently touched session, so an abandoned index expires on its own.

Session validity is always decided by the session key itself; the index is
an enumeration aid. Index writes that fail are logged and do not fail the
operation.

Example:
    store = SessionStore(kv)

    session_id = generate_session_id()
    await store.create_session(session_id, SessionData(
        user_id="user-123",
        email="user@example.com",
        first_name="Ada",
        last_name="Lovelace",
        login_at=datetime.now(UTC).isoformat(),
    ))

    data = await store.get_session(session_id)  # TTL reset to 15 minutes
    await store.delete_session(session_id)
"""

import asyncio
import logging
from datetime import UTC, datetime
from typing import cast

from session_core.infra.observability.metrics import record_session_operation
from session_core.infra.session.codec import PayloadCodec
from session_core.infra.session.models import (
    SESSION_TTL_SECONDS,
    SessionData,
    session_key,
    user_sessions_key,
)
from session_core.infra.store.base import KeyValueStore
from session_core.infra.store.exceptions import SerializationError, StoreOperationError
from session_core.security.crypto import PayloadEncryption
from session_core.security.identifiers import validate_identifier

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _short(session_id: str) -> str:
    # Session IDs are bearer secrets; only a prefix goes to the logs
    return f"{session_id[:8]}..."


class SessionStore:
    """Authenticated session lifecycle on top of a key-value store."""

    def __init__(
        self,
        kv: KeyValueStore,
        ttl_seconds: int = SESSION_TTL_SECONDS,
        encryption: PayloadEncryption | None = None,
    ) -> None:
        """Initialize session store.

        Args:
            kv: Key-value primitives
            ttl_seconds: Sliding inactivity window
            encryption: Optional encryption handler for payloads at rest
        """
        self._kv = kv
        self.ttl_seconds = ttl_seconds
        self._codec = PayloadCodec(encryption)

    async def create_session(self, session_id: str, data: SessionData) -> None:
        """Write a session and register it in the owner's index.

        The session write must succeed; the index write is best effort.

        Args:
            session_id: Unique session identifier
            data: Session payload (last_activity is stamped here)

        Raises:
            StoreOperationError: If the session write fails
        """
        validate_identifier(session_id, "session_id")
        user_id = validate_identifier(data["user_id"], "user_id")
        record = cast(SessionData, {**data, "last_activity": _now()})

        try:
            await self._kv.set(
                session_key(session_id), self._codec.encode(dict(record)), self.ttl_seconds
            )
        except StoreOperationError:
            record_session_operation("create", "error")
            logger.error(
                "Failed to create session",
                extra={"user_id": user_id, "key": _short(session_id)},
            )
            raise

        await self._add_to_index(user_id, session_id)

        record_session_operation("create", "success")
        logger.debug("Session created", extra={"user_id": user_id, "key": _short(session_id)})

    async def get_session(self, session_id: str) -> SessionData | None:
        """Read a session and slide its expiry window.

        Args:
            session_id: Unique session identifier

        Returns:
            Session payload with a fresh last_activity, or None if absent or expired

        Raises:
            StoreOperationError: If the read fails
            SerializationError: If the stored payload cannot be decoded
        """
        validate_identifier(session_id, "session_id")
        key = session_key(session_id)

        raw = await self._kv.get(key)
        if raw is None:
            record_session_operation("get", "miss")
            return None

        try:
            data = cast(SessionData, self._codec.decode(key, raw, required=("user_id",)))
        except SerializationError:
            record_session_operation("get", "error")
            logger.error("Corrupt session payload", extra={"key": _short(session_id)})
            raise

        data["last_activity"] = _now()
        await self._refresh_activity(session_id, data)

        record_session_operation("get", "hit")
        return data

    async def _refresh_activity(self, session_id: str, data: SessionData) -> None:
        """Rewrite last_activity and reset TTLs; failures never fail the read."""
        try:
            # XX: a concurrent delete must not be undone by this refresh
            await self._kv.set(
                session_key(session_id),
                self._codec.encode(dict(data)),
                self.ttl_seconds,
                only_if_exists=True,
            )
            await self._kv.expire(user_sessions_key(data["user_id"]), self.ttl_seconds)
        except StoreOperationError as e:
            record_session_operation("refresh", "error")
            logger.warning(
                "Failed to refresh session activity",
                extra={"key": _short(session_id), "error": str(e)},
            )

    async def delete_session(self, session_id: str) -> bool:
        """Delete a session and remove it from its owner's index.

        Deleting a session that no longer exists is a no-op.

        Args:
            session_id: Unique session identifier

        Returns:
            True if the session key was deleted, False if it was already gone

        Raises:
            StoreOperationError: If reading or deleting the session key fails
        """
        validate_identifier(session_id, "session_id")
        key = session_key(session_id)

        owner: str | None = None
        raw = await self._kv.get(key)
        if raw is not None:
            try:
                owner = self._codec.decode(key, raw).get("user_id")
            except SerializationError:
                logger.warning(
                    "Deleting undecodable session; owner index left untouched",
                    extra={"key": _short(session_id)},
                )

        deleted = await self._kv.delete(key)

        if owner:
            await self._remove_from_index(owner, session_id)

        record_session_operation("delete", "success" if deleted else "not_found")
        logger.debug(
            "Session deleted" if deleted else "Session not found for deletion",
            extra={"user_id": owner, "key": _short(session_id)},
        )
        return bool(deleted)

    async def delete_all_user_sessions(self, user_id: str) -> int:
        """Delete every session in a user's index and remove them from it.

        Args:
            user_id: Owning user identifier

        Returns:
            Number of session keys that still existed and were deleted

        Raises:
            StoreOperationError: If enumerating or deleting fails
        """
        validate_identifier(user_id, "user_id")
        index_key = user_sessions_key(user_id)

        session_ids = await self._kv.smembers(index_key)
        deleted = 0
        if session_ids:
            deleted = await self._kv.delete(*(session_key(s) for s in session_ids))
        # SREM rather than DEL keeps ids added by a concurrent create_session
        await self._kv.srem(index_key, *session_ids)

        record_session_operation("delete_all", "success")
        logger.info(
            "All sessions deleted for user",
            extra={"user_id": user_id, "count": deleted},
        )
        return deleted

    async def list_user_sessions(self, user_id: str) -> list[str]:
        """List a user's live session IDs.

        Index entries whose session has already expired are pruned.

        Args:
            user_id: Owning user identifier

        Returns:
            Sorted live session IDs
        """
        validate_identifier(user_id, "user_id")
        index_key = user_sessions_key(user_id)

        session_ids = sorted(await self._kv.smembers(index_key))
        alive = await asyncio.gather(*(self._kv.exists(session_key(s)) for s in session_ids))

        stale = [s for s, is_alive in zip(session_ids, alive) if not is_alive]
        if stale:
            try:
                await self._kv.srem(index_key, *stale)
            except StoreOperationError as e:
                logger.warning(
                    "Failed to prune stale session index entries",
                    extra={"user_id": user_id, "count": len(stale), "error": str(e)},
                )

        return [s for s, is_alive in zip(session_ids, alive) if is_alive]

    async def _add_to_index(self, user_id: str, session_id: str) -> None:
        try:
            await self._kv.sadd(user_sessions_key(user_id), session_id, ttl_seconds=self.ttl_seconds)
        except StoreOperationError as e:
            # Session stays valid; it just cannot be enumerated or bulk-revoked
            record_session_operation("index_add", "error")
            logger.error(
                "Failed to add session to user index",
                extra={"user_id": user_id, "key": _short(session_id), "error": str(e)},
            )

    async def _remove_from_index(self, user_id: str, session_id: str) -> None:
        try:
            await self._kv.srem(user_sessions_key(user_id), session_id, ttl_seconds=self.ttl_seconds)
        except StoreOperationError as e:
            record_session_operation("index_remove", "error")
            logger.error(
                "Failed to remove session from user index",
                extra={"user_id": user_id, "key": _short(session_id), "error": str(e)},
            )
