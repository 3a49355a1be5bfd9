"""Refresh token custody keyed by one-way token hash.

Key layout:
    refresh_token:{sha256(token)}   -> JSON token record, 7 day fixed TTL
    user_refresh_tokens:{user_id}   -> Redis set of the user's token hashes

The raw token presented by a client is never stored; callers pass
``hash_token(raw)``. Records are never updated in place: rotation deletes the
old hash and stores a new one. The per-user index turns bulk revocation into
O(tokens for that user) instead of a scan of every token.
"""

import logging
from typing import cast

from session_core.infra.observability.metrics import record_refresh_token_operation
from session_core.infra.session.codec import PayloadCodec
from session_core.infra.session.models import (
    REFRESH_TOKEN_PREFIX,
    REFRESH_TOKEN_TTL_SECONDS,
    RefreshTokenData,
    refresh_token_key,
    user_refresh_tokens_key,
)
from session_core.infra.store.base import KeyValueStore
from session_core.infra.store.exceptions import SerializationError, StoreOperationError
from session_core.security.crypto import PayloadEncryption
from session_core.security.identifiers import validate_identifier

logger = logging.getLogger(__name__)


class RefreshTokenStore:
    """Hashed refresh token storage with fixed TTL and per-user revocation.

    Example:
        tokens = RefreshTokenStore(kv)

        raw = secrets.token_urlsafe(48)
        await tokens.store_refresh_token(hash_token(raw), RefreshTokenData(
            user_id="user-123",
            token_id=generate_token_id(),
            created_at=now.isoformat(),
            expires_at=(now + timedelta(days=7)).isoformat(),
        ))

        record = await tokens.get_refresh_token(hash_token(raw))
    """

    def __init__(
        self,
        kv: KeyValueStore,
        ttl_seconds: int = REFRESH_TOKEN_TTL_SECONDS,
        encryption: PayloadEncryption | None = None,
        scan_batch_size: int = 500,
    ) -> None:
        self._kv = kv
        self.ttl_seconds = ttl_seconds
        self.scan_batch_size = scan_batch_size
        self._codec = PayloadCodec(encryption)

    async def store_refresh_token(self, token_hash: str, data: RefreshTokenData) -> None:
        """Store a token record under its hash with the fixed TTL.

        The record and its user index entry are written together: if the index
        write fails the record is deleted again, so every stored token stays
        reachable from the index.

        Raises:
            StoreOperationError: If the record or the index write fails
        """
        validate_identifier(token_hash, "token_hash")
        user_id = validate_identifier(data["user_id"], "user_id")

        try:
            await self._kv.set(
                refresh_token_key(token_hash), self._codec.encode(dict(data)), self.ttl_seconds
            )
        except StoreOperationError:
            record_refresh_token_operation("store", "error")
            logger.error("Failed to store refresh token", extra={"user_id": user_id})
            raise

        try:
            await self._kv.sadd(
                user_refresh_tokens_key(user_id), token_hash, ttl_seconds=self.ttl_seconds
            )
        except StoreOperationError as e:
            # An unindexed token would survive delete_all_user_refresh_tokens
            record_refresh_token_operation("index_add", "error")
            logger.error(
                "Failed to add refresh token to user index, discarding token",
                extra={"user_id": user_id, "error": str(e)},
            )
            await self._discard(refresh_token_key(token_hash), user_id)
            raise

        record_refresh_token_operation("store", "success")
        logger.debug(
            "Refresh token stored",
            extra={"user_id": user_id, "key": data["token_id"]},
        )

    async def get_refresh_token(self, token_hash: str) -> RefreshTokenData | None:
        """Look up a token record by hash.

        Returns:
            Token record, or None if absent or expired

        Raises:
            StoreOperationError: If the read fails
            SerializationError: If the stored record cannot be decoded
        """
        validate_identifier(token_hash, "token_hash")
        key = refresh_token_key(token_hash)

        raw = await self._kv.get(key)
        if raw is None:
            record_refresh_token_operation("get", "miss")
            return None

        try:
            data = self._codec.decode(key, raw, required=("user_id", "token_id"))
        except SerializationError:
            record_refresh_token_operation("get", "error")
            logger.error("Corrupt refresh token record")
            raise

        record_refresh_token_operation("get", "hit")
        return cast(RefreshTokenData, data)

    async def delete_refresh_token(self, token_hash: str) -> bool:
        """Delete a token record. Idempotent.

        Returns:
            True if a record was deleted, False if it was already gone
        """
        validate_identifier(token_hash, "token_hash")
        key = refresh_token_key(token_hash)

        owner: str | None = None
        raw = await self._kv.get(key)
        if raw is not None:
            try:
                owner = self._codec.decode(key, raw).get("user_id")
            except SerializationError:
                logger.warning("Deleting undecodable refresh token record")

        deleted = await self._kv.delete(key)

        if owner:
            try:
                await self._kv.srem(user_refresh_tokens_key(owner), token_hash)
            except StoreOperationError as e:
                logger.error(
                    "Failed to remove refresh token from user index",
                    extra={"user_id": owner, "error": str(e)},
                )

        record_refresh_token_operation("delete", "success" if deleted else "not_found")
        logger.debug("Refresh token deleted", extra={"user_id": owner, "count": deleted})
        return bool(deleted)

    async def delete_all_user_refresh_tokens(self, user_id: str, full_scan: bool = False) -> int:
        """Revoke every refresh token owned by a user.

        The user index lists every token written through store_refresh_token,
        so the default path is complete.

        Args:
            user_id: Owning user identifier
            full_scan: Also SCAN all token records and delete those owned by
                the user but missing from the index (records written outside
                this store, or before the index existed)

        Returns:
            Number of token records deleted

        Raises:
            StoreOperationError: If enumerating or deleting fails
        """
        validate_identifier(user_id, "user_id")
        index_key = user_refresh_tokens_key(user_id)

        indexed = await self._kv.smembers(index_key)
        keys = {refresh_token_key(h) for h in indexed}

        if full_scan:
            async for key in self._kv.scan_keys(f"{REFRESH_TOKEN_PREFIX}*", self.scan_batch_size):
                if key in keys:
                    continue
                raw = await self._kv.get(key)
                if raw is None:
                    continue
                try:
                    owner = self._codec.decode(key, raw).get("user_id")
                except SerializationError:
                    logger.warning("Skipping undecodable refresh token record during scan")
                    continue
                if owner == user_id:
                    keys.add(key)

        deleted = await self._kv.delete(*keys) if keys else 0
        # SREM rather than DEL keeps hashes added by a concurrent store
        await self._kv.srem(index_key, *indexed)

        record_refresh_token_operation("delete_all", "success")
        logger.info(
            "All refresh tokens deleted for user",
            extra={"user_id": user_id, "count": deleted},
        )
        return deleted

    async def _discard(self, key: str, user_id: str) -> None:
        try:
            await self._kv.delete(key)
        except StoreOperationError as e:
            # The caller never hands this token out, so nobody can present it
            logger.error(
                "Failed to discard unindexed refresh token",
                extra={"user_id": user_id, "error": str(e)},
            )
