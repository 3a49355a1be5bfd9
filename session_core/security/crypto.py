"""Encryption at rest for session and refresh-token payloads.

Payloads are JSON strings sealed with Fernet (AES-128-CBC + HMAC-SHA256)
before they reach the store, so a dump of the store does not expose profile
data. Encryption is enabled by configuring ``encryption_key``.

Key rotation: configure the new key as ``encryption_key`` and move the old
one to ``encryption_previous_keys``. New writes use the new key; payloads
sealed with a previous key stay readable until they expire (sessions within
15 minutes, refresh tokens within 7 days).
"""

import logging
from collections.abc import Sequence

from cryptography.fernet import Fernet, InvalidToken, MultiFernet

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Base exception for payload encryption errors."""

    pass


class InvalidEncryptionKeyError(EncryptionError):
    """Configured key is not a base64-encoded 32-byte Fernet key."""

    pass


class DecryptionError(EncryptionError):
    """Payload was tampered with, or sealed with a key that is not configured."""

    pass


def _fernet(key: str) -> Fernet:
    try:
        return Fernet(key.encode("utf-8"))
    except (ValueError, TypeError) as e:
        raise InvalidEncryptionKeyError(
            f"Invalid encryption key: expected a base64-encoded 32-byte Fernet key ({e})"
        ) from e


class PayloadEncryption:
    """Seal and open stored payloads.

    Example:
        encryption = PayloadEncryption(settings.encryption_key, settings.encryption_previous_keys)

        stored = encryption.encrypt(json.dumps(session_data))
        session_data = json.loads(encryption.decrypt(stored))
    """

    def __init__(self, encryption_key: str, previous_keys: Sequence[str] = ()) -> None:
        """Initialize payload encryption.

        Args:
            encryption_key: Current key, used for every new payload
            previous_keys: Retired keys still accepted for decryption

        Raises:
            InvalidEncryptionKeyError: If any key is malformed
        """
        self._fernet = MultiFernet([_fernet(encryption_key), *(_fernet(k) for k in previous_keys)])
        self.key_count = 1 + len(previous_keys)
        logger.info("Payload encryption enabled", extra={"count": self.key_count})

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        """Open a payload sealed with the current or any previous key.

        Raises:
            DecryptionError: If no configured key authenticates the payload
        """
        try:
            return self._fernet.decrypt(ciphertext.encode("utf-8")).decode("utf-8")
        except InvalidToken as e:
            # Payload content is never logged
            raise DecryptionError(
                "Payload failed authentication: tampered, or sealed with an unknown key"
            ) from e


def generate_encryption_key() -> str:
    """Generate a new Fernet key for ``SESSION_CORE_ENCRYPTION_KEY``."""
    return Fernet.generate_key().decode("ascii")


def validate_encryption_key(key: str) -> bool:
    """Check whether a string is a usable Fernet key."""
    try:
        _fernet(key)
    except InvalidEncryptionKeyError:
        return False
    return True


__all__ = [
    "DecryptionError",
    "EncryptionError",
    "InvalidEncryptionKeyError",
    "PayloadEncryption",
    "generate_encryption_key",
    "validate_encryption_key",
]
