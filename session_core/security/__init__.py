"""Security utilities for the session core.

Provides identifier generation, token hashing and optional payload
encryption:
- identifiers: Session IDs, token IDs and SHA-256 token hashing
- crypto: Fernet encryption of stored payloads, with key rotation
"""

from session_core.security.crypto import (
    DecryptionError,
    EncryptionError,
    InvalidEncryptionKeyError,
    PayloadEncryption,
    generate_encryption_key,
    validate_encryption_key,
)
from session_core.security.identifiers import (
    generate_session_id,
    generate_token_id,
    hash_token,
    validate_identifier,
)

__all__ = [
    # Identifiers
    "generate_session_id",
    "generate_token_id",
    "hash_token",
    "validate_identifier",
    # Crypto
    "PayloadEncryption",
    "EncryptionError",
    "InvalidEncryptionKeyError",
    "DecryptionError",
    "generate_encryption_key",
    "validate_encryption_key",
]
