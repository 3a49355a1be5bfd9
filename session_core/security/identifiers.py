"""Identifier generation and one-way token hashing.

Session identifiers are bearer secrets: 256 bits from the OS CSPRNG, hex
encoded. Token identifiers are non-secret correlation IDs. Raw refresh tokens
are never stored; only their SHA-256 digest is used as a lookup key.
"""

import hashlib
import re
import secrets
import uuid

SESSION_ID_BYTES = 32

# Identifiers become key suffixes; glob metacharacters would leak into SCAN patterns
_IDENTIFIER_PATTERN = re.compile(r"^[a-zA-Z0-9_.@-]+$")


def generate_session_id() -> str:
    """Generate an unguessable session identifier.

    Returns:
        64-character lowercase hex string (256 random bits)
    """
    return secrets.token_hex(SESSION_ID_BYTES)


def generate_token_id() -> str:
    """Generate a random UUID used to correlate a refresh token in audit logs."""
    return str(uuid.uuid4())


def hash_token(raw_token: str) -> str:
    """Hash a raw token for storage and lookup.

    Deterministic: the same input always yields the same digest, so a token
    presented later can be found by hashing it again.

    Args:
        raw_token: Token as presented by the client

    Returns:
        SHA-256 hex digest
    """
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def validate_identifier(value: str, kind: str = "identifier") -> str:
    """Check that an identifier is safe to use as a key suffix.

    Only alphanumeric characters plus ``_ . @ -`` are allowed.

    Args:
        value: Session ID, user ID or token hash
        kind: Name used in the error message

    Returns:
        The identifier, unchanged

    Raises:
        ValueError: If the identifier is empty or contains other characters
    """
    if not value:
        raise ValueError(f"{kind} must be non-empty")
    if not _IDENTIFIER_PATTERN.match(value):
        raise ValueError(
            f"{kind} '{value}' contains invalid characters; "
            "only alphanumeric characters and _ . @ - are allowed"
        )
    return value


__all__ = [
    "SESSION_ID_BYTES",
    "generate_session_id",
    "generate_token_id",
    "hash_token",
    "validate_identifier",
]
