"""Stored payload types and key layout for sessions and refresh tokens."""

from typing import TypedDict

# Key prefixes (one flat keyspace, partitioned by entity type)
SESSION_PREFIX = "session:"
USER_SESSIONS_PREFIX = "user_sessions:"
REFRESH_TOKEN_PREFIX = "refresh_token:"
USER_REFRESH_TOKENS_PREFIX = "user_refresh_tokens:"

# Session TTL: 15 minutes of inactivity (sliding), matches the access credential
SESSION_TTL_SECONDS = 15 * 60

# Refresh token TTL: 7 days (fixed)
REFRESH_TOKEN_TTL_SECONDS = 7 * 24 * 60 * 60


class _SessionRequired(TypedDict):
    user_id: str
    email: str
    first_name: str
    last_name: str
    login_at: str


class SessionData(_SessionRequired, total=False):
    """Authenticated session payload.

    Attributes:
        user_id: Owning user identifier
        email: User's email address
        first_name: User's first name
        last_name: User's last name
        login_at: ISO-8601 login timestamp
        last_activity: ISO-8601 timestamp, rewritten on every successful read
        ip_address: Client IP address
        user_agent: Client user agent
    """

    last_activity: str
    ip_address: str | None
    user_agent: str | None


class RefreshTokenData(TypedDict):
    """Refresh token record, keyed by the token's SHA-256 hash.

    Attributes:
        user_id: Owning user identifier
        token_id: Non-secret correlation ID for auditing and revocation
        created_at: ISO-8601 creation timestamp
        expires_at: ISO-8601 expiry timestamp
    """

    user_id: str
    token_id: str
    created_at: str
    expires_at: str


def session_key(session_id: str) -> str:
    return f"{SESSION_PREFIX}{session_id}"


def user_sessions_key(user_id: str) -> str:
    return f"{USER_SESSIONS_PREFIX}{user_id}"


def refresh_token_key(token_hash: str) -> str:
    return f"{REFRESH_TOKEN_PREFIX}{token_hash}"


def user_refresh_tokens_key(user_id: str) -> str:
    return f"{USER_REFRESH_TOKENS_PREFIX}{user_id}"
