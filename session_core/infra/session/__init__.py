"""Session and refresh token stores.

- SessionStore: sliding-TTL sessions with a per-user session index
- RefreshTokenStore: hash-keyed refresh tokens with fixed TTL
"""

from session_core.infra.session.models import (
    REFRESH_TOKEN_TTL_SECONDS,
    SESSION_TTL_SECONDS,
    RefreshTokenData,
    SessionData,
)
from session_core.infra.session.store import SessionStore
from session_core.infra.session.tokens import RefreshTokenStore

__all__ = [
    "SessionStore",
    "RefreshTokenStore",
    "SessionData",
    "RefreshTokenData",
    "SESSION_TTL_SECONDS",
    "REFRESH_TOKEN_TTL_SECONDS",
]
