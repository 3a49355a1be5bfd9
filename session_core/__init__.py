"""Session Core - session, refresh token and cache management on Redis.

This package provides authenticated-session lifecycle with sliding expiry,
hashed refresh token custody, per-user session indexing and an invalidatable
cache, all on top of a supervised, auto-reconnecting Redis connection.
"""

__version__ = "0.1.0"
__author__ = "Session Core Contributors"

from session_core.config import Settings, get_settings, load_settings_from_file, set_settings
from session_core.manager import SessionManager

__all__ = [
    "SessionManager",
    "Settings",
    "__version__",
    "get_settings",
    "load_settings_from_file",
    "set_settings",
]
