"""Settings for the store connection, lifetimes, logging and encryption.

Values come from, lowest priority first: field defaults, a `.env` file, an
optional YAML or TOML file (`load_settings_from_file`), and `SESSION_CORE_*`
environment variables. Invalid values fail at construction time.
"""

import os
from collections.abc import Callable
from pathlib import Path
from typing import Any, Literal
from urllib.parse import quote

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from session_core.security.crypto import validate_encryption_key

_REDIS_URL_SCHEMES = ("redis://", "rediss://", "unix://")


class Settings(BaseSettings):
    """Session core configuration with sensible defaults.

    Example:
        # Load from environment only
        settings = Settings()

        # Override specific values
        settings = Settings(redis_host="cache.internal", session_ttl_seconds=600)
    """

    model_config = SettingsConfigDict(
        env_prefix="SESSION_CORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore unknown fields
    )

    # ========================================
    # Application Settings
    # ========================================

    debug: bool = Field(default=False, description="Enable debug mode with verbose logging")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )

    log_format: Literal["json", "text"] = Field(default="json", description="Log output format")

    log_file: str | None = Field(default=None, description="Optional log file path")

    # ========================================
    # Redis Connection
    # ========================================

    redis_host: str = Field(default="localhost", description="Redis server host")

    redis_port: int = Field(default=6379, ge=1, le=65535, description="Redis server port")

    redis_db: int = Field(default=0, ge=0, le=15, description="Redis logical database")

    redis_password: str | None = Field(default=None, description="Redis AUTH password")

    redis_url: str | None = Field(
        default=None,
        description="Full Redis URL; overrides host/port/db/password when set",
    )

    redis_pool_size: int = Field(default=10, ge=1, le=200, description="Connection pool size")

    redis_timeout_seconds: float = Field(
        default=5.0, gt=0, le=60.0, description="Socket timeout for store commands"
    )

    redis_connect_timeout_seconds: float = Field(
        default=5.0, gt=0, le=60.0, description="Bound on connect and reconnect probes"
    )

    redis_max_reconnect_attempts: int = Field(
        default=5, ge=1, le=100, description="Reconnect probes before forcing a disconnect"
    )

    redis_reconnect_delay_seconds: float = Field(
        default=1.0, ge=0.0, le=60.0, description="Pause between failed reconnect probes"
    )

    # ========================================
    # Session, Token & Cache Lifetimes
    # ========================================

    session_ttl_seconds: int = Field(
        default=15 * 60, gt=0, description="Sliding session inactivity window"
    )

    refresh_token_ttl_seconds: int = Field(
        default=7 * 24 * 60 * 60, gt=0, description="Fixed refresh token lifetime"
    )

    cache_default_ttl_seconds: int = Field(
        default=60 * 60, gt=0, description="Default TTL for cached data"
    )

    cache_scan_batch_size: int = Field(
        default=500, ge=10, le=10_000, description="SCAN COUNT hint for bulk invalidation"
    )

    # ========================================
    # Security & Encryption
    # ========================================

    encryption_key: str | None = Field(
        default=None,
        description="Fernet key; when set, session and token payloads are encrypted at rest",
    )

    encryption_previous_keys: list[str] = Field(
        default_factory=list,
        description="Retired Fernet keys still accepted when reading payloads (key rotation)",
    )

    # ========================================
    # Validators
    # ========================================

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: str | None) -> str | None:
        """Validate Redis URL scheme."""
        if v is not None and not v.startswith(_REDIS_URL_SCHEMES):
            raise ValueError("redis_url must start with redis://, rediss:// or unix://")
        return v

    @model_validator(mode="after")
    def validate_encryption(self) -> "Settings":
        """Validate encryption key format if provided."""
        if self.encryption_key is not None and not validate_encryption_key(self.encryption_key):
            raise ValueError("encryption_key must be a base64-encoded 32-byte Fernet key")
        if self.encryption_previous_keys:
            if self.encryption_key is None:
                raise ValueError("encryption_previous_keys requires encryption_key")
            if not all(validate_encryption_key(k) for k in self.encryption_previous_keys):
                raise ValueError("encryption_previous_keys must all be valid Fernet keys")
        return self

    # ========================================
    # Helper Methods
    # ========================================

    @property
    def store_url(self) -> str:
        """Effective Redis URL built from the individual connection fields."""
        if self.redis_url:
            return self.redis_url
        auth = f":{quote(self.redis_password, safe='')}@" if self.redis_password else ""
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"

    @property
    def encryption_enabled(self) -> bool:
        """Check if payload encryption at rest is configured."""
        return self.encryption_key is not None

    def to_dict(self) -> dict:
        """Convert settings to dictionary, masking secrets."""
        data = self.model_dump()
        if data.get("redis_password"):
            data["redis_password"] = "***REDACTED***"
        if data.get("encryption_key"):
            data["encryption_key"] = "***REDACTED***"
        if data.get("encryption_previous_keys"):
            data["encryption_previous_keys"] = ["***REDACTED***"] * len(
                data["encryption_previous_keys"]
            )
        if data.get("redis_url") and "@" in data["redis_url"]:
            scheme, _, rest = data["redis_url"].partition("://")
            data["redis_url"] = f"{scheme}://***REDACTED***@{rest.split('@', 1)[1]}"
        return data


# ========================================
# Global Settings Instance
# ========================================

_settings: Settings | None = None


def get_settings() -> Settings:
    """Get global settings instance (singleton).

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings) -> None:
    """Set global settings instance.

    Args:
        settings: Settings instance to use globally
    """
    global _settings
    _settings = settings


def _read_yaml(path: Path) -> dict[str, Any]:
    import yaml

    with path.open(encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _read_toml(path: Path) -> dict[str, Any]:
    import tomllib

    with path.open("rb") as f:
        return tomllib.load(f)


_CONFIG_READERS: dict[str, Callable[[Path], dict[str, Any]]] = {
    ".yaml": _read_yaml,
    ".yml": _read_yaml,
    ".toml": _read_toml,
}


def _env_field_names() -> set[str]:
    """Field names that currently have a SESSION_CORE_* environment variable."""
    prefix = Settings.model_config["env_prefix"]
    return {
        name[len(prefix) :].lower() for name in os.environ if name.upper().startswith(prefix)
    }


def load_settings_from_file(config_file: Path | str) -> Settings:
    """Build settings from a YAML or TOML file.

    Keys in the file are field names without the env prefix. A field that is
    also set in the environment keeps the environment value.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the extension is not .yaml, .yml or .toml

    Example:
        set_settings(load_settings_from_file("config/prod.yaml"))
    """
    path = Path(config_file)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    reader = _CONFIG_READERS.get(path.suffix.lower())
    if reader is None:
        raise ValueError(
            f"Unsupported config file format: {path.suffix}. Use .yaml, .yml, or .toml"
        )

    from_env = _env_field_names()
    file_values = {k: v for k, v in reader(path).items() if k.lower() not in from_env}
    return Settings(**file_values)
