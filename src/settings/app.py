"""Application settings powered by Pydantic BaseSettings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.features.config.constants import (
    DEFAULT_DNS_TTL_SECONDS,
    DEFAULT_IDLE_TIMEOUT_MS,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_USER_AGENT,
)


class AppSettings(BaseSettings):
    """Centralized environment configuration.

    Every field reads a ``REQUEST_``-prefixed environment variable, e.g.
    ``REQUEST_TIMEOUT_MS`` or ``REQUEST_LOG_LEVEL``.
    """

    model_config = SettingsConfigDict(
        env_prefix="REQUEST_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    user_agent: str = DEFAULT_USER_AGENT
    timeout_ms: float = Field(default=DEFAULT_TIMEOUT_MS, ge=0)
    idle_timeout_ms: float = Field(default=DEFAULT_IDLE_TIMEOUT_MS, ge=0)
    follow: bool | int = False
    retries: bool | int = False
    dns_ttl_seconds: float = Field(default=DEFAULT_DNS_TTL_SECONDS, ge=0)
    keep_alive: bool = False
    verify_tls: bool = True
    log_level: str = "INFO"
    log_json: bool = False


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
