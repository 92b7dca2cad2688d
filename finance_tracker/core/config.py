"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field(
        "json",
        description="Log line format: machine-friendly json or plain text",
    )
    output: Literal["stdout", "file"] = Field("stdout", description="Log destination")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
    )
    backup_count: int = Field(5, description="Number of rotated files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    auth_tokens: str | None = Field(
        None,
        description=(
            "Comma-separated bearer session tokens in the form "
            "token:user_id[:email], resolved by the static auth provider"
        ),
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Sliding-window quotas per policy namespace."""

    enabled: bool = Field(True, description="Enable rate limiting in the request gate")
    key_prefix: str = Field(
        "finance-tracker:ratelimit",
        description="Namespace prefix for token store keys",
    )
    write_requests: int = Field(10, ge=1, description="Write quota per window")
    write_window_seconds: int = Field(10, ge=1, description="Write window size")
    read_requests: int = Field(30, ge=1, description="Read quota per window")
    read_window_seconds: int = Field(10, ge=1, description="Read window size")
    auth_requests: int = Field(5, ge=1, description="Auth quota per window")
    auth_window_seconds: int = Field(60, ge=1, description="Auth window size")
    fail_closed: bool = Field(
        True,
        description=(
            "Reject traffic with 503 when the token store is unreachable. "
            "When false, requests are admitted unmetered during the outage."
        ),
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class CsrfSettings(BaseSettings):
    """Anti-forgery cookie configuration."""

    cookie_secure: bool | None = Field(
        None,
        description="Force the Secure cookie flag; defaults to true only in production",
    )
    max_age_seconds: int = Field(60 * 60 * 24, ge=1, description="Cookie lifetime")

    model_config = SettingsConfigDict(
        env_prefix="CSRF_",
        case_sensitive=False,
    )


class TokenStoreSettings(BaseSettings):
    """Shared counter store used by the rate limiter."""

    backend: Literal["redis", "memory"] = Field(
        "redis",
        description="redis for shared deployments, memory for single-process dev/tests",
    )
    redis_url: str = Field("redis://localhost:6379/0", description="Redis connection URL")
    socket_timeout_seconds: float = Field(
        1.0,
        description="Per-command timeout before the store is considered unavailable",
    )
    memory_max_keys: int = Field(
        10_000,
        ge=1,
        description="LRU bound on tracked keys for the in-memory backend",
    )

    model_config = SettingsConfigDict(
        env_prefix="TOKEN_STORE_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.

    Environments:
    - development: Local development
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (Secure cookies, uses .env.production)
    """

    app_env: str = APP_ENV
    log: LogSettings = Field(default_factory=LogSettings)
    app: AppSettings = Field(default_factory=AppSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    csrf: CsrfSettings = Field(default_factory=CsrfSettings)
    token_store: TokenStoreSettings = Field(default_factory=TokenStoreSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
