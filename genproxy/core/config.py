"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

Upstream credentials keep the bare names the proxy has always been deployed
with (GENERATIVE_API_KEYS / GENERATIVE_API_KEY / GEMINI_MODEL), so that group
has no env prefix.
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

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_upstream_settings() -> "UpstreamSettings":
    """Build upstream settings from environment."""

    return UpstreamSettings()


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment."""

    return AppSettings()


def _build_log_settings() -> "LogSettings":
    """Build log settings from environment."""

    return LogSettings()


class UpstreamSettings(BaseSettings):
    """Generative-language upstream configuration.

    Credentials are never validated here: an empty pool is a per-request
    configuration error surfaced by the dispatcher, not a startup failure.
    """

    generative_api_keys: str | None = Field(
        None,
        description="Comma-separated credential pool (first 5 are used)",
    )
    generative_api_key: str | None = Field(
        None,
        description="Single credential, used when GENERATIVE_API_KEYS is unset",
    )
    gemini_model: str = Field(
        "gemini-1.5-flash",
        description="Model name used in the generateContent endpoint path",
    )
    upstream_provider: str = Field(
        "gemini",
        description="Upstream provider name (only 'gemini' is supported)",
    )
    upstream_base_url: str = Field(
        "https://generativelanguage.googleapis.com/v1beta",
        description="Base URL of the generative-language API",
    )
    upstream_timeout_seconds: float = Field(
        30.0,
        description="Per-attempt upstream timeout in seconds",
        gt=0,
    )
    upstream_payload_style: Literal["contents", "prompt"] = Field(
        "contents",
        description="Upstream body shape: 'contents' or legacy flattened 'prompt'",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable per-client sliding-window rate limiting",
    )
    rate_limit_requests: int = Field(
        5,
        description="Maximum number of requests admitted per window (per client)",
        ge=1,
    )
    rate_limit_window_ms: int = Field(
        10_000,
        description="Sliding window size in milliseconds",
        ge=1,
    )
    rate_limit_max_clients: int = Field(
        5000,
        description="High-water mark of tracked clients before eviction kicks in",
        ge=1,
    )
    rate_limit_eviction: Literal["reset", "lru"] = Field(
        "reset",
        description="'reset' clears the whole table at the high-water mark, 'lru' evicts one client",
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )

    normalize_response: bool = Field(
        False,
        description="Return {candidates: [...], raw} instead of the upstream payload",
    )
    wrap_response: bool = Field(
        False,
        description="Return {ok, model, duration_ms, result} around the success body",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field("json", description="Log line format")
    output: Literal["stdout", "file"] = Field("stdout", description="Log destination")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file at this size (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated log files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to accept and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.

    Environments:
    - development: Local development (DEBUG=true)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    upstream: UpstreamSettings = Field(default_factory=_build_upstream_settings)
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
