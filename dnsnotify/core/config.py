"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

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


def _build_pushover_settings() -> "PushoverSettings":
    return PushoverSettings()


def _build_app_settings() -> "AppSettings":
    return AppSettings()


def _build_log_settings() -> "LogSettings":
    return LogSettings()


class PushoverSettings(BaseSettings):
    """Pushover notification settings.

    Defaults mirror the ones written by the configuration migration that
    introduced the notifications section. Credentials and tunables are
    passed through unvalidated; a bad token only shows up as a failed
    delivery in the logs.
    """

    enabled: bool = Field(
        False,
        description="Send push notifications for rule matches",
    )
    app_token: str = Field(
        "",
        description="Pushover application API token",
    )
    user_key: str = Field(
        "",
        description="Pushover user or group key",
    )
    sound: str = Field(
        "",
        description="Optional notification sound name",
    )
    priority: int = Field(
        0,
        description="Pushover message priority (-2 to 2)",
    )
    rate_limit_per_5min: int = Field(
        1,
        description="Maximum notifications per domain per 5 minutes",
    )
    global_rate_limit_per_min: int = Field(
        1,
        description="Maximum notifications per minute across all domains",
    )
    api_url: str = Field(
        "https://api.pushover.net/1/messages.json",
        description="Pushover messages endpoint",
    )
    timeout_seconds: float = Field(
        10.0,
        description="Timeout for a single push request in seconds",
    )
    title_prefix: str = Field(
        "AdGuard",
        description="Prefix used for notification titles",
    )
    cleanup_interval_seconds: float = Field(
        300.0,
        description="How often stale per-domain rate limit entries are pruned",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="PUSHOVER_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    api_key_required: bool = Field(
        True,
        description="Whether API key authentication is required",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid API keys for authentication",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log output: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
    )
    backup_count: int = Field(5, description="Number of rotated log files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    """

    app_env: str = APP_ENV
    pushover: PushoverSettings = Field(default_factory=_build_pushover_settings)
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Nested settings are created via default_factory so env loading works.
settings = Settings()
