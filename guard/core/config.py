"""Settings for the protection layer, read from the environment.

``APP_ENV`` (development, testing, staging, production) selects an optional
``.env.<APP_ENV>`` file at the project root. Its values are exported into
``os.environ`` before any settings object is built, because nested
``BaseSettings`` do not read ``env_file`` themselves. Logging settings use the
``LOG_`` prefix, everything else ``APP_``.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

KNOWN_ENVIRONMENTS = ("development", "testing", "staging", "production")

APP_ENV = os.getenv("APP_ENV", "development")

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def env_file_for(app_env: str, root: Path = PROJECT_ROOT) -> Path | None:
    """Return the dotenv file of an environment, or None when it is absent.

    Unknown environment names fall back to the development file.
    """
    name = app_env if app_env in KNOWN_ENVIRONMENTS else "development"
    path = root / f".env.{name}"
    return path if path.is_file() else None


_env_file = env_file_for(APP_ENV)
if _env_file is not None:
    load_dotenv(_env_file, override=True)


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


def _build_app_settings() -> "AppSettings":
    # Fields come from the environment, not from constructor arguments
    return AppSettings()  # type: ignore[call-arg]


class LogSettings(BaseSettings):
    """Logging configuration (level, format and destination)."""

    level: str = Field(
        "INFO",
        description="Root log level (DEBUG, INFO, WARNING, ERROR)",
    )
    format: str = Field(
        "json",
        description="Log format: 'json' for structured logs or 'plain' for text",
    )
    output: str = Field(
        "stdout",
        description="Log destination: 'stdout' or 'file'",
    )
    file_path: str | None = Field(
        None,
        description="Log file path when output is 'file'",
    )
    max_bytes: int = Field(
        10_485_760,
        description="Rotate the log file after this many bytes (0 disables rotation)",
    )
    backup_count: int = Field(
        5,
        description="Number of rotated log files to keep",
    )
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode (echoes audit events to the log)",
    )
    api_key_required: bool = Field(
        True,
        description="Whether diagnostics accept X-API-Key; the session cookie is always accepted",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid API keys for authentication",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable per-client rate limiting on API routes",
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* headers on rate limited routes",
    )
    rate_limit_sweep_interval_seconds: int = Field(
        300,
        description="Interval between sweeps of expired rate limit entries",
        ge=1,
    )

    audit_capacity: int = Field(
        1000,
        description="Maximum number of audit events retained in memory",
        ge=1,
    )
    cache_default_ttl_seconds: float = Field(
        300.0,
        description="Default freshness applied to cache reads without an explicit TTL",
        gt=0,
    )
    upstream_timeout_seconds: float = Field(
        30.0,
        description="Timeout for upstream fetches wrapped by the response cache",
    )

    security_headers_enabled: bool = Field(
        True,
        description="Attach security headers to every response",
    )
    required_env_vars: str = Field(
        "DASHBOARD_USERNAME,DASHBOARD_PASSWORD,GOOGLE_CLIENT_EMAIL,GOOGLE_PRIVATE_KEY",
        description="Comma-separated environment variables checked by the security status report",
    )
    min_password_length: int = Field(
        12,
        description="Minimum recommended length of the dashboard password",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Top-level settings; validation errors surface at import time."""

    app_env: str = APP_ENV
    log: LogSettings = Field(default_factory=_build_log_settings)
    app: AppSettings = Field(default_factory=_build_app_settings)

    model_config = SettingsConfigDict(case_sensitive=False)


settings = Settings()
