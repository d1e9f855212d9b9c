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


def _build_database_settings() -> "DatabaseSettings":
    """Build database settings from environment."""

    return DatabaseSettings()


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment."""

    return AppSettings()


def _build_log_settings() -> "LogSettings":
    """Build logging settings from environment."""

    return LogSettings()


class DatabaseSettings(BaseSettings):
    """Database session and connection pool configuration.

    The same connection parameters feed both the one-off connection factory
    and the pool, so every strategy talks to the same database.
    """

    driver: str = Field(
        "pymysql",
        description="Database driver used to open sessions (supported: pymysql)",
    )
    host: str = Field("localhost", description="Database server host")
    port: int = Field(3308, description="Database server port", ge=1, le=65535)
    user: str = Field("testuser", description="Database user")
    password: str = Field("testpass", description="Database password")
    name: str = Field("aliconcon", description="Target database (schema) name")
    multiple_statements: bool = Field(
        True,
        description="Allow several ';'-separated statements in one query",
    )
    connect_timeout_seconds: float = Field(
        10.0,
        description="Timeout for establishing a new database session",
        gt=0,
    )
    pool_capacity: int = Field(
        10,
        description="Maximum number of live connections owned by the pool",
        ge=1,
    )
    pool_acquire_timeout_seconds: float = Field(
        10.0,
        description="How long acquire() waits for a free connection",
        gt=0,
    )
    pool_drain_timeout_seconds: float = Field(
        10.0,
        description="How long shutdown waits for outstanding leases to return",
        ge=0,
    )
    query: str = Field(
        "SELECT * FROM user",
        description="Query issued by the /normal, /pool and /pool2 endpoints",
    )

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    host: str = Field("0.0.0.0", description="Interface the server binds to")
    port: int = Field(8080, description="Listening port", ge=1, le=65535)
    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    graceful_shutdown_seconds: int = Field(
        10,
        description="Time allowed for in-flight requests to finish on shutdown",
        ge=0,
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable global rate limiting per client address",
    )
    rate_limit_requests: int = Field(
        20,
        description="Maximum number of requests allowed per window (per client)",
        ge=1,
    )
    rate_limit_window_seconds: int = Field(
        60,
        description="Rate limit window size in seconds",
        ge=1,
    )
    rate_limit_status_code: int = Field(
        429,
        description="HTTP status returned when a client is throttled",
        ge=400,
        le=599,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        0,
        description="Rotate the log file at this size (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated log files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
    )
    access_log: bool = Field(
        True,
        description="Emit one http.access record per request",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.

    Environments:
    - development: Local development (DEBUG=true)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    db: DatabaseSettings = Field(default_factory=_build_database_settings)
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
