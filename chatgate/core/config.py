"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

Quota limits, routes in scope and verification policy are NOT read from the
environment. They live in the JSON file pointed to by GATE_CONFIG_PATH and are
hot-reloaded by ``chatgate.services.config_provider``. This module only holds
process-level settings and secrets.
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


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field(
        "json",
        description="Log format: 'json' (default) or 'plain'",
    )
    output: str = Field(
        "stdout",
        description="Log destination: 'stdout' or 'file'",
    )
    file_path: str | None = Field(
        None,
        description="Log file path when output=file",
    )
    max_bytes: int = Field(
        10_485_760,
        description="Rotate the log file after this many bytes (0 disables rotation)",
    )
    backup_count: int = Field(5, description="Number of rotated log files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class StoreSettings(BaseSettings):
    """Shared quota store configuration."""

    backend: str = Field(
        "redis",
        description="Quota store backend: 'redis' (shared) or 'memory' (single process)",
    )
    redis_url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL",
    )
    timeout_ms: int = Field(
        200,
        description="Upper bound for a single store round trip in milliseconds",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        case_sensitive=False,
    )

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000


class GateSettings(BaseSettings):
    """Identity resolution and gate wiring."""

    config_path: str = Field(
        "config/rate-limits.json",
        description=(
            "Path of the JSON gate configuration. Relative paths resolve from the "
            "working directory, then from the source checkout root"
        ),
    )
    jwt_secret: str | None = Field(
        None,
        description="Secret used to verify bearer JWT signatures",
    )
    jwt_algorithms: str = Field(
        "HS256",
        description="Comma-separated list of accepted JWT algorithms",
    )
    allow_unverified_jwt: bool = Field(
        False,
        description=(
            "Trust the 'sub' claim of unverified JWTs when no secret is set. "
            "Development only."
        ),
    )
    session_cookie_name: str = Field(
        "sessionId",
        description="Cookie carrying the session identifier",
    )
    local_cache_max_entries: int = Field(
        10_000,
        description="Maximum entries in the in-process verification cache",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="GATE_",
        case_sensitive=False,
    )

    @property
    def resolved_config_path(self) -> Path:
        path = Path(self.config_path)
        if path.is_absolute():
            return path
        # An installed package has no checkout root; prefer the working directory.
        from_cwd = Path.cwd() / path
        from_root = PROJECT_ROOT / path
        if from_cwd.exists() or not from_root.exists():
            return from_cwd
        return from_root

    @property
    def jwt_algorithm_list(self) -> tuple[str, ...]:
        return tuple(a.strip() for a in self.jwt_algorithms.split(",") if a.strip())


class AdminSettings(BaseSettings):
    """Authentication for the administrative endpoints."""

    api_key_required: bool = Field(
        True,
        description="Whether API key authentication is required on admin routes",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid admin API keys",
    )

    model_config = SettingsConfigDict(
        env_prefix="ADMIN_",
        case_sensitive=False,
    )


class TurnstileSettings(BaseSettings):
    """Cloudflare Turnstile proof verification."""

    secret_key: str | None = Field(
        None,
        description="Turnstile secret key used for server-side verification",
    )
    verify_url: str = Field(
        "https://challenges.cloudflare.com/turnstile/v0/siteverify",
        description="Turnstile siteverify endpoint",
    )
    timeout_seconds: float = Field(
        5.0,
        description="Request timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="TURNSTILE_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.

    Environments:
    - development: Local development
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    log: LogSettings = Field(default_factory=LogSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    gate: GateSettings = Field(default_factory=GateSettings)
    admin: AdminSettings = Field(default_factory=AdminSettings)
    turnstile: TurnstileSettings = Field(default_factory=TurnstileSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
