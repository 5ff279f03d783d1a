"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

Settings are built once at import time and handed to factories, which pass the
relevant values into adapter and service constructors.
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


# Supported TIP-20 tokens on the Tempo testnet.
TEMPO_TOKENS: dict[str, str] = {
    "pathUSD": "0x20c0000000000000000000000000000000000000",
    "AlphaUSD": "0x20c0000000000000000000000000000000000001",
    "BetaUSD": "0x20c0000000000000000000000000000000000002",
    "ThetaUSD": "0x20c0000000000000000000000000000000000003",
}

TokenName = Literal["pathUSD", "AlphaUSD", "BetaUSD", "ThetaUSD"]

ALLOWED_AMOUNTS: tuple[int, ...] = (1000, 5000, 10000)

AllowedAmount = Literal[1000, 5000, 10000]


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Pydantic Settings (v2) populates values from environment variables, but
    static type checkers treat required fields as constructor arguments.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_ledger_settings() -> "LedgerSettings":
    """Build ledger settings from environment.

    See _build_app_settings() for rationale about the type ignore.
    """

    return LedgerSettings()  # type: ignore[call-arg]


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    host: str = Field(
        "0.0.0.0",
        description="Interface the HTTP server binds to",
    )
    port: int = Field(
        3000,
        description="Port the HTTP server listens on",
        ge=1,
        le=65535,
    )
    expose_error_details: bool = Field(
        APP_ENV != "production",
        description="Include underlying error details (ledger/store messages) in error responses",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LedgerSettings(BaseSettings):
    """Ledger (Tempo JSON-RPC) access configuration."""

    rpc_url: str = Field(
        "https://rpc.moderato.tempo.xyz",
        description="JSON-RPC endpoint of the Tempo network",
    )
    private_key: str = Field(
        ...,
        description="Hex private key of the service wallet that funds recipients",
    )
    explorer_url: str = Field(
        "https://explore.tempo.xyz",
        description="Block explorer base URL used to build transaction links",
    )
    timeout_seconds: float = Field(
        30.0,
        description="Timeout applied to individual RPC calls",
        gt=0,
    )
    confirm_timeout_seconds: float = Field(
        120.0,
        description="Maximum time to wait for a transfer receipt",
        gt=0,
    )
    replenish_grace_seconds: float = Field(
        2.0,
        description="Wait after requesting faucet funds before re-reading the balance",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Per-address funding quota."""

    window_ms: int = Field(
        86_400_000,
        description="Fixed window length in milliseconds (starts at the first request)",
        ge=1,
    )
    max_requests: int = Field(
        3,
        description="Maximum funding requests per address per window",
        ge=1,
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class QuotaStoreSettings(BaseSettings):
    """Backing store for quota records."""

    backend: Literal["redis", "memory"] = Field(
        "redis",
        description="Quota store backend; 'memory' is only safe for a single process",
    )
    redis_url: str | None = Field(
        None,
        description="Full Redis URL; takes precedence over host/port/password",
    )
    redis_host: str = Field("localhost", description="Redis host")
    redis_port: int = Field(6379, description="Redis port")
    redis_password: str | None = Field(None, description="Redis password")
    key_prefix: str = Field(
        "ratelimit:",
        description="Prefix applied to every quota key",
    )
    socket_timeout_seconds: float = Field(
        5.0,
        description="Redis socket connect/read timeout",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="QUOTA_STORE_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field("json", description="Log line format")
    output: Literal["stdout", "file"] = Field("stdout", description="Log destination")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header carrying the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if required settings are missing
    (notably LEDGER_PRIVATE_KEY).
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    ledger: LedgerSettings = Field(default_factory=_build_ledger_settings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    quota_store: QuotaStoreSettings = Field(default_factory=QuotaStoreSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
