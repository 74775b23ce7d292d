"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

Every settings group reads its own env prefix (APP_, LOG_, OTP_, RATE_LIMIT_,
NOTIFY_, STORAGE_).
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
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


# Nested BaseSettings don't inherit env_file, so populate os.environ first.
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    frontend_url: str = Field(
        "http://localhost:5173",
        description="Public dashboard URL used to build customer survey links",
    )
    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field(
        "json",
        description="json for machine-friendly logs, plain for local reading",
    )
    output: Literal["stdout", "file"] = Field("stdout", description="Log sink")
    file_path: str | None = Field(
        None,
        description="Log file path when output=file (default logs/app.log)",
    )
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header carrying the correlation id in and out",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class OtpSettings(BaseSettings):
    """Delivery OTP issuance and verification parameters."""

    ttl_seconds: int = Field(300, description="Lifetime of an issued code", ge=1)
    max_attempts: int = Field(
        5,
        description="Mismatches allowed before a code is exhausted",
        ge=1,
    )
    code_min: int = Field(1000, description="Smallest code (inclusive)", ge=0)
    code_max: int = Field(9999, description="Largest code (inclusive)")
    salt_bytes: int = Field(16, description="Random salt length in bytes", ge=8)
    scrypt_n: int = Field(16384, description="scrypt CPU/memory cost", ge=2)
    scrypt_r: int = Field(8, description="scrypt block size", ge=1)
    scrypt_p: int = Field(1, description="scrypt parallelization", ge=1)
    scrypt_dklen: int = Field(64, description="Derived key length in bytes", ge=16)
    cleanup_interval_minutes: int = Field(
        60,
        description="How often expired or used OTP records are purged",
        ge=1,
    )

    @model_validator(mode="after")
    def _check_code_range(self) -> "OtpSettings":
        if self.code_min > self.code_max:
            raise ValueError("OTP_CODE_MIN must not exceed OTP_CODE_MAX")
        return self

    model_config = SettingsConfigDict(
        env_prefix="OTP_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Per-endpoint fixed-window quotas for the OTP routes."""

    enabled: bool = Field(True, description="Enable rate limiting on OTP routes")
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )
    generate_requests: int = Field(5, description="OTP generations per window", ge=1)
    generate_window_seconds: int = Field(3600, description="Generate window", ge=1)
    verify_requests: int = Field(10, description="OTP verifications per window", ge=1)
    verify_window_seconds: int = Field(900, description="Verify window", ge=1)
    sweep_interval_seconds: float = Field(
        60.0,
        description="How often stale rate-limit entries are dropped",
        gt=0,
    )
    skip_successful_requests: bool = Field(
        False,
        description="Give back the quota of requests that succeeded",
    )
    skip_failed_requests: bool = Field(
        False,
        description="Give back the quota of requests that failed",
    )
    trust_forwarded_for: bool = Field(
        False,
        description="Key requests by the first X-Forwarded-For hop (behind a proxy)",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class NotificationSettings(BaseSettings):
    """Customer notification provider configuration.

    Validation of provider-specific requirements happens in the factory.
    """

    provider: str = Field(
        "log",
        description="Notification provider name (twilio, log)",
    )
    twilio_account_sid: str | None = Field(None, description="Twilio account SID")
    twilio_auth_token: str | None = Field(None, description="Twilio auth token")
    twilio_whatsapp_number: str | None = Field(
        None,
        description="Sender number enabled for WhatsApp (with or without whatsapp: prefix)",
    )
    twilio_base_url: str = Field(
        "https://api.twilio.com",
        description="Twilio REST API base URL",
    )
    max_retries: int = Field(3, description="Delivery attempts per message", ge=1)
    backoff_base_seconds: float = Field(
        1.0,
        description="First retry delay; doubles on every further attempt",
        ge=0,
    )
    timeout_seconds: float = Field(10.0, description="Provider request timeout")

    model_config = SettingsConfigDict(
        env_prefix="NOTIFY_",
        case_sensitive=False,
    )


class StorageSettings(BaseSettings):
    """Persistence backend for OTP records and orders."""

    backend: Literal["memory", "sqlite"] = Field(
        "memory",
        description="memory keeps state per process; sqlite persists to sqlite_path",
    )
    sqlite_path: str = Field("data/handoff.db", description="SQLite database file")

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=AppSettings)
    log: LogSettings = Field(default_factory=LogSettings)
    otp: OtpSettings = Field(default_factory=OtpSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    notify: NotificationSettings = Field(default_factory=NotificationSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
