"""Application settings and configuration.

This module defines all configuration options for the EventPass service.
Settings are loaded from environment variables (and an optional `.env` file)
once at startup. Required values are validated eagerly so that a process with
a missing or malformed secret, admin wallet or deposit address refuses to
start instead of failing on the first request.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

WALLET_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")
MIN_SECRET_BYTES = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="EventPass", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: Literal["development", "production", "test"] = Field(
        default="development",
        alias="ENVIRONMENT",
    )
    debug: bool = Field(default=False, alias="DEBUG")

    # Session token signing
    jwt_secret: str = Field(alias="JWT_SECRET")
    jwt_algorithm: Literal["HS256", "HS384", "HS512"] = Field(
        default="HS256",
        alias="JWT_ALGORITHM",
    )
    session_ttl_seconds: int = Field(default=3600, gt=0, alias="SESSION_TTL_SECONDS")
    session_cookie_name: str = Field(default="eventpass_sess", alias="SESSION_COOKIE_NAME")
    csrf_cookie_name: str = Field(default="eventpass_csrf", alias="CSRF_COOKIE_NAME")
    csrf_cookie_max_age_seconds: int = Field(
        default=24 * 60 * 60,
        gt=0,
        alias="CSRF_COOKIE_MAX_AGE_SECONDS",
    )

    # Challenges
    challenge_ttl_seconds: int = Field(default=300, gt=0, alias="CHALLENGE_TTL_SECONDS")
    sign_challenge_ttl_seconds: int = Field(
        default=300,
        gt=0,
        alias="SIGN_CHALLENGE_TTL_SECONDS",
    )
    org_deposit_address: str = Field(alias="ORG_DEPOSIT_ADDRESS")
    deposit_verification_mode: Literal["reject", "trusted"] = Field(
        default="reject",
        alias="DEPOSIT_VERIFICATION_MODE",
    )

    # Admin identity
    admin_wallet: str = Field(alias="ADMIN_WALLET")
    admin_email: str = Field(default="admin@eventpass.local", alias="ADMIN_EMAIL")
    admin_password_hash: str = Field(alias="ADMIN_PASSWORD_HASH")

    # Persistence
    database_url: str = Field(default="sqlite:///./eventpass.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Rate limiting; counters live in Redis when a URL is configured
    redis_url: str | None = Field(default=None, alias="REDIS_URL")
    rate_limit_requests: int = Field(default=100, gt=0, alias="RATE_LIMIT_REQUESTS")
    rate_limit_window_seconds: int = Field(default=900, gt=0, alias="RATE_LIMIT_WINDOW_SECONDS")
    auth_rate_limit_requests: int = Field(default=10, gt=0, alias="AUTH_RATE_LIMIT_REQUESTS")
    auth_rate_limit_window_seconds: int = Field(
        default=300,
        gt=0,
        alias="AUTH_RATE_LIMIT_WINDOW_SECONDS",
    )
    admin_rate_limit_requests: int = Field(default=500, gt=0, alias="ADMIN_RATE_LIMIT_REQUESTS")
    admin_rate_limit_window_seconds: int = Field(
        default=60,
        gt=0,
        alias="ADMIN_RATE_LIMIT_WINDOW_SECONDS",
    )

    # Background maintenance
    cleanup_interval_seconds: float = Field(default=300.0, gt=0, alias="CLEANUP_INTERVAL_SECONDS")
    activity_log_size: int = Field(default=100, gt=0, alias="ACTIVITY_LOG_SIZE")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(default=["http://localhost:3000"], alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["Content-Type", "Authorization", "x-csrf-token"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @field_validator("jwt_secret")
    @classmethod
    def validate_jwt_secret(cls, value: str) -> str:
        """Require a signing secret of at least 32 bytes."""
        if len(value.encode("utf-8")) < MIN_SECRET_BYTES:
            raise ValueError(f"JWT_SECRET must be at least {MIN_SECRET_BYTES} bytes")
        return value

    @field_validator("admin_wallet", "org_deposit_address")
    @classmethod
    def validate_address(cls, value: str) -> str:
        """Require a 0x-prefixed 20-byte hex address."""
        value = value.strip()
        if not WALLET_PATTERN.match(value):
            raise ValueError("must be a 0x-prefixed 40 hex character address")
        return value

    @field_validator("admin_password_hash")
    @classmethod
    def validate_password_hash(cls, value: str) -> str:
        """Require something shaped like a bcrypt hash."""
        if not value.startswith(("$2a$", "$2b$", "$2y$")):
            raise ValueError("ADMIN_PASSWORD_HASH must be a bcrypt hash")
        return value

    @property
    def is_production(self) -> bool:
        """Return True when running with production cookie and error policies."""
        return self.environment == "production"

    @property
    def admin_wallet_normalized(self) -> str:
        """Return the configured admin wallet in lowercase form."""
        return self.admin_wallet.lower()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load and cache the process-wide settings.

    Raises:
        pydantic.ValidationError: If a required value is missing or malformed.
    """
    return Settings()  # type: ignore[call-arg]
