# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for the Vitbox
enrollment backend. Settings are loaded from environment variables with
sensible defaults.

The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Example:
    >>> from src.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> print(settings.membership.gold_quota)
    5
"""

from functools import lru_cache
from typing import Literal, Self
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database configuration for the class and user store.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
        url_override: Full connection URL, used instead of the components
            when set (e.g. a SQLite URL for local runs).
    """

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        populate_by_name=True,
        extra="ignore",
    )

    user: str = "vitbox"
    password: SecretStr = SecretStr("vitbox_password")
    host: str = "vitbox-db"
    port: int = 5432
    database: str = "vitbox"
    pool_size: int = 10
    max_overflow: int = 20
    url_override: str | None = Field(
        default=None,
        validation_alias="DATABASE_URL",
    )

    @property
    def url(self) -> str:
        """Build the async database URL from components."""
        if self.url_override:
            return self.url_override
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"


class RedisSettings(BaseSettings):
    """Redis configuration for the cross-process change feed.

    Attributes:
        enabled: Whether class changes are relayed over Redis pub/sub.
        host: Redis server host.
        port: Redis server port.
        password: Redis password.
        database: Redis database number.
        max_connections: Maximum connection pool size.
        changes_channel: Pub/sub channel carrying class change notices.
    """

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        extra="ignore",
    )

    enabled: bool = False
    host: str = "vitbox-redis"
    port: int = 6379
    password: SecretStr = SecretStr("vitbox_redis_password")
    database: int = 0
    max_connections: int = 50
    changes_channel: str = "vitbox:classes:changed"

    @property
    def url(self) -> str:
        """Build the Redis connection URL."""
        pwd = self.password.get_secret_value()
        return f"redis://:{pwd}@{self.host}:{self.port}/{self.database}"


class MembershipSettings(BaseSettings):
    """Weekly booking quotas per membership tier.

    Attributes:
        bronze_quota: Bookings per week for bronze members (lowest tier).
        silver_quota: Bookings per week for silver members.
        gold_quota: Bookings per week for gold members.
    """

    model_config = SettingsConfigDict(
        env_prefix="MEMBERSHIP_",
        extra="ignore",
    )

    bronze_quota: int = Field(default=2, ge=0)
    silver_quota: int = Field(default=3, ge=0)
    gold_quota: int = Field(default=5, ge=0)


class EnrollmentSettings(BaseSettings):
    """Transaction behaviour for enroll/unenroll.

    Attributes:
        transaction_max_attempts: Attempts before a write conflict is
            reported to the caller.
        transaction_retry_delay: Base delay in seconds between attempts
            (multiplied by the attempt number).
    """

    model_config = SettingsConfigDict(
        env_prefix="ENROLLMENT_",
        extra="ignore",
    )

    transaction_max_attempts: int = Field(default=5, ge=1)
    transaction_retry_delay: float = Field(default=0.05, ge=0.0)


class ScheduleSettings(BaseSettings):
    """Schedule interpretation settings.

    Attributes:
        timezone: IANA timezone the class dates and start times are
            expressed in.
    """

    model_config = SettingsConfigDict(
        env_prefix="SCHEDULE_",
        extra="ignore",
    )

    timezone: str = "UTC"

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Reject unknown IANA zone names early."""
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value}") from e
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        """Timezone object for the schedule."""
        return ZoneInfo(self.timezone)


class SweeperSettings(BaseSettings):
    """Auto-deactivation sweeper configuration.

    Attributes:
        enabled: Whether started classes are deactivated automatically.
        interval_seconds: Period of the timed re-sweep of the cached schedule.
    """

    model_config = SettingsConfigDict(
        env_prefix="SWEEPER_",
        extra="ignore",
    )

    enabled: bool = True
    interval_seconds: int = Field(default=60, ge=1)


class PushSettings(BaseSettings):
    """Firebase Cloud Messaging configuration for slot-freed notifications.

    Attributes:
        credentials_path: Path to the service account JSON file.
        project_id: Firebase project ID.
        icon_url: Web push notification icon.
        badge_url: Web push notification badge.
        dispatch_timeout: Seconds the engine waits on a dispatch before
            giving up on it.
    """

    model_config = SettingsConfigDict(
        env_prefix="FIREBASE_",
        populate_by_name=True,
        extra="ignore",
    )

    credentials_path: str | None = None
    project_id: str | None = None
    icon_url: str = "https://vitboxapp.netlify.app/logo-vitbox-192.png"
    badge_url: str = "https://vitboxapp.netlify.app/logo-vitbox-96.png"
    dispatch_timeout: float = Field(
        default=10.0,
        validation_alias="NOTIFICATIONS_DISPATCH_TIMEOUT",
    )

    @property
    def is_configured(self) -> bool:
        """Whether both credentials and project are set."""
        return bool(self.credentials_path and self.project_id)


class CORSSettings(BaseSettings):
    """CORS configuration for API.

    Attributes:
        origins: Comma-separated list of allowed origins.
        allow_credentials: Whether to allow credentials.
        allow_methods: Allowed HTTP methods.
        allow_headers: Allowed HTTP headers.
    """

    model_config = SettingsConfigDict(
        env_prefix="CORS_",
        extra="ignore",
    )

    origins: str = "http://localhost:5173,https://vitboxapp.netlify.app"
    allow_credentials: bool = True
    allow_methods: list[str] = ["*"]
    allow_headers: list[str] = ["*"]

    @property
    def origins_list(self) -> list[str]:
        """Parse origins string into a list."""
        return [origin.strip() for origin in self.origins.split(",") if origin.strip()]


class APISettings(BaseSettings):
    """API server configuration.

    Attributes:
        host: Host to bind to.
        port: Port to listen on.
        workers: Number of worker processes.
        reload: Whether to enable auto-reload.
    """

    model_config = SettingsConfigDict(
        env_prefix="API_",
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 1
    reload: bool = False


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        database: Database settings.
        redis: Redis settings.
        membership: Membership quota table.
        enrollment: Enrollment transaction settings.
        schedule: Schedule timezone settings.
        sweeper: Auto-deactivation settings.
        push: Push notification settings.
        cors: CORS settings.
        api: API server settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    # Subsettings - loaded with their own env prefixes
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    membership: MembershipSettings = Field(default_factory=MembershipSettings)
    enrollment: EnrollmentSettings = Field(default_factory=EnrollmentSettings)
    schedule: ScheduleSettings = Field(default_factory=ScheduleSettings)
    sweeper: SweeperSettings = Field(default_factory=SweeperSettings)
    push: PushSettings = Field(default_factory=PushSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)
    api: APISettings = Field(default_factory=APISettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production with insecure defaults.
        """
        if self.environment == "production":
            if self.database.password.get_secret_value() == "vitbox_password":
                raise ValueError(
                    "Database password must be changed from default in production. "
                    "Set DATABASE_PASSWORD environment variable."
                )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this if you need to reload settings from environment.
    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()
