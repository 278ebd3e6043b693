# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for Edunexia.
Settings are loaded from environment variables with sensible defaults.

The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Example:
    >>> from edunexia.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> print(settings.environment)
    'development'
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database configuration for enrollment and catalog data.

    All tenants share one database; rows are partitioned by tenant_id.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore",
    )

    user: str = "edunexia"
    password: SecretStr = SecretStr("edunexia_password")
    host: str = "localhost"
    port: int = 5432
    database: str = "edunexia"
    pool_size: int = 10
    max_overflow: int = 20

    @property
    def url(self) -> str:
        """Build the async database URL from components."""
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"

    @property
    def sync_url(self) -> str:
        """Build the sync database URL for migrations."""
        pwd = self.password.get_secret_value()
        return f"postgresql://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"


class JWTSettings(BaseSettings):
    """JWT authentication configuration.

    Tokens are issued by the external identity service; this side only
    verifies them.

    Attributes:
        secret_key: Secret key for signing tokens.
        algorithm: JWT signing algorithm.
        access_token_expire_minutes: Access token expiration time.
    """

    model_config = SettingsConfigDict(
        env_prefix="JWT_",
        extra="ignore",
    )

    secret_key: SecretStr = SecretStr("change-this-in-production")
    algorithm: str = "HS256"
    access_token_expire_minutes: int = Field(
        default=30,
        validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )


class AsaasSettings(BaseSettings):
    """Asaas payment gateway configuration.

    Attributes:
        api_url: Base URL of the Asaas API.
        api_key: API key sent in the access_token header.
        webhook_token: Shared token Asaas sends in the asaas-access-token
            header of webhook calls.
        timeout: Request timeout in seconds.
        default_due_days: Days until the due date when none is given.
    """

    model_config = SettingsConfigDict(
        env_prefix="ASAAS_",
        extra="ignore",
    )

    api_url: str = "https://sandbox.asaas.com/api"
    api_key: SecretStr = SecretStr("")
    webhook_token: SecretStr = SecretStr("")
    timeout: float = 30.0
    default_due_days: int = 30


class PricingSettings(BaseSettings):
    """Enrollment and certification pricing, in cents.

    Attributes:
        individual_unit_price: Price of a single enrollment when the
            operator does not set an amount.
        batch_unit_price: Discounted per-student price in batch mode.
        batch_due_days: Days until a batch invoice is due.
        stale_payment_days: Days after which an unpaid charge is expired.
    """

    model_config = SettingsConfigDict(
        env_prefix="PRICING_",
        extra="ignore",
    )

    individual_unit_price: int = Field(default=8990, gt=0)
    batch_unit_price: int = Field(default=7990, gt=0)
    batch_due_days: int = 10
    stale_payment_days: int = 30


class PortalSettings(BaseSettings):
    """Portal resolution policy.

    Attributes:
        fallback_to_student: Send users whose role has no portal to the
            student portal instead of rejecting them.
    """

    model_config = SettingsConfigDict(
        env_prefix="PORTAL_",
        extra="ignore",
    )

    fallback_to_student: bool = False


class RateLimitSettings(BaseSettings):
    """Request rate limiting configuration.

    Attributes:
        enabled: Whether limits are enforced.
        requests_per_minute: Default per-client limit.
        storage_uri: slowapi storage backend ("memory://" or a redis URL).
    """

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        extra="ignore",
    )

    enabled: bool = True
    requests_per_minute: int = 120
    storage_uri: str = "memory://"


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

    origins: str = "http://localhost:3000,http://localhost:5173"
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
    workers: int = 2
    reload: bool = False


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        db: Database settings.
        jwt: JWT authentication settings.
        asaas: Payment gateway settings.
        pricing: Enrollment pricing settings.
        portal: Portal resolution settings.
        rate_limit: Rate limiting settings.
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
    db: DatabaseSettings = Field(default_factory=DatabaseSettings)
    jwt: JWTSettings = Field(default_factory=JWTSettings)
    asaas: AsaasSettings = Field(default_factory=AsaasSettings)
    pricing: PricingSettings = Field(default_factory=PricingSettings)
    portal: PortalSettings = Field(default_factory=PortalSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)
    api: APISettings = Field(default_factory=APISettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production with insecure defaults.
        """
        if self.environment == "production":
            default_jwt_secret = "change-this-in-production"
            if self.jwt.secret_key.get_secret_value() == default_jwt_secret:
                raise ValueError(
                    "JWT secret key must be changed from default in production. "
                    "Set JWT_SECRET_KEY environment variable."
                )
            if not self.asaas.webhook_token.get_secret_value():
                raise ValueError(
                    "Payment webhook token must be set in production. "
                    "Set ASAAS_WEBHOOK_TOKEN environment variable."
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
