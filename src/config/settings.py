"""
Configuration Management for Firetrack

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Every setting has a safe development default so the core can run in tests
without a .env file; production deployments override the secret key.
"""

import warnings
from decimal import Decimal
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_SESSION_SECRET = "firetrack-development-secret-change-me-in-production"


class SecuritySettings(BaseSettings):
    """Password hashing and session token configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SECURITY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    session_secret_key: str = Field(
        default=DEFAULT_SESSION_SECRET,
        min_length=32,
        description="Secret used to sign session tokens"
    )
    session_algorithm: str = Field(
        default="HS256",
        description="JWT signing algorithm"
    )
    session_ttl_minutes: int = Field(
        default=60 * 24,
        ge=1,
        description="How long an issued session stays valid"
    )
    password_hash_rounds: int = Field(
        default=29000,
        ge=1000,
        description="pbkdf2_sha256 rounds for new password hashes"
    )


class StorageSettings(BaseSettings):
    """Retry behaviour for the account and expense stores."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for a store call that fails to connect"
    )
    retry_wait_min_seconds: float = Field(
        default=0.5,
        ge=0.0,
    )
    retry_wait_max_seconds: float = Field(
        default=5.0,
        ge=0.0,
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Expenses
    currency_code: str = Field(
        default="EUR",
        min_length=3,
        max_length=3,
        description="ISO 4217 code all expenses are recorded in"
    )
    max_expense_amount: Decimal = Field(
        default=Decimal("1000000.00"),
        gt=0,
        description="Largest amount accepted for a single expense"
    )

    @field_validator('currency_code')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()

    @property
    def is_production(self) -> bool:
        return self.app_environment.lower() == "production"


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def app(self) -> AppSettings:
        return AppSettings()

    @property
    def security(self) -> SecuritySettings:
        return SecuritySettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        app = settings.app
        results["app"] = True
    except Exception as e:
        app = None
        results["app"] = False
        results["app_error"] = str(e)

    try:
        security = settings.security
        results["security"] = True
        if app is not None and app.is_production and (
            security.session_secret_key == DEFAULT_SESSION_SECRET
        ):
            warnings.warn(
                "SECURITY_SESSION_SECRET_KEY is still the development default."
            )
            results["security"] = False
            results["security_error"] = "default session secret in production"
    except Exception as e:
        results["security"] = False
        results["security_error"] = str(e)

    try:
        _ = settings.storage
        results["storage"] = True
    except Exception as e:
        results["storage"] = False
        results["storage_error"] = str(e)

    return results
