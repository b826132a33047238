"""
Configuration Management for Invoice Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Storage locations, backend selection and numeric defaults are all
visible in one place and validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Local storage configuration for both backends."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    data_dir: Path = Field(
        default=Path("./data"),
        description="Directory holding the database and key-value files"
    )
    database_filename: str = Field(
        default="invoices.db",
        description="SQLite file used by the indexed backend"
    )
    flat_filename: str = Field(
        default="invoices.json",
        description="JSON key-value file used by the flat fallback backend"
    )
    preferences_filename: str = Field(
        default="preferences.json",
        description="JSON key-value file holding user preferences"
    )
    indexed_backend_enabled: bool = Field(
        default=True,
        description="Try the indexed backend before falling back to the flat file"
    )
    busy_timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="How long one SQLite statement waits on a lock before it is retried"
    )

    @property
    def database_path(self) -> Path:
        return self.data_dir / self.database_filename

    @property
    def flat_path(self) -> Path:
        return self.data_dir / self.flat_filename

    @property
    def preferences_path(self) -> Path:
        return self.data_dir / self.preferences_filename


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
        description="Application environment, attached to every log event"
    )
    debug_mode: bool = Field(
        default=False,
        description="Force DEBUG logging regardless of log_level"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for structured logs"
    )

    # Numeric defaults
    default_tax_pct: float = Field(
        default=21.0,
        ge=0.0,
        le=100.0,
        description="VAT percentage proposed for new invoices"
    )
    default_withholding_pct: float = Field(
        default=15.0,
        ge=0.0,
        le=100.0,
        description="Income tax withholding used until the user sets one"
    )

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Accept lower-case level names from the environment."""
        return v.upper()

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug_mode else self.log_level


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
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()
