"""Configuration management for RemitRecon.

Based on Pydantic Settings v2. Values are read from the environment and from
an optional ``.env`` file in the working directory. Field names match
environment variables directly (case-insensitive), e.g. ``CURRENCY=EUR``.

The database connection can be given as a full ``DATABASE_URL`` or, like the
legacy mapping job, as the discrete ``DB_NAME``/``DB_USER``/``DB_PASSWORD``/
``DB_HOST``/``DB_PORT`` variables.
"""

from functools import lru_cache
from typing import Literal
from urllib.parse import quote_plus

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from remitrecon.exceptions import ConfigurationError

DEFAULT_SQLITE_URL = "sqlite:///./remitrecon.db"


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str | None = Field(
        default=None,
        description="SQLAlchemy URL; overrides the DB_* variables when set",
    )
    db_name: str | None = Field(default=None, description="Database name")
    db_user: str | None = Field(default=None, description="Database user")
    db_password: str | None = Field(default=None, description="Database password")
    db_host: str | None = Field(default=None, description="Database host")
    db_port: int = Field(default=3306, description="Database port")
    create_tables: bool = Field(
        default=False,
        description="Create missing tables on startup (development and tests only)",
    )

    # Matching
    currency: str = Field(
        default="USD",
        description="Currency domain to reconcile; empty string disables the filter",
    )
    case_resolution: Literal["batch", "eager"] = Field(
        default="batch",
        description="How vendor cases are resolved: batch prefetch or eager join",
    )

    # Billing ledger
    key_source: str = Field(
        default="RemittanceInvoice",
        description="KeySource tag written on every billing ledger entry",
    )
    created_by: str = Field(
        default="auto-mapper-script",
        description="CreatedBy tag written on every billing ledger entry",
    )
    billable_precision: int = Field(
        default=4,
        ge=0,
        le=8,
        description="Decimal places of the computed billable amount",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    json_logs: bool = Field(default=False, description="Emit JSON log lines")
    dev_mode: bool = Field(default=True, description="Colourful console log output")

    # Metrics
    prometheus_enabled: bool = Field(default=False)
    metrics_port: int = Field(default=8000)

    @field_validator("currency")
    @classmethod
    def _normalize_currency(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.upper() if isinstance(value, str) else value

    @property
    def currency_filter(self) -> str | None:
        """Currency to filter on, or None when every currency is reconciled."""
        return self.currency or None

    def resolved_database_url(self) -> str:
        """Return the SQLAlchemy URL to connect with."""
        if self.database_url:
            return self.database_url

        if self.db_name and self.db_host:
            user = quote_plus(self.db_user or "")
            password = quote_plus(self.db_password or "")
            credentials = f"{user}:{password}@" if user else ""
            return (
                f"mysql+pymysql://{credentials}{self.db_host}:{self.db_port}/{self.db_name}"
            )

        if self.db_name or self.db_host:
            raise ConfigurationError(
                "DB_NAME and DB_HOST must be set together",
                setting="db_name/db_host",
                expected="both or neither",
            )

        return DEFAULT_SQLITE_URL


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached settings instance.

    Raises:
        ConfigurationError: If the environment holds invalid values
    """
    try:
        return Settings()
    except ValidationError as e:
        raise ConfigurationError(
            "Invalid configuration",
            context={"errors": e.error_count()},
            original_error=e,
        ) from e


def reload_settings() -> Settings:
    """Drop the cached settings and read the environment again."""
    get_settings.cache_clear()
    return get_settings()
