"""Typed runtime settings with dotenv support and startup validation."""

import logging
from pathlib import Path

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from taxledger.analytics.tax_dates import tax_resolve_timezone
from taxledger.ledger import RemovalQuantityPolicy


class SettingsLoadError(RuntimeError):
    """Raised when runtime settings cannot be loaded or validated."""


class AppSettings(BaseSettings):
    """Application settings for calculation runs, reporting and the API.

    Environment variable names map directly to field names in uppercase.
    Example: `transactions_dir` reads from `TRANSACTIONS_DIR`.

    Attributes:
        environment_name: Runtime environment label.
        application_host: Host interface for web server binding.
        application_port: Web server port.
        database_url: SQLAlchemy URL of the processing run registry.
        transactions_dir: Directory holding broker CSV exports.
        snapshot_dir_name: Sub-directory of `transactions_dir` holding snapshots.
        exchange_rate_file: ECB reference rate history CSV.
        exchange_rate_decimal_places: Scale of USD to home-currency rates.
        home_currency: Reporting currency code.
        source_currency: Currency of broker amounts.
        report_timezone: Time zone deciding tax years and rate dates.
        removal_quantity_policy: Option removal quantity check mode.
        processing_lock_name: Name of the exclusive processing lock.
        log_level: Root logging level.
        api_default_limit: Default list endpoint limit.
        api_max_limit: Maximum allowed list endpoint limit.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment_name: str = Field(default="development")
    application_host: str = Field(default="0.0.0.0")
    application_port: int = Field(default=8000, ge=1, le=65535)
    database_url: str = Field(default="sqlite:///taxledger.db")
    transactions_dir: Path = Field(default=Path("transactions"))
    snapshot_dir_name: str = Field(default="snapshots", min_length=1)
    exchange_rate_file: Path = Field(default=Path("eurofxref-hist.csv"))
    exchange_rate_decimal_places: int = Field(default=4, ge=0, le=12)
    home_currency: str = Field(default="EUR", min_length=3, max_length=3)
    source_currency: str = Field(default="USD", min_length=3, max_length=3)
    report_timezone: str = Field(default="CET")
    removal_quantity_policy: RemovalQuantityPolicy = Field(default=RemovalQuantityPolicy.STRICT)
    processing_lock_name: str = Field(default="tax_calculation", min_length=1)
    log_level: str = Field(default="INFO")
    api_default_limit: int = Field(default=50, ge=1)
    api_max_limit: int = Field(default=200, ge=1)

    @field_validator("database_url", "snapshot_dir_name", "processing_lock_name")
    @classmethod
    def _validate_non_empty_string(cls, value: str) -> str:
        stripped_value = value.strip()
        if not stripped_value:
            raise ValueError("value must not be blank")
        return stripped_value

    @field_validator("home_currency", "source_currency")
    @classmethod
    def _validate_currency_code(cls, value: str) -> str:
        normalized_value = value.strip().upper()
        if len(normalized_value) != 3 or not normalized_value.isalpha():
            raise ValueError("currency must be a three-letter code")
        return normalized_value

    @field_validator("report_timezone")
    @classmethod
    def _validate_report_timezone(cls, value: str) -> str:
        tax_resolve_timezone(value)
        return value.strip()

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        normalized_value = value.strip().upper()
        if normalized_value not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level: {value}")
        return normalized_value

    @field_validator("api_max_limit")
    @classmethod
    def _validate_limit_bounds(cls, value: int, info) -> int:
        default_limit = info.data.get("api_default_limit", 50)
        if value < default_limit:
            raise ValueError("api_max_limit must be greater than or equal to api_default_limit")
        return value

    def settings_snapshot_dir(self) -> Path:
        """Return the snapshot directory below the transactions directory."""

        return self.transactions_dir / self.snapshot_dir_name


class DatabaseUrlSettings(BaseSettings):
    """Minimal settings model used by migration tooling.

    Attributes:
        database_url: SQLAlchemy URL for schema migrations.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    database_url: str = Field(default="sqlite:///taxledger.db")


def config_load_settings() -> AppSettings:
    """Load and validate runtime settings from environment and dotenv.

    Returns:
        AppSettings: Validated runtime settings object.

    Raises:
        SettingsLoadError: Raised when settings are invalid.
    """

    try:
        return AppSettings()
    except ValidationError as error:
        raise SettingsLoadError(
            f"Startup configuration validation failed. Update .env or environment variables. Details: {error}"
        ) from error


def config_load_database_url() -> str:
    """Load and validate only the database URL setting.

    Returns:
        str: Non-empty database URL for migration and db tooling.

    Raises:
        SettingsLoadError: Raised when database URL cannot be loaded.
    """

    try:
        database_settings = DatabaseUrlSettings()
    except ValidationError as error:
        raise SettingsLoadError(
            f"Database URL configuration validation failed. Update .env or environment variables. Details: {error}"
        ) from error

    database_url = str(database_settings.database_url).strip()
    if not database_url:
        raise SettingsLoadError("Database URL configuration validation failed. DATABASE_URL must not be blank.")
    return database_url
