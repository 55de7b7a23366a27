"""
Configuration Management for GroupLedger

Settings are read from the environment (and .env) through pydantic-settings.

DESIGN DECISION: Every knob lives in this module.
The ledger math itself has no knobs that change results; settings cover
presentation, sanity limits and the storage backend.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Ledger behaviour that surrounds the balance engine."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore"
    )

    currency_code: str = Field(
        default="INR",
        min_length=3,
        max_length=3,
        description="Display currency (single-currency ledger)"
    )
    default_category: str = Field(
        default="general",
        description="Category used when an expense has none"
    )
    max_expense_amount: Decimal = Field(
        default=Decimal("10000000"),
        gt=0,
        description="Amounts above this are flagged as suspicious"
    )

    @field_validator('currency_code')
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


class GoogleSheetsSettings(BaseSettings):
    """Where the ledger sheets live and how to authenticate."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # One worksheet per table
    expenses_sheet_name: str = Field(
        default="Expenses",
        description="Name of the sheet for expense headers"
    )
    splits_sheet_name: str = Field(
        default="ExpenseSplits",
        description="Name of the sheet for expense splits"
    )
    payments_sheet_name: str = Field(
        default="Payments",
        description="Name of the sheet for settlement payments"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """A missing key file only warns; secrets are often mounted after import."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Sheets storage will fail to connect until it exists."
            )
        return v


class AppSettings(BaseSettings):
    """
    Process-level settings: environment name, debug flag, log level.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for local structured logs"
    )


class Settings(BaseSettings):
    """
    Entry point for all settings groups.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are built lazily so a missing Sheets config
    # doesn't prevent the in-memory ledger from running.

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Process-wide settings instance.

    Tests that change the environment call get_settings.cache_clear().
    """
    return Settings()


def validate_all_settings() -> dict:
    """
    Try to build every settings group.

    Returns a dict of {setting_name: is_valid}, plus a
    "<name>_error" entry for each failure. Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("ledger", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
