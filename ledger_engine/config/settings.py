"""
Configuration Management for the Ledger Engine

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here, but the engine
never reads it implicitly. The coordinator receives a LedgerSettings
instance, so tests build one directly instead of patching the environment.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnforcementMode(str, Enum):
    """
    Budget enforcement policy for expense writes.

    ADVISORY: the write always persists; alerts only inform.
    STRICT: an expense that would push a budget over its limit is rejected.
    """
    ADVISORY = "advisory"
    STRICT = "strict"


class StorageBackend(str, Enum):
    MEMORY = "memory"
    GOOGLE_SHEETS = "google_sheets"


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

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

    # Sheet names within the spreadsheet
    users_sheet_name: str = "Users"
    transactions_sheet_name: str = "Transactions"
    budgets_sheet_name: str = "Budgets"
    notifications_sheet_name: str = "Notifications"
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class LedgerSettings(BaseSettings):
    """
    Engine behavior settings.

    Loads configuration from LEDGER_* environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    enforcement_mode: EnforcementMode = Field(
        default=EnforcementMode.ADVISORY,
        description="Whether over-budget expenses are rejected or only reported"
    )
    currency_symbol: str = Field(
        default="$",
        max_length=5,
        description="Symbol used in notification messages"
    )
    dedupe_alerts_per_period: bool = Field(
        default=False,
        description=(
            "Skip a budget notification when the same category, severity "
            "and month were already notified"
        )
    )
    storage_backend: StorageBackend = StorageBackend.MEMORY

    @property
    def is_strict(self) -> bool:
        return self.enforcement_mode == EnforcementMode.STRICT


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

    # Loaded lazily so the Sheets settings are only required when used

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

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
        _ = settings.ledger
        results["ledger"] = True
    except Exception as e:
        results["ledger"] = False
        results["ledger_error"] = str(e)

    try:
        _ = settings.google_sheets
        results["google_sheets"] = True
    except Exception as e:
        results["google_sheets"] = False
        results["google_sheets_error"] = str(e)

    return results
