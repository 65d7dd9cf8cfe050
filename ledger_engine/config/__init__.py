"""Configuration package."""

from ledger_engine.config.settings import (
    EnforcementMode,
    GoogleSheetsSettings,
    LedgerSettings,
    Settings,
    StorageBackend,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "EnforcementMode",
    "GoogleSheetsSettings",
    "LedgerSettings",
    "Settings",
    "StorageBackend",
    "get_settings",
    "validate_all_settings",
]
