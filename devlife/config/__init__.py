"""Configuration package."""

from devlife.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    Settings,
    StoreSettings,
    SyncSettings,
    VaultSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "Settings",
    "StoreSettings",
    "SyncSettings",
    "VaultSettings",
    "get_settings",
    "validate_all_settings",
]
