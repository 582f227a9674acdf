"""
Configuration Management for DevLife

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Every tunable of the store, the sync engine, the vault and the remote
backend is visible in one place and validated at startup.
"""

from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    """Local store persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DEVLIFE_STORE_",
        extra="ignore"
    )

    data_dir: Path = Field(
        default=Path.home() / ".devlife",
        description="Directory holding the durable store snapshot"
    )
    storage_key: str = Field(
        default="devlife_offline_db",
        min_length=1,
        description="Key under which the whole-state snapshot is saved"
    )


class SyncSettings(BaseSettings):
    """Background synchronization configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DEVLIFE_SYNC_",
        extra="ignore"
    )

    interval_seconds: float = Field(
        default=120.0,
        ge=1.0,
        description="Seconds between background sweeps"
    )
    epoch_floor: datetime = Field(
        default=datetime(1970, 1, 1, tzinfo=timezone.utc),
        description="Pull cursor used when a collection is empty"
    )
    restamp_on_push: bool = Field(
        default=False,
        description=(
            "Stamp updated_at with the transmission time instead of the "
            "local edit time when pushing"
        )
    )
    history_size: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Number of sync events kept in memory"
    )

    @field_validator('epoch_floor')
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Naive floors are taken as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class VaultSettings(BaseSettings):
    """API vault encryption configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DEVLIFE_VAULT_",
        extra="ignore"
    )

    passphrase: SecretStr = Field(
        ...,
        description="Master passphrase the vault key is derived from"
    )
    salt: str = Field(
        default="devlife-salt",
        min_length=1,
        description="Salt for key derivation"
    )
    iterations: int = Field(
        default=100_000,
        ge=10_000,
        description="PBKDF2 iteration count"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets remote store configuration."""

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

    # Worksheet names within the spreadsheet, one per collection
    projects_sheet_name: str = Field(default="projects")
    finances_sheet_name: str = Field(default="finances")
    tasks_sheet_name: str = Field(default="tasks")
    vault_sheet_name: str = Field(default="vault")

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

    def sheet_name_for(self, collection: str) -> str:
        """Worksheet name for a collection name."""
        return getattr(self, f"{collection}_sheet_name")


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

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )


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

    # Sub-settings are built on access so a missing remote or vault
    # configuration does not prevent the local store from starting.

    @property
    def store(self) -> StoreSettings:
        return StoreSettings()

    @property
    def sync(self) -> SyncSettings:
        return SyncSettings()

    @property
    def vault(self) -> VaultSettings:
        return VaultSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


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

    Returns a dict of {setting_name: is_valid}, with an extra
    "<name>_error" entry for each group that failed.
    """
    results = {}

    settings = get_settings()

    for name in ("store", "sync", "vault", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
