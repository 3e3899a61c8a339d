"""
Configuration Management for Kameeti

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Ledger policy knobs (undo depth, payment due day) and the storage
location live side by side so every tunable is visible in one place.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Ledger engine policy configuration."""

    model_config = SettingsConfigDict(
        env_prefix="KAMEETI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    history_limit: int = Field(
        default=20,
        ge=1,
        le=500,
        description="Maximum number of undo steps kept in memory"
    )
    payment_due_day: int = Field(
        default=10,
        ge=1,
        le=28,
        description="Day of the month a contribution falls due"
    )
    enforce_unique_payments: bool = Field(
        default=True,
        description="Reject a second payment for the same payer and month"
    )
    pair_name_separator: str = Field(
        default=" & ",
        description="Separator used when displaying a half-share pair"
    )


class StorageSettings(BaseSettings):
    """Snapshot persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="KAMEETI_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    enabled: bool = Field(
        default=True,
        description="Persist the snapshot after every change"
    )
    data_file: str = Field(
        default="kameeti-data.json",
        description="Path to the JSON document holding the ledger snapshot"
    )
    write_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts made for a snapshot write before giving up"
    )

    @field_validator('data_file')
    @classmethod
    def validate_data_file(cls, v: str) -> str:
        """Reject paths pointing at an existing directory."""
        if not v.strip():
            raise ValueError("data_file must not be empty")
        if Path(v).is_dir():
            raise ValueError(f"data_file points to a directory: {v}")
        return v

    @property
    def data_path(self) -> Path:
        return Path(self.data_file)


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
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

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

    Returns a dict of {setting_name: is_valid}, plus a
    "<name>_error" entry for every section that failed.
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
        _ = settings.storage
        results["storage"] = True
    except Exception as e:
        results["storage"] = False
        results["storage_error"] = str(e)

    return results
