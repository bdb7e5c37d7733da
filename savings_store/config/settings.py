"""
Configuration Management for Savings Store

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Retention caps, key prefixes and the schema version string are data-format
constants, so they live next to the storage backend choice and are
validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Key-value persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SAVINGS_STORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    backend: str = Field(
        default="memory",
        pattern="^(memory|file)$",
        description="Persistence backend: in-memory or single JSON file"
    )
    file_path: Optional[str] = Field(
        default=None,
        description="Path of the JSON file when backend is 'file'"
    )

    # Key namespaces
    key_prefix: str = Field(
        default="obata_v2_",
        min_length=1,
        description="Prefix of every current-schema key"
    )
    legacy_prefix: str = Field(
        default="obata_",
        min_length=1,
        description="Prefix of the 2.2 schema keys"
    )
    archive_key: str = Field(
        default="archive_v22",
        description="Key (under key_prefix) holding the archived 2.2 data"
    )

    capacity_bytes: int = Field(
        default=5 * 1024 * 1024,
        ge=1024,
        description="Storage quota, modelled on the browser's ~5MB limit"
    )

    @field_validator('file_path')
    @classmethod
    def validate_file_path(cls, v: Optional[str]) -> Optional[str]:
        """Warn if the parent directory is missing (but don't fail - might be created later)."""
        if v and not Path(v).parent.exists():
            import warnings
            warnings.warn(
                f"Directory for storage file {v} does not exist yet. "
                "It must exist before the first save."
            )
        return v


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

    schema_version: str = Field(
        default="2.3",
        description="Schema version written to and required from containers"
    )

    # Retention caps
    backup_history_limit: int = Field(
        default=50,
        ge=1,
        description="Number of backups kept in history (most recent first)"
    )
    audit_log_limit: int = Field(
        default=1000,
        ge=1,
        description="Number of audit entries kept (most recent first)"
    )

    # Auto backup
    auto_backup_enabled: bool = Field(
        default=True,
        description="Start the periodic backup timer on initialize"
    )
    auto_backup_interval_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Seconds between automatic backups"
    )

    # Import
    verify_checksum: bool = Field(
        default=True,
        description="Reject imports whose checksum does not match their data"
    )

    default_actor: str = Field(
        default="system",
        description="Actor recorded on audit entries when none is given"
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


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        storage = settings.storage
        if storage.backend == "file" and not storage.file_path:
            raise ValueError("file_path is required for the file backend")
        results["storage"] = True
    except Exception as e:
        results["storage"] = False
        results["storage_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
