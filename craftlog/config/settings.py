"""
Configuration Management for craftlog

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see which backends exist (SQLite file, receipt
directory, Cloudinary) and ensures configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    """Record store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CRAFTLOG_STORE_",
        extra="ignore"
    )

    backend: str = Field(
        default="sqlite",
        pattern="^(sqlite|memory)$",
        description="Record store backend"
    )
    data_dir: Path = Field(
        default=Path.home() / ".craftlog",
        description="Directory holding the database file"
    )
    db_filename: str = Field(
        default="craftlog.db",
        description="SQLite database file name"
    )

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_filename


class ReceiptSettings(BaseSettings):
    """Receipt file storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CRAFTLOG_RECEIPTS_",
        extra="ignore"
    )

    backend: str = Field(
        default="local",
        pattern="^(local|cloudinary)$",
        description="Where receipt files are kept"
    )
    local_dir: Path = Field(
        default=Path.home() / ".craftlog" / "receipts",
        description="Root directory for the local receipt backend"
    )


class CloudinarySettings(BaseSettings):
    """Cloudinary receipt storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CLOUDINARY_",
        extra="ignore"
    )

    cloud_name: str = Field(
        ...,
        description="Cloudinary cloud name"
    )
    api_key: str = Field(
        ...,
        description="Cloudinary API key"
    )
    api_secret: str = Field(
        ...,
        description="Cloudinary API secret"
    )
    folder: str = Field(
        default="receipts",
        description="Folder prefixed to every receipt path"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CRAFTLOG_",
        extra="ignore"
    )

    app_slug: str = Field(
        default="craftlog",
        description="Used in backup file names: <app>-backup-YYYY-MM-DD.json"
    )
    owner_id: str = Field(
        default="local",
        min_length=1,
        description="Owner segment of receipt paths"
    )
    default_km_rate: float = Field(
        default=5.0,
        ge=0.0,
        description="Km rate offered to new work entries"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Minimum log level"
    )
    json_logs: bool = Field(
        default=True,
        description="Render logs as JSON (False: human-readable console output)"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator('app_slug')
    @classmethod
    def validate_app_slug(cls, v: str) -> str:
        if not v or "/" in v or "\\" in v:
            raise ValueError("app_slug must be a non-empty file-name-safe string")
        return v


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

    # Note: These are loaded lazily so Cloudinary can stay unconfigured
    # when the local receipt backend is used

    @property
    def store(self) -> StoreSettings:
        return StoreSettings()

    @property
    def receipts(self) -> ReceiptSettings:
        return ReceiptSettings()

    @property
    def cloudinary(self) -> CloudinarySettings:
        return CloudinarySettings()

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

    Returns a dict of {setting_name: is_valid}, plus ``<name>_error``
    entries for sections that failed. Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    sections = {
        "store": lambda: settings.store,
        "receipts": lambda: settings.receipts,
        "app": lambda: settings.app,
    }
    try:
        wants_cloudinary = settings.receipts.backend == "cloudinary"
    except Exception:
        # Reported below under "receipts"
        wants_cloudinary = False
    if wants_cloudinary:
        sections["cloudinary"] = lambda: settings.cloudinary

    for name, load in sections.items():
        try:
            load()
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
