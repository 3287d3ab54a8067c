"""Configuration package."""

from craftlog.config.settings import (
    AppSettings,
    CloudinarySettings,
    ReceiptSettings,
    Settings,
    StoreSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CloudinarySettings",
    "ReceiptSettings",
    "Settings",
    "StoreSettings",
    "get_settings",
    "validate_all_settings",
]
