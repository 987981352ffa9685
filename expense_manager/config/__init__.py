"""Configuration package."""

from expense_manager.config.settings import (
    AppSettings,
    CloudinarySettings,
    FirebaseSettings,
    GoogleSheetsSettings,
    SessionSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CloudinarySettings",
    "FirebaseSettings",
    "GoogleSheetsSettings",
    "SessionSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
