"""
Configuration Management for Expense Manager

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FirebaseSettings(BaseSettings):
    """Firebase Authentication configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FIREBASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    project_id: str = Field(
        ...,
        description="Firebase project ID"
    )
    client_email: Optional[str] = Field(
        default=None,
        description="Service account client email (admin SDK)"
    )
    private_key: Optional[str] = Field(
        default=None,
        description="Service account private key (admin SDK)"
    )
    web_api_key: Optional[str] = Field(
        default=None,
        description="Web API key used for password sign-in"
    )

    @field_validator('private_key')
    @classmethod
    def unescape_private_key(cls, v: Optional[str]) -> Optional[str]:
        """Keys pasted into .env files carry literal \\n sequences."""
        if v:
            return v.replace("\\n", "\n")
        return v

    @property
    def has_service_account(self) -> bool:
        return bool(self.client_email and self.private_key)


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
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
    expenses_sheet_name: str = Field(
        default="Expenses",
        description="Name of the sheet for expenses"
    )
    family_members_sheet_name: str = Field(
        default="FamilyMembers",
        description="Name of the sheet for family members"
    )
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


class CloudinarySettings(BaseSettings):
    """Cloudinary avatar storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CLOUDINARY_",
        env_file=".env",
        env_file_encoding="utf-8",
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
    root_folder: str = Field(
        default="expense_manager",
        description="Top-level folder for uploaded avatars"
    )


class SessionSettings(BaseSettings):
    """Session cookie configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SESSION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    cookie_name: str = Field(
        default="__session",
        description="Name of the http-only session cookie"
    )
    max_age_seconds: int = Field(
        default=5 * 24 * 60 * 60,
        ge=5 * 60,
        le=14 * 24 * 60 * 60,
        description="Session lifetime (Firebase allows 5 minutes to 2 weeks)"
    )
    protected_paths: str = Field(
        default="/dashboard,/expenses,/family",
        description="Comma-separated path prefixes that require a session"
    )
    login_path: str = Field(
        default="/login",
        description="Where unauthenticated requests are redirected"
    )

    @property
    def protected_paths_list(self) -> list[str]:
        return [p.strip() for p in self.protected_paths.split(",") if p.strip()]


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

    # Environment
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
        description="Root log level"
    )

    storage_backend: str = Field(
        default="google_sheets",
        pattern="^(google_sheets|memory)$",
        description="Where expenses, family members and audit events are kept"
    )

    # Avatar upload limits
    max_avatar_size_mb: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Maximum avatar upload size in MB"
    )
    supported_avatar_formats: str = Field(
        default="jpg,jpeg,png,webp,gif",
        description="Comma-separated list of supported avatar formats"
    )

    # Validation thresholds
    max_expense_amount: float = Field(
        default=1000000.0,
        description="Maximum reasonable expense amount (for sanity checking)"
    )
    future_date_tolerance_days: int = Field(
        default=7,
        description="How many days in the future an expense date can be"
    )
    old_date_warning_days: int = Field(
        default=365 * 2,
        description="Expenses older than this are flagged for review"
    )

    # CSV import
    import_batch_size: int = Field(
        default=10,
        ge=1,
        le=500,
        description="Number of expenses written per import batch"
    )

    @property
    def is_production(self) -> bool:
        return self.app_environment.lower() == "production"

    @property
    def supported_formats_list(self) -> list[str]:
        """Get supported formats as a list."""
        return [fmt.strip().lower() for fmt in self.supported_avatar_formats.split(",")]

    @property
    def max_avatar_size_bytes(self) -> int:
        """Get max avatar size in bytes."""
        return self.max_avatar_size_mb * 1024 * 1024


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

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def firebase(self) -> FirebaseSettings:
        return FirebaseSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def cloudinary(self) -> CloudinarySettings:
        return CloudinarySettings()

    @property
    def session(self) -> SessionSettings:
        return SessionSettings()

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

    Returns a dict of {setting_name: is_valid}, plus a
    `<name>_error` entry for each failure. Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("firebase", "google_sheets", "cloudinary", "session", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
