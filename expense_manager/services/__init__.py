"""Services package."""

from expense_manager.services.auth import (
    AuthenticationError,
    FirebaseIdentityProvider,
    IdentityServiceError,
    InvalidCredentialsError,
)
from expense_manager.services.image import (
    AvatarError,
    AvatarUploadError,
    CloudinaryAvatarService,
    InvalidAvatarError,
)
from expense_manager.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    ExpenseStorageInterface,
    FamilyMemberStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    GoogleSheetsFamilyMemberStorage,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemoryFamilyMemberStorage,
    NotFoundError,
    StorageError,
)

__all__ = [
    # Identity
    "AuthenticationError",
    "FirebaseIdentityProvider",
    "IdentityServiceError",
    "InvalidCredentialsError",
    # Avatar images
    "AvatarError",
    "AvatarUploadError",
    "CloudinaryAvatarService",
    "InvalidAvatarError",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "ExpenseStorageInterface",
    "FamilyMemberStorageInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStorage",
    "GoogleSheetsFamilyMemberStorage",
    "InMemoryAuditStorage",
    "InMemoryExpenseStorage",
    "InMemoryFamilyMemberStorage",
    "NotFoundError",
    "StorageError",
]
