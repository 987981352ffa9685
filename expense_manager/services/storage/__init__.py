"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the production backend; the in-memory backend serves
tests and local runs.
"""

from expense_manager.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    ExpenseStorageInterface,
    FamilyMemberStorageInterface,
    NotFoundError,
    StorageError,
)
from expense_manager.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    GoogleSheetsFamilyMemberStorage,
)
from expense_manager.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemoryFamilyMemberStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ExpenseStorageInterface",
    "FamilyMemberStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStorage",
    "GoogleSheetsFamilyMemberStorage",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryExpenseStorage",
    "InMemoryFamilyMemberStorage",
]
