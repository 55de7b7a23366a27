"""
Storage Services Package

Provides abstract interfaces and concrete implementations for ledger storage.
Google Sheets and in-memory backends share the same contracts.
"""

from groupledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    ExpenseStorageInterface,
    NotFoundError,
    PaymentStorageInterface,
    StorageError,
    UserDirectoryInterface,
)
from groupledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemoryPaymentStorage,
    InMemoryUserDirectory,
)
from groupledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    GoogleSheetsPaymentStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ExpenseStorageInterface",
    "PaymentStorageInterface",
    "UserDirectoryInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryExpenseStorage",
    "InMemoryPaymentStorage",
    "InMemoryUserDirectory",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStorage",
    "GoogleSheetsPaymentStorage",
]
