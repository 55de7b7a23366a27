"""Services package."""

from groupledger.services.capabilities import SchemaCapabilityDetector, static_detector
from groupledger.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    ExpenseStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    GoogleSheetsPaymentStorage,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemoryPaymentStorage,
    InMemoryUserDirectory,
    NotFoundError,
    PaymentStorageInterface,
    StorageError,
    UserDirectoryInterface,
)

__all__ = [
    # Schema capabilities
    "SchemaCapabilityDetector",
    "static_detector",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "ExpenseStorageInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStorage",
    "GoogleSheetsPaymentStorage",
    "InMemoryAuditStorage",
    "InMemoryExpenseStorage",
    "InMemoryPaymentStorage",
    "InMemoryUserDirectory",
    "NotFoundError",
    "PaymentStorageInterface",
    "StorageError",
    "UserDirectoryInterface",
]
