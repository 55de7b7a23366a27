"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the ledger engine decoupled from storage implementation

The interface is intentionally small - just the reads and single-record
writes the ledger needs. There are no multi-record transactions; callers
that write an expense and then its splits must compensate themselves if
the second write fails.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from groupledger.models.audit import AuditEvent
from groupledger.models.ledger import (
    Expense,
    ExpenseSplit,
    LedgerUser,
    Payment,
    PaymentStatus,
)


class ExpenseStorageInterface(ABC):
    """
    Abstract interface for expense and split storage.

    Expenses returned by reads always carry their splits.
    """

    @abstractmethod
    async def save_expense(self, expense: Expense) -> Expense:
        """
        Save an expense header (its splits are written separately).

        Raises:
            StorageError: If save fails
            DuplicateError: If the expense id already exists
        """
        pass

    @abstractmethod
    async def save_splits(
        self,
        expense_id: UUID,
        splits: list[ExpenseSplit],
    ) -> list[ExpenseSplit]:
        """
        Insert the splits of an expense.

        Raises:
            StorageError: If the insert fails
            NotFoundError: If the expense doesn't exist
        """
        pass

    @abstractmethod
    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        """Retrieve an expense with its splits, None if absent."""
        pass

    @abstractmethod
    async def list_expenses(self, group_id: str) -> list[Expense]:
        """All expenses of a group with their splits, newest first."""
        pass

    @abstractmethod
    async def update_expense(self, expense: Expense) -> bool:
        """
        Update an expense header.

        Raises:
            NotFoundError: If expense doesn't exist
        """
        pass

    @abstractmethod
    async def replace_splits(
        self,
        expense_id: UUID,
        splits: list[ExpenseSplit],
    ) -> list[ExpenseSplit]:
        """Delete all splits of an expense and insert the given ones."""
        pass

    @abstractmethod
    async def delete_expense(self, expense_id: UUID) -> bool:
        """
        Delete an expense and, by cascade, its splits.

        Returns:
            True if something was deleted
        """
        pass


class PaymentStorageInterface(ABC):
    """
    Abstract interface for settlement payment storage.

    Payments are created PENDING and updated exactly once.
    """

    @abstractmethod
    async def create_payment(self, payment: Payment) -> Payment:
        """Insert a new payment row."""
        pass

    @abstractmethod
    async def get_payment(self, payment_id: UUID) -> Optional[Payment]:
        pass

    @abstractmethod
    async def update_payment(self, payment: Payment) -> Payment:
        """
        Persist a status transition.

        Raises:
            NotFoundError: If payment doesn't exist
        """
        pass

    @abstractmethod
    async def list_payments(
        self,
        group_id: str,
        status: Optional[PaymentStatus] = None,
        debtor_id: Optional[str] = None,
        creditor_id: Optional[str] = None,
    ) -> list[Payment]:
        """
        List a group's payments with optional filters, newest first.
        """
        pass

    @abstractmethod
    async def list_user_payments(
        self,
        user_id: str,
        group_id: Optional[str] = None,
    ) -> list[Payment]:
        """Payments where the user is debtor or creditor, newest first."""
        pass


class UserDirectoryInterface(ABC):
    """
    Display information for users.

    Used for presentation only, never for balance math.
    """

    @abstractmethod
    async def get_users(self, user_ids: list[str]) -> dict[str, LedgerUser]:
        """Users by id; unknown ids are simply absent from the result."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Events sharing a correlation ID, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Events for one entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """The most recent events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
