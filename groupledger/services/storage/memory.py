"""
In-Memory Storage Implementation

Dictionary-backed stores with the same contracts as the Google Sheets
backend. Used by the test suite and for embedding the ledger in a
process that brings its own persistence.

Records are copied on the way in and on the way out so callers can't
mutate stored state through a returned object.
"""

from datetime import datetime
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
from groupledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    ExpenseStorageInterface,
    NotFoundError,
    PaymentStorageInterface,
    UserDirectoryInterface,
)


class InMemoryExpenseStorage(ExpenseStorageInterface):
    """Expenses and splits held in two dicts, like two tables."""

    def __init__(self):
        self._expenses: dict[UUID, Expense] = {}
        self._splits: dict[UUID, list[ExpenseSplit]] = {}

    def _hydrate(self, expense: Expense) -> Expense:
        splits = [s.model_copy() for s in self._splits.get(expense.id, [])]
        return expense.model_copy(update={"splits": splits})

    async def save_expense(self, expense: Expense) -> Expense:
        if expense.id in self._expenses:
            raise DuplicateError(f"Expense already exists: {expense.id}")
        self._expenses[expense.id] = expense.model_copy(update={"splits": []})
        self._splits[expense.id] = []
        return self._hydrate(self._expenses[expense.id])

    async def save_splits(
        self,
        expense_id: UUID,
        splits: list[ExpenseSplit],
    ) -> list[ExpenseSplit]:
        if expense_id not in self._expenses:
            raise NotFoundError(f"Expense not found: {expense_id}")
        stored = [s.model_copy(update={"expense_id": expense_id}) for s in splits]
        self._splits[expense_id].extend(stored)
        return [s.model_copy() for s in stored]

    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        expense = self._expenses.get(expense_id)
        return self._hydrate(expense) if expense else None

    async def list_expenses(self, group_id: str) -> list[Expense]:
        expenses = [
            self._hydrate(e) for e in self._expenses.values()
            if e.group_id == group_id
        ]
        expenses.sort(key=lambda e: e.created_at, reverse=True)
        return expenses

    async def update_expense(self, expense: Expense) -> bool:
        if expense.id not in self._expenses:
            raise NotFoundError(f"Expense not found: {expense.id}")
        self._expenses[expense.id] = expense.model_copy(
            update={"splits": [], "updated_at": datetime.utcnow()}
        )
        return True

    async def replace_splits(
        self,
        expense_id: UUID,
        splits: list[ExpenseSplit],
    ) -> list[ExpenseSplit]:
        if expense_id not in self._expenses:
            raise NotFoundError(f"Expense not found: {expense_id}")
        self._splits[expense_id] = []
        return await self.save_splits(expense_id, splits)

    async def delete_expense(self, expense_id: UUID) -> bool:
        existed = self._expenses.pop(expense_id, None) is not None
        self._splits.pop(expense_id, None)
        return existed


class InMemoryPaymentStorage(PaymentStorageInterface):

    def __init__(self):
        self._payments: dict[UUID, Payment] = {}

    async def create_payment(self, payment: Payment) -> Payment:
        if payment.id in self._payments:
            raise DuplicateError(f"Payment already exists: {payment.id}")
        self._payments[payment.id] = payment.model_copy()
        return payment.model_copy()

    async def get_payment(self, payment_id: UUID) -> Optional[Payment]:
        payment = self._payments.get(payment_id)
        return payment.model_copy() if payment else None

    async def update_payment(self, payment: Payment) -> Payment:
        if payment.id not in self._payments:
            raise NotFoundError(f"Payment not found: {payment.id}")
        self._payments[payment.id] = payment.model_copy()
        return payment.model_copy()

    async def list_payments(
        self,
        group_id: str,
        status: Optional[PaymentStatus] = None,
        debtor_id: Optional[str] = None,
        creditor_id: Optional[str] = None,
    ) -> list[Payment]:
        payments = []
        for payment in self._payments.values():
            if payment.group_id != group_id:
                continue
            if status and payment.status != status:
                continue
            if debtor_id and payment.debtor_id != debtor_id:
                continue
            if creditor_id and payment.creditor_id != creditor_id:
                continue
            payments.append(payment.model_copy())
        payments.sort(key=lambda p: p.created_at, reverse=True)
        return payments

    async def list_user_payments(
        self,
        user_id: str,
        group_id: Optional[str] = None,
    ) -> list[Payment]:
        payments = [
            p.model_copy() for p in self._payments.values()
            if user_id in (p.debtor_id, p.creditor_id)
            and (group_id is None or p.group_id == group_id)
        ]
        payments.sort(key=lambda p: p.created_at, reverse=True)
        return payments


class InMemoryUserDirectory(UserDirectoryInterface):

    def __init__(self, users: Optional[list[LedgerUser]] = None):
        self._users = {u.id: u for u in users or []}

    def add_user(self, user: LedgerUser) -> None:
        self._users[user.id] = user

    async def get_users(self, user_ids: list[str]) -> dict[str, LedgerUser]:
        return {uid: self._users[uid] for uid in user_ids if uid in self._users}


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self._events, key=lambda e: e.timestamp, reverse=True)[:limit]
