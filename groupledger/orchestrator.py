"""
Main Orchestrator for GroupLedger

This module ties the components together and defines the write flows:
1. Expense (request → validate → save header → save splits)
2. Payment (mark as paid → accept / reject, settle all)
3. Leaving a group (blocked while raw debts involve the member)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is written unless validation passed
- Every write is audited
- Storage has no multi-record transactions, so a failed split insert
  is undone with a compensating delete of the expense

Reads go through BalanceQueryExecutor, which recomputes from history.
"""

import logging
from datetime import datetime
from typing import NamedTuple, Optional
from uuid import UUID

import structlog

from groupledger.audit import AuditLogger, create_correlation_id
from groupledger.config import get_settings
from groupledger.money import EPSILON
from groupledger.models.ledger import (
    BulkPaymentItem,
    BulkPaymentResult,
    CreateExpenseRequest,
    Expense,
    LeaveGroupCheck,
    PaymentOperationResult,
    ValidationResult,
)
from groupledger.payments import PaymentReconciler
from groupledger.queries import BalanceQueryExecutor
from groupledger.services.storage import (
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
    UserDirectoryInterface,
)
from groupledger.validation import ExpenseValidator


class ExpenseFlow:
    """
    Orchestrates expense writes.

    Create flow:
    1. Validate → build splits, refuse with issues if invalid
    2. Save the expense header
    3. Save the splits; on failure delete the header and re-raise
    """

    def __init__(
        self,
        expense_storage: ExpenseStorageInterface,
        validator: Optional[ExpenseValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = expense_storage
        self._validator = validator or ExpenseValidator()
        self._audit_logger = audit_logger
        self._default_category = get_settings().ledger.default_category

    def _build_expense(
        self,
        request: CreateExpenseRequest,
        **overrides,
    ) -> Expense:
        return Expense(
            group_id=request.group_id,
            paid_by=request.paid_by,
            amount=request.amount,
            description=request.description,
            category=request.category or self._default_category,
            split_type=request.split_type,
            **overrides,
        )

    async def _refuse(
        self,
        request: CreateExpenseRequest,
        validation: ValidationResult,
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_split_validation_failed(
                group_id=request.group_id,
                amount=request.amount,
                issues=[i.model_dump() for i in validation.issues],
                correlation_id=correlation_id,
            )

    async def create_expense(
        self,
        request: CreateExpenseRequest,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Optional[Expense], ValidationResult]:
        """
        Validate and write a new expense with its splits.

        Returns:
            (expense, validation). expense is None when validation failed.

        Raises:
            StorageError: If a write fails. A split failure has already
                          been compensated when this propagates.
        """
        correlation_id = correlation_id or create_correlation_id()

        validation = self._validator.validate(request)
        if not validation.is_valid:
            await self._refuse(request, validation, correlation_id)
            return None, validation

        expense = await self._storage.save_expense(self._build_expense(request))

        try:
            splits = await self._storage.save_splits(expense.id, validation.splits)
        except Exception as e:
            await self._compensate(expense, str(e), correlation_id)
            raise

        expense = expense.model_copy(update={"splits": splits})

        if self._audit_logger:
            await self._audit_logger.log_expense_created(expense, correlation_id)

        return expense, validation

    async def _compensate(
        self,
        expense: Expense,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Remove an expense whose splits could not be written."""
        try:
            await self._storage.delete_expense(expense.id)
        except Exception as e:
            # The header is orphaned; surface it in the audit trail
            if self._audit_logger:
                await self._audit_logger.log_storage_error(
                    operation="compensating_delete",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return

        if self._audit_logger:
            await self._audit_logger.log_expense_rolled_back(
                expense_id=expense.id,
                group_id=expense.group_id,
                error_message=error_message,
                correlation_id=correlation_id,
            )

    async def update_expense(
        self,
        expense_id: UUID,
        request: CreateExpenseRequest,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Optional[Expense], ValidationResult]:
        """
        Replace an expense and all of its splits.

        Raises:
            NotFoundError: If the expense doesn't exist
        """
        correlation_id = correlation_id or create_correlation_id()

        existing = await self._storage.get_expense(expense_id)
        if existing is None:
            raise NotFoundError(f"Expense not found: {expense_id}")

        validation = self._validator.validate(request)
        if not validation.is_valid:
            await self._refuse(request, validation, correlation_id)
            return None, validation

        expense = self._build_expense(
            request,
            id=existing.id,
            created_at=existing.created_at,
            updated_at=datetime.utcnow(),
        )
        await self._storage.update_expense(expense)
        splits = await self._storage.replace_splits(expense.id, validation.splits)
        expense = expense.model_copy(update={"splits": splits})

        if self._audit_logger:
            await self._audit_logger.log_expense_updated(expense, correlation_id)

        return expense, validation

    async def delete_expense(
        self,
        expense_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Delete an expense and its splits. False if it didn't exist."""
        correlation_id = correlation_id or create_correlation_id()

        existing = await self._storage.get_expense(expense_id)
        if existing is None:
            return False

        deleted = await self._storage.delete_expense(expense_id)
        if deleted and self._audit_logger:
            await self._audit_logger.log_expense_deleted(
                expense_id=expense_id,
                group_id=existing.group_id,
                correlation_id=correlation_id,
            )
        return deleted

    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        return await self._storage.get_expense(expense_id)

    async def list_expenses(self, group_id: str) -> list[Expense]:
        return await self._storage.list_expenses(group_id)


class PaymentFlow:
    """
    Orchestrates settlement payments.

    Thin layer over PaymentReconciler, plus "settle all" which pays off
    everything the current settlement view says a member owes.
    """

    def __init__(
        self,
        reconciler: PaymentReconciler,
        queries: BalanceQueryExecutor,
    ):
        self._reconciler = reconciler
        self._queries = queries

    async def mark_as_paid(
        self,
        group_id: str,
        debtor_id: str,
        creditor_id: str,
        amount,
        marked_by: str,
    ) -> PaymentOperationResult:
        return await self._reconciler.mark_as_paid(
            group_id=group_id,
            debtor_id=debtor_id,
            creditor_id=creditor_id,
            amount=amount,
            marked_by=marked_by,
        )

    async def accept_payment(self, payment_id: UUID, actor_id: str) -> PaymentOperationResult:
        return await self._reconciler.accept_payment(payment_id, actor_id)

    async def reject_payment(self, payment_id: UUID, actor_id: str) -> PaymentOperationResult:
        return await self._reconciler.reject_payment(payment_id, actor_id)

    async def settle_all(self, group_id: str, user_id: str) -> BulkPaymentResult:
        """
        Mark every debt the user owes in the current view as paid.

        Follows the view policy, so before the first accepted payment
        this pays the simplified plan and afterwards the raw edges.
        """
        view = await self._queries.settlement_view(group_id)
        items = [
            BulkPaymentItem(
                debtor_id=debt.from_user_id,
                creditor_id=debt.to_user_id,
                amount=debt.amount,
            )
            for debt in view.debts
            if debt.from_user_id == user_id and debt.amount > EPSILON
        ]
        return await self._reconciler.bulk_mark_as_paid(group_id, user_id, items)


class LeaveGroupGuard:
    """Blocks a member from leaving while raw debts involve them."""

    def __init__(
        self,
        queries: BalanceQueryExecutor,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._queries = queries
        self._audit_logger = audit_logger

    async def can_leave(
        self,
        group_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> LeaveGroupCheck:
        blocking = await self._queries.unsettled_debts_for_user(group_id, user_id)

        if not blocking:
            return LeaveGroupCheck(user_id=user_id, allowed=True)

        if self._audit_logger:
            await self._audit_logger.log_leave_group_blocked(
                group_id=group_id,
                user_id=user_id,
                blocking=blocking,
                correlation_id=correlation_id or create_correlation_id(),
            )

        return LeaveGroupCheck(
            user_id=user_id,
            allowed=False,
            blocking_debts=blocking,
            message=(
                f"Settle {len(blocking)} outstanding "
                f"{'balance' if len(blocking) == 1 else 'balances'} before leaving"
            ),
        )


class AppComponents(NamedTuple):
    expense_flow: ExpenseFlow
    payment_flow: PaymentFlow
    queries: BalanceQueryExecutor
    leave_guard: LeaveGroupGuard
    sheets_client: Optional[GoogleSheetsClient]


def create_app_components(
    use_storage: bool = True,
    user_directory: Optional[UserDirectoryInterface] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Falls back to in-memory stores when False or when
                    Sheets isn't configured.
        user_directory: Directory for display names (in-memory if None).
    """
    settings = get_settings()
    logging.basicConfig(level=settings.app.log_level)
    logger = structlog.get_logger(__name__)

    sheets_client = None
    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            expense_storage = GoogleSheetsExpenseStorage(sheets_client)
            payment_storage = GoogleSheetsPaymentStorage(sheets_client)
            audit_storage = GoogleSheetsAuditStorage(sheets_client)
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None

    if sheets_client is None:
        expense_storage = InMemoryExpenseStorage()
        payment_storage = InMemoryPaymentStorage()
        audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)
    queries = BalanceQueryExecutor(
        expense_storage,
        payment_storage,
        user_directory or InMemoryUserDirectory(),
    )
    reconciler = PaymentReconciler(payment_storage, audit_logger)

    return AppComponents(
        expense_flow=ExpenseFlow(expense_storage, audit_logger=audit_logger),
        payment_flow=PaymentFlow(reconciler, queries),
        queries=queries,
        leave_guard=LeaveGroupGuard(queries, audit_logger),
        sheets_client=sheets_client,
    )
