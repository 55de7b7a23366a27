"""
Audit Logger

DESIGN DECISION: Every ledger write and every refused command emits an
audit event. Balances are never audited; they are recomputed.

Audit writes are best effort: a failed append is logged locally and the
ledger operation that triggered it still succeeds. Events from one user
action share a correlation id.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from groupledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from groupledger.models.ledger import Expense, Payment, PairwiseDebt
from groupledger.services.storage import AuditStorageInterface


# Local structured logs are JSON lines on the stdlib logging tree
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def _amount(value: Decimal) -> str:
    return f"{value:.2f}"


class AuditLogger:
    """
    Writes ledger audit events.

    Every event goes to the local structlog logger; when a store is
    configured it is appended there too.
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Args:
            storage: Append-only audit store. None means local logs only.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Emit one event locally and append it to the store.

        Returns False only when the store rejected the write; the failure
        is logged, never raised.
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_expense_created(
        self,
        expense: Expense,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.expense_created(
            expense_id=expense.id,
            group_id=expense.group_id,
            paid_by=expense.paid_by,
            amount=_amount(expense.amount),
            split_count=len(expense.splits),
            correlation_id=correlation_id,
        ))

    async def log_expense_updated(
        self,
        expense: Expense,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.expense_updated(
            expense_id=expense.id,
            group_id=expense.group_id,
            amount=_amount(expense.amount),
            split_count=len(expense.splits),
            correlation_id=correlation_id,
        ))

    async def log_expense_deleted(
        self,
        expense_id: UUID,
        group_id: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.expense_deleted(
            expense_id=expense_id,
            group_id=group_id,
            correlation_id=correlation_id,
        ))

    async def log_expense_rolled_back(
        self,
        expense_id: UUID,
        group_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log the compensating delete after a failed split insert."""
        await self.log(AuditEventBuilder.expense_rolled_back(
            expense_id=expense_id,
            group_id=group_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_split_validation_failed(
        self,
        group_id: str,
        amount: Decimal,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.split_validation_failed(
            group_id=group_id,
            amount=_amount(amount),
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_payment_marked(
        self,
        payment: Payment,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.payment_marked(
            payment_id=payment.id,
            group_id=payment.group_id,
            debtor_id=payment.debtor_id,
            creditor_id=payment.creditor_id,
            amount=_amount(payment.amount),
            correlation_id=correlation_id,
        ))

    async def log_payment_resolved(
        self,
        payment: Payment,
        actor_id: str,
        correlation_id: UUID,
    ) -> None:
        """Log an accept or reject, depending on the payment's new status."""
        await self.log(AuditEventBuilder.payment_resolved(
            payment_id=payment.id,
            group_id=payment.group_id,
            accepted=payment.is_accepted,
            actor_id=actor_id,
            amount=_amount(payment.amount),
            correlation_id=correlation_id,
        ))

    async def log_payment_refused(
        self,
        group_id: str,
        actor_id: str,
        reason: str,
        details: dict,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.payment_refused(
            group_id=group_id,
            actor_id=actor_id,
            reason=reason,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_leave_group_blocked(
        self,
        group_id: str,
        user_id: str,
        blocking: list[PairwiseDebt],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.leave_group_blocked(
            group_id=group_id,
            user_id=user_id,
            blocking=[d.model_dump(mode="json") for d in blocking],
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Record an unexpected failure."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    One id per user action; every event the action emits carries it.
    """
    return uuid4()
