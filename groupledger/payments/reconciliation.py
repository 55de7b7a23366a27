"""
Payment Reconciliation

Owns the settlement payment state machine:

    PENDING --accept--> ACCEPTED   (terminal)
    PENDING --reject--> REJECTED   (terminal)

Only the debtor may mark a payment as paid, and only the creditor may
accept or reject it. Refusals come back as PaymentOperationResult with
success=False and a message; they are never raised. Storage failures
do propagate.

KNOWN RACE: "at most one pending payment per (group, debtor, creditor)"
is enforced by reading the pending payments and then writing. Two callers
marking the same balance at the same moment can both pass the check.
Backends with a unique constraint should add one; this layer doesn't
try to solve it.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from groupledger.audit import AuditLogger, create_correlation_id
from groupledger.models.ledger import (
    BulkPaymentItem,
    BulkPaymentResult,
    Payment,
    PaymentOperationResult,
    PaymentStatus,
)
from groupledger.money import MoneyLike, to_money
from groupledger.services.storage import PaymentStorageInterface


DUPLICATE_PENDING_MESSAGE = "A pending payment already exists for this balance"


class PaymentReconciler:
    """
    Creates and resolves settlement payments.

    Each command is a single read-then-write against the payment store.
    """

    def __init__(
        self,
        payment_storage: PaymentStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = payment_storage
        self._audit_logger = audit_logger

    async def _refuse(
        self,
        group_id: str,
        actor_id: str,
        message: str,
        details: dict,
        correlation_id: UUID,
    ) -> PaymentOperationResult:
        if self._audit_logger:
            await self._audit_logger.log_payment_refused(
                group_id=group_id,
                actor_id=actor_id,
                reason=message,
                details=details,
                correlation_id=correlation_id,
            )
        return PaymentOperationResult(success=False, message=message)

    async def mark_as_paid(
        self,
        group_id: str,
        debtor_id: str,
        creditor_id: str,
        amount: MoneyLike,
        marked_by: str,
        correlation_id: Optional[UUID] = None,
    ) -> PaymentOperationResult:
        """
        Record that the debtor paid the creditor, pending confirmation.

        Refused for an amount that isn't a number, when the caller isn't
        the debtor, when paying oneself, for a non-positive amount, or
        while another payment for the same (group, debtor, creditor) is
        still pending.
        """
        correlation_id = correlation_id or create_correlation_id()
        try:
            amount = to_money(amount)
        except ValueError:
            return await self._refuse(
                group_id, marked_by,
                "Payment amount must be a number",
                {"debtor_id": debtor_id, "creditor_id": creditor_id, "amount": str(amount)},
                correlation_id,
            )
        details = {
            "debtor_id": debtor_id,
            "creditor_id": creditor_id,
            "amount": f"{amount:.2f}",
        }

        if marked_by != debtor_id:
            return await self._refuse(
                group_id, marked_by,
                "Only the debtor can mark a payment as paid",
                details, correlation_id,
            )
        if debtor_id == creditor_id:
            return await self._refuse(
                group_id, marked_by,
                "You can't record a payment to yourself",
                details, correlation_id,
            )
        if amount <= 0:
            return await self._refuse(
                group_id, marked_by,
                "Payment amount must be greater than zero",
                details, correlation_id,
            )

        pending = await self._storage.list_payments(
            group_id=group_id,
            status=PaymentStatus.PENDING,
            debtor_id=debtor_id,
            creditor_id=creditor_id,
        )
        if pending:
            details["pending_payment_id"] = str(pending[0].id)
            return await self._refuse(
                group_id, marked_by,
                DUPLICATE_PENDING_MESSAGE,
                details, correlation_id,
            )

        payment = await self._storage.create_payment(Payment(
            group_id=group_id,
            debtor_id=debtor_id,
            creditor_id=creditor_id,
            amount=amount,
            marked_by=marked_by,
        ))

        if self._audit_logger:
            await self._audit_logger.log_payment_marked(payment, correlation_id)

        return PaymentOperationResult(
            success=True,
            message="Payment marked as paid; waiting for confirmation",
            payment=payment,
        )

    async def _resolve(
        self,
        payment_id: UUID,
        actor_id: str,
        new_status: PaymentStatus,
        correlation_id: Optional[UUID],
    ) -> PaymentOperationResult:
        correlation_id = correlation_id or create_correlation_id()

        payment = await self._storage.get_payment(payment_id)
        if payment is None:
            return PaymentOperationResult(success=False, message="Payment not found")

        details = {"payment_id": str(payment.id), "status": payment.status.value}

        if actor_id != payment.creditor_id:
            return await self._refuse(
                payment.group_id, actor_id,
                "Only the creditor can accept or reject this payment",
                details, correlation_id,
            )
        if payment.status.is_terminal:
            return await self._refuse(
                payment.group_id, actor_id,
                f"Payment has already been {payment.status.value}",
                details, correlation_id,
            )

        updated = await self._storage.update_payment(payment.model_copy(update={
            "status": new_status,
            "accepted_by": actor_id,
            "updated_at": datetime.utcnow(),
        }))

        if self._audit_logger:
            await self._audit_logger.log_payment_resolved(updated, actor_id, correlation_id)

        return PaymentOperationResult(
            success=True,
            message=f"Payment {new_status.value}",
            payment=updated,
        )

    async def accept_payment(
        self,
        payment_id: UUID,
        actor_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> PaymentOperationResult:
        """Creditor confirms the money arrived. The payment now counts."""
        return await self._resolve(payment_id, actor_id, PaymentStatus.ACCEPTED, correlation_id)

    async def reject_payment(
        self,
        payment_id: UUID,
        actor_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> PaymentOperationResult:
        """Creditor denies the payment. It never counts towards balances."""
        return await self._resolve(payment_id, actor_id, PaymentStatus.REJECTED, correlation_id)

    async def bulk_mark_as_paid(
        self,
        group_id: str,
        marked_by: str,
        items: list[BulkPaymentItem],
        correlation_id: Optional[UUID] = None,
    ) -> BulkPaymentResult:
        """
        Settle several balances at once.

        Items are independent: one refusal doesn't stop the others.
        """
        correlation_id = correlation_id or create_correlation_id()
        result = BulkPaymentResult()

        for item in items:
            outcome = await self.mark_as_paid(
                group_id=group_id,
                debtor_id=item.debtor_id,
                creditor_id=item.creditor_id,
                amount=item.amount,
                marked_by=marked_by,
                correlation_id=correlation_id,
            )
            if outcome.success:
                result.created.append(outcome.payment)
            else:
                result.errors.append({
                    "debtor_id": item.debtor_id,
                    "creditor_id": item.creditor_id,
                    "amount": f"{item.amount:.2f}",
                    "error": outcome.message,
                })

        return result

    async def get_payment(self, payment_id: UUID) -> Optional[Payment]:
        return await self._storage.get_payment(payment_id)

    async def list_group_payments(
        self,
        group_id: str,
        status: Optional[PaymentStatus] = None,
    ) -> list[Payment]:
        """A group's payments, newest first."""
        return await self._storage.list_payments(group_id=group_id, status=status)

    async def list_user_payments(
        self,
        user_id: str,
        group_id: Optional[str] = None,
    ) -> list[Payment]:
        return await self._storage.list_user_payments(user_id, group_id)

    async def pending_for_creditor(self, group_id: str, creditor_id: str) -> list[Payment]:
        """Payments waiting for this user to accept or reject."""
        return await self._storage.list_payments(
            group_id=group_id,
            status=PaymentStatus.PENDING,
            creditor_id=creditor_id,
        )

    async def accepted_total(self, group_id: str, debtor_id: str, creditor_id: str) -> Decimal:
        payments = await self._storage.list_payments(
            group_id=group_id,
            status=PaymentStatus.ACCEPTED,
            debtor_id=debtor_id,
            creditor_id=creditor_id,
        )
        return sum((p.amount for p in payments), Decimal("0.00"))
