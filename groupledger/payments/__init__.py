"""Settlement payment package."""

from groupledger.payments.reconciliation import (
    DUPLICATE_PENDING_MESSAGE,
    PaymentReconciler,
)

__all__ = ["DUPLICATE_PENDING_MESSAGE", "PaymentReconciler"]
