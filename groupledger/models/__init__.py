"""
Data Models Package

This package contains all Pydantic models used in GroupLedger.
All data flowing through the system must conform to these schemas.
"""

from groupledger.models.ledger import (
    BulkPaymentItem,
    BulkPaymentResult,
    CreateExpenseRequest,
    DebtEdge,
    Expense,
    ExpenseCategory,
    ExpenseSplit,
    LeaveGroupCheck,
    LedgerUser,
    NetBalance,
    PairDetail,
    PairwiseDebt,
    Payment,
    PaymentOperationResult,
    PaymentStatus,
    SettlementView,
    SimplifiedDebt,
    SplitType,
    SplitValidationResult,
    ValidationIssue,
    ValidationResult,
    ViewMode,
)
from groupledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger records
    "Expense",
    "ExpenseCategory",
    "ExpenseSplit",
    "LedgerUser",
    "Payment",
    "PaymentStatus",
    "SplitType",
    # Derived views
    "DebtEdge",
    "NetBalance",
    "PairDetail",
    "PairwiseDebt",
    "SettlementView",
    "SimplifiedDebt",
    "ViewMode",
    # Requests and results
    "BulkPaymentItem",
    "BulkPaymentResult",
    "CreateExpenseRequest",
    "LeaveGroupCheck",
    "PaymentOperationResult",
    "SplitValidationResult",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
