"""
Audit Models for GroupLedger

Every write to the ledger is logged for audit purposes.
This provides:
1. Traceability of who changed the ledger and when
2. Debugging information when balances look wrong
3. A record of refused operations (bad splits, duplicate payments)

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
Balances themselves are never audited; they are recomputed from history.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Expenses
    EXPENSE_CREATED = "expense_created"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"
    EXPENSE_ROLLED_BACK = "expense_rolled_back"
    SPLIT_VALIDATION_FAILED = "split_validation_failed"

    # Payments
    PAYMENT_MARKED = "payment_marked"
    PAYMENT_ACCEPTED = "payment_accepted"
    PAYMENT_REJECTED = "payment_rejected"
    PAYMENT_REFUSED = "payment_refused"

    # Membership
    LEAVE_GROUP_BLOCKED = "leave_group_blocked"

    # System events
    SYSTEM_ERROR = "system_error"
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    One entry in the audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    group_id: Optional[str] = Field(
        default=None,
        description="Group the event belongs to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'payment')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    actor_id: Optional[str] = Field(
        default=None,
        description="User who triggered the event"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., expense + its rollback)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Keyword arguments for a structlog call."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "group_id": self.group_id,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "actor_id": self.actor_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Flatten to one worksheet row.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, group_id, entity_type,
         entity_id, actor_id, correlation_id, description, details_json,
         error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.group_id or "",
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            self.actor_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Factory methods, one per audited ledger action.

    Usage:
        event = AuditEventBuilder.expense_deleted(expense_id, group_id, correlation_id)
        event = AuditEventBuilder.storage_error("save_splits", str(e))
    """

    @staticmethod
    def expense_created(
        expense_id: UUID,
        group_id: str,
        paid_by: str,
        amount: str,
        split_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            group_id=group_id,
            entity_type="expense",
            entity_id=expense_id,
            actor_id=paid_by,
            correlation_id=correlation_id,
            description=f"Expense of {amount} paid by {paid_by} split {split_count} ways",
            details={
                "amount": amount,
                "split_count": split_count,
            },
        )

    @staticmethod
    def expense_updated(
        expense_id: UUID,
        group_id: str,
        amount: str,
        split_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_UPDATED,
            group_id=group_id,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense replaced: {amount} split {split_count} ways",
            details={
                "amount": amount,
                "split_count": split_count,
            },
        )

    @staticmethod
    def expense_deleted(
        expense_id: UUID,
        group_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            group_id=group_id,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description="Expense and its splits deleted",
        )

    @staticmethod
    def expense_rolled_back(
        expense_id: UUID,
        group_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_ROLLED_BACK,
            severity=AuditSeverity.ERROR,
            group_id=group_id,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description="Split insert failed; expense removed by compensating delete",
            error_message=error_message,
        )

    @staticmethod
    def split_validation_failed(
        group_id: str,
        amount: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPLIT_VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            group_id=group_id,
            entity_type="expense",
            correlation_id=correlation_id,
            description=f"Expense of {amount} rejected with {len(issues)} issues",
            details={
                "amount": amount,
                "issues": issues,
            },
        )

    @staticmethod
    def payment_marked(
        payment_id: UUID,
        group_id: str,
        debtor_id: str,
        creditor_id: str,
        amount: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_MARKED,
            group_id=group_id,
            entity_type="payment",
            entity_id=payment_id,
            actor_id=debtor_id,
            correlation_id=correlation_id,
            description=f"{debtor_id} marked {amount} as paid to {creditor_id}",
            details={
                "debtor_id": debtor_id,
                "creditor_id": creditor_id,
                "amount": amount,
            },
        )

    @staticmethod
    def payment_resolved(
        payment_id: UUID,
        group_id: str,
        accepted: bool,
        actor_id: str,
        amount: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        verb = "accepted" if accepted else "rejected"
        return AuditEvent(
            event_type=(
                AuditEventType.PAYMENT_ACCEPTED
                if accepted
                else AuditEventType.PAYMENT_REJECTED
            ),
            group_id=group_id,
            entity_type="payment",
            entity_id=payment_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Payment of {amount} {verb} by {actor_id}",
            details={"amount": amount},
        )

    @staticmethod
    def payment_refused(
        group_id: str,
        actor_id: str,
        reason: str,
        details: dict,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_REFUSED,
            severity=AuditSeverity.WARNING,
            group_id=group_id,
            entity_type="payment",
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Payment operation refused: {reason}",
            details=details,
        )

    @staticmethod
    def leave_group_blocked(
        group_id: str,
        user_id: str,
        blocking: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEAVE_GROUP_BLOCKED,
            severity=AuditSeverity.WARNING,
            group_id=group_id,
            entity_type="member",
            actor_id=user_id,
            correlation_id=correlation_id,
            description=f"{user_id} cannot leave: {len(blocking)} unsettled balances",
            details={"blocking_debts": blocking},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )
