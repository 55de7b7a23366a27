"""
Core Data Models for GroupLedger

Persisted records (Expense, ExpenseSplit, Payment) and the derived views
computed from them (PairwiseDebt, NetBalance, SimplifiedDebt).

DESIGN DECISION: Derived views are plain models with no identity.
They are recomputed from the full history on every read and never stored,
so there is nothing to keep in sync.

Amounts are Decimal with two places. Inputs that arrive as float or str are
converted through `to_money` so binary float artefacts never enter the ledger.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Union
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from groupledger.money import to_decimal, to_money


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class SplitType(str, Enum):
    """How an expense amount is divided between members."""
    EQUAL = "equal"
    UNEQUAL = "unequal"
    PERCENTAGE = "percentage"
    SHARES = "shares"


class ExpenseCategory(str, Enum):
    """
    Expense categories.

    Free labels from older rows are mapped onto GENERAL by `from_key`.
    """
    GENERAL = "general"
    FOOD = "food"
    GROCERIES = "groceries"
    TRANSPORT = "transport"
    SHOPPING = "shopping"
    ENTERTAINMENT = "entertainment"
    UTILITIES = "utilities"
    RENT = "rent"
    TRAVEL = "travel"
    HEALTH = "health"
    COFFEE = "coffee"
    DRINKS = "drinks"
    SUBSCRIPTIONS = "subscriptions"
    GIFTS = "gifts"
    OTHER = "other"

    @classmethod
    def from_key(cls, key: Optional[str]) -> "ExpenseCategory":
        try:
            return cls((key or "").strip().lower())
        except ValueError:
            return cls.GENERAL

    @property
    def label(self) -> str:
        return self.value.capitalize()


class PaymentStatus(str, Enum):
    """
    Settlement payment status.

    PENDING is the only non-terminal state. A payment moves once,
    to ACCEPTED or REJECTED, and is never touched again.
    """
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not PaymentStatus.PENDING


class ViewMode(str, Enum):
    """Which debt graph is exposed to users."""
    SIMPLIFIED = "simplified"
    RAW = "raw"


# =============================================================================
# PERSISTED RECORDS
# =============================================================================

class ExpenseSplit(BaseModel):
    """One member's share of an expense."""

    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: str = Field(
        ...,
        min_length=1,
        description="Member who owes this share"
    )
    owed_amount: Decimal = Field(
        ...,
        description="Share of the expense, in currency units"
    )
    expense_id: Optional[UUID] = Field(
        default=None,
        description="Owning expense (set once persisted)"
    )

    @field_validator('owed_amount', mode='before')
    @classmethod
    def round_owed_amount(cls, v) -> Decimal:
        return to_money(v)


class Expense(BaseModel):
    """
    An expense paid by one member and split across members.

    Splits are replaced wholesale on edit and deleted with the expense.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique expense ID"
    )
    group_id: str = Field(
        ...,
        min_length=1,
        description="Group this expense belongs to"
    )
    paid_by: str = Field(
        ...,
        min_length=1,
        description="User who paid"
    )
    amount: Decimal = Field(
        ...,
        description="Total paid, in currency units"
    )
    description: str = Field(
        default="",
        max_length=255,
    )
    category: ExpenseCategory = Field(
        default=ExpenseCategory.GENERAL,
    )
    split_type: SplitType = Field(
        default=SplitType.EQUAL,
    )
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
    )
    splits: list[ExpenseSplit] = Field(default_factory=list)

    @field_validator('amount', mode='before')
    @classmethod
    def round_amount(cls, v) -> Decimal:
        return to_money(v)

    @field_validator('category', mode='before')
    @classmethod
    def coerce_category(cls, v) -> ExpenseCategory:
        if isinstance(v, ExpenseCategory):
            return v
        return ExpenseCategory.from_key(v)

    @property
    def split_total(self) -> Decimal:
        return sum((s.owed_amount for s in self.splits), Decimal("0.00"))

    def share_of(self, user_id: str) -> Decimal:
        """Amount owed by user_id on this expense (0 if not in the split)."""
        for split in self.splits:
            if split.user_id == user_id:
                return split.owed_amount
        return Decimal("0.00")


class Payment(BaseModel):
    """
    A settlement payment from a debtor to a creditor.

    Created PENDING by the debtor ("mark as paid"); the creditor accepts
    or rejects it. Only ACCEPTED payments count in balance math.
    """

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique payment ID"
    )
    group_id: str = Field(..., min_length=1)
    debtor_id: str = Field(..., min_length=1)
    creditor_id: str = Field(..., min_length=1)
    amount: Decimal = Field(...)
    status: PaymentStatus = Field(default=PaymentStatus.PENDING)
    marked_by: str = Field(
        ...,
        min_length=1,
        description="User who marked the payment as paid"
    )
    accepted_by: Optional[str] = Field(
        default=None,
        description="User who accepted (or rejected) the payment"
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator('amount', mode='before')
    @classmethod
    def round_amount(cls, v) -> Decimal:
        return to_money(v)

    @model_validator(mode='after')
    def validate_parties(self) -> 'Payment':
        if self.debtor_id == self.creditor_id:
            raise ValueError("Debtor and creditor must be different users")
        return self

    @property
    def is_accepted(self) -> bool:
        return self.status == PaymentStatus.ACCEPTED


class LedgerUser(BaseModel):
    """Directory entry used only for presentation."""

    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.email or self.id


# =============================================================================
# DERIVED VIEWS (never persisted)
# =============================================================================

class DebtEdge(BaseModel):
    """A directed amount owed from one user to another."""

    from_user_id: str
    to_user_id: str
    amount: Decimal = Field(
        ...,
        description="Outstanding amount"
    )


class PairwiseDebt(DebtEdge):
    """
    A raw, netted debt between two specific users.

    `amount` is what remains after accepted payments; `original_amount`
    and `paid_amount` are kept so the history stays traceable.
    """

    original_amount: Decimal
    paid_amount: Decimal = Decimal("0.00")
    settled: bool = False


class SimplifiedDebt(DebtEdge):
    """One transfer in a settlement plan."""


class NetBalance(BaseModel):
    """A member's single position in the group: positive is owed, negative owes."""

    user_id: str
    net_balance: Decimal


class SettlementView(BaseModel):
    """The debt graph shown to users, and which policy produced it."""

    group_id: Optional[str] = None
    mode: ViewMode
    debts: list[Union[PairwiseDebt, SimplifiedDebt]] = Field(default_factory=list)

    @property
    def is_simplified(self) -> bool:
        return self.mode == ViewMode.SIMPLIFIED

    @property
    def total(self) -> Decimal:
        return sum((d.amount for d in self.debts), Decimal("0.00"))


class PairDetail(BaseModel):
    """Everything that contributes to the debt between two users."""

    group_id: str
    user_a: str
    user_b: str
    expenses: list[Expense] = Field(default_factory=list)
    payments: list[Payment] = Field(default_factory=list)
    debt: Optional[PairwiseDebt] = None


# =============================================================================
# REQUESTS AND RESULTS
# =============================================================================

class CreateExpenseRequest(BaseModel):
    """
    Input for authoring an expense.

    `values` carries the per-member numbers for the chosen split type:
    amounts for UNEQUAL, percentages for PERCENTAGE, share counts for
    SHARES. For EQUAL only `member_ids` is used.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    group_id: str
    paid_by: str
    amount: Decimal
    description: str = ""
    category: Optional[str] = None
    split_type: SplitType = SplitType.EQUAL
    member_ids: list[str] = Field(default_factory=list)
    values: dict[str, Decimal] = Field(default_factory=dict)
    excluded_members: list[str] = Field(default_factory=list)

    @field_validator('amount', mode='before')
    @classmethod
    def round_amount(cls, v) -> Decimal:
        return to_money(v)

    @field_validator('values', mode='before')
    @classmethod
    def coerce_values(cls, v) -> dict:
        return {k: to_decimal(val) for k, val in (v or {}).items()}


class SplitValidationResult(BaseModel):
    """Outcome of checking a split set against its expense amount."""

    valid: bool
    error: Optional[str] = None
    total: Decimal = Decimal("0.00")
    difference: Decimal = Decimal("0.00")
    duplicate_user_ids: list[str] = Field(default_factory=list)


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'sum_mismatch')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of validating an expense before it is written.

    Never raised: callers render `issues` inline.
    """

    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    splits: list[ExpenseSplit] = Field(
        default_factory=list,
        description="Normalized splits that were validated"
    )

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [i.message for i in self.issues if i.severity == "warning"]


class PaymentOperationResult(BaseModel):
    """Outcome of a payment command; refused operations carry a message."""

    success: bool
    message: str = ""
    payment: Optional[Payment] = None


class BulkPaymentItem(BaseModel):
    debtor_id: str
    creditor_id: str
    amount: Decimal

    @field_validator('amount', mode='before')
    @classmethod
    def round_amount(cls, v) -> Decimal:
        return to_money(v)


class BulkPaymentResult(BaseModel):
    """Per-item outcome of a settle-all request."""

    created: list[Payment] = Field(default_factory=list)
    errors: list[dict] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return bool(self.created) or not self.errors


class LeaveGroupCheck(BaseModel):
    """Whether a member may leave, and the debts that block them."""

    user_id: str
    allowed: bool
    blocking_debts: list[PairwiseDebt] = Field(default_factory=list)
    message: str = ""
