"""
Two-Stage Expense Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - INPUT VALIDATION:
- Positive amount
- No negative per-member value
- Non-empty member set
- Split configuration present for the chosen split type

STAGE 2 - SPLIT VALIDATION:
- Build the splits with the split calculator
- No share below zero
- Check they sum to the amount within one cent
- Flag repeated members and suspicious amounts

WHY TWO STAGES:
1. Stage 2 can't build splits from input that failed stage 1
2. Better error messages (know exactly what kind of issue)

IMPORTANT: Validation never raises and never silently fixes issues.
It returns a structured result for the caller to render inline.
"""

from decimal import Decimal
from typing import Optional

from groupledger.config import get_settings
from groupledger.ledger.splits import normalize_splits
from groupledger.models.ledger import (
    CreateExpenseRequest,
    ExpenseSplit,
    SplitType,
    SplitValidationResult,
    ValidationIssue,
    ValidationResult,
)
from groupledger.money import EPSILON, ZERO, MoneyLike, to_money


def validate_splits(
    amount: MoneyLike,
    splits: list[ExpenseSplit],
) -> SplitValidationResult:
    """
    Check that splits sum to the expense amount within one cent.

    A user listed twice is reported in `duplicate_user_ids`; only the
    first occurrence counts towards the total.
    """
    amount = to_money(amount)

    seen: set[str] = set()
    duplicates: list[str] = []
    total = ZERO
    for split in splits:
        if split.user_id in seen:
            if split.user_id not in duplicates:
                duplicates.append(split.user_id)
            continue
        seen.add(split.user_id)
        total += split.owed_amount

    difference = abs(total - amount)
    if difference > EPSILON:
        return SplitValidationResult(
            valid=False,
            error=f"Split total ({total:.2f}) does not match expense amount ({amount:.2f})",
            total=total,
            difference=difference,
            duplicate_user_ids=duplicates,
        )

    return SplitValidationResult(
        valid=True,
        total=total,
        difference=difference,
        duplicate_user_ids=duplicates,
    )


class ExpenseValidator:
    """
    Validates an expense request before anything is written.

    Stage 1: Input validation
    Stage 2: Split validation (only if stage 1 passes)
    """

    def __init__(self):
        self._settings = get_settings().ledger

    def _validate_input(
        self,
        request: CreateExpenseRequest,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Input validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if request.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
                severity="error",
                suggested_fix="Enter the total that was paid",
            ))

        if not request.paid_by:
            issues.append(ValidationIssue(
                field="paid_by",
                issue_type="missing",
                message="Select who paid for this expense",
                severity="error",
            ))

        if request.split_type == SplitType.EQUAL:
            members = request.member_ids
        else:
            members = list(request.values)

        excluded = set(request.excluded_members)
        if not [m for m in members if m not in excluded]:
            issues.append(ValidationIssue(
                field="member_ids",
                issue_type="empty",
                message="Select at least one member to split with",
                severity="error",
            ))

        if request.split_type != SplitType.EQUAL:
            negative = [k for k, v in request.values.items() if v < 0]
            if negative:
                issues.append(ValidationIssue(
                    field="values",
                    issue_type="invalid_value",
                    message=f"Values can't be negative ({', '.join(negative)})",
                    severity="error",
                    suggested_fix="Enter zero or a positive value for each member",
                ))

        if request.split_type == SplitType.PERCENTAGE:
            pct_total = sum(
                (v for k, v in request.values.items() if k not in excluded),
                Decimal(0),
            )
            if abs(pct_total - 100) > EPSILON:
                issues.append(ValidationIssue(
                    field="values",
                    issue_type="sum_mismatch",
                    message=f"Percentages add up to {pct_total}%, not 100%",
                    severity="error",
                    suggested_fix="Adjust the percentages so they total 100",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_splits(
        self,
        request: CreateExpenseRequest,
    ) -> tuple[bool, list[ValidationIssue], list[ExpenseSplit]]:
        """
        Stage 2: Build the splits and check them.

        Returns: (is_valid, list_of_issues, splits)
        """
        issues = []

        if request.split_type == SplitType.EQUAL:
            seen: set[str] = set()
            member_ids = []
            for member_id in request.member_ids:
                if member_id in seen:
                    issues.append(ValidationIssue(
                        field="member_ids",
                        issue_type="duplicate",
                        message=f"{member_id} is listed more than once",
                        severity="warning",
                    ))
                    continue
                seen.add(member_id)
                member_ids.append(member_id)
        else:
            member_ids = None

        splits = normalize_splits(
            split_type=request.split_type,
            amount=request.amount,
            member_ids=member_ids,
            amounts=request.values if request.split_type == SplitType.UNEQUAL else None,
            percentages=request.values if request.split_type == SplitType.PERCENTAGE else None,
            shares=request.values if request.split_type == SplitType.SHARES else None,
            excluded_ids=request.excluded_members,
        )

        if not splits:
            issues.append(ValidationIssue(
                field="values",
                issue_type="empty",
                message="Nobody has a share of this expense",
                severity="error",
                suggested_fix="Give at least one member a non-zero share",
            ))
            return False, issues, splits

        below_zero = [s.user_id for s in splits if s.owed_amount < 0]
        if below_zero:
            issues.append(ValidationIssue(
                field="splits",
                issue_type="invalid_value",
                message=f"Shares can't be negative ({', '.join(below_zero)})",
                severity="error",
                suggested_fix="Increase the amount or split it between fewer members",
            ))

        check = validate_splits(request.amount, splits)
        if not check.valid:
            issues.append(ValidationIssue(
                field="splits",
                issue_type="sum_mismatch",
                message=check.error,
                severity="error",
                suggested_fix=f"Adjust the shares by {check.difference:.2f}",
            ))

        if request.amount > self._settings.max_expense_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=(
                    f"Amount ({self._settings.currency_code} {request.amount:,.2f}) "
                    "seems unusually high"
                ),
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        if request.paid_by not in {s.user_id for s in splits}:
            issues.append(ValidationIssue(
                field="paid_by",
                issue_type="payer_not_split",
                message="The payer has no share of this expense",
                severity="info",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues, splits

    def validate(self, request: CreateExpenseRequest) -> ValidationResult:
        """
        Run both stages.

        Returns:
            ValidationResult with all issues found and, when valid,
            the splits that should be written
        """
        input_valid, issues = self._validate_input(request)

        splits: list[ExpenseSplit] = []
        is_valid = False
        if input_valid:
            is_valid, split_issues, splits = self._validate_splits(request)
            issues.extend(split_issues)

        return ValidationResult(
            is_valid=is_valid,
            issues=issues,
            splits=splits if is_valid else [],
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
        amount: Optional[Decimal] = None,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show next to the expense form.
        """
        if result.is_valid and not result.warnings:
            if amount is not None:
                return f"✅ Split of {self._settings.currency_code} {amount:,.2f} looks good."
            return "✅ Split looks good."

        lines = []

        if result.has_errors:
            lines.append("❌ This expense can't be saved yet:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines).strip("\n")
