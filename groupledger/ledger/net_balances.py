"""
Net Balance Calculator

Each member's single position in the group:
- the payer is credited with what OTHER members owe on the expense
  (their own share never nets against themselves),
- every other split member is debited their share,
- an accepted payment raises the debtor's balance and lowers the
  creditor's by the same amount.

Because every credit has a matching debit, the unfiltered balances
always sum to exactly zero. The filtered view drops members within one
cent of zero.
"""

from decimal import Decimal
from typing import Iterable, Optional

from groupledger.models.ledger import (
    Expense,
    NetBalance,
    Payment,
    PaymentStatus,
)
from groupledger.money import EPSILON, ZERO, to_money


def calculate_raw_net_positions(
    expenses: Iterable[Expense],
    payments: Optional[Iterable[Payment]] = None,
) -> dict[str, Decimal]:
    """Unrounded, unfiltered positions for every member seen in the history."""
    positions: dict[str, Decimal] = {}

    for expense in expenses:
        payer = expense.paid_by
        others_owe = ZERO
        for split in expense.splits:
            if split.user_id == payer:
                continue
            others_owe += split.owed_amount
            positions[split.user_id] = positions.get(split.user_id, ZERO) - split.owed_amount
        positions[payer] = positions.get(payer, ZERO) + others_owe

    for payment in payments or []:
        if payment.status != PaymentStatus.ACCEPTED:
            continue
        positions[payment.debtor_id] = positions.get(payment.debtor_id, ZERO) + payment.amount
        positions[payment.creditor_id] = positions.get(payment.creditor_id, ZERO) - payment.amount

    return positions


def calculate_net_balances(
    expenses: Iterable[Expense],
    payments: Optional[Iterable[Payment]] = None,
) -> list[NetBalance]:
    """Members whose position is more than one cent away from zero."""
    positions = calculate_raw_net_positions(expenses, payments)
    return [
        NetBalance(user_id=user_id, net_balance=to_money(balance))
        for user_id, balance in positions.items()
        if abs(balance) > EPSILON
    ]


def balance_for_user(balances: Iterable[NetBalance], user_id: str) -> Decimal:
    """A member's net balance, zero if settled or absent."""
    for balance in balances:
        if balance.user_id == user_id:
            return balance.net_balance
    return ZERO
