"""
Pairwise Balance Aggregator

Derives the raw debt graph: for each pair of members, a single directed,
netted amount, reduced by the accepted payments made in that direction.

Steps:
1. Every split whose user is not the payer records user -> payer.
2. Opposite directions between the same two users are netted; an edge is
   kept only if the net exceeds one cent. Never both directions, never a
   self-edge.
3. Accepted payments are summed per exact (debtor, creditor) direction and
   subtracted from the matching edge. The original and paid amounts are
   kept; the edge is settled once the remainder is within one cent.

Output order follows the first appearance of each pair in the history,
so identical history always gives an identical list.
"""

from decimal import Decimal
from typing import Iterable, Optional

from groupledger.models.ledger import (
    Expense,
    Payment,
    PairwiseDebt,
    PaymentStatus,
)
from groupledger.money import EPSILON, ZERO, to_money

Pair = tuple[str, str]


def accumulate_directed_debts(expenses: Iterable[Expense]) -> dict[Pair, Decimal]:
    """Sum of split amounts owed per ordered (debtor, payer) pair."""
    directed: dict[Pair, Decimal] = {}
    for expense in expenses:
        for split in expense.splits:
            if split.user_id == expense.paid_by:
                continue
            key = (split.user_id, expense.paid_by)
            directed[key] = directed.get(key, ZERO) + split.owed_amount
    return directed


def net_directed_debts(directed: dict[Pair, Decimal]) -> dict[Pair, Decimal]:
    """Collapse A->B and B->A into one positive edge per unordered pair."""
    netted: dict[Pair, Decimal] = {}
    seen: set[frozenset] = set()

    for (debtor, creditor), amount in directed.items():
        pair = frozenset((debtor, creditor))
        if pair in seen:
            continue
        seen.add(pair)

        net = amount - directed.get((creditor, debtor), ZERO)
        if abs(net) <= EPSILON:
            continue
        if net > 0:
            netted[(debtor, creditor)] = net
        else:
            netted[(creditor, debtor)] = -net
    return netted


def sum_accepted_payments(payments: Iterable[Payment]) -> dict[Pair, Decimal]:
    """Accepted payment totals per exact (debtor, creditor) direction."""
    paid: dict[Pair, Decimal] = {}
    for payment in payments:
        if payment.status != PaymentStatus.ACCEPTED:
            continue
        key = (payment.debtor_id, payment.creditor_id)
        paid[key] = paid.get(key, ZERO) + payment.amount
    return paid


def calculate_pairwise_debts(
    expenses: Iterable[Expense],
    payments: Optional[Iterable[Payment]] = None,
) -> list[PairwiseDebt]:
    """Raw netted pairwise debts with accepted payments applied."""
    netted = net_directed_debts(accumulate_directed_debts(expenses))
    paid = sum_accepted_payments(payments or [])

    debts = []
    for (debtor, creditor), original in netted.items():
        paid_amount = paid.get((debtor, creditor), ZERO)
        remaining = original - paid_amount
        debts.append(PairwiseDebt(
            from_user_id=debtor,
            to_user_id=creditor,
            amount=max(ZERO, to_money(remaining)),
            original_amount=to_money(original),
            paid_amount=to_money(paid_amount),
            settled=remaining <= EPSILON,
        ))
    return debts


def debts_involving(debts: Iterable[PairwiseDebt], user_id: str) -> list[PairwiseDebt]:
    return [d for d in debts if user_id in (d.from_user_id, d.to_user_id)]


def unsettled_debts(debts: Iterable[PairwiseDebt]) -> list[PairwiseDebt]:
    """Edges that still carry more than one cent."""
    return [d for d in debts if not d.settled and d.amount > EPSILON]


def find_debt_between(
    debts: Iterable[PairwiseDebt],
    user_a: str,
    user_b: str,
) -> Optional[PairwiseDebt]:
    """The single edge between two users, in whichever direction it runs."""
    for debt in debts:
        if {debt.from_user_id, debt.to_user_id} == {user_a, user_b}:
            return debt
    return None
