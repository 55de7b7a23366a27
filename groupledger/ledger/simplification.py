"""
Debt Simplification Engine

Converts net balances into a settlement plan by greedy matching:
repeatedly pair the creditor owed the most with the debtor owing the most,
transfer the smaller of the two remainders, and drop whoever reaches zero.

Every transfer clears at least one party and the last one clears both, so
the plan has at most N - 1 transfers for N members with a non-zero balance.
This is a bounded heuristic; it does not search for the global minimum.

Ties: when several parties share the largest remainder, the one that
appears first in the input list is chosen.
"""

from decimal import Decimal
from typing import Iterable

from groupledger.models.ledger import NetBalance, SimplifiedDebt
from groupledger.money import EPSILON, ZERO, to_money


def _pick_largest(parties: list[list]) -> int:
    # max() returns the first maximal element, which gives the
    # stable input-order tie-break.
    return max(range(len(parties)), key=lambda i: parties[i][1])


def simplify_debts(balances: Iterable[NetBalance]) -> list[SimplifiedDebt]:
    """Greedy largest-first settlement plan for the given net balances."""
    creditors: list[list] = []
    debtors: list[list] = []
    for balance in balances:
        if balance.net_balance > EPSILON:
            creditors.append([balance.user_id, balance.net_balance])
        elif balance.net_balance < -EPSILON:
            debtors.append([balance.user_id, -balance.net_balance])

    transactions = []
    while creditors and debtors:
        ci = _pick_largest(creditors)
        di = _pick_largest(debtors)
        creditor, debtor = creditors[ci], debtors[di]

        amount = to_money(min(creditor[1], debtor[1]))
        transactions.append(SimplifiedDebt(
            from_user_id=debtor[0],
            to_user_id=creditor[0],
            amount=amount,
        ))

        creditor[1] -= amount
        debtor[1] -= amount
        if creditor[1] <= EPSILON:
            creditors.pop(ci)
        if debtor[1] <= EPSILON:
            debtors.pop(di)

    return transactions


def plan_total(transactions: Iterable[SimplifiedDebt]) -> Decimal:
    return sum((t.amount for t in transactions), ZERO)
