"""
View Selector

Decides which debt graph users see for a group.

- No accepted payment anywhere in the group: the simplified settlement
  plan over current net balances.
- At least one accepted payment: the raw pairwise graph, exactly as the
  aggregator produced it.

Simplification may route a debt through someone who never received money
from that debtor. Once settlement has started, each payment has to line up
with a real pairwise edge, so traceability wins over fewer transfers.

The choice is a pure function of its inputs; no mode flag is stored.
"""

from typing import Iterable, Optional

from groupledger.ledger.simplification import simplify_debts
from groupledger.models.ledger import (
    NetBalance,
    PairwiseDebt,
    Payment,
    PaymentStatus,
    SettlementView,
    ViewMode,
)


def has_accepted_payment(payments: Iterable[Payment]) -> bool:
    return any(p.status == PaymentStatus.ACCEPTED for p in payments)


def select_settlement_view(
    net_balances: list[NetBalance],
    pairwise_debts: list[PairwiseDebt],
    any_accepted_payment: bool,
    group_id: Optional[str] = None,
) -> SettlementView:
    """Pick the simplified plan or the raw graph for a group."""
    if any_accepted_payment:
        return SettlementView(
            group_id=group_id,
            mode=ViewMode.RAW,
            debts=list(pairwise_debts),
        )

    return SettlementView(
        group_id=group_id,
        mode=ViewMode.SIMPLIFIED,
        debts=simplify_debts(net_balances),
    )
