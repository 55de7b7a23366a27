"""
Ledger computation engine.

Pure functions over expense and payment history. Nothing here touches
storage; callers load the full history and pass it in on every read.
"""

from groupledger.ledger.net_balances import (
    balance_for_user,
    calculate_net_balances,
    calculate_raw_net_positions,
)
from groupledger.ledger.pairwise import (
    calculate_pairwise_debts,
    debts_involving,
    find_debt_between,
    unsettled_debts,
)
from groupledger.ledger.simplification import plan_total, simplify_debts
from groupledger.ledger.splits import (
    apply_remainder_fix,
    equal_split,
    exclude_members,
    normalize_splits,
    percentage_split,
    share_split,
    unequal_split,
)
from groupledger.ledger.views import has_accepted_payment, select_settlement_view

__all__ = [
    # Splits
    "apply_remainder_fix",
    "equal_split",
    "exclude_members",
    "normalize_splits",
    "percentage_split",
    "share_split",
    "unequal_split",
    # Balances
    "balance_for_user",
    "calculate_net_balances",
    "calculate_raw_net_positions",
    "calculate_pairwise_debts",
    "debts_involving",
    "find_debt_between",
    "unsettled_debts",
    # Settlement
    "has_accepted_payment",
    "plan_total",
    "select_settlement_view",
    "simplify_debts",
]
