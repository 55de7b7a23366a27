"""
Balance Queries

DESIGN DECISION: Every read recomputes from the full history.
There is no cached running ledger. Each call loads the group's expenses
(with splits) and payments from storage and hands them to the pure
engine functions in `groupledger.ledger`.

This costs a full scan per read, and in exchange any balance can be
explained from the stored rows alone.

Readers see whatever the stores return at call time; no stronger
consistency with concurrent writes is promised.
"""

from decimal import Decimal
from typing import Iterable, Optional, Union

from groupledger.ledger import (
    balance_for_user,
    calculate_net_balances,
    calculate_pairwise_debts,
    debts_involving,
    find_debt_between,
    has_accepted_payment,
    select_settlement_view,
    simplify_debts,
    unsettled_debts,
)
from groupledger.models.ledger import (
    DebtEdge,
    Expense,
    LedgerUser,
    NetBalance,
    PairDetail,
    PairwiseDebt,
    Payment,
    SettlementView,
    SimplifiedDebt,
)
from groupledger.services.storage import (
    ExpenseStorageInterface,
    PaymentStorageInterface,
    UserDirectoryInterface,
)


class BalanceQueryExecutor:
    """
    Read-side entry point for balances and debts.

    GUARANTEES:
    - Only returns values derived from stored rows
    - Identical history gives identical answers
    - The user directory is used for display names only
    """

    def __init__(
        self,
        expense_storage: ExpenseStorageInterface,
        payment_storage: PaymentStorageInterface,
        user_directory: Optional[UserDirectoryInterface] = None,
    ):
        self._expenses = expense_storage
        self._payments = payment_storage
        self._users = user_directory

    async def _load(self, group_id: str) -> tuple[list[Expense], list[Payment]]:
        expenses = await self._expenses.list_expenses(group_id)
        payments = await self._payments.list_payments(group_id)
        return expenses, payments

    async def pairwise_debts(self, group_id: str) -> list[PairwiseDebt]:
        expenses, payments = await self._load(group_id)
        return calculate_pairwise_debts(expenses, payments)

    async def net_balances(self, group_id: str) -> list[NetBalance]:
        expenses, payments = await self._load(group_id)
        return calculate_net_balances(expenses, payments)

    async def simplified_debts(self, group_id: str) -> list[SimplifiedDebt]:
        """The greedy plan over current balances, regardless of view policy."""
        return simplify_debts(await self.net_balances(group_id))

    async def settlement_view(self, group_id: str) -> SettlementView:
        """What users should see: simplified until the first accepted payment."""
        expenses, payments = await self._load(group_id)
        return select_settlement_view(
            net_balances=calculate_net_balances(expenses, payments),
            pairwise_debts=calculate_pairwise_debts(expenses, payments),
            any_accepted_payment=has_accepted_payment(payments),
            group_id=group_id,
        )

    async def user_balance(self, group_id: str, user_id: str) -> Decimal:
        return balance_for_user(await self.net_balances(group_id), user_id)

    async def unsettled_debts_for_user(
        self,
        group_id: str,
        user_id: str,
    ) -> list[PairwiseDebt]:
        """Raw edges involving the user that still carry more than a cent."""
        debts = await self.pairwise_debts(group_id)
        return unsettled_debts(debts_involving(debts, user_id))

    async def pair_detail(self, group_id: str, user_a: str, user_b: str) -> PairDetail:
        """
        Everything behind the debt between two users.

        Expenses count when one of them paid and the other has a split.
        Payments between them are listed in any status and direction.
        """
        expenses, payments = await self._load(group_id)

        def involves_pair(expense: Expense) -> bool:
            members = {s.user_id for s in expense.splits}
            return (
                (expense.paid_by == user_a and user_b in members)
                or (expense.paid_by == user_b and user_a in members)
            )

        return PairDetail(
            group_id=group_id,
            user_a=user_a,
            user_b=user_b,
            expenses=[e for e in expenses if involves_pair(e)],
            payments=[
                p for p in payments
                if {p.debtor_id, p.creditor_id} == {user_a, user_b}
            ],
            debt=find_debt_between(calculate_pairwise_debts(expenses, payments), user_a, user_b),
        )

    async def decorate(
        self,
        debts: Iterable[Union[DebtEdge, NetBalance]],
    ) -> list[dict]:
        """
        Attach display names to derived rows for presentation.

        Users missing from the directory fall back to their id.
        """
        rows = [d.model_dump() for d in debts]
        ids: list[str] = []
        for row in rows:
            for key in ("from_user_id", "to_user_id", "user_id"):
                if key in row and row[key] not in ids:
                    ids.append(row[key])

        users: dict[str, LedgerUser] = {}
        if self._users and ids:
            users = await self._users.get_users(ids)

        def name(user_id: str) -> str:
            user = users.get(user_id)
            return user.display_name if user else user_id

        for row in rows:
            if "from_user_id" in row:
                row["from_name"] = name(row["from_user_id"])
                row["to_name"] = name(row["to_user_id"])
            if "user_id" in row:
                row["name"] = name(row["user_id"])
        return rows
