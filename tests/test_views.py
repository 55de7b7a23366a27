"""Tests for the raw-vs-simplified view policy."""

from decimal import Decimal

from groupledger.ledger import (
    calculate_net_balances,
    calculate_pairwise_debts,
    has_accepted_payment,
    select_settlement_view,
    simplify_debts,
)
from groupledger.ledger.splits import equal_split
from groupledger.models.ledger import Expense, Payment, PaymentStatus, ViewMode


def expense(payer, amount, members):
    return Expense(group_id="g1", paid_by=payer, amount=amount, splits=equal_split(amount, members))


def payment(debtor, creditor, amount, status=PaymentStatus.ACCEPTED):
    return Payment(
        group_id="g1",
        debtor_id=debtor,
        creditor_id=creditor,
        amount=amount,
        status=status,
        marked_by=debtor,
    )


def view_for(expenses, payments):
    return select_settlement_view(
        net_balances=calculate_net_balances(expenses, payments),
        pairwise_debts=calculate_pairwise_debts(expenses, payments),
        any_accepted_payment=has_accepted_payment(payments),
        group_id="g1",
    )


# B owes A 50 and C owes B 50; simplification routes C straight to A.
CHAIN = [
    expense("A", 100, ["A", "B"]),
    expense("B", 100, ["B", "C"]),
]


class TestViewPolicy:

    def test_simplified_without_payments(self):
        view = view_for(CHAIN, [])
        assert view.mode == ViewMode.SIMPLIFIED
        assert view.group_id == "g1"
        assert [(d.from_user_id, d.to_user_id, d.amount) for d in view.debts] == [
            ("C", "A", Decimal("50.00")),
        ]

    def test_pending_payment_keeps_simplified(self):
        view = view_for(CHAIN, [payment("B", "A", 10, PaymentStatus.PENDING)])
        assert view.mode == ViewMode.SIMPLIFIED

    def test_rejected_payment_keeps_simplified(self):
        view = view_for(CHAIN, [payment("B", "A", 10, PaymentStatus.REJECTED)])
        assert view.mode == ViewMode.SIMPLIFIED

    def test_accepted_payment_switches_to_raw(self):
        payments = [payment("B", "A", 10)]
        view = view_for(CHAIN, payments)

        assert view.mode == ViewMode.RAW
        assert view.debts == calculate_pairwise_debts(CHAIN, payments)
        pairs = {(d.from_user_id, d.to_user_id) for d in view.debts}
        assert ("C", "A") not in pairs
        assert pairs == {("B", "A"), ("C", "B")}

    def test_raw_persists_after_everything_is_paid(self):
        payments = [payment("B", "A", 50), payment("C", "B", 50)]
        view = view_for(CHAIN, payments)
        assert view.mode == ViewMode.RAW
        assert all(d.settled for d in view.debts)
        assert view.total == Decimal("0.00")

    def test_accepted_payment_between_unrelated_pair(self):
        """Any accepted payment in the group flips the view."""
        history = CHAIN + [expense("D", 20, ["D", "E"])]
        view = view_for(history, [payment("E", "D", 10)])
        assert view.mode == ViewMode.RAW

    def test_pure_function_of_inputs(self):
        balances = calculate_net_balances(CHAIN)
        raw = calculate_pairwise_debts(CHAIN)
        simplified = select_settlement_view(balances, raw, False)
        assert simplified.debts == simplify_debts(balances)
        assert select_settlement_view(balances, raw, True).debts == raw


class TestHasAcceptedPayment:

    def test_statuses(self):
        assert has_accepted_payment([]) is False
        assert has_accepted_payment([payment("A", "B", 1, PaymentStatus.PENDING)]) is False
        assert has_accepted_payment([
            payment("A", "B", 1, PaymentStatus.REJECTED),
            payment("A", "B", 1),
        ]) is True
