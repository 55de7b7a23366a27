"""Tests for the payment state machine."""

import asyncio
from decimal import Decimal
from uuid import uuid4

from groupledger.audit import AuditLogger
from groupledger.models.audit import AuditEventType
from groupledger.models.ledger import BulkPaymentItem, PaymentStatus
from groupledger.payments import DUPLICATE_PENDING_MESSAGE, PaymentReconciler
from groupledger.services.storage import InMemoryAuditStorage, InMemoryPaymentStorage


def make_reconciler():
    audit_storage = InMemoryAuditStorage()
    reconciler = PaymentReconciler(InMemoryPaymentStorage(), AuditLogger(audit_storage))
    return reconciler, audit_storage


def run(coro):
    return asyncio.run(coro)


class TestMarkAsPaid:

    def test_creates_pending_payment(self):
        reconciler, _ = make_reconciler()
        result = run(reconciler.mark_as_paid("g1", "D", "C", 50, marked_by="D"))

        assert result.success is True
        assert result.payment.status == PaymentStatus.PENDING
        assert result.payment.amount == Decimal("50.00")
        assert result.payment.marked_by == "D"

    def test_second_pending_for_same_pair_rejected(self):
        reconciler, audit = make_reconciler()

        async def scenario():
            first = await reconciler.mark_as_paid("g1", "D", "C", 50, marked_by="D")
            second = await reconciler.mark_as_paid("g1", "D", "C", 20, marked_by="D")
            pending = await reconciler.list_group_payments("g1", PaymentStatus.PENDING)
            events = await audit.get_recent_events()
            return first, second, pending, events

        first, second, pending, events = run(scenario())
        assert first.success is True
        assert second.success is False
        assert second.message == DUPLICATE_PENDING_MESSAGE
        assert len(pending) == 1
        assert events[0].event_type == AuditEventType.PAYMENT_REFUSED

    def test_pending_guard_is_per_direction_and_group(self):
        reconciler, _ = make_reconciler()

        async def scenario():
            await reconciler.mark_as_paid("g1", "D", "C", 50, marked_by="D")
            reverse = await reconciler.mark_as_paid("g1", "C", "D", 5, marked_by="C")
            other_group = await reconciler.mark_as_paid("g2", "D", "C", 50, marked_by="D")
            return reverse, other_group

        reverse, other_group = run(scenario())
        assert reverse.success is True
        assert other_group.success is True

    def test_new_pending_allowed_after_resolution(self):
        reconciler, _ = make_reconciler()

        async def scenario():
            first = await reconciler.mark_as_paid("g1", "D", "C", 50, marked_by="D")
            await reconciler.reject_payment(first.payment.id, actor_id="C")
            return await reconciler.mark_as_paid("g1", "D", "C", 50, marked_by="D")

        assert run(scenario()).success is True

    def test_only_debtor_can_mark(self):
        reconciler, _ = make_reconciler()
        result = run(reconciler.mark_as_paid("g1", "D", "C", 50, marked_by="C"))
        assert result.success is False
        assert "debtor" in result.message

    def test_self_payment_refused(self):
        reconciler, _ = make_reconciler()
        result = run(reconciler.mark_as_paid("g1", "D", "D", 50, marked_by="D"))
        assert result.success is False

    def test_non_positive_amount_refused(self):
        reconciler, _ = make_reconciler()
        assert run(reconciler.mark_as_paid("g1", "D", "C", 0, marked_by="D")).success is False
        assert run(reconciler.mark_as_paid("g1", "D", "C", "-3", marked_by="D")).success is False


    def test_non_numeric_amount_refused(self):
        reconciler, audit = make_reconciler()

        async def scenario():
            result = await reconciler.mark_as_paid("g1", "D", "C", "abc", marked_by="D")
            return result, await audit.get_recent_events()

        result, events = run(scenario())
        assert result.success is False
        assert result.message == "Payment amount must be a number"
        assert events[0].event_type == AuditEventType.PAYMENT_REFUSED
        assert events[0].details["amount"] == "abc"


class TestResolve:

    def test_creditor_accepts(self):
        reconciler, audit = make_reconciler()

        async def scenario():
            marked = await reconciler.mark_as_paid("g1", "D", "C", 50, marked_by="D")
            accepted = await reconciler.accept_payment(marked.payment.id, actor_id="C")
            stored = await reconciler.get_payment(marked.payment.id)
            events = await audit.get_events_by_entity("payment", marked.payment.id)
            return accepted, stored, events

        accepted, stored, events = run(scenario())
        assert accepted.success is True
        assert stored.status == PaymentStatus.ACCEPTED
        assert stored.accepted_by == "C"
        assert [e.event_type for e in events] == [
            AuditEventType.PAYMENT_MARKED,
            AuditEventType.PAYMENT_ACCEPTED,
        ]

    def test_debtor_cannot_accept(self):
        reconciler, _ = make_reconciler()

        async def scenario():
            marked = await reconciler.mark_as_paid("g1", "D", "C", 50, marked_by="D")
            return await reconciler.accept_payment(marked.payment.id, actor_id="D")

        result = run(scenario())
        assert result.success is False
        assert "creditor" in result.message

    def test_terminal_states_are_final(self):
        reconciler, _ = make_reconciler()

        async def scenario():
            marked = await reconciler.mark_as_paid("g1", "D", "C", 50, marked_by="D")
            await reconciler.accept_payment(marked.payment.id, actor_id="C")
            reject = await reconciler.reject_payment(marked.payment.id, actor_id="C")
            accept_again = await reconciler.accept_payment(marked.payment.id, actor_id="C")
            stored = await reconciler.get_payment(marked.payment.id)
            return reject, accept_again, stored

        reject, accept_again, stored = run(scenario())
        assert reject.success is False
        assert reject.message == "Payment has already been accepted"
        assert accept_again.success is False
        assert stored.status == PaymentStatus.ACCEPTED

    def test_reject(self):
        reconciler, _ = make_reconciler()

        async def scenario():
            marked = await reconciler.mark_as_paid("g1", "D", "C", 50, marked_by="D")
            return await reconciler.reject_payment(marked.payment.id, actor_id="C")

        result = run(scenario())
        assert result.success is True
        assert result.payment.status == PaymentStatus.REJECTED

    def test_unknown_payment(self):
        reconciler, _ = make_reconciler()
        result = run(reconciler.accept_payment(uuid4(), actor_id="C"))
        assert result.success is False
        assert result.message == "Payment not found"


class TestBulkAndQueries:

    def test_bulk_items_are_independent(self):
        reconciler, _ = make_reconciler()

        async def scenario():
            await reconciler.mark_as_paid("g1", "D", "A", 5, marked_by="D")
            return await reconciler.bulk_mark_as_paid("g1", "D", [
                BulkPaymentItem(debtor_id="D", creditor_id="A", amount=10),
                BulkPaymentItem(debtor_id="D", creditor_id="B", amount=20),
                BulkPaymentItem(debtor_id="D", creditor_id="C", amount="30.005"),
            ])

        result = run(scenario())
        assert [p.creditor_id for p in result.created] == ["B", "C"]
        assert result.created[1].amount == Decimal("30.01")
        assert len(result.errors) == 1
        assert result.errors[0]["error"] == DUPLICATE_PENDING_MESSAGE
        assert result.success is True

    def test_user_and_creditor_queries(self):
        reconciler, _ = make_reconciler()

        async def scenario():
            first = await reconciler.mark_as_paid("g1", "D", "C", 50, marked_by="D")
            await reconciler.mark_as_paid("g1", "E", "C", 10, marked_by="E")
            await reconciler.mark_as_paid("g2", "C", "D", 7, marked_by="C")
            await reconciler.accept_payment(first.payment.id, actor_id="C")
            second = await reconciler.mark_as_paid("g1", "D", "C", 25, marked_by="D")
            await reconciler.accept_payment(second.payment.id, actor_id="C")
            return (
                await reconciler.list_user_payments("D"),
                await reconciler.list_user_payments("D", group_id="g1"),
                await reconciler.pending_for_creditor("g1", "C"),
                await reconciler.accepted_total("g1", "D", "C"),
            )

        all_d, d_in_g1, pending_c, total = run(scenario())
        assert len(all_d) == 3
        assert len(d_in_g1) == 2
        assert [p.debtor_id for p in pending_c] == ["E"]
        assert total == Decimal("75.00")
