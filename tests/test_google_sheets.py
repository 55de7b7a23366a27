"""Tests for the Google Sheets backend against an in-process worksheet."""

import asyncio
from decimal import Decimal

import pytest
from gspread.utils import a1_to_rowcol

from groupledger.models.audit import AuditEventBuilder
from groupledger.models.ledger import (
    Expense,
    ExpenseCategory,
    ExpenseSplit,
    Payment,
    PaymentStatus,
)
from groupledger.services.storage import (
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    GoogleSheetsPaymentStorage,
    NotFoundError,
)
from groupledger.services.storage.google_sheets import (
    AUDIT_COLUMNS,
    EXPENSE_COLUMNS,
    PAYMENT_COLUMNS,
    SPLIT_COLUMNS,
)


def run(coro):
    return asyncio.run(coro)


class FakeWorksheet:
    """The subset of gspread.Worksheet the client uses, held in a list."""

    def __init__(self, header):
        self.rows = [list(header)]

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def append_rows(self, rows, value_input_option=None):
        self.rows.extend([str(cell) for cell in row] for row in rows)

    def update(self, range_name, values):
        row, _ = a1_to_rowcol(range_name.split(":")[0])
        while len(self.rows) < row:
            self.rows.append([])
        self.rows[row - 1] = [str(cell) for cell in values[0]]

    def delete_rows(self, index):
        del self.rows[index - 1]


class FakeSheetsClient(GoogleSheetsClient):
    """Client whose worksheets live in memory; no settings or network."""

    def __init__(self, expense_header=EXPENSE_COLUMNS):
        self.sheets = {
            "expenses": FakeWorksheet(expense_header),
            "expense_splits": FakeWorksheet(SPLIT_COLUMNS),
            "payments": FakeWorksheet(PAYMENT_COLUMNS),
            "audit": FakeWorksheet(AUDIT_COLUMNS),
        }

    def get_expenses_sheet(self):
        return self.sheets["expenses"]

    def get_splits_sheet(self):
        return self.sheets["expense_splits"]

    def get_payments_sheet(self):
        return self.sheets["payments"]

    def get_audit_sheet(self):
        return self.sheets["audit"]


def groceries(group_id="g1"):
    return Expense(
        group_id=group_id,
        paid_by="A",
        amount="100.00",
        description="Groceries, weekly",
        category=ExpenseCategory.GROCERIES,
        splits=[
            ExpenseSplit(user_id="A", owed_amount="33.34"),
            ExpenseSplit(user_id="B", owed_amount="33.33"),
            ExpenseSplit(user_id="C", owed_amount="33.33"),
        ],
    )


async def save(storage, expense):
    saved = await storage.save_expense(expense)
    await storage.save_splits(saved.id, expense.splits)
    return saved


class TestExpenseStorage:

    def test_round_trip(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsExpenseStorage(client)
        expense = groceries()

        async def scenario():
            await save(storage, expense)
            await save(storage, groceries(group_id="g2"))
            return await storage.get_expense(expense.id), await storage.list_expenses("g1")

        stored, listed = run(scenario())
        assert stored.amount == Decimal("100.00")
        assert stored.description == "Groceries, weekly"
        assert stored.category == ExpenseCategory.GROCERIES
        assert stored.created_at == expense.created_at
        assert [(s.user_id, s.owed_amount) for s in stored.splits] == [
            ("A", Decimal("33.34")),
            ("B", Decimal("33.33")),
            ("C", Decimal("33.33")),
        ]
        assert [e.id for e in listed] == [expense.id]

    def test_duplicate_expense(self):
        storage = GoogleSheetsExpenseStorage(FakeSheetsClient())
        expense = groceries()

        async def scenario():
            await storage.save_expense(expense)
            await storage.save_expense(expense)

        with pytest.raises(DuplicateError):
            run(scenario())

    def test_sheet_without_category_column(self):
        client = FakeSheetsClient(expense_header=EXPENSE_COLUMNS[:-1])
        storage = GoogleSheetsExpenseStorage(client)
        expense = groceries()

        run(save(storage, expense))
        stored = run(storage.get_expense(expense.id))
        assert stored.category == ExpenseCategory.GENERAL
        assert client.sheets["expenses"].rows[0] == EXPENSE_COLUMNS[:-1]
        assert len(client.sheets["expenses"].rows[1]) == len(EXPENSE_COLUMNS) - 1

    def test_migrating_detector_adds_category(self):
        client = FakeSheetsClient(expense_header=EXPENSE_COLUMNS[:-1])
        storage = GoogleSheetsExpenseStorage(client, client.capability_detector(migrate=True))
        expense = groceries()

        run(save(storage, expense))
        stored = run(storage.get_expense(expense.id))
        assert client.sheets["expenses"].rows[0] == EXPENSE_COLUMNS
        assert stored.category == ExpenseCategory.GROCERIES

    def test_update_and_replace_splits(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsExpenseStorage(client)
        expense = groceries()

        async def scenario():
            await save(storage, expense)
            changed = expense.model_copy(update={"amount": Decimal("80.00"), "description": "Market"})
            await storage.update_expense(changed)
            await storage.replace_splits(expense.id, [
                ExpenseSplit(user_id="A", owed_amount="40.00"),
                ExpenseSplit(user_id="B", owed_amount="40.00"),
            ])
            return await storage.get_expense(expense.id)

        stored = run(scenario())
        assert stored.amount == Decimal("80.00")
        assert stored.description == "Market"
        assert [s.user_id for s in stored.splits] == ["A", "B"]
        assert len(client.sheets["expense_splits"].rows) == 3

    def test_update_missing(self):
        storage = GoogleSheetsExpenseStorage(FakeSheetsClient())
        with pytest.raises(NotFoundError):
            run(storage.update_expense(groceries()))

    def test_delete_cascades_to_splits(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsExpenseStorage(client)
        keep, drop = groceries(), groceries()

        async def scenario():
            await save(storage, keep)
            await save(storage, drop)
            deleted = await storage.delete_expense(drop.id)
            again = await storage.delete_expense(drop.id)
            return deleted, again, await storage.get_expense(keep.id)

        deleted, again, kept = run(scenario())
        assert deleted is True
        assert again is False
        assert len(kept.splits) == 3
        assert len(client.sheets["expense_splits"].rows) == 4
        assert len(client.sheets["expenses"].rows) == 2


class TestPaymentStorage:

    def test_create_update_and_filter(self):
        storage = GoogleSheetsPaymentStorage(FakeSheetsClient())
        first = Payment(group_id="g1", debtor_id="B", creditor_id="A", amount=30, marked_by="B")
        second = Payment(group_id="g1", debtor_id="C", creditor_id="A", amount=10, marked_by="C")

        async def scenario():
            await storage.create_payment(first)
            await storage.create_payment(second)
            await storage.update_payment(first.model_copy(update={
                "status": PaymentStatus.ACCEPTED,
                "accepted_by": "A",
            }))
            return (
                await storage.get_payment(first.id),
                await storage.list_payments("g1", status=PaymentStatus.PENDING),
                await storage.list_payments("g1", creditor_id="A"),
                await storage.list_user_payments("C"),
                await storage.list_payments("g2"),
            )

        stored, pending, to_a, for_c, other = run(scenario())
        assert stored.status == PaymentStatus.ACCEPTED
        assert stored.accepted_by == "A"
        assert stored.amount == Decimal("30.00")
        assert [p.id for p in pending] == [second.id]
        assert len(to_a) == 2
        assert [p.id for p in for_c] == [second.id]
        assert other == []

    def test_duplicate_and_missing(self):
        storage = GoogleSheetsPaymentStorage(FakeSheetsClient())
        payment = Payment(group_id="g1", debtor_id="B", creditor_id="A", amount=5, marked_by="B")

        unknown = Payment(group_id="g1", debtor_id="B", creditor_id="A", amount=5, marked_by="B")

        run(storage.create_payment(payment))
        with pytest.raises(DuplicateError):
            run(storage.create_payment(payment))
        with pytest.raises(NotFoundError):
            run(storage.update_payment(unknown))


class TestAuditStorage:

    def test_append_and_read(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsAuditStorage(client)
        event = AuditEventBuilder.storage_error("save_splits", "quota exceeded")

        async def scenario():
            await storage.append_event(event)
            return await storage.get_recent_events()

        client.sheets["audit"].rows.append(["not-a-uuid", "yesterday"])
        events = run(scenario())
        assert [e.event_id for e in events] == [event.event_id]
        assert events[0].details == {"operation": "save_splits"}
        assert events[0].error_message == "quota exceeded"
