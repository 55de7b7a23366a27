"""Tests for CSV export."""

import csv
import io
from datetime import datetime

from groupledger.export import CSV_HEADERS, generate_expense_csv
from groupledger.models.ledger import Expense, ExpenseCategory, ExpenseSplit, LedgerUser


def expense(description="Taxi", amount="30.00", splits=(("A", "15.00"), ("B", "15.00"))):
    return Expense(
        group_id="g1",
        paid_by="A",
        amount=amount,
        description=description,
        category=ExpenseCategory.TRANSPORT,
        created_at=datetime(2024, 3, 9, 18, 30),
        splits=[ExpenseSplit(user_id=u, owed_amount=a) for u, a in splits],
    )


def parse(text):
    return list(csv.reader(io.StringIO(text)))


class TestGenerateExpenseCsv:

    def test_header_only(self):
        assert generate_expense_csv([], "A") == ",".join(CSV_HEADERS)

    def test_row_contents(self):
        rows = parse(generate_expense_csv([expense()], "B"))
        assert rows[1] == ["2024-03-09", "Taxi", "Transport", "30.00", "A", "A, B", "15.00"]

    def test_share_is_zero_when_not_in_split(self):
        rows = parse(generate_expense_csv([expense()], "Z"))
        assert rows[1][-1] == "0.00"

    def test_quotes_commas_and_quotes(self):
        text = generate_expense_csv([expense(description='Dinner, "Luigi\'s"')], "A")
        line = text.split("\n")[1]
        assert '"Dinner, ""Luigi\'s"""' in line
        assert '"A, B"' in line
        assert parse(text)[1][1] == 'Dinner, "Luigi\'s"'

    def test_display_names(self):
        users = {"A": LedgerUser(id="A", name="Asha"), "B": LedgerUser(id="B", email="b@x.io")}
        rows = parse(generate_expense_csv([expense()], "A", users))
        assert rows[1][4] == "Asha"
        assert rows[1][5] == "Asha, b@x.io"

    def test_one_line_per_expense(self):
        text = generate_expense_csv([expense(), expense(description="Bus")], "A")
        assert len(text.split("\n")) == 3
        assert not text.endswith("\n")
