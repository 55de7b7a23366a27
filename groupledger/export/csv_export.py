"""
CSV export of a group's expenses.

One row per expense, with the exporting user's own share in the last
column. Quoting follows RFC 4180: fields containing a comma, a double
quote or a line break are wrapped in double quotes, and inner quotes
are doubled.
"""

import csv
import io
from typing import Iterable, Optional

from groupledger.models.ledger import Expense, LedgerUser

CSV_HEADERS = [
    "Date",
    "Description",
    "Category",
    "Amount",
    "Paid By",
    "Split Between",
    "Your Share",
]


def _name(user_id: str, users: dict[str, LedgerUser]) -> str:
    user = users.get(user_id)
    return user.display_name if user else user_id


def generate_expense_csv(
    expenses: Iterable[Expense],
    current_user_id: str,
    users: Optional[dict[str, LedgerUser]] = None,
) -> str:
    """
    Render expenses as CSV text.

    Args:
        expenses: Expenses with their splits, in the order to export
        current_user_id: Whose share goes in "Your Share" (0.00 if none)
        users: Optional directory entries for display names
    """
    users = users or {}
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)

    for expense in expenses:
        writer.writerow([
            expense.created_at.date().isoformat(),
            expense.description,
            expense.category.label,
            f"{expense.amount:.2f}",
            _name(expense.paid_by, users),
            ", ".join(_name(s.user_id, users) for s in expense.splits),
            f"{expense.share_of(current_user_id):.2f}",
        ])

    return buffer.getvalue().rstrip("\n")
