"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets works as a ledger backend for small groups:
1. Members can read the raw history directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- No transactions. An expense and its splits are separate appends, so the
  expense flow compensates with a delete when the split append fails.
- Limited query capabilities (we filter in Python)
- Header-driven row mapping, so sheets created before an optional column
  existed keep working (see SchemaCapabilityDetector)

Transient API errors are retried here with tenacity, at the level of single
reads and writes. The ledger core above this layer never retries.
"""

import json
from datetime import datetime
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from groupledger.config import get_settings
from groupledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from groupledger.models.ledger import (
    Expense,
    ExpenseCategory,
    ExpenseSplit,
    Payment,
    PaymentStatus,
    SplitType,
)
from groupledger.services.capabilities import SchemaCapabilityDetector
from groupledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    ExpenseStorageInterface,
    NotFoundError,
    PaymentStorageInterface,
    StorageError,
)


EXPENSE_COLUMNS = [
    "id",
    "group_id",
    "paid_by",
    "amount",
    "description",
    "split_type",
    "created_at",
    "updated_at",
    "category",
]

SPLIT_COLUMNS = [
    "expense_id",
    "user_id",
    "owed_amount",
]

PAYMENT_COLUMNS = [
    "id",
    "group_id",
    "debtor_id",
    "creditor_id",
    "amount",
    "status",
    "marked_by",
    "accepted_by",
    "created_at",
    "updated_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "group_id",
    "entity_type",
    "entity_id",
    "actor_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]

# Only API errors are worth retrying; missing rows and duplicates are not
_retry_api = retry(
    retry=retry_if_exception_type(gspread.exceptions.APIError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication, worksheet creation, and the handful of
    row-level reads and writes the stores need.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_expenses_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.expenses_sheet_name, EXPENSE_COLUMNS, 1000)

    def get_splits_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.splits_sheet_name, SPLIT_COLUMNS, 5000)

    def get_payments_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.payments_sheet_name, PAYMENT_COLUMNS, 1000)

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.audit_sheet_name, AUDIT_COLUMNS, 5000)

    def sheet_for_table(self, table: str) -> gspread.Worksheet:
        sheets = {
            "expenses": self.get_expenses_sheet,
            "expense_splits": self.get_splits_sheet,
            "payments": self.get_payments_sheet,
        }
        if table not in sheets:
            raise StorageError(f"Unknown table: {table}")
        return sheets[table]()

    # Row-level I/O

    @_retry_api
    def read_values(self, sheet: gspread.Worksheet) -> list[list]:
        return sheet.get_all_values()

    @_retry_api
    def append_rows(self, sheet: gspread.Worksheet, rows: list[list]) -> None:
        sheet.append_rows(rows, value_input_option="RAW")

    @_retry_api
    def write_row(self, sheet: gspread.Worksheet, row_number: int, values: list) -> None:
        start = rowcol_to_a1(row_number, 1)
        end = rowcol_to_a1(row_number, len(values))
        sheet.update(range_name=f"{start}:{end}", values=[values])

    @_retry_api
    def delete_row(self, sheet: gspread.Worksheet, row_number: int) -> None:
        sheet.delete_rows(row_number)

    # Schema capabilities

    def header_has_column(self, table: str, column: str) -> bool:
        """Capability probe: is `column` in the header row of `table`?"""
        values = self.read_values(self.sheet_for_table(table))
        return bool(values) and column in values[0]

    def add_header_column(self, table: str, column: str) -> bool:
        """Capability migrator: append `column` to the header row."""
        sheet = self.sheet_for_table(table)
        values = self.read_values(sheet)
        header = values[0] if values else []
        if column not in header:
            self.write_row(sheet, 1, header + [column])
        return True

    def capability_detector(self, migrate: bool = False) -> SchemaCapabilityDetector:
        return SchemaCapabilityDetector(
            probe=self.header_has_column,
            migrator=self.add_header_column if migrate else None,
        )


def _rows_as_dicts(values: list[list]) -> list[tuple[int, dict]]:
    """
    Map data rows to {header: cell} dicts keyed by their sheet row number.

    Missing trailing cells read as "". Blank rows are skipped.
    """
    if not values:
        return []
    header = values[0]
    mapped = []
    for row_number, row in enumerate(values[1:], start=2):
        if not row or not row[0]:
            continue
        record = {
            name: (row[i] if i < len(row) else "")
            for i, name in enumerate(header)
        }
        mapped.append((row_number, record))
    return mapped


class GoogleSheetsExpenseStorage(ExpenseStorageInterface):
    """
    Expenses in one worksheet, splits in another.

    The category column is optional; when the detector says it's missing,
    expenses are written without it and read back as GENERAL. A detector
    with a migrator adds the column on the first write.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        capabilities: Optional[SchemaCapabilityDetector] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._capabilities = capabilities or self._client.capability_detector()

    def _expense_row(self, expense: Expense, header: list[str]) -> list:
        values = {
            "id": str(expense.id),
            "group_id": expense.group_id,
            "paid_by": expense.paid_by,
            "amount": str(expense.amount),
            "description": expense.description,
            "split_type": expense.split_type.value,
            "created_at": expense.created_at.isoformat(),
            "updated_at": expense.updated_at.isoformat(),
        }
        if self._capabilities.has_column("expenses", "category"):
            values["category"] = expense.category.value
        return [values.get(name, "") for name in header]

    @staticmethod
    def _record_to_expense(record: dict, splits: list[ExpenseSplit]) -> Expense:
        return Expense(
            id=UUID(record["id"]),
            group_id=record["group_id"],
            paid_by=record["paid_by"],
            amount=record["amount"],
            description=record.get("description", ""),
            split_type=SplitType(record.get("split_type") or SplitType.EQUAL.value),
            category=ExpenseCategory.from_key(record.get("category")),
            created_at=datetime.fromisoformat(record["created_at"]),
            updated_at=datetime.fromisoformat(record["updated_at"]),
            splits=splits,
        )

    def _load_splits(self) -> dict[str, list[ExpenseSplit]]:
        by_expense: dict[str, list[ExpenseSplit]] = {}
        values = self._client.read_values(self._client.get_splits_sheet())
        for _, record in _rows_as_dicts(values):
            by_expense.setdefault(record["expense_id"], []).append(ExpenseSplit(
                expense_id=UUID(record["expense_id"]),
                user_id=record["user_id"],
                owed_amount=record["owed_amount"],
            ))
        return by_expense

    def _find_expense(
        self,
        expense_id: UUID,
    ) -> tuple[Optional[int], Optional[dict], list[str]]:
        """(row_number, record, header) of an expense; row and record None if absent."""
        values = self._client.read_values(self._client.get_expenses_sheet())
        header = values[0] if values else EXPENSE_COLUMNS
        for row_number, record in _rows_as_dicts(values):
            if record["id"] == str(expense_id):
                return row_number, record, header
        return None, None, header

    async def save_expense(self, expense: Expense) -> Expense:
        try:
            self._capabilities.ensure("expenses", "category")
            row_number, _, header = self._find_expense(expense.id)
            if row_number is not None:
                raise DuplicateError(f"Expense already exists: {expense.id}")
            self._client.append_rows(
                self._client.get_expenses_sheet(),
                [self._expense_row(expense, header)],
            )
            return expense.model_copy(update={"splits": []})
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save expense: {e}")

    async def save_splits(
        self,
        expense_id: UUID,
        splits: list[ExpenseSplit],
    ) -> list[ExpenseSplit]:
        try:
            rows = [
                [str(expense_id), split.user_id, str(split.owed_amount)]
                for split in splits
            ]
            if rows:
                self._client.append_rows(self._client.get_splits_sheet(), rows)
            return [s.model_copy(update={"expense_id": expense_id}) for s in splits]
        except Exception as e:
            raise StorageError(f"Failed to save splits: {e}")

    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        try:
            _, record, _ = self._find_expense(expense_id)
            if record is None:
                return None
            splits = self._load_splits().get(str(expense_id), [])
            return self._record_to_expense(record, splits)
        except Exception as e:
            raise StorageError(f"Failed to get expense: {e}")

    async def list_expenses(self, group_id: str) -> list[Expense]:
        try:
            values = self._client.read_values(self._client.get_expenses_sheet())
            splits = self._load_splits()
            expenses = [
                self._record_to_expense(record, splits.get(record["id"], []))
                for _, record in _rows_as_dicts(values)
                if record["group_id"] == group_id
            ]
            expenses.sort(key=lambda e: e.created_at, reverse=True)
            return expenses
        except Exception as e:
            raise StorageError(f"Failed to list expenses: {e}")

    async def update_expense(self, expense: Expense) -> bool:
        try:
            self._capabilities.ensure("expenses", "category")
            row_number, _, header = self._find_expense(expense.id)
            if row_number is None:
                raise NotFoundError(f"Expense not found: {expense.id}")
            expense = expense.model_copy(update={"updated_at": datetime.utcnow()})
            self._client.write_row(
                self._client.get_expenses_sheet(),
                row_number,
                self._expense_row(expense, header),
            )
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update expense: {e}")

    def _delete_split_rows(self, expense_id: UUID) -> None:
        sheet = self._client.get_splits_sheet()
        rows = [
            row_number
            for row_number, record in _rows_as_dicts(self._client.read_values(sheet))
            if record["expense_id"] == str(expense_id)
        ]
        # Bottom-up so earlier row numbers stay valid
        for row_number in reversed(rows):
            self._client.delete_row(sheet, row_number)

    async def replace_splits(
        self,
        expense_id: UUID,
        splits: list[ExpenseSplit],
    ) -> list[ExpenseSplit]:
        try:
            self._delete_split_rows(expense_id)
        except Exception as e:
            raise StorageError(f"Failed to replace splits: {e}")
        return await self.save_splits(expense_id, splits)

    async def delete_expense(self, expense_id: UUID) -> bool:
        try:
            self._delete_split_rows(expense_id)
            row_number, _, _ = self._find_expense(expense_id)
            if row_number is None:
                return False
            self._client.delete_row(self._client.get_expenses_sheet(), row_number)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete expense: {e}")


class GoogleSheetsPaymentStorage(PaymentStorageInterface):
    """Payments as rows; a status transition rewrites its row once."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _payment_to_row(payment: Payment) -> list:
        return [
            str(payment.id),
            payment.group_id,
            payment.debtor_id,
            payment.creditor_id,
            str(payment.amount),
            payment.status.value,
            payment.marked_by,
            payment.accepted_by or "",
            payment.created_at.isoformat(),
            payment.updated_at.isoformat(),
        ]

    @staticmethod
    def _record_to_payment(record: dict) -> Payment:
        return Payment(
            id=UUID(record["id"]),
            group_id=record["group_id"],
            debtor_id=record["debtor_id"],
            creditor_id=record["creditor_id"],
            amount=record["amount"],
            status=PaymentStatus(record["status"]),
            marked_by=record["marked_by"],
            accepted_by=record.get("accepted_by") or None,
            created_at=datetime.fromisoformat(record["created_at"]),
            updated_at=datetime.fromisoformat(record["updated_at"]),
        )

    def _all(self) -> list[tuple[int, Payment]]:
        values = self._client.read_values(self._client.get_payments_sheet())
        return [
            (row_number, self._record_to_payment(record))
            for row_number, record in _rows_as_dicts(values)
        ]

    def _filtered(self, predicate) -> list[Payment]:
        payments = [p for _, p in self._all() if predicate(p)]
        payments.sort(key=lambda p: p.created_at, reverse=True)
        return payments

    async def create_payment(self, payment: Payment) -> Payment:
        try:
            if any(p.id == payment.id for _, p in self._all()):
                raise DuplicateError(f"Payment already exists: {payment.id}")
            self._client.append_rows(
                self._client.get_payments_sheet(),
                [self._payment_to_row(payment)],
            )
            return payment
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to create payment: {e}")

    async def get_payment(self, payment_id: UUID) -> Optional[Payment]:
        try:
            for _, payment in self._all():
                if payment.id == payment_id:
                    return payment
            return None
        except Exception as e:
            raise StorageError(f"Failed to get payment: {e}")

    async def update_payment(self, payment: Payment) -> Payment:
        try:
            for row_number, stored in self._all():
                if stored.id == payment.id:
                    self._client.write_row(
                        self._client.get_payments_sheet(),
                        row_number,
                        self._payment_to_row(payment),
                    )
                    return payment
            raise NotFoundError(f"Payment not found: {payment.id}")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update payment: {e}")

    async def list_payments(
        self,
        group_id: str,
        status: Optional[PaymentStatus] = None,
        debtor_id: Optional[str] = None,
        creditor_id: Optional[str] = None,
    ) -> list[Payment]:
        try:
            return self._filtered(
                lambda p: p.group_id == group_id
                and (status is None or p.status == status)
                and (debtor_id is None or p.debtor_id == debtor_id)
                and (creditor_id is None or p.creditor_id == creditor_id)
            )
        except Exception as e:
            raise StorageError(f"Failed to list payments: {e}")

    async def list_user_payments(
        self,
        user_id: str,
        group_id: Optional[str] = None,
    ) -> list[Payment]:
        try:
            return self._filtered(
                lambda p: user_id in (p.debtor_id, p.creditor_id)
                and (group_id is None or p.group_id == group_id)
            )
        except Exception as e:
            raise StorageError(f"Failed to list payments: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _record_to_event(record: dict) -> AuditEvent:
        return AuditEvent(
            event_id=UUID(record["event_id"]),
            timestamp=datetime.fromisoformat(record["timestamp"]),
            event_type=AuditEventType(record["event_type"]),
            severity=AuditSeverity(record["severity"]),
            group_id=record.get("group_id") or None,
            entity_type=record.get("entity_type") or None,
            entity_id=UUID(record["entity_id"]) if record.get("entity_id") else None,
            actor_id=record.get("actor_id") or None,
            correlation_id=(
                UUID(record["correlation_id"]) if record.get("correlation_id") else None
            ),
            description=record["description"],
            details=json.loads(record["details_json"]) if record.get("details_json") else {},
            error_message=record.get("error_message") or None,
        )

    def _events(self) -> list[AuditEvent]:
        values = self._client.read_values(self._client.get_audit_sheet())
        events = []
        for _, record in _rows_as_dicts(values):
            try:
                events.append(self._record_to_event(record))
            except (KeyError, ValueError):
                continue  # Skip malformed rows
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            self._client.append_rows(
                self._client.get_audit_sheet(),
                [event.to_sheets_row()],
            )
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [e for e in self._events() if e.correlation_id == correlation_id]
            return sorted(events, key=lambda e: e.timestamp)
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [
                e for e in self._events()
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
            return sorted(events, key=lambda e: e.timestamp)
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        try:
            events = sorted(self._events(), key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
