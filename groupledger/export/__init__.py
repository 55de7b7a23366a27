"""Expense export package."""

from groupledger.export.csv_export import CSV_HEADERS, generate_expense_csv

__all__ = ["CSV_HEADERS", "generate_expense_csv"]
