"""
GroupLedger - Source Package

A shared-expense ledger for groups: who paid, who owes whom,
and how to settle up with as few transfers as possible.

DESIGN PRINCIPLES:
1. Every derived balance is recomputed from the full history
2. Money is Decimal, rounded to the cent, compared within one cent
3. Validation reports, it never silently corrects
4. Every write is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "GroupLedger Team"
