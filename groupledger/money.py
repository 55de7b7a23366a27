"""
Monetary helpers shared by every ledger component.

All amounts are Decimal with two places. Rounding is half-up, matching
how people round cents by hand. Every equality or zero check uses the
same absolute tolerance of one cent.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

CENT = Decimal("0.01")
EPSILON = Decimal("0.01")
ZERO = Decimal("0.00")

MoneyLike = Union[Decimal, int, float, str]


def to_decimal(value: MoneyLike) -> Decimal:
    """
    Parse a number without rounding it.

    Floats go through str() first so 0.1 becomes Decimal("0.1"),
    not its binary expansion.

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, Decimal):
        number = value
    else:
        try:
            number = Decimal(str(value) if isinstance(value, float) else value)
        except (InvalidOperation, TypeError, ValueError):
            raise ValueError(f"Not a valid amount: {value!r}")
    if not number.is_finite():
        raise ValueError(f"Not a valid amount: {value!r}")
    return number


def to_money(value: MoneyLike) -> Decimal:
    """Convert a value to a Decimal rounded to the cent."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def is_zero(value: Decimal) -> bool:
    """True when value is within one cent of zero."""
    return abs(value) <= EPSILON


def money_equal(a: Decimal, b: Decimal) -> bool:
    return abs(a - b) <= EPSILON


def clamp_residue(value: Decimal) -> Decimal:
    """Round to the cent and collapse sub-cent residue to exactly zero."""
    if abs(value) < EPSILON:
        return ZERO
    return to_money(value)
