"""
Module: settlement_kernel.db.types
Responsibility: Annotated type aliases and utility functions for money
    columns and Decimal arithmetic.  Centralizes precision and rounding so
    that every model, engine and service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by every other layer.

Invariants enforced:
    CRITICAL: No floats anywhere.  All monetary amounts and rates use
           Decimal with explicit precision.  Percentages are divided by
           Decimal("100") so rate arithmetic stays exact.
    round_money() is the ONLY sanctioned rounding function for monetary
           values shown to users.

Failure modes:
    - TypeError from to_decimal() when given a float.
    - decimal.InvalidOperation from to_decimal() on a non-numeric string.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import Numeric, String


# Monetary amount with high precision
# 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Percentage rate (commission, advance-payment rate)
Rate = Annotated[Decimal, Numeric(9, 4)]

# Short identifier strings
ShortCode = Annotated[str, String(50)]

# Long text for descriptions and memos
LongText = Annotated[str, String(4000)]


MONEY_DECIMAL_PLACES = 9
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")
ONE_HUNDRED = Decimal("100")


def to_decimal(value: Decimal | int | str | None) -> Decimal:
    """
    Coerce an amount to Decimal.

    ``None`` becomes zero (unset source fields count as nothing owed).
    Floats are refused so binary rounding never leaks into money.

    Raises:
        TypeError: If value is a float.
    """
    if value is None:
        return ZERO
    if isinstance(value, float):
        raise TypeError(f"Refusing float amount {value!r}; pass Decimal or str")
    if isinstance(value, Decimal):
        return value
    return Decimal(value)


def percent_of(amount: Decimal, rate: Decimal) -> Decimal:
    """Return ``amount * rate / 100`` without leaving Decimal."""
    return amount * rate / ONE_HUNDRED


def round_money(
    value: Decimal,
    decimal_places: int = 2,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    This is the ONLY sanctioned rounding function for monetary values.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantize_str = "1." + "0" * decimal_places if decimal_places > 0 else "1"
    return value.quantize(Decimal(quantize_str), rounding=rounding)
