"""
Exact decimal arithmetic for money and prices.

Binary floats never enter a computation: inputs are converted through their
string form and every operation runs in a fixed high-precision context.
Rounding is always explicit. Anything paid to or charged against a user is
truncated (ROUND_DOWN) so the fractional remainder stays with the house.
"""

from decimal import (
    Decimal,
    Context,
    InvalidOperation,
    ROUND_DOWN,
    ROUND_HALF_UP,
    ROUND_HALF_EVEN,
)
from typing import Union

from config.trading import LEDGER_SCALE
from src.core.exceptions import DivisionByZero, InvalidAmount

Number = Union[Decimal, int, str, float]

MATH_CONTEXT = Context(prec=50, rounding=ROUND_HALF_EVEN)

DISPLAY_PLACES = 2
ZERO = Decimal("0")


def to_decimal(value: Number) -> Decimal:
    """
    Convert a wire value to Decimal

    Floats go through str() so 0.1 becomes Decimal('0.1'), not its binary
    expansion. NaN and infinities are rejected.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise InvalidAmount(f"not a number: {value!r}")
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidAmount(f"not a number: {value!r}")

    if not result.is_finite():
        raise InvalidAmount(f"not a finite number: {value!r}")
    return result


def quantum(places: int) -> Decimal:
    return Decimal(1).scaleb(-places)


def round_down(value: Decimal, places: int) -> Decimal:
    """Truncate towards zero to `places` decimals."""
    return value.quantize(quantum(places), rounding=ROUND_DOWN, context=MATH_CONTEXT)


def round_half_up(value: Decimal, places: int) -> Decimal:
    return value.quantize(quantum(places), rounding=ROUND_HALF_UP, context=MATH_CONTEXT)


def multiply(a: Decimal, b: Decimal) -> Decimal:
    return MATH_CONTEXT.multiply(a, b)


def divide(numerator: Decimal, denominator: Decimal) -> Decimal:
    """Divide in the math context; a zero denominator raises DivisionByZero."""
    if denominator == 0:
        raise DivisionByZero()
    return MATH_CONTEXT.divide(numerator, denominator)


def to_ledger_units(amount: Decimal, scale: int = LEDGER_SCALE) -> int:
    """
    Scale a stable-asset amount to integer ledger units

    Examples:
        >>> to_ledger_units(Decimal("12.3456789"))
        12345678
    """
    truncated = round_down(amount, scale)
    return int(truncated.scaleb(scale, context=MATH_CONTEXT))


def from_ledger_units(units: int, scale: int = LEDGER_SCALE) -> Decimal:
    return Decimal(units).scaleb(-scale, context=MATH_CONTEXT)


def format_display(value: Decimal, places: int = DISPLAY_PLACES) -> str:
    """Currency-style string, truncated (never rounded up in the user's favour)."""
    return f"{round_down(value, places):f}"
