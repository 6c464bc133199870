"""
Unit tests for exact decimal helpers
"""

from decimal import Decimal

import pytest

from src.core.decimal_math import (
    divide,
    format_display,
    from_ledger_units,
    round_down,
    round_half_up,
    to_decimal,
    to_ledger_units,
)
from src.core.exceptions import DivisionByZero, InvalidAmount


def test_to_decimal_float_goes_through_str():
    assert to_decimal(0.1) == Decimal("0.1")
    assert to_decimal(0.1) + to_decimal(0.2) == Decimal("0.3")


def test_to_decimal_accepts_strings_and_ints():
    assert to_decimal(" 12.50 ") == Decimal("12.50")
    assert to_decimal(7) == Decimal(7)


@pytest.mark.parametrize("value", ["abc", "NaN", "Infinity", True, None])
def test_to_decimal_rejects_non_numbers(value):
    with pytest.raises(InvalidAmount):
        to_decimal(value)


def test_round_down_truncates_both_signs():
    assert round_down(Decimal("1.239"), 2) == Decimal("1.23")
    assert round_down(Decimal("-1.239"), 2) == Decimal("-1.23")


def test_round_half_up():
    assert round_half_up(Decimal("0.125"), 2) == Decimal("0.13")
    assert round_half_up(Decimal("0.124"), 2) == Decimal("0.12")


def test_divide_by_zero_is_typed():
    with pytest.raises(DivisionByZero):
        divide(Decimal("1"), Decimal("0"))


def test_ledger_units_truncate():
    assert to_ledger_units(Decimal("12.3456789")) == 12_345_678
    assert to_ledger_units(Decimal("100")) == 100_000_000
    assert from_ledger_units(1_500_000) == Decimal("1.5")


def test_format_display_never_rounds_up():
    assert format_display(Decimal("12.999")) == "12.99"
    assert format_display(Decimal("5")) == "5.00"
