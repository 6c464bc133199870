"""
Unit tests for the upfront fee schedule
"""

from decimal import Decimal

import pytest

from config.trading import FeeTier
from src.services.fees import FeeSchedule


@pytest.fixture
def schedule():
    return FeeSchedule()


@pytest.mark.parametrize(
    "count, expected",
    [
        (0, Decimal("0")),
        (5, Decimal("0")),  # threshold itself stays in the lower tier
        (6, Decimal("0.05")),
        (20, Decimal("0.05")),
        (21, Decimal("0.075")),
        (100, Decimal("0.075")),
        (101, Decimal("0.1")),
    ],
)
def test_fee_percentage_tiers(schedule, count, expected):
    assert schedule.fee_percentage(count) == expected


def test_tiers_order_does_not_matter():
    schedule = FeeSchedule(
        [FeeTier(50, Decimal("0.2")), FeeTier(10, Decimal("0.1"))]
    )
    assert schedule.fee_percentage(11) == Decimal("0.1")
    assert schedule.fee_percentage(51) == Decimal("0.2")


def test_rate_out_of_range_rejected():
    with pytest.raises(ValueError):
        FeeSchedule([FeeTier(1, Decimal("1.5"))])


def test_apply_fee_zero_rate(schedule):
    assert schedule.apply_fee(Decimal("100"), Decimal("0")) == (Decimal("100.00"), Decimal("0.00"))


def test_apply_fee_splits_amount(schedule):
    net, fee = schedule.apply_fee(Decimal("100"), Decimal("0.075"))
    assert fee == Decimal("7.50")
    assert net == Decimal("92.50")


def test_apply_fee_never_exceeds_amount(schedule):
    amount = Decimal("10.019")
    net, fee = schedule.apply_fee(amount, Decimal("0.05"))
    assert fee == Decimal("0.50")
    assert net == Decimal("9.51")
    assert net + fee <= amount
