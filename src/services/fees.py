# coding: utf-8
"""
Upfront fee schedule

The fee rate depends on how many positions the address opened in the
trailing window. Thresholds are strictly greater-than: an address with
exactly 5 opens in the window still pays the lower tier.
"""
from decimal import Decimal
from typing import List, Optional, Tuple

from config.trading import FEE_TIERS, FeeTier
from src.core.decimal_math import ZERO, multiply, round_down, round_half_up, to_decimal


class FeeSchedule:
    """
    Tiered fee lookup and application

    Usage:
        >>> schedule = FeeSchedule()
        >>> rate = schedule.fee_percentage(7)
        >>> net, fee = schedule.apply_fee(Decimal("100"), rate)
    """

    def __init__(self, tiers: Optional[List[FeeTier]] = None):
        tiers = FEE_TIERS if tiers is None else tiers
        for tier in tiers:
            if not ZERO <= tier.rate < 1:
                raise ValueError(f"fee rate must be in [0, 1): {tier.rate}")

        self.tiers = sorted(tiers, key=lambda tier: tier.min_bids)

    def fee_percentage(self, trailing_count: int) -> Decimal:
        """
        Rate for an address with `trailing_count` opens in the window

        Returns:
            Rate of the highest tier whose threshold is exceeded, else 0
        """
        rate = ZERO
        for tier in self.tiers:
            if trailing_count > tier.min_bids:
                rate = tier.rate
        return rate

    @staticmethod
    def apply_fee(amount: Decimal, rate: Decimal) -> Tuple[Decimal, Decimal]:
        """
        Split `amount` into (net, fee)

        fee = amount * rate rounded half-up to cents,
        net = amount - fee truncated to cents, so net + fee <= amount.
        """
        amount = to_decimal(amount)
        fee = round_half_up(multiply(amount, to_decimal(rate)), 2)
        net = round_down(amount - fee, 2)
        return net, fee
