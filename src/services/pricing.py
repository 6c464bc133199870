# coding: utf-8
"""
Pricing Engine

Bust price, unrealised pnl and settlement fee for isolated-margin positions.

Formulas (size = stake * leverage, quantity = size / entry):
- bust (up):   |stake - size| / quantity
- bust (down): (stake + size) / quantity
- pnl (up):    (current - entry) * size / entry
- pnl (down):  (entry - current) * size / entry
"""
from decimal import Decimal
from typing import Optional, Tuple, Union

from loguru import logger

from config.trading import MAX_LEVERAGE, MIN_LEVERAGE, WINNINGS_FEE_RATE
from src.core.decimal_math import (
    ZERO,
    divide,
    multiply,
    round_down,
    to_decimal,
)
from src.core.enums import AssetClass, PositionSide
from src.core.exceptions import InvalidPosition, InvalidSide

# Equities are quoted in cents
STOCK_PRICE_PLACES = 2
SETTLEMENT_FEE_PLACES = 4


def parse_side(side: Union[PositionSide, str]) -> PositionSide:
    """Strict side parse; anything but 'up'/'down' raises InvalidSide."""
    if isinstance(side, PositionSide):
        return side
    try:
        return PositionSide.parse(side)
    except ValueError:
        raise InvalidSide()


class PricingEngine:
    """
    Stateless pricing math for positions

    All inputs are converted to Decimal; floats never take part in a
    computation.
    """

    def __init__(self, winnings_rate: Decimal = WINNINGS_FEE_RATE):
        self.winnings_rate = to_decimal(winnings_rate)

    def bust_price(
        self,
        stake: Decimal,
        leverage: int,
        entry_price: Decimal,
        side: Union[PositionSide, str],
        asset_class: AssetClass = AssetClass.CRYPTO,
    ) -> Decimal:
        """
        Price at which the position's loss equals its stake

        Args:
            stake: Post-fee staked amount
            leverage: Integer multiplier in [1, 1000]
            entry_price: Price at open
            side: up or down
            asset_class: Stock bust prices are truncated to cents

        Raises:
            InvalidPosition: leverage out of range, non-positive entry or stake
            InvalidSide: side is not up/down
        """
        stake = to_decimal(stake)
        entry_price = to_decimal(entry_price)

        if (
            isinstance(leverage, bool)
            or not isinstance(leverage, int)
            or not MIN_LEVERAGE <= leverage <= MAX_LEVERAGE
            or entry_price <= 0
            or stake <= 0
        ):
            logger.error(
                f"Invalid bust price inputs: stake={stake} leverage={leverage} entry={entry_price}"
            )
            raise InvalidPosition()

        side = parse_side(side)
        size = multiply(stake, Decimal(leverage))
        quantity = divide(size, entry_price)

        if side is PositionSide.UP:
            bust = divide(abs(stake - size), quantity)
        else:
            bust = divide(stake + size, quantity)

        if asset_class is AssetClass.STOCK:
            bust = round_down(bust, STOCK_PRICE_PLACES)
        return bust

    def pnl(
        self,
        entry_price: Decimal,
        current_price: Decimal,
        stake: Decimal,
        leverage: int,
        side: Union[PositionSide, str],
    ) -> Decimal:
        """
        Unrealised pnl at `current_price`

        Raises:
            InvalidSide: side is not up/down
            DivisionByZero: entry price is zero
        """
        side = parse_side(side)
        entry_price = to_decimal(entry_price)
        current_price = to_decimal(current_price)
        size = multiply(to_decimal(stake), Decimal(leverage))

        ratio = divide(size, entry_price)
        if side is PositionSide.UP:
            return multiply(current_price - entry_price, ratio)
        return multiply(entry_price - current_price, ratio)

    def settlement_fee(
        self, pnl: Decimal, winnings_rate: Optional[Decimal] = None
    ) -> Tuple[Decimal, Decimal]:
        """
        Fee on realised pnl

        Returns:
            (net_pnl, fee). A winning pnl pays pnl * rate truncated to 4
            decimals. A non-positive pnl pays nothing; the fee field then
            records the pnl itself (truncated to 4 decimals) for audit.
        """
        pnl = to_decimal(pnl)
        rate = self.winnings_rate if winnings_rate is None else to_decimal(winnings_rate)

        if pnl > ZERO:
            fee = round_down(multiply(pnl, rate), SETTLEMENT_FEE_PLACES)
            return pnl - fee, fee

        return pnl, round_down(pnl, SETTLEMENT_FEE_PLACES)
