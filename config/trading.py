# coding: utf-8
"""
Leveraged trading configuration

Fee tiers, settlement rates, exposure limits and the stock market calendar.
Values can be overridden through environment variables without code changes.
"""

import os
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import FrozenSet, List, Tuple


@dataclass(frozen=True)
class FeeTier:
    """Upfront fee applied when trailing 24h opens exceed min_bids"""

    min_bids: int  # strictly greater-than threshold
    rate: Decimal


# =======================
# UPFRONT FEE TIERS
# =======================

# Ordered from the lowest threshold up; the highest matching tier wins
FEE_TIERS: List[FeeTier] = [
    FeeTier(
        min_bids=int(os.getenv("FEE_TIER_SECOND_BIDS", "5")),
        rate=Decimal(os.getenv("FEE_TIER_SECOND_RATE", "0.05")),
    ),
    FeeTier(
        min_bids=int(os.getenv("FEE_TIER_THIRD_BIDS", "20")),
        rate=Decimal(os.getenv("FEE_TIER_THIRD_RATE", "0.075")),
    ),
    FeeTier(
        min_bids=int(os.getenv("FEE_TIER_FOURTH_BIDS", "100")),
        rate=Decimal(os.getenv("FEE_TIER_FOURTH_RATE", "0.1")),
    ),
]

# Fee on positive realized pnl at close
WINNINGS_FEE_RATE: Decimal = Decimal(os.getenv("WINNINGS_FEE_RATE", "0.1"))


# =======================
# POSITION LIMITS
# =======================

MAX_LIVE_POSITIONS: int = int(os.getenv("MAX_LIVE_POSITIONS", "5"))
MIN_LEVERAGE: int = 1
MAX_LEVERAGE: int = 1000

# Trailing window used for fee tier lookup
FEE_WINDOW_HOURS: int = 24

RESTRICTED_ASSETS: FrozenSet[str] = frozenset(
    symbol.strip()
    for symbol in os.getenv("RESTRICTED_ASSETS", "LADYS/USD").split(",")
    if symbol.strip()
)


# =======================
# LEDGER
# =======================

# Balances are stored as integers of 10^-6 stable units
LEDGER_SCALE: int = 6

# Withdrawals at or above this amount wait for manual approval
WITHDRAWAL_APPROVAL_THRESHOLD: Decimal = Decimal(
    os.getenv("WITHDRAWAL_APPROVAL_THRESHOLD", "200")
)

# Flat cost deducted from every bridged deposit
BRIDGE_COST: Decimal = Decimal(os.getenv("BRIDGE_COST", "0.50"))


# =======================
# STOCK MARKET CALENDAR
# =======================

STOCK_MARKET_TIMEZONE: str = os.getenv("STOCK_MARKET_TIMEZONE", "America/New_York")
STOCK_MARKET_OPEN: str = os.getenv("STOCK_MARKET_OPEN", "09:30")
STOCK_MARKET_CLOSE: str = os.getenv("STOCK_MARKET_CLOSE", "16:00")

# NYSE full-day closures
STOCK_MARKET_HOLIDAYS: List[Tuple[date, str]] = [
    (date(2026, 1, 1), "New Year's Day"),
    (date(2026, 1, 19), "Martin Luther King, Jr. Day"),
    (date(2026, 2, 16), "Washington's Birthday"),
    (date(2026, 4, 3), "Good Friday"),
    (date(2026, 5, 25), "Memorial Day"),
    (date(2026, 6, 19), "Juneteenth National Independence Day"),
    (date(2026, 7, 3), "Independence Day (observed)"),
    (date(2026, 9, 7), "Labor Day"),
    (date(2026, 11, 26), "Thanksgiving Day"),
    (date(2026, 12, 25), "Christmas Day"),
]
