# coding: utf-8
"""
Stock Market Hours

Regular session check for stock positions. Crypto trades 24/7 and never
consults this.

Session (exchange local time): open <= t < close, Monday to Friday,
excluding full-day holidays.
"""
from datetime import date, datetime, time, timezone
from typing import Iterable, Optional, Tuple

import pytz
from loguru import logger

from config.trading import (
    STOCK_MARKET_CLOSE,
    STOCK_MARKET_HOLIDAYS,
    STOCK_MARKET_OPEN,
    STOCK_MARKET_TIMEZONE,
)


def parse_time_of_day(value: str) -> time:
    """
    Parse 'HH:MM' or 'HH:MM:SS'

    Examples:
        >>> parse_time_of_day("09:30")
        datetime.time(9, 30)
    """
    parts = value.strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"expected HH:MM[:SS], got {value!r}")
    hour, minute, second = (int(part, 10) for part in parts + ["0"] * (3 - len(parts)))
    return time(hour, minute, second)


class MarketHours:
    """
    Timezone-aware regular session check

    Usage:
        >>> hours = MarketHours()
        >>> is_open, reason = hours.is_market_open()
    """

    def __init__(
        self,
        tz_name: str = STOCK_MARKET_TIMEZONE,
        open_time: str = STOCK_MARKET_OPEN,
        close_time: str = STOCK_MARKET_CLOSE,
        holidays: Iterable[Tuple[date, str]] = STOCK_MARKET_HOLIDAYS,
    ):
        self.tz = pytz.timezone(tz_name)
        self.open_time = parse_time_of_day(open_time)
        self.close_time = parse_time_of_day(close_time)
        if self.open_time >= self.close_time:
            raise ValueError(f"session open {open_time} must precede close {close_time}")
        self.holidays = dict(holidays)
        logger.info(
            f"MarketHours initialized ({tz_name} {open_time}-{close_time}, {len(self.holidays)} holidays)"
        )

    def is_market_open(self, now: Optional[datetime] = None) -> Tuple[bool, Optional[str]]:
        """
        Args:
            now: Aware timestamp (naive is treated as UTC), defaults to now

        Returns:
            (is_open, reason). Reason names the holiday on a holiday,
            otherwise None.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        local = now.astimezone(self.tz)

        holiday = self.holidays.get(local.date())
        if holiday is not None:
            return False, holiday

        if local.weekday() >= 5:
            return False, None

        current = local.time().replace(microsecond=0, tzinfo=None)
        return self.open_time <= current < self.close_time, None
