"""
In-memory collaborators shared by the tests
"""

from decimal import Decimal
from typing import Dict, Optional

from src.core.enums import AssetClass
from src.core.exceptions import PriceFeedUnavailable
from src.services.price_feed import Quote, QuoteBook


ALICE = "0x1111111111111111111111111111111111111111"
BOB = "0x2222222222222222222222222222222222222222"
DESTINATION = "0x3333333333333333333333333333333333333333"


class FakePriceFeed:
    """Stand-in for the Redis quote snapshots"""

    def __init__(self):
        self.prices: Dict[str, Quote] = {}
        self.unavailable = False
        self.loads = 0

    def set_price(self, symbol: str, price, asset_class: AssetClass = AssetClass.CRYPTO):
        self.prices[symbol] = Quote(symbol, Decimal(str(price)), asset_class)

    def remove(self, symbol: str):
        self.prices.pop(symbol, None)

    async def load(self) -> QuoteBook:
        self.loads += 1
        if self.unavailable:
            raise PriceFeedUnavailable()
        return QuoteBook(self.prices.values())


class FakeMarketHours:
    def __init__(self, is_open: bool = True, reason: Optional[str] = None):
        self.is_open = is_open
        self.reason = reason

    def is_market_open(self, now=None):
        return self.is_open, self.reason
