# coding: utf-8
"""
Price snapshot reader

The market-data job keeps the latest quotes in Redis as two JSON lists,
one for crypto and one for stocks. This module merges them into a single
typed symbol -> quote mapping. The core never fetches live quotes itself.
"""
from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional

from loguru import logger
from redis.exceptions import RedisError

from config.cache_config import QuoteKeys
from src.cache.redis_manager import RedisManager
from src.core.decimal_math import to_decimal
from src.core.enums import AssetClass
from src.core.exceptions import InvalidAmount, PriceFeedUnavailable


@dataclass(frozen=True)
class Quote:
    symbol: str
    price: Decimal
    asset_class: AssetClass

    def to_dict(self) -> dict:
        return {"symbol": self.symbol, "price": f"{self.price:f}"}


class QuoteBook:
    """
    Immutable symbol -> Quote lookup

    Crypto quotes win when a symbol appears in both snapshots.
    """

    def __init__(self, quotes: Iterable[Quote] = ()):
        merged: Dict[str, Quote] = {}
        for quote in quotes:
            existing = merged.get(quote.symbol)
            if existing is not None and existing.asset_class is AssetClass.CRYPTO:
                continue
            merged[quote.symbol] = quote
        self._quotes: Mapping[str, Quote] = MappingProxyType(merged)

    @classmethod
    def from_snapshots(cls, crypto: Optional[list], stocks: Optional[list]) -> "QuoteBook":
        """
        Build from raw `[{"symbol": ..., "price": ...}]` snapshot lists

        Entries without a symbol or with an unparsable price are dropped.
        """
        quotes: List[Quote] = []
        for asset_class, rows in ((AssetClass.CRYPTO, crypto), (AssetClass.STOCK, stocks)):
            for row in rows or []:
                quote = _parse_row(row, asset_class)
                if quote is not None:
                    quotes.append(quote)
        return cls(quotes)

    def get(self, symbol: str) -> Optional[Quote]:
        return self._quotes.get(symbol)

    def get_price(self, symbol: str) -> Optional[Decimal]:
        quote = self._quotes.get(symbol)
        return quote.price if quote is not None else None

    def by_class(self, asset_class: AssetClass) -> List[Quote]:
        return [quote for quote in self._quotes.values() if quote.asset_class is asset_class]

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._quotes

    def __len__(self) -> int:
        return len(self._quotes)


def _parse_row(row, asset_class: AssetClass) -> Optional[Quote]:
    if not isinstance(row, dict) or not row.get("symbol") or row.get("price") is None:
        logger.warning(f"Skipping malformed {asset_class.value} quote: {row!r}")
        return None
    try:
        price = to_decimal(row["price"])
    except InvalidAmount:
        logger.warning(f"Skipping {asset_class.value} quote with bad price: {row!r}")
        return None
    return Quote(symbol=str(row["symbol"]), price=price, asset_class=asset_class)


class RedisPriceFeed:
    """
    Loads the latest QuoteBook from Redis

    Usage:
        >>> feed = RedisPriceFeed(redis_manager)
        >>> book = await feed.load()
        >>> book.get_price("BTC/USD")
    """

    def __init__(self, redis: RedisManager):
        self._redis = redis

    async def load(self) -> QuoteBook:
        """
        Raises:
            PriceFeedUnavailable: Redis unreachable or snapshot unreadable
        """
        try:
            crypto = await self._redis.get_json(QuoteKeys.CRYPTO_QUOTES, default=[])
            stocks = await self._redis.get_json(QuoteKeys.STOCK_QUOTES, default=[])
        except (RedisError, ValueError) as e:
            logger.error(f"Quote snapshot read failed: {e}")
            raise PriceFeedUnavailable() from e

        return QuoteBook.from_snapshots(crypto, stocks)
