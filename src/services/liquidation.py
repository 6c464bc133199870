# coding: utf-8
"""
Liquidation Scanner

Sweeps every live position and busts the ones whose current price has
reached the bust price (inclusive):

- up:   current <= bust
- down: current >= bust

A busted position keeps exit price = bust price and pnl = -stake. Busting
moves no balance: the stake was debited at open.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.enums import PositionSide
from src.database.models import Position
from src.services.position_store import PositionStore


def is_breached(side: PositionSide, current_price: Decimal, bust_price: Decimal) -> bool:
    match side:
        case PositionSide.UP:
            return current_price <= bust_price
        case PositionSide.DOWN:
            return current_price >= bust_price


@dataclass
class ScanSummary:
    """Counts for one sweep"""

    scanned: int = 0
    busted: List[int] = field(default_factory=list)
    skipped_no_price: int = 0
    lost_race: int = 0

    def to_dict(self) -> dict:
        return {
            "scanned": self.scanned,
            "busted": list(self.busted),
            "skippedNoPrice": self.skipped_no_price,
            "lostRace": self.lost_race,
        }


class LiquidationScanner:
    """
    Periodic bust sweep

    Each bust commits in its own short transaction so one stale row never
    holds back the rest of the sweep.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        price_feed,
        store: Optional[PositionStore] = None,
    ):
        self._session_maker = session_maker
        self.price_feed = price_feed
        self.store = store or PositionStore()

    async def scan(self) -> ScanSummary:
        """
        Run one sweep

        Raises:
            PriceFeedUnavailable: snapshot store unreachable (nothing written)
        """
        summary = ScanSummary()

        async with self._session_maker() as session:
            positions = await self.store.list_live(session)

        summary.scanned = len(positions)
        if not positions:
            return summary

        book = await self.price_feed.load()

        for position in positions:
            current_price = book.get_price(position.asset)
            if current_price is None:
                summary.skipped_no_price += 1
                continue

            if not is_breached(position.side, current_price, position.bust_price):
                continue

            if await self._bust(position):
                summary.busted.append(position.id)
            else:
                summary.lost_race += 1

        logger.info(
            f"Liquidation sweep: scanned={summary.scanned} busted={len(summary.busted)} "
            f"no_price={summary.skipped_no_price} lost_race={summary.lost_race}"
        )
        return summary

    async def _bust(self, position: Position) -> bool:
        async with self._session_maker() as session:
            async with session.begin():
                busted = await self.store.mark_busted(
                    session,
                    position.id,
                    exit_price=position.bust_price,
                    pnl=-position.amount,
                )

        if busted:
            logger.info(
                f"Position {position.id} busted: {position.address} {position.side.value} "
                f"{position.asset} bust={position.bust_price}"
            )
        return busted
