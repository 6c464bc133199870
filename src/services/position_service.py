# coding: utf-8
"""
Position Lifecycle

Orchestrates opening and closing leveraged positions:

    open:  lock owner -> count -> validate -> fee -> debit net -> price -> bust -> insert
    close: read live -> price -> pnl -> settlement fee -> credit -> close

Each operation runs in one database transaction. Any TradingError raised
inside the scope rolls back every ledger and position effect.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, UTC
from decimal import Decimal
from typing import FrozenSet, List, Optional, Union

from loguru import logger
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.trading import (
    FEE_WINDOW_HOURS,
    MAX_LEVERAGE,
    MAX_LIVE_POSITIONS,
    MIN_LEVERAGE,
    RESTRICTED_ASSETS,
)
from src.core.decimal_math import (
    ZERO,
    format_display,
    from_ledger_units,
    round_down,
    to_decimal,
    to_ledger_units,
)
from src.core.enums import AssetClass, PositionSide, PositionStatus
from src.core.exceptions import (
    AssetNotFound,
    AssetRestricted,
    InsufficientBalance,
    InvalidAmount,
    InvalidLeverage,
    MarketClosed,
    PositionNotFound,
    TooManyOpenPositions,
    TradingError,
    UserNotFound,
    ValidationError,
)
from src.database.crud import get_user_by_chat_id, resolve_address
from src.database.models import Position, User
from src.services.fees import FeeSchedule
from src.services.ledger import BalanceLedger
from src.services.position_store import PositionStore
from src.services.pricing import PricingEngine, parse_side

OPEN_PNL_PLACES = 3


@dataclass(frozen=True)
class Settlement:
    """Outcome of a manual close"""

    position_id: int
    exit_price: Decimal
    pnl: Decimal
    fee: Decimal
    payout_units: int

    def to_dict(self) -> dict:
        return {
            "id": self.position_id,
            "exitPrice": f"{self.exit_price:f}",
            "pnl": f"{self.pnl:f}",
            "fee": f"{self.fee:f}",
            "payout": f"{from_ledger_units(self.payout_units):f}",
        }


def _text(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else f"{value:f}"


def position_to_dict(position: Position) -> dict:
    return {
        "id": position.id,
        "asset": position.asset,
        "assetType": position.asset_class.value,
        "side": position.side.value,
        "status": position.status.value,
        "amount": _text(position.amount),
        "leverage": position.leverage,
        "entryPrice": _text(position.entry_price),
        "bustPrice": _text(position.bust_price),
        "exitPrice": _text(position.exit_price),
        "pnl": _text(position.pnl),
        "upfrontFee": _text(position.upfront_fee),
        "fee": _text(position.fee),
        "userStopLossPrice": _text(position.stop_loss_price),
        "userTakeProfitPrice": _text(position.take_profit_price),
        "createdAt": position.created_at.isoformat() if position.created_at else None,
    }


def _parse_asset_class(value: Union[AssetClass, str]) -> AssetClass:
    try:
        return AssetClass(value)
    except ValueError:
        raise ValidationError(f"invalid asset type: {value!r}")


class PositionLifecycle:
    """
    Open/close orchestration and position queries

    Collaborators are passed in explicitly:
    - price_feed: object with `async load() -> QuoteBook`
    - market_hours: object with `is_market_open() -> (bool, reason)`

    Usage:
        >>> lifecycle = PositionLifecycle(session_maker, price_feed, market_hours)
        >>> position = await lifecycle.open_position(address, "BTC/USD", "up", "100", 10, "crypto")
        >>> settlement = await lifecycle.close_position(address, position.id)
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        price_feed,
        market_hours,
        ledger: Optional[BalanceLedger] = None,
        store: Optional[PositionStore] = None,
        fees: Optional[FeeSchedule] = None,
        pricing: Optional[PricingEngine] = None,
        restricted_assets: FrozenSet[str] = RESTRICTED_ASSETS,
        max_live_positions: int = MAX_LIVE_POSITIONS,
    ):
        self._session_maker = session_maker
        self.price_feed = price_feed
        self.market_hours = market_hours
        self.ledger = ledger or BalanceLedger(session_maker)
        self.store = store or PositionStore()
        self.fees = fees or FeeSchedule()
        self.pricing = pricing or PricingEngine()
        self.restricted_assets = restricted_assets
        self.max_live_positions = max_live_positions

    # ===========================
    # OPEN
    # ===========================

    async def open_position(
        self,
        address: str,
        asset: str,
        side: Union[PositionSide, str],
        amount: Union[Decimal, str, int, float],
        leverage: int,
        asset_class: Union[AssetClass, str],
        stop_loss_price: Optional[Union[Decimal, str, float]] = None,
        take_profit_price: Optional[Union[Decimal, str, float]] = None,
    ) -> Position:
        """
        Debit the stake and insert a live position

        Raises:
            TooManyOpenPositions, InvalidAmount, InvalidLeverage, InvalidSide,
            AssetRestricted, MarketClosed, InsufficientBalance, AssetNotFound,
            PriceFeedUnavailable, InvalidPosition, UserNotFound
        """
        async with self._session_maker() as session:
            async with session.begin():
                # Write-lock the owner row first: concurrent opens for one
                # address queue here until this transaction ends
                touched = await session.execute(
                    update(User)
                    .where(User.address == address)
                    .values(updated_at=datetime.now(UTC))
                    .execution_options(synchronize_session=False)
                )
                if touched.rowcount != 1:
                    raise UserNotFound()

                # 1. exposure cap
                live_count = await self.store.count_live(session, address)
                if live_count >= self.max_live_positions:
                    raise TooManyOpenPositions(
                        f"Max of {self.max_live_positions} live orders are allowed per user"
                    )

                # 2. validation
                if not asset:
                    raise ValidationError("no asset was found")
                side = parse_side(side)
                asset_class = _parse_asset_class(asset_class)
                amount = to_decimal(amount)
                if amount <= ZERO:
                    raise InvalidAmount()
                if (
                    isinstance(leverage, bool)
                    or not isinstance(leverage, int)
                    or not MIN_LEVERAGE <= leverage <= MAX_LEVERAGE
                ):
                    raise InvalidLeverage()
                if asset in self.restricted_assets:
                    raise AssetRestricted()
                if asset_class is AssetClass.STOCK:
                    is_open, reason = self.market_hours.is_market_open()
                    if not is_open:
                        raise MarketClosed(f"stock market closed: {reason}" if reason else None)

                # 3. upfront fee from trailing activity
                since = datetime.now(UTC) - timedelta(hours=FEE_WINDOW_HOURS)
                trailing = await self.store.count_opened_since(session, address, since)
                rate = self.fees.fee_percentage(trailing)
                net_amount, fee_amount = self.fees.apply_fee(amount, rate)

                # 4. debit the post-fee stake
                if not await self.ledger.debit(address, to_ledger_units(net_amount), session):
                    raise InsufficientBalance()

                # 5. entry price from the latest snapshot
                book = await self.price_feed.load()
                quote = book.get(asset)
                if quote is None or quote.asset_class is not asset_class:
                    raise AssetNotFound()

                # 6. bust price and insert
                bust_price = self.pricing.bust_price(
                    net_amount, leverage, quote.price, side, asset_class
                )
                position = await self.store.insert(
                    session,
                    Position(
                        address=address,
                        asset=asset,
                        asset_class=asset_class,
                        side=side,
                        status=PositionStatus.LIVE,
                        amount=net_amount,
                        leverage=leverage,
                        entry_price=quote.price,
                        bust_price=bust_price,
                        upfront_fee=fee_amount,
                        stop_loss_price=_optional_price(stop_loss_price),
                        take_profit_price=_optional_price(take_profit_price),
                    ),
                )

        logger.info(
            f"Position {position.id} opened: {address} {side.value} {asset} "
            f"stake={net_amount} fee={fee_amount} x{leverage} entry={quote.price} bust={bust_price}"
        )
        return position

    # ===========================
    # CLOSE
    # ===========================

    async def close_position(self, address: str, position_id: int) -> Settlement:
        """
        Settle a live position at the current price

        Raises:
            PositionNotFound: not live, not owned by address, or closed concurrently
            AssetNotFound: no current price for the asset
        """
        async with self._session_maker() as session:
            async with session.begin():
                position = await self.store.get_live(session, address, position_id)
                if position is None:
                    raise PositionNotFound()

                book = await self.price_feed.load()
                current_price = book.get_price(position.asset)
                if current_price is None:
                    raise AssetNotFound()

                pnl = self.pricing.pnl(
                    position.entry_price,
                    current_price,
                    position.amount,
                    position.leverage,
                    position.side,
                )
                net_pnl, fee = self.pricing.settlement_fee(pnl)

                payout = max(ZERO, net_pnl + position.amount)
                payout_units = to_ledger_units(payout)
                if payout_units > 0:
                    await self.ledger.credit(address, payout_units, session)

                closed = await self.store.mark_closed(
                    session, position.id, current_price, net_pnl, fee
                )
                if not closed:
                    # Lost the race to a concurrent close or bust; undo the credit
                    raise PositionNotFound()

        logger.info(
            f"Position {position_id} closed: {address} exit={current_price} "
            f"pnl={net_pnl} fee={fee} payout_units={payout_units}"
        )
        return Settlement(
            position_id=position_id,
            exit_price=current_price,
            pnl=net_pnl,
            fee=fee,
            payout_units=payout_units,
        )

    # ===========================
    # QUERIES
    # ===========================

    async def resolve_address(self, chat_id: str) -> str:
        async with self._session_maker() as session:
            return await resolve_address(session, chat_id)

    async def list_open_positions(self, address: str) -> List[dict]:
        """Live positions with current price and unrealised pnl"""
        async with self._session_maker() as session:
            positions = await self.store.list_by_status(
                session, address, [PositionStatus.LIVE]
            )
        if not positions:
            return []

        book = await self.price_feed.load()
        result = []
        for position in positions:
            price = book.get_price(position.asset)
            pnl = "0"
            if price is not None:
                try:
                    value = self.pricing.pnl(
                        position.entry_price,
                        price,
                        position.amount,
                        position.leverage,
                        position.side,
                    )
                    pnl = f"{round_down(value, OPEN_PNL_PLACES):f}"
                except TradingError as e:
                    logger.error(f"Cannot price position {position.id}: {e.message}")

            item = position_to_dict(position)
            item["price"] = _text(price)
            item["pnl"] = pnl
            result.append(item)
        return result

    async def list_closed_positions(self, address: str) -> List[dict]:
        async with self._session_maker() as session:
            positions = await self.store.list_by_status(
                session, address, PositionStatus.terminal_states()
            )
        return [position_to_dict(position) for position in positions]

    async def list_assets(self) -> dict:
        """Current quotes grouped by asset class"""
        book = await self.price_feed.load()
        return {
            "crypto": [quote.to_dict() for quote in book.by_class(AssetClass.CRYPTO)],
            "stocks": [quote.to_dict() for quote in book.by_class(AssetClass.STOCK)],
        }

    async def get_user_info(self, chat_id: str) -> dict:
        """Address and display balance (truncated to cents)"""
        async with self._session_maker() as session:
            user = await get_user_by_chat_id(session, chat_id)
        if user is None:
            raise UserNotFound()

        return {
            "address": user.address,
            "balance": format_display(from_ledger_units(user.balance)),
        }


def _optional_price(value) -> Optional[Decimal]:
    if value is None:
        return None
    price = to_decimal(value)
    if price <= ZERO:
        raise ValidationError(f"invalid price hint: {value}")
    return price
