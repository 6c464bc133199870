"""
Tests for opening and closing positions
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from src.core.enums import AssetClass, PositionSide, PositionStatus
from src.core.exceptions import (
    AssetNotFound,
    AssetRestricted,
    InsufficientBalance,
    InvalidAmount,
    InvalidLeverage,
    InvalidSide,
    MarketClosed,
    PositionNotFound,
    PriceFeedUnavailable,
    TooManyOpenPositions,
    UserNotFound,
    ValidationError,
)
from src.database.models import Position
from src.services.liquidation import LiquidationScanner
from src.services.position_service import PositionLifecycle
from src.services.position_store import PositionStore
from tests.fakes import ALICE, BOB


async def count_positions(session_maker) -> int:
    async with session_maker() as session:
        return await session.scalar(select(func.count(Position.id)))


async def fetch_position(session_maker, position_id: int) -> Position:
    async with session_maker() as session:
        return await session.get(Position, position_id)


async def open_btc(lifecycle, amount="100", leverage=10, side="up"):
    return await lifecycle.open_position(ALICE, "BTC/USD", side, amount, leverage, "crypto")


# ===========================
# OPEN
# ===========================


@pytest.mark.asyncio
async def test_open_debits_and_inserts_live_position(lifecycle, ledger, alice):
    position = await open_btc(lifecycle)

    assert position.id is not None
    assert position.status == PositionStatus.LIVE
    assert position.side == PositionSide.UP
    assert position.asset_class == AssetClass.CRYPTO
    assert position.amount == Decimal("100")
    assert position.upfront_fee == Decimal("0")
    assert position.entry_price == Decimal("100")
    assert position.bust_price == Decimal("90")
    assert await ledger.get_balance(ALICE) == 900_000_000


@pytest.mark.asyncio
async def test_open_persists_exact_decimals(lifecycle, session_maker, price_feed, alice):
    price_feed.set_price("BTC/USD", "64000.123456789")
    position = await open_btc(lifecycle, amount="37.5", leverage=3, side="down")

    stored = await fetch_position(session_maker, position.id)
    assert stored.entry_price == Decimal("64000.123456789")
    assert stored.bust_price == position.bust_price
    assert stored.side == PositionSide.DOWN


@pytest.mark.asyncio
async def test_open_stores_advisory_hints(lifecycle, session_maker, alice):
    position = await lifecycle.open_position(
        ALICE, "BTC/USD", "up", "10", 2, "crypto",
        stop_loss_price=95.5, take_profit_price="120",
    )

    stored = await fetch_position(session_maker, position.id)
    assert stored.stop_loss_price == Decimal("95.5")
    assert stored.take_profit_price == Decimal("120")


@pytest.mark.asyncio
async def test_sixth_live_position_rejected(lifecycle, ledger, session_maker, alice):
    for _ in range(5):
        await open_btc(lifecycle, amount="10")

    with pytest.raises(TooManyOpenPositions):
        await open_btc(lifecycle, amount="10")

    assert await count_positions(session_maker) == 5
    assert await ledger.get_balance(ALICE) == 950_000_000


@pytest.mark.asyncio
async def test_closing_frees_a_slot(lifecycle, alice):
    positions = [await open_btc(lifecycle, amount="10") for _ in range(5)]
    await lifecycle.close_position(ALICE, positions[0].id)

    position = await open_btc(lifecycle, amount="10")
    assert position.status == PositionStatus.LIVE


@pytest.mark.asyncio
async def test_upfront_fee_after_busy_day(lifecycle, ledger, alice):
    positions = [await open_btc(lifecycle, amount="10") for _ in range(5)]
    await lifecycle.close_position(ALICE, positions[0].id)
    # 5 opens in the window: threshold not exceeded yet
    sixth = await open_btc(lifecycle, amount="10")
    assert sixth.upfront_fee == Decimal("0")

    await lifecycle.close_position(ALICE, positions[1].id)
    balance_before = await ledger.get_balance(ALICE)

    seventh = await open_btc(lifecycle, amount="100")

    assert seventh.upfront_fee == Decimal("5.00")
    assert seventh.amount == Decimal("95.00")
    # Only the post-fee stake is debited
    assert await ledger.get_balance(ALICE) == balance_before - 95_000_000


@pytest.mark.asyncio
async def test_restricted_asset(lifecycle, ledger, price_feed, alice):
    price_feed.set_price("LADYS/USD", "0.0000001")

    with pytest.raises(AssetRestricted) as exc_info:
        await lifecycle.open_position(ALICE, "LADYS/USD", "up", "10", 2, "crypto")

    assert exc_info.value.code == "RESTRICTED"
    assert await ledger.get_balance(ALICE) == 1_000_000_000


@pytest.mark.asyncio
async def test_stock_rejected_when_market_closed(lifecycle, market_hours, ledger, alice):
    market_hours.is_open = False
    market_hours.reason = "Thanksgiving Day"

    with pytest.raises(MarketClosed) as exc_info:
        await lifecycle.open_position(ALICE, "AAPL", "up", "100", 3, "stock")

    assert exc_info.value.code == "MARKET_CLOSED"
    assert "Thanksgiving" in exc_info.value.message
    assert await ledger.get_balance(ALICE) == 1_000_000_000


@pytest.mark.asyncio
async def test_crypto_ignores_market_hours(lifecycle, market_hours, alice):
    market_hours.is_open = False
    position = await open_btc(lifecycle)
    assert position.status == PositionStatus.LIVE


@pytest.mark.asyncio
async def test_stock_bust_price_in_cents(lifecycle, alice):
    position = await lifecycle.open_position(ALICE, "AAPL", "up", "100", 3, "stock")

    assert position.asset_class == AssetClass.STOCK
    assert position.bust_price == Decimal("100.16")


@pytest.mark.asyncio
async def test_unknown_asset_rolls_back_debit(lifecycle, ledger, session_maker, alice):
    with pytest.raises(AssetNotFound):
        await lifecycle.open_position(ALICE, "DOGE/USD", "up", "100", 10, "crypto")

    assert await ledger.get_balance(ALICE) == 1_000_000_000
    assert await count_positions(session_maker) == 0


@pytest.mark.asyncio
async def test_asset_class_must_match_quote(lifecycle, ledger, alice):
    with pytest.raises(AssetNotFound):
        await lifecycle.open_position(ALICE, "BTC/USD", "up", "100", 10, "stock")

    assert await ledger.get_balance(ALICE) == 1_000_000_000


@pytest.mark.asyncio
async def test_price_feed_outage_rolls_back_debit(lifecycle, ledger, price_feed, session_maker, alice):
    price_feed.unavailable = True

    with pytest.raises(PriceFeedUnavailable):
        await open_btc(lifecycle)

    assert await ledger.get_balance(ALICE) == 1_000_000_000
    assert await count_positions(session_maker) == 0


@pytest.mark.asyncio
async def test_insufficient_balance(lifecycle, ledger, make_user, session_maker):
    await make_user("2002", BOB, 50_000_000)

    with pytest.raises(InsufficientBalance):
        await lifecycle.open_position(BOB, "BTC/USD", "up", "100", 10, "crypto")

    assert await ledger.get_balance(BOB) == 50_000_000
    assert await count_positions(session_maker) == 0


@pytest.mark.asyncio
async def test_unknown_address(lifecycle):
    with pytest.raises(UserNotFound):
        await lifecycle.open_position(BOB, "BTC/USD", "up", "100", 10, "crypto")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs, error",
    [
        ({"amount": "0"}, InvalidAmount),
        ({"amount": "-5"}, InvalidAmount),
        ({"amount": "abc"}, InvalidAmount),
        ({"leverage": 0}, InvalidLeverage),
        ({"leverage": 1001}, InvalidLeverage),
        ({"leverage": 2.5}, InvalidLeverage),
        ({"side": "left"}, InvalidSide),
        ({"asset_class": "bond"}, ValidationError),
        ({"asset": ""}, ValidationError),
    ],
)
async def test_open_validation(lifecycle, ledger, alice, kwargs, error):
    params = {
        "asset": "BTC/USD",
        "side": "up",
        "amount": "100",
        "leverage": 10,
        "asset_class": "crypto",
        **kwargs,
    }

    with pytest.raises(error):
        await lifecycle.open_position(ALICE, **params)

    assert await ledger.get_balance(ALICE) == 1_000_000_000


# ===========================
# CLOSE
# ===========================


@pytest.mark.asyncio
async def test_close_at_unchanged_price_returns_stake(lifecycle, ledger, session_maker, alice):
    position = await open_btc(lifecycle)

    settlement = await lifecycle.close_position(ALICE, position.id)

    assert settlement.pnl == 0
    assert settlement.payout_units == 100_000_000
    assert await ledger.get_balance(ALICE) == 1_000_000_000

    stored = await fetch_position(session_maker, position.id)
    assert stored.status == PositionStatus.CLOSED
    assert stored.exit_price == Decimal("100")
    assert stored.pnl == 0


@pytest.mark.asyncio
async def test_close_with_profit_pays_winnings_fee(lifecycle, ledger, price_feed, session_maker, alice):
    position = await open_btc(lifecycle)
    price_feed.set_price("BTC/USD", "110")

    settlement = await lifecycle.close_position(ALICE, position.id)

    assert settlement.fee == Decimal("10")
    assert settlement.pnl == Decimal("90")
    assert settlement.payout_units == 190_000_000
    assert await ledger.get_balance(ALICE) == 1_090_000_000

    stored = await fetch_position(session_maker, position.id)
    assert stored.fee == Decimal("10")
    assert stored.pnl == Decimal("90")
    assert stored.exit_price == Decimal("110")


@pytest.mark.asyncio
async def test_close_with_partial_loss(lifecycle, ledger, price_feed, alice):
    position = await open_btc(lifecycle)
    price_feed.set_price("BTC/USD", "95")

    settlement = await lifecycle.close_position(ALICE, position.id)

    assert settlement.pnl == Decimal("-50")
    assert settlement.fee == Decimal("-50")
    assert await ledger.get_balance(ALICE) == 950_000_000


@pytest.mark.asyncio
async def test_close_beyond_stake_pays_nothing(lifecycle, ledger, price_feed, alice):
    position = await open_btc(lifecycle)
    price_feed.set_price("BTC/USD", "85")

    settlement = await lifecycle.close_position(ALICE, position.id)

    assert settlement.payout_units == 0
    assert await ledger.get_balance(ALICE) == 900_000_000


@pytest.mark.asyncio
async def test_close_twice_pays_once(lifecycle, ledger, alice):
    position = await open_btc(lifecycle)
    await lifecycle.close_position(ALICE, position.id)

    with pytest.raises(PositionNotFound):
        await lifecycle.close_position(ALICE, position.id)

    assert await ledger.get_balance(ALICE) == 1_000_000_000


@pytest.mark.asyncio
async def test_close_foreign_position(lifecycle, make_user, alice):
    await make_user("2002", BOB, 0)
    position = await open_btc(lifecycle)

    with pytest.raises(PositionNotFound):
        await lifecycle.close_position(BOB, position.id)


@pytest.mark.asyncio
async def test_close_without_price(lifecycle, ledger, price_feed, session_maker, alice):
    position = await open_btc(lifecycle)
    price_feed.remove("BTC/USD")

    with pytest.raises(AssetNotFound):
        await lifecycle.close_position(ALICE, position.id)

    stored = await fetch_position(session_maker, position.id)
    assert stored.status == PositionStatus.LIVE
    assert await ledger.get_balance(ALICE) == 900_000_000


class StaleStore(PositionStore):
    """Returns a snapshot read before a concurrent transition committed"""

    def __init__(self, stale: Position):
        self.stale = stale

    async def get_live(self, session, address, position_id):
        return self.stale


@pytest.mark.asyncio
async def test_close_losing_race_to_bust_undoes_credit(
    lifecycle, ledger, price_feed, session_maker, market_hours, alice
):
    position = await open_btc(lifecycle)
    price_feed.set_price("BTC/USD", "90")
    summary = await LiquidationScanner(session_maker, price_feed).scan()
    assert summary.busted == [position.id]
    # Would pay out 190 if the close went through
    price_feed.set_price("BTC/USD", "110")

    racing = PositionLifecycle(
        session_maker, price_feed, market_hours, store=StaleStore(position)
    )
    with pytest.raises(PositionNotFound):
        await racing.close_position(ALICE, position.id)

    stored = await fetch_position(session_maker, position.id)
    assert stored.status == PositionStatus.BUSTED
    assert await ledger.get_balance(ALICE) == 900_000_000


# ===========================
# QUERIES
# ===========================


@pytest.mark.asyncio
async def test_list_open_positions_with_pnl(lifecycle, price_feed, alice):
    await open_btc(lifecycle)
    await lifecycle.open_position(ALICE, "ETH/USD", "down", "10", 2, "crypto")
    price_feed.set_price("BTC/USD", "100.5")
    price_feed.remove("ETH/USD")

    positions = {item["asset"]: item for item in await lifecycle.list_open_positions(ALICE)}

    assert positions["BTC/USD"]["pnl"] == "5.000"
    assert positions["BTC/USD"]["price"] == "100.5"
    assert positions["ETH/USD"]["pnl"] == "0"
    assert positions["ETH/USD"]["price"] is None


@pytest.mark.asyncio
async def test_list_closed_positions(lifecycle, price_feed, session_maker, alice):
    closed = await open_btc(lifecycle)
    await lifecycle.close_position(ALICE, closed.id)
    busted = await open_btc(lifecycle, side="down")
    await open_btc(lifecycle)
    price_feed.set_price("BTC/USD", "200")
    await LiquidationScanner(session_maker, price_feed).scan()

    statuses = {item["id"]: item["status"] for item in await lifecycle.list_closed_positions(ALICE)}

    assert statuses[closed.id] == "closed"
    assert statuses[busted.id] == "busted"
    assert len(statuses) == 2


@pytest.mark.asyncio
async def test_list_assets(lifecycle):
    assets = await lifecycle.list_assets()

    assert {quote["symbol"] for quote in assets["crypto"]} == {"BTC/USD", "ETH/USD"}
    assert assets["stocks"] == [{"symbol": "AAPL", "price": "150.25"}]


@pytest.mark.asyncio
async def test_get_user_info(lifecycle, make_user):
    await make_user("3003", BOB, 12_345_678)

    info = await lifecycle.get_user_info("3003")

    assert info == {"address": BOB, "balance": "12.34"}


@pytest.mark.asyncio
async def test_get_user_info_unknown(lifecycle):
    with pytest.raises(UserNotFound):
        await lifecycle.get_user_info("404")


@pytest.mark.asyncio
async def test_resolve_address(lifecycle, alice):
    assert await lifecycle.resolve_address("1001") == ALICE
    with pytest.raises(UserNotFound):
        await lifecycle.resolve_address("404")
