"""
Pytest configuration and fixtures for the trading settlement tests
"""

from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

from src.core.enums import AssetClass
from src.database.crud import create_user
from src.database.engine import build_engine, build_session_maker, drop_db, init_db
from src.services.ledger import BalanceLedger
from src.services.position_service import PositionLifecycle
from tests.fakes import ALICE, FakeMarketHours, FakePriceFeed


# Test database URL (in-memory SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="function")
async def test_db_engine():
    """
    Create test database engine
    """
    engine = build_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        pool_pre_ping=False,
    )

    await init_db(engine)

    yield engine

    await drop_db(engine)
    await engine.dispose()


@pytest.fixture(scope="function")
def session_maker(test_db_engine):
    return build_session_maker(test_db_engine)


@pytest.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """
    Create test database session
    """
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def price_feed():
    feed = FakePriceFeed()
    feed.set_price("BTC/USD", "100")
    feed.set_price("ETH/USD", "2000")
    feed.set_price("AAPL", "150.25", AssetClass.STOCK)
    return feed


@pytest.fixture
def market_hours():
    return FakeMarketHours()


@pytest.fixture
def ledger(session_maker):
    return BalanceLedger(session_maker)


@pytest.fixture
def lifecycle(session_maker, price_feed, market_hours):
    return PositionLifecycle(session_maker, price_feed, market_hours)


@pytest.fixture
def make_user(session_maker):
    """Factory: create a user with an opening balance in ledger units"""

    async def _make_user(chat_id: str, address: str, balance: int = 0):
        async with session_maker() as session:
            return await create_user(session, chat_id, address, balance)

    return _make_user


@pytest.fixture
async def alice(make_user):
    # 1000.00 stable units
    return await make_user("1001", ALICE, 1_000_000_000)
