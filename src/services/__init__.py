"""Settlement services: ledger, pricing, positions, liquidation and transfers"""
from .ledger import BalanceLedger
from .fees import FeeSchedule
from .pricing import PricingEngine
from .position_store import PositionStore
from .position_service import PositionLifecycle, Settlement
from .liquidation import LiquidationScanner, ScanSummary
from .price_feed import Quote, QuoteBook, RedisPriceFeed
from .market_hours import MarketHours
from .transfers import TransferSettlement

__all__ = [
    'BalanceLedger',
    'FeeSchedule',
    'PricingEngine',
    'PositionStore',
    'PositionLifecycle',
    'Settlement',
    'LiquidationScanner',
    'ScanSummary',
    'Quote',
    'QuoteBook',
    'RedisPriceFeed',
    'MarketHours',
    'TransferSettlement',
]
