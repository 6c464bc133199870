"""
Trading error taxonomy.

Every failure the settlement core can surface is a TradingError carrying a
stable machine code. Services raise them inside a transaction scope so the
scope rolls back; the API layer turns them into a `fail` envelope.
"""

from typing import Optional


class TradingError(Exception):
    """Base class for all expected trading failures."""

    code: str = "TRADING_ERROR"
    default_message: str = "trading operation failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"status": "fail", "error": self.message, "code": self.code}


# ===========================
# VALIDATION
# ===========================


class ValidationError(TradingError):
    code = "VALIDATION_ERROR"
    default_message = "invalid request"


class InvalidAmount(ValidationError):
    code = "INVALID_AMOUNT"
    default_message = "amount incorrect"


class InvalidLeverage(ValidationError):
    code = "INVALID_LEVERAGE"
    default_message = "invalid leverage"


class InvalidSide(ValidationError):
    code = "INVALID_SIDE"
    default_message = "invalid side, must be 'up' or 'down'"


class InvalidAddress(ValidationError):
    code = "INVALID_ADDRESS"
    default_message = "invalid address"


# ===========================
# MARKET / ASSET
# ===========================


class AssetRestricted(TradingError):
    code = "RESTRICTED"
    default_message = "asset restricted"


class MarketClosed(TradingError):
    code = "MARKET_CLOSED"
    default_message = "stock market closed"


class AssetNotFound(TradingError):
    code = "ASSET_NOT_FOUND"
    default_message = "no asset was found"


class PriceFeedUnavailable(TradingError):
    code = "PRICE_FEED_UNAVAILABLE"
    default_message = "price feed unavailable"


# ===========================
# ACCOUNT / POSITION
# ===========================


class UserNotFound(TradingError):
    code = "USER_NOT_FOUND"
    default_message = "user not found"


class InsufficientBalance(TradingError):
    code = "INSUFFICIENT_BALANCE"
    default_message = "Insufficient user balance"


class TooManyOpenPositions(TradingError):
    code = "TOO_MANY_POSITIONS"
    default_message = "Max of 5 live orders are allowed per user"


class PositionNotFound(TradingError):
    code = "POSITION_NOT_FOUND"
    default_message = "position not found"


class TransferNotFound(TradingError):
    code = "TRANSFER_NOT_FOUND"
    default_message = "transfer not found"


# ===========================
# DEGENERATE PRICING INPUTS
# ===========================


class InvalidPosition(TradingError):
    code = "INVALID_POSITION"
    default_message = "position problem"


class DivisionByZero(TradingError):
    code = "DIVISION_BY_ZERO"
    default_message = "division by zero price"
