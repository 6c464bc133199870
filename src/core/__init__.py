"""
Core module - shared enums, error taxonomy and exact decimal helpers.
"""

from src.core.enums import (
    PositionStatus,
    PositionSide,
    AssetClass,
    TransferDirection,
    TransferStatus,
)
from src.core.exceptions import TradingError

__all__ = [
    "PositionStatus",
    "PositionSide",
    "AssetClass",
    "TransferDirection",
    "TransferStatus",
    "TradingError",
]
