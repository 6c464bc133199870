"""
Core Enums - closed sets of values shared by the ledger, positions and transfers.

Defines:
- PositionStatus: lifecycle of a leveraged position
- PositionSide: direction of the bet
- AssetClass: crypto or stock
- TransferDirection / TransferStatus: deposit/withdrawal lifecycle
"""

from enum import Enum


class PositionStatus(str, Enum):
    """Position lifecycle.

    live -> closed   (manual close, payout credited)
    live -> busted   (liquidation, stake lost)

    Terminal states are one-way.
    """

    LIVE = "live"
    CLOSED = "closed"
    BUSTED = "busted"

    @classmethod
    def terminal_states(cls) -> list["PositionStatus"]:
        return [cls.CLOSED, cls.BUSTED]

    def is_terminal(self) -> bool:
        return self in self.terminal_states()

    def can_transition_to(self, target: "PositionStatus") -> bool:
        """Only live positions move, and only into a terminal state."""
        match self:
            case PositionStatus.LIVE:
                return target.is_terminal()
            case PositionStatus.CLOSED | PositionStatus.BUSTED:
                return False


class PositionSide(str, Enum):
    """Direction of a position relative to its entry price."""

    UP = "up"  # long
    DOWN = "down"  # short

    @classmethod
    def parse(cls, value: str) -> "PositionSide":
        """Strict parse; raises ValueError for anything but 'up'/'down'."""
        return cls(value)


class AssetClass(str, Enum):
    """Quote source of an asset."""

    CRYPTO = "crypto"
    STOCK = "stock"


class TransferDirection(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


class TransferStatus(str, Enum):
    """Deposit/withdrawal status.

    Deposits finish as SUCCESS, withdrawals as PROCESSED; either may FAIL.
    """

    PENDING = "pending"
    SUCCESS = "success"
    PROCESSED = "processed"
    FAILED = "failed"

    def is_terminal(self) -> bool:
        return self != TransferStatus.PENDING
