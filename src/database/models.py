"""
Database models for the leveraged trading settlement service

SQLAlchemy 2.0 models with full type hints
"""

from datetime import datetime, UTC
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    String,
    BigInteger,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    CheckConstraint,
    Index,
    Enum as SAEnum,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from src.core.enums import (
    PositionStatus,
    PositionSide,
    AssetClass,
    TransferDirection,
    TransferStatus,
)


class Base(DeclarativeBase):
    """Base class for all models"""

    pass


# ===========================
# COLUMN TYPES
# ===========================


class DecimalText(TypeDecorator):
    """
    Exact decimal stored as its plain-text representation

    Numeric columns round-trip through float on some drivers (SQLite);
    text keeps every digit of prices and pnl on all of them.
    """

    impl = String(80)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, Decimal):
            value = Decimal(str(value))
        return format(value, "f")

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value)


def enum_column(enum_cls, name: str) -> SAEnum:
    """Closed enum persisted as its string value"""
    return SAEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=16,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


# ===========================
# MODELS
# ===========================


class User(Base):
    """
    User model - custodial account keyed by chat identity

    Tracks:
    - Chat identity (Telegram chat id)
    - Custodial deposit address
    - Balance in integer ledger units (10^-6 stable units)

    The balance is only ever written by BalanceLedger's conditional UPDATE.
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_users_balance_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    chat_id: Mapped[str] = mapped_column(
        String(64), unique=True, index=True, nullable=False, comment="Chat identity"
    )
    address: Mapped[str] = mapped_column(
        String(64), unique=True, index=True, nullable=False, comment="Custodial EVM address"
    )

    balance: Mapped[int] = mapped_column(
        BigInteger,
        default=0,
        nullable=False,
        comment="Balance in ledger units (scale 6)",
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    # Relationships
    positions = relationship("Position", back_populates="user")
    transfers = relationship("PendingTransfer", back_populates="user")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, chat_id={self.chat_id}, address={self.address}, balance={self.balance})>"


class Position(Base):
    """
    Leveraged, isolated-margin position on a single asset

    Lifecycle: live -> closed | busted (terminal, one-way).
    Entry and bust prices are fixed at creation. Exit price and pnl are
    written exactly once, by the terminal transition.
    """

    __tablename__ = "positions"
    __table_args__ = (
        CheckConstraint("leverage >= 1 AND leverage <= 1000", name="ck_positions_leverage_range"),
        Index("ix_positions_address_status", "address", "status"),
        Index("ix_positions_address_created_at", "address", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    address: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.address", ondelete="CASCADE"),
        nullable=False,
        comment="Owner address",
    )

    asset: Mapped[str] = mapped_column(String(32), nullable=False, comment="Asset symbol")
    asset_class: Mapped[AssetClass] = mapped_column(
        enum_column(AssetClass, "asset_class"), nullable=False
    )
    side: Mapped[PositionSide] = mapped_column(
        enum_column(PositionSide, "position_side"), nullable=False
    )
    status: Mapped[PositionStatus] = mapped_column(
        enum_column(PositionStatus, "position_status"),
        default=PositionStatus.LIVE,
        nullable=False,
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(
        DecimalText, nullable=False, comment="Staked amount after upfront fee"
    )
    leverage: Mapped[int] = mapped_column(Integer, nullable=False)

    entry_price: Mapped[Decimal] = mapped_column(DecimalText, nullable=False)
    bust_price: Mapped[Decimal] = mapped_column(DecimalText, nullable=False)
    exit_price: Mapped[Optional[Decimal]] = mapped_column(DecimalText, nullable=True)

    pnl: Mapped[Optional[Decimal]] = mapped_column(
        DecimalText, nullable=True, comment="Realized pnl after settlement fee"
    )
    upfront_fee: Mapped[Decimal] = mapped_column(
        DecimalText, default=Decimal("0"), nullable=False, comment="Fee charged at open"
    )
    fee: Mapped[Optional[Decimal]] = mapped_column(
        DecimalText, nullable=True, comment="Settlement fee (or the loss itself when pnl <= 0)"
    )

    # Advisory only, never enforced by settlement
    stop_loss_price: Mapped[Optional[Decimal]] = mapped_column(DecimalText, nullable=True)
    take_profit_price: Mapped[Optional[Decimal]] = mapped_column(DecimalText, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    user = relationship("User", back_populates="positions")

    def __repr__(self) -> str:
        return (
            f"<Position(id={self.id}, asset={self.asset}, side={self.side.value}, "
            f"amount={self.amount}, leverage={self.leverage}, status={self.status.value})>"
        )


class PendingTransfer(Base):
    """
    Deposit or withdrawal awaiting chain reconciliation

    The chain collaborator owns the lifecycle; the terminal success of a
    deposit and the failure of a withdrawal move balance through the ledger.
    """

    __tablename__ = "pending_transfers"
    __table_args__ = (
        Index("ix_pending_transfers_direction_status", "direction", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    address: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.address", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    direction: Mapped[TransferDirection] = mapped_column(
        enum_column(TransferDirection, "transfer_direction"), nullable=False
    )
    status: Mapped[TransferStatus] = mapped_column(
        enum_column(TransferStatus, "transfer_status"),
        default=TransferStatus.PENDING,
        nullable=False,
    )

    tx_hash: Mapped[Optional[str]] = mapped_column(
        String(80), nullable=True, comment="On-chain transaction hash"
    )
    destination_address: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True, comment="Withdrawal destination"
    )
    asset_type: Mapped[str] = mapped_column(String(16), default="ETH", nullable=False)
    asset_amount: Mapped[Optional[Decimal]] = mapped_column(
        DecimalText, nullable=True, comment="Amount in the chain asset"
    )
    stable_amount: Mapped[Optional[int]] = mapped_column(
        BigInteger, nullable=True, comment="Converted amount in ledger units"
    )
    approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    user = relationship("User", back_populates="transfers")

    def __repr__(self) -> str:
        return (
            f"<PendingTransfer(id={self.id}, direction={self.direction.value}, "
            f"status={self.status.value}, stable_amount={self.stable_amount})>"
        )
