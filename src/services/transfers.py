# coding: utf-8
"""
Transfer Settlement

Ledger side of deposits and withdrawals. The chain collaborator watches
receipts and submits transactions; it calls in here for every state change
that touches a balance:

- withdrawal request: debit + pending row, one transaction
- withdrawal failure: pending -> failed + refund credit, one transaction
- deposit success:    pending -> success + credit, one transaction

Every transition is guarded by `status = 'pending'`, so a transfer settles
at most once however often the collaborator retries.
"""
import re
from decimal import Decimal
from typing import List, Optional, Union

from loguru import logger
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.trading import BRIDGE_COST, WITHDRAWAL_APPROVAL_THRESHOLD
from src.core.decimal_math import (
    ZERO,
    from_ledger_units,
    round_down,
    to_decimal,
    to_ledger_units,
)
from src.core.enums import TransferDirection, TransferStatus
from src.core.exceptions import (
    InsufficientBalance,
    InvalidAddress,
    InvalidAmount,
    TransferNotFound,
    UserNotFound,
)
from src.database.crud import get_user_by_address, resolve_address
from src.database.models import PendingTransfer
from src.services.ledger import BalanceLedger

EVM_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def is_evm_address(value: str) -> bool:
    return isinstance(value, str) and bool(EVM_ADDRESS_RE.match(value))


def requires_approval(transfer: PendingTransfer) -> bool:
    """Withdrawals at or above the threshold wait for manual approval"""
    return from_ledger_units(transfer.stable_amount or 0) >= WITHDRAWAL_APPROVAL_THRESHOLD


class TransferSettlement:
    """
    Deposit/withdrawal state changes with their ledger effects

    Usage:
        >>> transfers = TransferSettlement(session_maker)
        >>> withdrawal = await transfers.request_withdrawal(chat_id, "25", "0xabc...")
        >>> await transfers.mark_withdrawal_processed(withdrawal.id, "0xtxhash")
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        ledger: Optional[BalanceLedger] = None,
        bridge_cost: Decimal = BRIDGE_COST,
    ):
        self._session_maker = session_maker
        self.ledger = ledger or BalanceLedger(session_maker)
        self.bridge_cost = bridge_cost

    # ===========================
    # WITHDRAWALS
    # ===========================

    async def request_withdrawal(
        self,
        chat_id: str,
        amount: Union[Decimal, str, int, float],
        destination_address: str,
    ) -> PendingTransfer:
        """
        Debit `amount` and queue a pending withdrawal

        Raises:
            InvalidAmount: amount not positive at ledger precision
            InvalidAddress: destination is not a 0x-prefixed 20-byte hex address
            UserNotFound, InsufficientBalance
        """
        amount = to_decimal(amount)
        if amount <= ZERO:
            raise InvalidAmount("invalid amount")
        if not is_evm_address(destination_address):
            raise InvalidAddress()

        units = to_ledger_units(amount)
        if units == 0:
            raise InvalidAmount("invalid amount")

        async with self._session_maker() as session:
            async with session.begin():
                address = await resolve_address(session, chat_id)

                if not await self.ledger.debit(address, units, session):
                    raise InsufficientBalance()

                transfer = PendingTransfer(
                    address=address,
                    direction=TransferDirection.WITHDRAWAL,
                    status=TransferStatus.PENDING,
                    destination_address=destination_address,
                    stable_amount=units,
                    approved=False,
                )
                session.add(transfer)
                await session.flush()

        logger.info(
            f"Withdrawal {transfer.id} requested: {address} units={units} -> {destination_address}"
            + (" (needs approval)" if requires_approval(transfer) else "")
        )
        return transfer

    async def approve_withdrawal(self, transfer_id: int) -> None:
        """
        Raises:
            TransferNotFound: no pending withdrawal with this id
        """
        async with self._session_maker() as session:
            async with session.begin():
                stmt = (
                    update(PendingTransfer)
                    .where(
                        PendingTransfer.id == transfer_id,
                        PendingTransfer.direction == TransferDirection.WITHDRAWAL,
                        PendingTransfer.status == TransferStatus.PENDING,
                    )
                    .values(approved=True)
                    .execution_options(synchronize_session=False)
                )
                result = await session.execute(stmt)
                if result.rowcount != 1:
                    raise TransferNotFound()

        logger.info(f"Withdrawal {transfer_id} approved")

    async def list_pending_withdrawals(self, ready_only: bool = False) -> List[PendingTransfer]:
        """
        Args:
            ready_only: Drop withdrawals still waiting for approval
        """
        async with self._session_maker() as session:
            stmt = (
                select(PendingTransfer)
                .where(
                    PendingTransfer.direction == TransferDirection.WITHDRAWAL,
                    PendingTransfer.status == TransferStatus.PENDING,
                )
                .order_by(PendingTransfer.id)
            )
            result = await session.execute(stmt)
            transfers = list(result.scalars().all())

        if ready_only:
            transfers = [t for t in transfers if t.approved or not requires_approval(t)]
        return transfers

    async def mark_withdrawal_processed(self, transfer_id: int, tx_hash: str) -> bool:
        """
        pending -> processed

        Returns:
            False if it was no longer pending or still waits for approval
        """
        async with self._session_maker() as session:
            async with session.begin():
                processed = await self._transition(
                    session,
                    transfer_id,
                    TransferDirection.WITHDRAWAL,
                    TransferStatus.PROCESSED,
                    or_(
                        PendingTransfer.approved.is_(True),
                        PendingTransfer.stable_amount < to_ledger_units(WITHDRAWAL_APPROVAL_THRESHOLD),
                    ),
                    tx_hash=tx_hash,
                )

        if processed:
            logger.info(f"Withdrawal {transfer_id} processed: {tx_hash}")
        return processed

    async def fail_withdrawal(self, transfer_id: int) -> bool:
        """
        pending -> failed, refunding the debited amount

        Returns:
            False if it was no longer pending (nothing refunded)
        """
        async with self._session_maker() as session:
            async with session.begin():
                transfer = await session.get(PendingTransfer, transfer_id)
                if transfer is None or transfer.direction is not TransferDirection.WITHDRAWAL:
                    raise TransferNotFound()

                failed = await self._transition(
                    session,
                    transfer_id,
                    TransferDirection.WITHDRAWAL,
                    TransferStatus.FAILED,
                )
                if failed and transfer.stable_amount:
                    await self.ledger.credit(transfer.address, transfer.stable_amount, session)

        if failed:
            logger.warning(
                f"Withdrawal {transfer_id} failed, refunded {transfer.stable_amount} units to {transfer.address}"
            )
        return failed

    # ===========================
    # DEPOSITS
    # ===========================

    async def record_deposit(
        self,
        address: str,
        tx_hash: str,
        asset_amount: Union[Decimal, str, int],
        asset_type: str = "ETH",
    ) -> PendingTransfer:
        """Queue an observed on-chain deposit for confirmation"""
        asset_amount = to_decimal(asset_amount)
        if asset_amount <= ZERO:
            raise InvalidAmount()

        async with self._session_maker() as session:
            async with session.begin():
                if await get_user_by_address(session, address) is None:
                    raise UserNotFound()

                transfer = PendingTransfer(
                    address=address,
                    direction=TransferDirection.DEPOSIT,
                    status=TransferStatus.PENDING,
                    tx_hash=tx_hash,
                    asset_type=asset_type,
                    asset_amount=asset_amount,
                )
                session.add(transfer)
                await session.flush()

        logger.info(f"Deposit {transfer.id} recorded: {address} {asset_amount} {asset_type} ({tx_hash})")
        return transfer

    async def settle_deposit(
        self, transfer_id: int, stable_amount: Union[Decimal, str, int]
    ) -> Optional[int]:
        """
        pending -> success, crediting the converted amount less bridge cost

        Args:
            stable_amount: Deposit value in stable units, as converted by the
                chain collaborator

        Returns:
            Credited ledger units, or None if it was no longer pending
        """
        stable_amount = to_decimal(stable_amount)
        credited = max(ZERO, round_down(stable_amount, 2) - self.bridge_cost)
        units = to_ledger_units(credited)

        async with self._session_maker() as session:
            async with session.begin():
                transfer = await session.get(PendingTransfer, transfer_id)
                if transfer is None or transfer.direction is not TransferDirection.DEPOSIT:
                    raise TransferNotFound()

                settled = await self._transition(
                    session,
                    transfer_id,
                    TransferDirection.DEPOSIT,
                    TransferStatus.SUCCESS,
                    stable_amount=units,
                )
                if settled and units > 0:
                    await self.ledger.credit(transfer.address, units, session)

        if not settled:
            logger.debug(f"Deposit {transfer_id} already settled")
            return None

        logger.info(f"Deposit {transfer_id} settled: {transfer.address} units={units}")
        return units

    async def _transition(
        self,
        session: AsyncSession,
        transfer_id: int,
        direction: TransferDirection,
        target: TransferStatus,
        *criteria,
        **values,
    ) -> bool:
        stmt = (
            update(PendingTransfer)
            .where(
                PendingTransfer.id == transfer_id,
                PendingTransfer.direction == direction,
                PendingTransfer.status == TransferStatus.PENDING,
                *criteria,
            )
            .values(status=target, **values)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount == 1
