# coding: utf-8
"""
Balance Ledger

The only writer of User.balance. Both operations are single UPDATE
statements so concurrent requests for the same address can never overdraw:

    UPDATE users SET balance = balance - :units
    WHERE address = :address AND balance >= :units

Amounts are integer ledger units (10^-6 stable units), scaled by the caller.
"""
from datetime import datetime, UTC
from typing import Optional

from loguru import logger
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.exceptions import InvalidAmount
from src.database.crud import get_balance_units
from src.database.models import User


def _check_units(units: int) -> int:
    if isinstance(units, bool) or not isinstance(units, int) or units < 0:
        raise InvalidAmount(f"ledger amount must be a non-negative integer: {units!r}")
    return units


class BalanceLedger:
    """
    Atomic conditional balance mutation

    Every method takes an optional session. When given, the statement joins
    the caller's transaction (debit + position insert commit or roll back
    together). When omitted, the ledger runs it in its own transaction.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def debit(
        self, address: str, units: int, session: Optional[AsyncSession] = None
    ) -> bool:
        """
        Decrement balance by `units` if it covers them

        Returns:
            True if the balance was decremented, False if it was insufficient
            (or the address is unknown). False is a normal outcome.
        """
        _check_units(units)
        if session is None:
            async with self._session_maker() as own_session:
                async with own_session.begin():
                    return await self._debit(own_session, address, units)
        return await self._debit(session, address, units)

    async def credit(
        self, address: str, units: int, session: Optional[AsyncSession] = None
    ) -> None:
        """
        Increment balance by `units`

        Credits have no precondition. An unknown address affects zero rows,
        which is logged and not raised so a refund path is never blocked.
        """
        _check_units(units)
        if session is None:
            async with self._session_maker() as own_session:
                async with own_session.begin():
                    await self._credit(own_session, address, units)
            return
        await self._credit(session, address, units)

    async def get_balance(
        self, address: str, session: Optional[AsyncSession] = None
    ) -> Optional[int]:
        """Balance in ledger units, None for an unknown address"""
        if session is None:
            async with self._session_maker() as own_session:
                return await get_balance_units(own_session, address)
        return await get_balance_units(session, address)

    async def _debit(self, session: AsyncSession, address: str, units: int) -> bool:
        stmt = (
            update(User)
            .where(User.address == address, User.balance >= units)
            .values(balance=User.balance - units, updated_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)

        if result.rowcount != 1:
            logger.info(f"[DEBIT] refused {address} units={units}: insufficient balance")
            return False

        logger.info(f"[DEBIT] {address} units={units}")
        return True

    async def _credit(self, session: AsyncSession, address: str, units: int) -> None:
        stmt = (
            update(User)
            .where(User.address == address)
            .values(balance=User.balance + units, updated_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)

        if result.rowcount == 0:
            logger.warning(f"[CREDIT] no user row for {address}, units={units} not credited")
            return

        logger.info(f"[CREDIT] {address} units={units}")
