"""
CRUD operations for user accounts

Async database operations using SQLAlchemy 2.0. Balance mutation is not
here: it belongs to BalanceLedger.
"""

from typing import Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import UserNotFound
from src.database.models import User


# ===========================
# USER OPERATIONS
# ===========================


async def get_user_by_chat_id(session: AsyncSession, chat_id: str) -> Optional[User]:
    """
    Get user by chat identity

    Args:
        session: Database session
        chat_id: Chat identity (stringified)

    Returns:
        User model or None
    """
    stmt = select(User).where(User.chat_id == str(chat_id))
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_user_by_address(session: AsyncSession, address: str) -> Optional[User]:
    stmt = select(User).where(User.address == address)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def resolve_address(session: AsyncSession, chat_id: str) -> str:
    """
    Map a chat identity to its custodial address

    Raises:
        UserNotFound: chat identity is unknown
    """
    stmt = select(User.address).where(User.chat_id == str(chat_id))
    address = await session.scalar(stmt)
    if address is None:
        raise UserNotFound()
    return address


async def create_user(
    session: AsyncSession,
    chat_id: str,
    address: str,
    balance: int = 0,
) -> User:
    """
    Create new user

    Args:
        session: Database session
        chat_id: Chat identity
        address: Custodial address provisioned by the wallet service
        balance: Opening balance in ledger units

    Returns:
        Created User model
    """
    user = User(chat_id=str(chat_id), address=address, balance=balance)
    session.add(user)
    await session.commit()
    await session.refresh(user)

    logger.info(f"User created: chat {chat_id} -> {address}")
    return user


async def get_balance_units(session: AsyncSession, address: str) -> Optional[int]:
    """Current balance in ledger units, None for an unknown address"""
    stmt = select(User.balance).where(User.address == address)
    return await session.scalar(stmt)
