# coding: utf-8
"""
Position Store

Persistence of positions and their terminal transitions. A transition is a
conditional UPDATE guarded by `status = 'live'`: when the liquidation sweep
and a manual close race on the same row, the first commit wins and the
other sees zero affected rows.
"""
from datetime import datetime, UTC
from decimal import Decimal
from typing import Iterable, List, Optional

from loguru import logger
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.enums import PositionStatus
from src.database.models import Position


class PositionStore:
    """Queries and state transitions over the positions table"""

    # ===========================
    # COUNTS
    # ===========================

    async def count_live(self, session: AsyncSession, address: str) -> int:
        stmt = select(func.count(Position.id)).where(
            Position.address == address,
            Position.status == PositionStatus.LIVE,
        )
        return int(await session.scalar(stmt) or 0)

    async def count_opened_since(
        self, session: AsyncSession, address: str, since: datetime
    ) -> int:
        """Positions opened by `address` at or after `since`, any status"""
        stmt = select(func.count(Position.id)).where(
            Position.address == address,
            Position.created_at >= since,
        )
        return int(await session.scalar(stmt) or 0)

    # ===========================
    # READS
    # ===========================

    async def insert(self, session: AsyncSession, position: Position) -> Position:
        session.add(position)
        await session.flush()
        return position

    async def get_live(
        self, session: AsyncSession, address: str, position_id: int
    ) -> Optional[Position]:
        """Live position `position_id` owned by `address`, else None"""
        stmt = select(Position).where(
            Position.id == position_id,
            Position.address == address,
            Position.status == PositionStatus.LIVE,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_live(self, session: AsyncSession) -> List[Position]:
        """All live positions, oldest first"""
        stmt = (
            select(Position)
            .where(Position.status == PositionStatus.LIVE)
            .order_by(Position.id)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def list_by_status(
        self,
        session: AsyncSession,
        address: str,
        statuses: Iterable[PositionStatus],
    ) -> List[Position]:
        """Positions of `address` in any of `statuses`, newest first"""
        stmt = (
            select(Position)
            .where(
                Position.address == address,
                Position.status.in_(list(statuses)),
            )
            .order_by(Position.created_at.desc(), Position.id.desc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    # ===========================
    # TRANSITIONS
    # ===========================

    async def mark_closed(
        self,
        session: AsyncSession,
        position_id: int,
        exit_price: Decimal,
        pnl: Decimal,
        fee: Decimal,
    ) -> bool:
        """
        live -> closed

        Returns:
            False if the position was no longer live
        """
        return await self._transition(
            session,
            position_id,
            PositionStatus.CLOSED,
            exit_price=exit_price,
            pnl=pnl,
            fee=fee,
        )

    async def mark_busted(
        self,
        session: AsyncSession,
        position_id: int,
        exit_price: Decimal,
        pnl: Decimal,
    ) -> bool:
        """live -> busted. Returns False if the position was no longer live."""
        return await self._transition(
            session,
            position_id,
            PositionStatus.BUSTED,
            exit_price=exit_price,
            pnl=pnl,
        )

    async def _transition(
        self,
        session: AsyncSession,
        position_id: int,
        target: PositionStatus,
        **values,
    ) -> bool:
        if not PositionStatus.LIVE.can_transition_to(target):
            raise ValueError(f"illegal position transition live -> {target.value}")

        stmt = (
            update(Position)
            .where(Position.id == position_id, Position.status == PositionStatus.LIVE)
            .values(status=target, updated_at=datetime.now(UTC), **values)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)

        if result.rowcount != 1:
            logger.debug(f"Position {position_id} already terminal, {target.value} skipped")
            return False
        return True
