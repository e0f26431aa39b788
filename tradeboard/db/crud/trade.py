"""
CRUD operations for Trade model.
Includes the conditional statements that make settlement and deletion
atomic under concurrent requests.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func, desc
from sqlalchemy.orm import selectinload

from tradeboard.models.trade import Trade, TradeSide, TradeStatus


class TradeCRUD:
    """CRUD operations for Trade records."""

    @staticmethod
    async def create(db: AsyncSession, trade: Trade) -> Trade:
        """Add a new trade. Does not commit."""
        db.add(trade)
        await db.flush()
        return trade

    @staticmethod
    async def get_by_id(db: AsyncSession, trade_id: uuid.UUID) -> Optional[Trade]:
        """Get trade by ID."""
        result = await db.execute(select(Trade).where(Trade.id == trade_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_with_fills(db: AsyncSession, trade_id: uuid.UUID) -> Optional[Trade]:
        """Get trade by ID with its fill ledger loaded."""
        result = await db.execute(
            select(Trade)
            .where(Trade.id == trade_id)
            .options(selectinload(Trade.fills))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_owned(
        db: AsyncSession,
        trade_id: uuid.UUID,
        user_id: uuid.UUID,
        company_id: str
    ) -> Optional[Trade]:
        """
        Get a BUY trade only if it belongs to the user within the company.
        Trades owned by anyone else are reported as missing.
        """
        result = await db.execute(
            select(Trade).where(
                Trade.id == trade_id,
                Trade.user_id == user_id,
                Trade.company_id == company_id,
                Trade.side == TradeSide.BUY.value
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_for_user(
        db: AsyncSession,
        user_id: uuid.UUID,
        company_id: str,
        page: int = 1,
        page_size: int = 10,
        status: str | None = None,
        search: str | None = None
    ) -> tuple[list[Trade], int]:
        """
        List a user's BUY trades in a company, newest first, with fills loaded.

        Returns:
            Tuple of (trades on the page, total matching trades)
        """
        conditions = [
            Trade.user_id == user_id,
            Trade.company_id == company_id,
            Trade.side == TradeSide.BUY.value,
        ]
        if status:
            conditions.append(Trade.status == status)
        if search:
            conditions.append(func.upper(Trade.ticker).contains(search.strip().upper(), autoescape=True))

        total = await db.scalar(select(func.count(Trade.id)).where(*conditions))

        result = await db.execute(
            select(Trade)
            .where(*conditions)
            .options(selectinload(Trade.fills))
            .order_by(desc(Trade.created_at), Trade.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total or 0

    @staticmethod
    async def get_closed_verified(
        db: AsyncSession,
        user_ids: list[uuid.UUID],
        company_id: str,
        closed_since: datetime | None = None
    ) -> list[Trade]:
        """
        Get CLOSED, price-verified BUY trades for the given users in a company.

        Args:
            db: Database session
            user_ids: Owners whose trades are included
            company_id: Company scope
            closed_since: Only trades closed at or after this time

        Returns:
            Trades in closure order
        """
        if not user_ids:
            return []

        query = select(Trade).where(
            Trade.user_id.in_(user_ids),
            Trade.company_id == company_id,
            Trade.side == TradeSide.BUY.value,
            Trade.status == TradeStatus.CLOSED.value,
            Trade.price_verified.is_(True)
        )
        if closed_since is not None:
            query = query.where(Trade.closed_at >= closed_since)

        result = await db.execute(
            query.order_by(Trade.closed_at, Trade.created_at, Trade.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def decrement_remaining(
        db: AsyncSession,
        trade_id: uuid.UUID,
        contracts: int
    ) -> int:
        """
        Atomically take contracts off an OPEN trade. Does not commit.

        The row only changes if it is still OPEN and still has at least
        `contracts` remaining, so two concurrent settlements can never
        oversell the same trade.

        Returns:
            Number of rows updated (0 or 1)
        """
        result = await db.execute(
            update(Trade)
            .where(
                Trade.id == trade_id,
                Trade.status == TradeStatus.OPEN.value,
                Trade.remaining_open_contracts >= contracts
            )
            .values(
                remaining_open_contracts=Trade.remaining_open_contracts - contracts,
                updated_at=datetime.now(timezone.utc)
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @staticmethod
    async def delete_open(db: AsyncSession, trade_id: uuid.UUID) -> int:
        """
        Delete a trade only while it is OPEN. Does not commit.

        Returns:
            Number of rows deleted (0 or 1)
        """
        result = await db.execute(
            delete(Trade)
            .where(
                Trade.id == trade_id,
                Trade.status == TradeStatus.OPEN.value
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
