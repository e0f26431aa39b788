"""
CRUD operations for TradeFill model.
The fill ledger is append-only: fills are inserted and read, and only
removed together with their trade.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from tradeboard.models.trade_fill import TradeFill
from tradeboard.services.pnl import notional


class TradeFillCRUD:
    """CRUD operations for TradeFill records."""

    @staticmethod
    async def create(
        db: AsyncSession,
        trade_id: uuid.UUID,
        company_id: str,
        side: str,
        contracts: int,
        fill_price: Decimal,
        price_verified: bool = True,
        ref_price: Decimal | None = None,
        ref_timestamp: datetime | None = None
    ) -> TradeFill:
        """
        Records a fill against a trade. Notional is derived here so that
        every ledger row uses the same contract multiplier.
        """
        fill = TradeFill(
            id=uuid.uuid4(),
            trade_id=trade_id,
            company_id=company_id,
            side=side,
            contracts=contracts,
            fill_price=fill_price,
            notional=notional(contracts, fill_price),
            price_verified=price_verified,
            ref_price=ref_price,
            ref_timestamp=ref_timestamp
        )
        db.add(fill)
        await db.flush()
        return fill

    @staticmethod
    async def get_for_trade(db: AsyncSession, trade_id: uuid.UUID) -> list[TradeFill]:
        """Get all fills for a trade in execution order."""
        result = await db.execute(
            select(TradeFill)
            .where(TradeFill.trade_id == trade_id)
            .order_by(TradeFill.created_at, TradeFill.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def delete_for_trade(db: AsyncSession, trade_id: uuid.UUID) -> int:
        """
        Deletes every fill of a trade. Does not commit.

        Returns:
            Number of fills deleted
        """
        result = await db.execute(
            delete(TradeFill)
            .where(TradeFill.trade_id == trade_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
