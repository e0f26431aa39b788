"""
Trade fill model - the append-only ledger of BUY/SELL executions.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy import String, Integer, Boolean, DateTime, Numeric, ForeignKey, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tradeboard.db.database import Base


class TradeFill(Base):
    """
    A single executed BUY or SELL against a trade.
    Rows are never updated; they are removed only with their trade.
    """

    __tablename__ = "trade_fills"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    trade_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("trades.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    company_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False
    )

    side: Mapped[str] = mapped_column(
        String(10),
        nullable=False
    )
    contracts: Mapped[int] = mapped_column(
        Integer,
        nullable=False
    )
    fill_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 4),
        nullable=False
    )
    notional: Mapped[Decimal] = mapped_column(
        Numeric(18, 4),
        nullable=False
    )

    price_verified: Mapped[bool] = mapped_column(
        Boolean,
        default=True
    )
    ref_price: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 4),
        nullable=True
    )
    ref_timestamp: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now()
    )

    trade: Mapped["Trade"] = relationship(
        "Trade",
        back_populates="fills"
    )

    def __repr__(self) -> str:
        return f"<TradeFill(trade_id={self.trade_id}, side={self.side}, contracts={self.contracts})>"
