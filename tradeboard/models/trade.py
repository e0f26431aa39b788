"""
Trade model for BUY option orders and their settlement state.
Each trade is settled by one or more SELL fills recorded in trade_fills.
"""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from sqlalchemy import String, Integer, Boolean, Date, DateTime, Numeric, ForeignKey, Index, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tradeboard.db.database import Base


class TradeSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class TradeStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    REJECTED = "REJECTED"


class TradeOutcome(str, Enum):
    WIN = "WIN"
    LOSS = "LOSS"
    BREAKEVEN = "BREAKEVEN"


class OptionType(str, Enum):
    CALL = "C"
    PUT = "P"


class Trade(Base):
    """
    A BUY order for an option contract.

    Tracks remaining open contracts and accumulated notionals.
    Outcome and net P&L are only set once the trade is CLOSED.
    """

    __tablename__ = "trades"
    __table_args__ = (
        Index("idx_trades_user_company", "user_id", "company_id"),
        Index("idx_trades_company_status", "company_id", "status"),
        Index("idx_trades_closed_at", "closed_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )
    company_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False
    )
    side: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=TradeSide.BUY.value
    )

    ticker: Mapped[str] = mapped_column(
        String(10),
        nullable=False
    )
    strike: Mapped[Decimal] = mapped_column(
        Numeric(12, 4),
        nullable=False
    )
    option_type: Mapped[str] = mapped_column(
        String(1),
        nullable=False
    )
    expiry_date: Mapped[date] = mapped_column(
        Date,
        nullable=False
    )
    option_contract: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True
    )

    contracts: Mapped[int] = mapped_column(
        Integer,
        nullable=False
    )
    fill_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 4),
        nullable=False
    )
    price_verified: Mapped[bool] = mapped_column(
        Boolean,
        default=False
    )
    ref_price: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 4),
        nullable=True
    )
    ref_timestamp: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    status: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=TradeStatus.OPEN.value
    )
    remaining_open_contracts: Mapped[int] = mapped_column(
        Integer,
        nullable=False
    )
    total_buy_notional: Mapped[Decimal] = mapped_column(
        Numeric(18, 4),
        default=Decimal("0")
    )
    total_sell_notional: Mapped[Decimal] = mapped_column(
        Numeric(18, 4),
        default=Decimal("0")
    )

    outcome: Mapped[str | None] = mapped_column(
        String(10),
        nullable=True
    )
    net_pnl: Mapped[Decimal | None] = mapped_column(
        Numeric(18, 4),
        nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        onupdate=lambda: datetime.now(timezone.utc)
    )
    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    user: Mapped["User"] = relationship(
        "User",
        back_populates="trades"
    )
    fills: Mapped[list["TradeFill"]] = relationship(
        "TradeFill",
        back_populates="trade",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TradeFill.created_at"
    )

    def __repr__(self) -> str:
        return f"<Trade(id={self.id}, ticker={self.ticker}, status={self.status})>"
