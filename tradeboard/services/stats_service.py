"""
Stats Service - aggregates closed trades into win rate, ROI, P&L and streaks.
Used for personal stats, company stats and leaderboard entries.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tradeboard.db.crud import TradeCRUD, UserCRUD
from tradeboard.models.trade import Trade, TradeOutcome, TradeSide, TradeStatus
from tradeboard.models.user import User, Role, COMPANY_STATS_ROLES
from tradeboard.services import pnl
from tradeboard.services.streaks import compute_streaks

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class StatsEntry:
    """Aggregated statistics for a user or a company. Money fields are exact."""
    total_trades: int = 0
    win_count: int = 0
    loss_count: int = 0
    breakeven_count: int = 0
    win_rate: Decimal = pnl.ZERO
    roi: Decimal = pnl.ZERO
    net_pnl: Decimal = pnl.ZERO
    total_buy_notional: Decimal = pnl.ZERO
    total_sell_notional: Decimal = pnl.ZERO
    average_pnl: Decimal = pnl.ZERO
    current_streak: int = 0
    longest_streak: int = 0


def _as_utc(value: Optional[datetime]) -> datetime:
    # SQLite hands back naive datetimes
    if value is None:
        return _EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def closure_order(trade: Trade) -> tuple:
    """Chronological key: closed_at, then created_at, then id."""
    return (_as_utc(trade.closed_at), _as_utc(trade.created_at), str(trade.id))


def aggregate_stats(trades: Iterable[Trade]) -> StatsEntry:
    """
    Aggregate CLOSED, price-verified BUY trades.

    Trades in any other state are ignored, so callers may pass a mixed
    list. Ratios fall back to 0 when their denominator is 0.

    Args:
        trades: Trades in any order

    Returns:
        StatsEntry with counts, sums, ratios and streaks
    """
    closed = sorted(
        (
            t for t in trades
            if t.status == TradeStatus.CLOSED.value
            and t.price_verified
            and t.side == TradeSide.BUY.value
        ),
        key=closure_order
    )

    stats = StatsEntry()
    outcomes = []
    for trade in closed:
        outcome = trade.outcome
        outcomes.append(outcome)
        if outcome == TradeOutcome.WIN.value:
            stats.win_count += 1
        elif outcome == TradeOutcome.LOSS.value:
            stats.loss_count += 1
        else:
            stats.breakeven_count += 1

        stats.total_buy_notional += pnl.to_decimal(trade.total_buy_notional)
        stats.total_sell_notional += pnl.to_decimal(trade.total_sell_notional)
        stats.net_pnl += pnl.to_decimal(trade.net_pnl)

    stats.total_trades = len(closed)
    stats.win_rate = pnl.percentage(
        Decimal(stats.win_count),
        Decimal(stats.win_count + stats.loss_count)
    )
    stats.roi = pnl.percentage(stats.net_pnl, stats.total_buy_notional)
    if stats.total_trades:
        stats.average_pnl = stats.net_pnl / stats.total_trades
    stats.current_streak, stats.longest_streak = compute_streaks(outcomes)

    return stats


class StatsService:
    """
    Loads trades for a scope and aggregates them.

    Scopes:
    - a single user within their current company
    - a company: every member with an owner or admin role
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def user_stats(self, user: User, closed_since: Optional[datetime] = None) -> StatsEntry:
        """Personal stats for a user in their current company."""
        trades = await TradeCRUD.get_closed_verified(
            self.db, [user.id], user.company_id, closed_since
        )
        return aggregate_stats(trades)

    async def company_member_ids(self, company_id: str) -> list:
        """Ids of the members whose trades count towards company stats."""
        return await UserCRUD.get_member_ids(self.db, company_id, COMPANY_STATS_ROLES)

    async def company_stats(
        self,
        company_id: str,
        closed_since: Optional[datetime] = None
    ) -> StatsEntry:
        """
        Company-wide stats across owners and admins.

        Args:
            company_id: Company scope
            closed_since: Only count trades closed at or after this time

        Returns:
            Aggregated StatsEntry
        """
        member_ids = await self.company_member_ids(company_id)
        trades = await TradeCRUD.get_closed_verified(
            self.db, member_ids, company_id, closed_since
        )
        logger.debug(
            f"Aggregating {len(trades)} trades from {len(member_ids)} members "
            f"for company {company_id}"
        )
        return aggregate_stats(trades)

    async def get_user_stats(self, user: User) -> dict[str, Any]:
        """
        Personal stats, plus company stats for owners.

        Returns:
            {"personal_stats": StatsEntry, "company_stats": StatsEntry | None}
        """
        personal = await self.user_stats(user)

        company = None
        if user.role in (Role.COMPANY_OWNER.value, Role.OWNER.value) and user.company_id:
            company = await self.company_stats(user.company_id)

        return {"personal_stats": personal, "company_stats": company}
