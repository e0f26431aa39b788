"""
Stats and leaderboard schemas.
"""

from pydantic import BaseModel

from tradeboard.schemas.common import Money
from tradeboard.schemas.users import MembershipPlan, UserProfileResponse


class StatsResponse(BaseModel):
    """
    Aggregated performance for a user or company.
    """
    total_trades: int
    win_count: int
    loss_count: int
    breakeven_count: int
    win_rate: Money
    roi: Money
    net_pnl: Money
    total_buy_notional: Money
    total_sell_notional: Money
    average_pnl: Money
    current_streak: int
    longest_streak: int

    model_config = {"from_attributes": True}


class UserStatsResponse(BaseModel):
    """
    GET /user payload: profile plus stats.
    company_stats is only present for owners.
    """
    user: UserProfileResponse
    personal_stats: StatsResponse
    company_stats: StatsResponse | None = None


class LeaderboardPlanResponse(MembershipPlan):
    """
    A membership plan as shown on the leaderboard.
    """
    affiliate_link: str | None = None


class LeaderboardEntryResponse(BaseModel):
    """
    One ranked company.
    """
    rank: int
    company_id: str
    alias: str
    display_name: str | None = None
    username: str | None = None
    avatar_url: str | None = None
    company_name: str | None = None
    company_description: str | None = None
    membership_plans: list[LeaderboardPlanResponse] = []
    roi: Money
    win_rate: Money
    net_pnl: Money
    plays: int
    win_count: int
    loss_count: int
    breakeven_count: int
    current_streak: int
    longest_streak: int

    @classmethod
    def from_entry(cls, entry) -> "LeaderboardEntryResponse":
        stats = entry.stats
        return cls(
            rank=entry.rank,
            company_id=entry.company_id,
            alias=entry.alias,
            display_name=entry.display_name,
            username=entry.username,
            avatar_url=entry.avatar_url,
            company_name=entry.company_name,
            company_description=entry.company_description,
            membership_plans=entry.membership_plans,
            roi=stats.roi,
            win_rate=stats.win_rate,
            net_pnl=stats.net_pnl,
            plays=stats.total_trades,
            win_count=stats.win_count,
            loss_count=stats.loss_count,
            breakeven_count=stats.breakeven_count,
            current_streak=stats.current_streak,
            longest_streak=stats.longest_streak,
        )


class LeaderboardResponse(BaseModel):
    """
    Paginated leaderboard.
    """
    entries: list[LeaderboardEntryResponse]
    total: int
    total_pages: int
    page: int
    page_size: int
    range: str
