"""
Leaderboard API endpoint.
"""

from typing import Optional

from fastapi import APIRouter, Query

from tradeboard.api.deps import DbSession, LeaderboardCache
from tradeboard.schemas.stats import LeaderboardEntryResponse, LeaderboardResponse
from tradeboard.services.leaderboard import LeaderboardService

router = APIRouter(prefix="/leaderboard", tags=["leaderboard"])


@router.get("", response_model=LeaderboardResponse)
async def get_leaderboard(
    db: DbSession,
    cache: LeaderboardCache,
    range_: str = Query("all", alias="range", description="all, 30d or 7d"),
    page: int = Query(1),
    page_size: int = Query(10),
    search: Optional[str] = Query(None),
    sort: str = Query("rank", description="rank, roi, win_rate, net_pnl, plays or current_streak"),
):
    """
    Companies ranked by ROI, then win rate.
    Ranks are global; search and sort never renumber them.
    """
    result = await LeaderboardService(db, cache).get_leaderboard(
        range_=range_,
        page=page,
        page_size=page_size,
        search=search,
        sort=sort,
    )
    return LeaderboardResponse(
        entries=[LeaderboardEntryResponse.from_entry(e) for e in result["entries"]],
        total=result["total"],
        total_pages=result["total_pages"],
        page=result["page"],
        page_size=result["page_size"],
        range=result["range"],
    )
