"""
Leaderboard Service - ranks opted-in companies by ROI.

Ranking is global and happens before search, display sorting and
pagination, so a company keeps its rank no matter how the list is
filtered or paged.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tradeboard.config import get_settings
from tradeboard.core.cache import InMemoryCache, leaderboard_cache, make_cache_key
from tradeboard.core.exceptions import ValidationError
from tradeboard.db.crud import UserCRUD
from tradeboard.models.user import User
from tradeboard.schemas.common import DEFAULT_PAGE_SIZE, normalize_paging
from tradeboard.services.stats_service import StatsEntry, StatsService

logger = logging.getLogger(__name__)

RANGE_WINDOWS: dict[str, Optional[timedelta]] = {
    "all": None,
    "30d": timedelta(days=30),
    "7d": timedelta(days=7),
}

SORT_FIELDS = ("rank", "roi", "win_rate", "net_pnl", "plays", "current_streak")


@dataclass
class LeaderboardEntry:
    """One company's row on the leaderboard."""
    company_id: str
    alias: str
    stats: StatsEntry
    display_name: Optional[str] = None
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    company_name: Optional[str] = None
    company_description: Optional[str] = None
    membership_plans: list[dict[str, Any]] = field(default_factory=list)
    rank: int = 0

    def matches(self, term: str) -> bool:
        """Case-insensitive substring match over the public identity."""
        term = term.lower()
        return any(
            term in value.lower()
            for value in (self.alias, self.display_name, self.username, self.company_name)
            if value
        )


def ranking_key(entry: LeaderboardEntry) -> tuple:
    """ROI desc, then win rate desc, then company id asc."""
    return (-entry.stats.roi, -entry.stats.win_rate, entry.company_id)


def rank_entries(entries: list[LeaderboardEntry]) -> list[LeaderboardEntry]:
    """
    Sort entries into a total order and assign ranks 1..N.

    Company ids are unique, so no two entries ever share a rank.
    """
    ranked = sorted(entries, key=ranking_key)
    for position, entry in enumerate(ranked, start=1):
        entry.rank = position
    return ranked


def filter_entries(entries: list[LeaderboardEntry], search: Optional[str]) -> list[LeaderboardEntry]:
    """Apply the search term without renumbering."""
    term = (search or "").strip()
    if not term:
        return entries
    return [e for e in entries if e.matches(term)]


def sort_entries(entries: list[LeaderboardEntry], sort: str = "rank") -> list[LeaderboardEntry]:
    """
    Reorder rows for display. Ranks are never changed; ties fall back
    to rank.
    """
    if sort == "rank":
        return sorted(entries, key=lambda e: e.rank)

    def value(entry: LeaderboardEntry):
        if sort == "plays":
            return entry.stats.total_trades
        return getattr(entry.stats, sort)

    return sorted(entries, key=lambda e: (-value(e), e.rank))


def paginate(items: list, page: int, page_size: int) -> tuple[list, int]:
    """
    Slice one page out of items.

    Returns:
        Tuple of (page items, total pages). total_pages is at least 1.
    """
    total_pages = max(1, math.ceil(len(items) / page_size))
    start = (page - 1) * page_size
    return items[start:start + page_size], total_pages


def affiliate_plans(plans: Optional[list], affiliate_code: Optional[str]) -> list[dict[str, Any]]:
    """
    Copy membership plans, adding an affiliate_link next to each url.
    The stored url is left untouched; affiliate_link is None without a code.
    """
    result = []
    for plan in plans or []:
        plan = dict(plan)
        url = plan.get("url")
        link = None
        if url and affiliate_code:
            separator = "&" if "?" in url else "?"
            link = f"{url}{separator}a={affiliate_code}"
        plan["affiliate_link"] = link
        result.append(plan)
    return result


class LeaderboardService:
    """
    Builds the public leaderboard.

    Process:
    1. Compute stats for every opted-in company
    2. Rank globally
    3. Search, then display sort, then paginate
    """

    def __init__(self, db: AsyncSession, cache: InMemoryCache | None = None):
        self.db = db
        self.cache = cache if cache is not None else leaderboard_cache
        self.settings = get_settings()

    async def _build_entry(self, owner: User, closed_since: Optional[datetime]) -> LeaderboardEntry:
        stats = await StatsService(self.db).company_stats(owner.company_id, closed_since)
        return LeaderboardEntry(
            company_id=owner.company_id,
            alias=owner.alias,
            display_name=owner.display_name,
            username=owner.username,
            avatar_url=owner.avatar_url,
            company_name=owner.company_name,
            company_description=owner.company_description,
            membership_plans=affiliate_plans(owner.membership_plans, self.settings.affiliate_code),
            stats=stats,
        )

    async def ranked_entries(self, range_: str = "all") -> list[LeaderboardEntry]:
        """
        Every eligible company, ranked. Served from cache when fresh.

        Raises:
            ValidationError: Unknown range
        """
        if range_ not in RANGE_WINDOWS:
            raise ValidationError(
                f"Invalid range '{range_}'. Must be one of: {', '.join(RANGE_WINDOWS)}"
            )

        cache_key = make_cache_key("leaderboard", range=range_)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return cached

        window = RANGE_WINDOWS[range_]
        closed_since = datetime.now(timezone.utc) - window if window else None

        owners = await UserCRUD.get_leaderboard_owners(self.db)

        # One row per company even if several owner rows opted in
        by_company: dict[str, User] = {}
        for owner in sorted(owners, key=lambda u: str(u.id)):
            by_company.setdefault(owner.company_id, owner)

        entries = [
            await self._build_entry(owner, closed_since)
            for owner in by_company.values()
        ]
        ranked = rank_entries(entries)

        await self.cache.set(cache_key, ranked)
        logger.info(f"Leaderboard computed: {len(ranked)} companies, range={range_}")
        return ranked

    async def get_leaderboard(
        self,
        range_: str = "all",
        page: Optional[int] = 1,
        page_size: Optional[int] = DEFAULT_PAGE_SIZE,
        search: Optional[str] = None,
        sort: str = "rank",
    ) -> dict[str, Any]:
        """
        Ranked, searched, sorted and paginated leaderboard.

        Args:
            range_: all, 30d or 7d (by trade closure time)
            page: 1-based page number
            page_size: Rows per page, clamped to 1..100
            search: Optional case-insensitive search term
            sort: Display order, one of SORT_FIELDS

        Returns:
            Dict with entries, total, total_pages, page, page_size, range
        """
        if sort not in SORT_FIELDS:
            raise ValidationError(
                f"Invalid sort '{sort}'. Must be one of: {', '.join(SORT_FIELDS)}"
            )
        page, page_size = normalize_paging(page, page_size)

        ranked = await self.ranked_entries(range_)
        rows = sort_entries(filter_entries(ranked, search), sort)
        page_rows, total_pages = paginate(rows, page, page_size)

        return {
            "entries": page_rows,
            "total": len(rows),
            "total_pages": total_pages,
            "page": page,
            "page_size": page_size,
            "range": range_,
        }
