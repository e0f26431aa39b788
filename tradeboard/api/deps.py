"""
FastAPI dependency injection functions.
Provides reusable dependencies for database sessions, caller identity
and external service clients.
"""

from typing import Annotated, TypeAlias

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from tradeboard.core.cache import InMemoryCache, leaderboard_cache
from tradeboard.core.exceptions import AuthenticationError, NotFoundError
from tradeboard.db.crud.user import UserCRUD
from tradeboard.db.database import get_db
from tradeboard.models.user import User
from tradeboard.services.market_data import MarketDataClient
from tradeboard.services.notifier import TradeNotifier, get_notifier


_market_data_client: MarketDataClient | None = None


async def get_current_user(
    db: Annotated[AsyncSession, Depends(get_db)],
    x_user_id: Annotated[str | None, Header()] = None,
    x_company_id: Annotated[str | None, Header()] = None,
) -> User:
    """
    Resolves the caller from the identity headers set by the hosting platform.

    Args:
        db: Database session
        x_user_id: External user id (X-User-Id)
        x_company_id: Current company (X-Company-Id)

    Returns:
        User for this identity within the company

    Raises:
        AuthenticationError: X-User-Id missing
        NotFoundError: No user for this identity in the company
    """
    if not x_user_id:
        raise AuthenticationError()

    user = await UserCRUD.get_by_external_id(db, x_user_id, x_company_id or None)
    if user is None:
        raise NotFoundError("User not found")
    return user


def get_market_data_client() -> MarketDataClient:
    """Shared market data client for the process."""
    global _market_data_client
    if _market_data_client is None:
        _market_data_client = MarketDataClient()
    return _market_data_client


def get_trade_notifier() -> TradeNotifier:
    return get_notifier()


def get_leaderboard_cache() -> InMemoryCache:
    return leaderboard_cache


async def close_clients() -> None:
    """Close shared HTTP clients on shutdown."""
    if _market_data_client is not None:
        await _market_data_client.close()
    await get_notifier().close()


# Type aliases for dependency injection - improves readability and IDE support
DbSession: TypeAlias = Annotated[AsyncSession, Depends(get_db)]
CurrentUser: TypeAlias = Annotated[User, Depends(get_current_user)]
MarketData: TypeAlias = Annotated[MarketDataClient, Depends(get_market_data_client)]
Notifier: TypeAlias = Annotated[TradeNotifier, Depends(get_trade_notifier)]
LeaderboardCache: TypeAlias = Annotated[InMemoryCache, Depends(get_leaderboard_cache)]


__all__ = [
    "get_db",
    "get_current_user",
    "get_market_data_client",
    "get_trade_notifier",
    "get_leaderboard_cache",
    "close_clients",
    "DbSession",
    "CurrentUser",
    "MarketData",
    "Notifier",
    "LeaderboardCache",
]
