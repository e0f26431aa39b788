"""
API route module exports.
"""

from tradeboard.api.routes.trades import router as trades_router
from tradeboard.api.routes.leaderboard import router as leaderboard_router
from tradeboard.api.routes.user import router as user_router
from tradeboard.api.routes.users import router as users_router

__all__ = [
    "trades_router",
    "leaderboard_router",
    "user_router",
    "users_router",
]
