# Models module
from tradeboard.models.user import User, Role
from tradeboard.models.trade import Trade, TradeSide, TradeStatus, TradeOutcome, OptionType
from tradeboard.models.trade_fill import TradeFill
from tradeboard.models.activity_log import ActivityLog

__all__ = [
    "User",
    "Role",
    "Trade",
    "TradeSide",
    "TradeStatus",
    "TradeOutcome",
    "OptionType",
    "TradeFill",
    "ActivityLog",
]
