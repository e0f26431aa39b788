"""
CRUD module exports.
"""

from tradeboard.db.crud.user import UserCRUD
from tradeboard.db.crud.trade import TradeCRUD
from tradeboard.db.crud.trade_fill import TradeFillCRUD
from tradeboard.db.crud.activity_log import ActivityLogCRUD

__all__ = [
    "UserCRUD",
    "TradeCRUD",
    "TradeFillCRUD",
    "ActivityLogCRUD",
]
