"""
US options market hours guard.
"""

from datetime import datetime, time
from zoneinfo import ZoneInfo

from tradeboard.core.exceptions import ValidationError

MARKET_TZ = ZoneInfo("America/New_York")
MARKET_OPEN = time(9, 30)
MARKET_CLOSE = time(16, 30)


def is_market_open(now: datetime | None = None) -> bool:
    """
    True between 09:30 and 16:30 New York time on weekdays.
    Naive datetimes are taken to be UTC.
    """
    now = now or datetime.now(MARKET_TZ)
    if now.tzinfo is None:
        now = now.replace(tzinfo=ZoneInfo("UTC"))
    local = now.astimezone(MARKET_TZ)

    if local.weekday() >= 5:
        return False
    return MARKET_OPEN <= local.time() < MARKET_CLOSE


def ensure_market_open(now: datetime | None = None) -> None:
    """Raise ValidationError outside market hours."""
    if not is_market_open(now):
        raise ValidationError(
            "Trading is only allowed during market hours (09:30-16:30 ET, Mon-Fri)"
        )
