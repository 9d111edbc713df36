"""Time utilities (Vietnam market time)."""

from datetime import datetime
from zoneinfo import ZoneInfo

from app.config import settings

VN_TZ = ZoneInfo(settings.TIMEZONE)


def now_vn() -> datetime:
    """Current time in the exchange timezone, timezone-aware."""
    return datetime.now(VN_TZ)


def now_vn_naive() -> datetime:
    """
    Current exchange time, returned as naive datetime for DB storage.
    """
    return now_vn().replace(tzinfo=None)
