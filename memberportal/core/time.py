from __future__ import annotations

import time
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from .settings import S


def now_ts() -> int:
    return int(time.time())


def today(tz_name: Optional[str] = None) -> date:
    """Current calendar date in the reference time zone (UTC unless configured)."""
    name = tz_name or S.reference_timezone
    tz = timezone.utc if name.upper() == "UTC" else ZoneInfo(name)
    return datetime.now(tz).date()


def date_from_epoch(ts: int) -> date:
    return datetime.fromtimestamp(int(ts), tz=timezone.utc).date()
