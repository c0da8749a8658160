from __future__ import annotations

import re
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, List, Optional

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
ISO_TIMESTAMP_RE = re.compile(r"^\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}")

# Larger values are never real counts or minor-unit amounts.
MAX_ABS_INT = 10**18


def parse_int(value: Any) -> Optional[int]:
    """Coerce a loosely typed stored/request value to int, or None."""
    parsed = _coerce_int(value)
    if parsed is None or abs(parsed) >= MAX_ABS_INT:
        return None
    return parsed


def _coerce_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        try:
            if value == int(value):
                return int(value)
        except (ValueError, OverflowError, ArithmeticError):
            return None
        return None
    if isinstance(value, str):
        s = value.strip()
        if not re.fullmatch(r"[+-]?\d{1,19}", s):
            return None
        return int(s)
    return None


def parse_date(value: Any) -> Optional[date]:
    """Accept ``YYYY-MM-DD`` or an ISO timestamp (taken as its UTC date)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    s = value.strip()
    try:
        if ISO_DATE_RE.match(s):
            return date.fromisoformat(s)
        if ISO_TIMESTAMP_RE.match(s):
            parsed = datetime.fromisoformat(s.replace("Z", "+00:00"))
            if parsed.tzinfo is not None:
                parsed = parsed.astimezone(timezone.utc)
            return parsed.date()
    except (ValueError, OverflowError):
        return None
    return None


def normalize_currency(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    s = value.strip().upper()
    return s or None


def split_roles(roles: Any) -> List[str]:
    if not isinstance(roles, str) or not roles:
        return []
    return [r for r in roles.replace(" ", "").split(",") if r]
