"""Billing interval arithmetic.

Amounts are rescaled with the fixed ratio 1 year = 12 months. Period ends
use calendar arithmetic: adding months or years keeps the day of month and
carries any days the target month does not have into the following month,
so 2023-01-31 + 1 month is 2023-03-03 and 2024-02-29 + 1 year is 2025-03-01.
"""
from __future__ import annotations

from datetime import date, timedelta
from enum import Enum
from typing import Optional

MONTHS_PER = {"month": 1, "year": 12}


class Interval(str, Enum):
    MONTH = "month"
    YEAR = "year"

    @classmethod
    def parse(cls, value) -> Optional["Interval"]:
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value)
        except ValueError:
            return None


def _months(interval: Interval | str) -> int:
    return MONTHS_PER[Interval(interval).value]


def normalize_amount(
    amount: int | float,
    source_interval: Interval | str,
    source_count: int,
    target_interval: Interval | str,
) -> float:
    if source_count < 1:
        raise ValueError(f"interval count must be positive, got {source_count}")
    source_months = _months(source_interval)
    target_months = _months(target_interval)
    per_cycle = amount / source_count
    if source_months == target_months:
        return per_cycle
    return per_cycle * target_months / source_months


def add_months(d: date, months: int) -> date:
    y = d.year + (d.month - 1 + months) // 12
    m = (d.month - 1 + months) % 12 + 1
    return date(y, m, 1) + timedelta(days=d.day - 1)


def period_end(period_start: date, interval: Interval | str, interval_count: int) -> date:
    return add_months(period_start, _months(interval) * interval_count)


def is_currently_paid(end: date, reference_date: date) -> bool:
    return end >= reference_date


def has_period_end(period_start: date, interval: Interval | str, interval_count: int) -> bool:
    """False when the period would end past ``date.max``."""
    try:
        period_end(period_start, interval, interval_count)
    except (ValueError, OverflowError):
        return False
    return True
