"""Payment records stored in a member's ``app_metadata``.

Each flavour keeps one blob under ``<prefix>_payment``::

    {"method": "manual", "period_start": "2024-01-01", "interval": "year",
     "interval_count": 1, "amount": 30000, "currency": "SEK"}

The blob is either absent (never paid, or cleared by an admin) or complete.
Nothing read from storage is trusted: ``parse_payment`` is the only way to
turn a blob into a ``PaymentFact`` and it never raises.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from memberportal.core.normalize import normalize_currency, parse_date, parse_int
from memberportal.core.settings import S
from memberportal.core.time import today as current_date
from memberportal.models import FeeState
from memberportal.services.intervals import Interval, has_period_end, is_currently_paid, normalize_amount, period_end


class Flavour(str, Enum):
    MEMBERSHIP = "membership"
    HOUSECARD = "housecard"

    @property
    def prefix(self) -> str:
        return "membfee" if self is Flavour.MEMBERSHIP else "housecard"

    @property
    def payment_key(self) -> str:
        return f"{self.prefix}_payment"

    @property
    def reporting_interval(self) -> Interval:
        return Interval.YEAR if self is Flavour.MEMBERSHIP else Interval.MONTH

    @classmethod
    def parse(cls, value: Any) -> Optional["Flavour"]:
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        value = value.strip().lower()
        for flavour in cls:
            if value in (flavour.value, flavour.prefix):
                return flavour
        return None


class PaymentMethod(str, Enum):
    MANUAL = "manual"
    STRIPE = "stripe"


METHOD_NAMES = {
    PaymentMethod.MANUAL.value: "Manual",
    PaymentMethod.STRIPE.value: "Stripe",
}


@dataclass(frozen=True)
class PaymentFact:
    method: Optional[str]
    period_start: date
    interval: Interval
    interval_count: int
    amount: int
    currency: str

    def to_item(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "period_start": self.period_start.isoformat(),
            "interval": self.interval.value,
            "interval_count": self.interval_count,
            "amount": self.amount,
            "currency": self.currency,
        }


@dataclass(frozen=True)
class PaymentValidationError:
    field: str
    message: str


ParseResult = Tuple[Optional[PaymentFact], Optional[PaymentValidationError]]


def parse_payment(raw: Any) -> ParseResult:
    if not isinstance(raw, Mapping) or raw.get("period_start") is None:
        return None, None

    start = parse_date(raw.get("period_start"))
    if start is None:
        return None, PaymentValidationError("period_start", "invalid period start")

    interval = Interval.parse(raw.get("interval"))
    if interval is None:
        return None, PaymentValidationError("interval", "invalid interval")

    count = parse_int(raw.get("interval_count"))
    if count is None or count <= 0 or not has_period_end(start, interval, count):
        return None, PaymentValidationError("interval_count", "invalid interval count")

    amount = parse_int(raw.get("amount"))
    if amount is None or amount < 0:
        return None, PaymentValidationError("amount", "invalid amount")

    currency = normalize_currency(raw.get("currency"))
    if currency is None:
        return None, PaymentValidationError("currency", "missing currency")

    method = raw.get("method")
    return PaymentFact(
        method=str(method) if method else None,
        period_start=start,
        interval=interval,
        interval_count=count,
        amount=amount,
        currency=currency,
    ), None


def method_display_name(method: Optional[str]) -> str:
    if not method:
        return "(none)"
    return METHOD_NAMES.get(method, f"(unknown: {method})")


def derive_fee_state(raw: Any, reporting_interval: Interval | str, today: Optional[date] = None) -> FeeState:
    reporting = Interval(reporting_interval)
    fact, err = parse_payment(raw)

    if err is not None:
        return FeeState(
            paid=False,
            normalized_interval=reporting.value,
            currency=S.default_currency,
            error=True,
            error_message=err.message,
        )

    if fact is None:
        return FeeState(
            paid=False,
            method_name="(none)",
            normalized_interval=reporting.value,
            currency=S.default_currency,
        )

    end = period_end(fact.period_start, fact.interval, fact.interval_count)
    return FeeState(
        paid=is_currently_paid(end, today or current_date()),
        period_start=fact.period_start,
        period_end=end,
        interval=fact.interval.value,
        interval_count=fact.interval_count,
        method=fact.method,
        method_name=method_display_name(fact.method),
        amount=fact.amount,
        normalized_amount=normalize_amount(fact.amount, fact.interval, fact.interval_count, reporting),
        normalized_interval=reporting.value,
        currency=fact.currency,
    )


def fee_state_for(app_metadata: Optional[Mapping[str, Any]], flavour: Flavour, today: Optional[date] = None) -> FeeState:
    raw = app_metadata.get(flavour.payment_key) if isinstance(app_metadata, Mapping) else None
    return derive_fee_state(raw, flavour.reporting_interval, today=today)


def fee_states(app_metadata: Optional[Mapping[str, Any]], today: Optional[date] = None) -> Dict[Flavour, FeeState]:
    return {flavour: fee_state_for(app_metadata, flavour, today=today) for flavour in Flavour}
