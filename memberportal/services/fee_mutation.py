from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from memberportal.core.normalize import ISO_DATE_RE, normalize_currency, parse_date, parse_int
from memberportal.services.intervals import Interval, has_period_end
from memberportal.services.payments import PaymentMethod


class Clear:
    """Erase the stored payment record instead of writing one."""

    def __repr__(self) -> str:
        return "CLEAR"


CLEAR = Clear()


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


MutationResult = Tuple[Optional[Union[Dict[str, Any], Clear]], Optional[FieldError]]


def _fail(field: str, message: str) -> MutationResult:
    return None, FieldError(field, message)


def validate_fee_mutation(body: Mapping[str, Any]) -> MutationResult:
    """Validate an admin's manual fee update.

    Returns ``(blob, None)`` with the payment blob to store, ``(CLEAR, None)``
    when the fee should be marked unpaid, or ``(None, FieldError)`` for the
    first field that fails. Period starts may lie in the past.
    """
    if not isinstance(body, Mapping):
        return _fail("payed", "Invalid value for payed")

    payed = body.get("payed")
    if not isinstance(payed, bool):
        return _fail("payed", "Invalid value for payed")
    if payed is False:
        return CLEAR, None

    method = body.get("method")
    if not method:
        return _fail("method", "Payment method is required")
    if method not in (PaymentMethod.MANUAL.value, PaymentMethod.STRIPE.value):
        return _fail("method", f"Invalid payment method {method}")

    period_start = body.get("periodStart")
    if not period_start:
        return _fail("periodStart", "Period start date is required")
    if not isinstance(period_start, str) or not ISO_DATE_RE.match(period_start):
        return _fail("periodStart", "Period start date must be in format YYYY-MM-DD")
    start = parse_date(period_start)
    if start is None:
        return _fail("periodStart", "Period start date is not a valid date")

    interval = Interval.parse(body.get("interval"))
    if interval is None:
        return _fail("interval", f"Invalid interval {body.get('interval')}")

    interval_count = parse_int(body.get("intervalCount"))
    if interval_count is None or interval_count <= 0 or not has_period_end(start, interval, interval_count):
        return _fail("intervalCount", "Invalid interval count")

    amount = parse_int(body.get("amount"))
    if amount is None or amount < 0:
        return _fail("amount", "Invalid amount")

    currency = normalize_currency(body.get("currency"))
    if currency is None:
        return _fail("currency", "No currency specified")

    return {
        "method": method,
        "period_start": period_start,
        "interval": interval.value,
        "interval_count": interval_count,
        "amount": amount,
        "currency": currency,
    }, None
