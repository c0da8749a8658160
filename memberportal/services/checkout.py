from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from memberportal.core.normalize import normalize_currency, parse_int
from memberportal.core.time import date_from_epoch
from memberportal.services.intervals import Interval
from memberportal.services.payments import Flavour, PaymentMethod

LEGACY_SESSION_KEY = "stripe_session_id"


def get_field(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(key)
    try:
        return obj[key]
    except (KeyError, TypeError, IndexError, AttributeError):
        return getattr(obj, key, None)


def customer_key(flavour: Flavour) -> str:
    return f"stripe_customer_{flavour.prefix}"


def status_key(flavour: Flavour) -> str:
    return f"stripe_status_{flavour.prefix}"


def session_key(flavour: Flavour) -> str:
    return f"stripe_session_{flavour.prefix}"


@dataclass(frozen=True)
class BillingAccountLink:
    customer_id: Optional[str] = None
    session_id: Optional[str] = None
    status: Optional[str] = None


def billing_link(app_metadata: Optional[Mapping[str, Any]], flavour: Flavour) -> BillingAccountLink:
    md = app_metadata if isinstance(app_metadata, Mapping) else {}
    return BillingAccountLink(
        customer_id=md.get(customer_key(flavour)) or None,
        session_id=md.get(session_key(flavour)) or md.get(LEGACY_SESSION_KEY) or None,
        status=md.get(status_key(flavour)) or None,
    )


def reconcile_session(flavour: Flavour, stored_link: BillingAccountLink, session: Any) -> Dict[str, Any]:
    """Map a completed checkout session onto the member's billing link.

    The result is the ``app_metadata`` patch to write. It depends only on the
    session and the stored link, so applying it twice changes nothing.
    """
    customer = get_field(session, "customer")
    if not isinstance(customer, str):
        customer = get_field(customer, "id")
    session_id = get_field(session, "id") or stored_link.session_id
    return {
        customer_key(flavour): customer or stored_link.customer_id,
        status_key(flavour): get_field(session, "payment_status") or stored_link.status,
        session_key(flavour): session_id,
    }


def checkout_session_params(
    flavour: Flavour,
    price_id: str,
    user_id: str,
    link: BillingAccountLink,
    email: Optional[str],
    *,
    success_url: str,
    cancel_url: str,
) -> Dict[str, Any]:
    params: Dict[str, Any] = {
        "payment_method_types": ["card"],
        "client_reference_id": user_id,
        "line_items": [{"price": price_id, "quantity": 1}],
        "mode": "subscription",
        "success_url": success_url,
        "cancel_url": cancel_url,
        "metadata": {"app_user_id": user_id, "flavour": flavour.value},
    }
    if link.customer_id:
        params["customer"] = link.customer_id
    elif email:
        params["customer_email"] = email
    return params


def payment_from_subscription(subscription: Any) -> Optional[Dict[str, Any]]:
    """Translate a Stripe subscription into a stored payment blob.

    Returns None when the subscription has no usable price, uses a billing
    interval other than month/year, or has no current period.
    """
    items = get_field(get_field(subscription, "items"), "data") or []
    if not items:
        return None
    item = items[0]
    price = get_field(item, "price")
    recurring = get_field(price, "recurring")

    interval = Interval.parse(get_field(recurring, "interval"))
    count = parse_int(get_field(recurring, "interval_count"))
    amount = parse_int(get_field(price, "unit_amount"))
    currency = normalize_currency(get_field(price, "currency") or get_field(subscription, "currency"))
    start_ts = get_field(subscription, "current_period_start") or get_field(item, "current_period_start")

    if interval is None or not count or count <= 0 or amount is None or currency is None:
        return None
    start_ts = parse_int(start_ts)
    if start_ts is None:
        return None

    return {
        "method": PaymentMethod.STRIPE.value,
        "period_start": date_from_epoch(start_ts).isoformat(),
        "interval": interval.value,
        "interval_count": count,
        "amount": amount,
        "currency": currency,
    }
