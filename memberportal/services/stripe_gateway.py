from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

import stripe
from fastapi import HTTPException

from memberportal.core.settings import S
from memberportal.services.payments import Flavour

logger = logging.getLogger(__name__)


def to_plain(obj: Any) -> Dict[str, Any]:
    if type(obj) is dict:
        return obj
    return json.loads(str(obj))


class StripeGateway:
    """Stripe calls for one flavour's account.

    Membership and housecard fees are collected by different legal entities,
    so each flavour has its own secret key.
    """

    def __init__(self, flavour: Flavour, api_key: str) -> None:
        self.flavour = flavour
        self.api_key = api_key

    def retrieve_session(self, session_id: str) -> Dict[str, Any]:
        return stripe.checkout.Session.retrieve(session_id, api_key=self.api_key)

    def create_session(self, **params: Any) -> Dict[str, Any]:
        return stripe.checkout.Session.create(api_key=self.api_key, **params)

    def retrieve_subscription(self, subscription_id: str) -> Dict[str, Any]:
        return stripe.Subscription.retrieve(subscription_id, api_key=self.api_key)

    def list_subscriptions(self, customer_id: Optional[str]) -> List[Dict[str, Any]]:
        if not customer_id:
            return []
        resp = stripe.Subscription.list(customer=customer_id, api_key=self.api_key)
        return [to_plain(s) for s in resp.data]

    def list_prices(self) -> List[Dict[str, Any]]:
        return [to_plain(p) for p in stripe.Price.list(limit=100, api_key=self.api_key).data]

    def list_products(self) -> List[Dict[str, Any]]:
        return [to_plain(p) for p in stripe.Product.list(limit=100, api_key=self.api_key).data]


def _secret_key(flavour: Flavour) -> str:
    if flavour is Flavour.MEMBERSHIP:
        return S.stripe_secret_key_membfee
    return S.stripe_secret_key_housecard


def get_gateway(flavour: Flavour) -> StripeGateway:
    key = _secret_key(flavour)
    if not key:
        raise HTTPException(501, f"Stripe is not configured for {flavour.value}")
    return StripeGateway(flavour, key)


@contextmanager
def stripe_errors(action: str) -> Iterator[None]:
    try:
        yield
    except stripe.StripeError as exc:
        logger.error("stripe error while %s: %s", action, exc)
        raise HTTPException(502, f"Error {action}") from exc
