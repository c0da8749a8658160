from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request

from memberportal.auth.deps import require_user
from memberportal.core.settings import S
from memberportal.metrics import record_reconciliation
from memberportal.models import CheckoutSessionResp, MemberOut, PricesResp, SubscriptionsResp
from memberportal.services.audit import audit_event
from memberportal.services.checkout import (
    billing_link,
    checkout_session_params,
    get_field,
    payment_from_subscription,
    reconcile_session,
    session_key,
    status_key,
)
from memberportal.services.identity import Auth0ManagementClient, get_identity_store, store_errors
from memberportal.services.members import member_from_user
from memberportal.services.payments import Flavour
from memberportal.services.stripe_gateway import get_gateway, stripe_errors

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["checkout"])


def parse_flavour(flavour: str) -> Flavour:
    parsed = Flavour.parse(flavour)
    if parsed is None:
        raise HTTPException(400, "Invalid fee flavour")
    return parsed


def success_url(flavour: Flavour) -> str:
    return S.stripe_success_url or f"https://{S.web_host}/afterpurchase?flavour={flavour.prefix}"


def cancel_url() -> str:
    return S.stripe_cancel_url or f"https://{S.web_host}/subscription"


@router.get("/prices", response_model=PricesResp)
def list_prices(flavour: str, ctx=Depends(require_user)) -> PricesResp:
    gateway = get_gateway(parse_flavour(flavour))
    with stripe_errors("listing prices"):
        return PricesResp(prices=gateway.list_prices(), products=gateway.list_products())


@router.get("/subscriptions", response_model=SubscriptionsResp)
def list_subscriptions(
    ctx=Depends(require_user),
    store: Auth0ManagementClient = Depends(get_identity_store),
) -> SubscriptionsResp:
    with store_errors("getting user"):
        user = store.get_user(ctx["user_sub"])
    app_metadata = user.get("app_metadata") or {}

    subs: Dict[Flavour, Any] = {}
    for flavour in Flavour:
        gateway = get_gateway(flavour)
        with stripe_errors("listing subscriptions"):
            subs[flavour] = gateway.list_subscriptions(billing_link(app_metadata, flavour).customer_id)
    return SubscriptionsResp(membfeeSubs=subs[Flavour.MEMBERSHIP], housecardSubs=subs[Flavour.HOUSECARD])


@router.post("/create-checkout-session", response_model=CheckoutSessionResp)
def create_checkout_session(
    flavour: str,
    price: str,
    req: Request,
    ctx=Depends(require_user),
    store: Auth0ManagementClient = Depends(get_identity_store),
) -> CheckoutSessionResp:
    parsed = parse_flavour(flavour)
    if not price:
        raise HTTPException(400, "price is required")
    gateway = get_gateway(parsed)

    user_id = ctx["user_sub"]
    with store_errors("getting user"):
        user = store.get_user(user_id)
    link = billing_link(user.get("app_metadata"), parsed)

    params = checkout_session_params(
        parsed,
        price,
        user_id,
        link,
        user.get("email"),
        success_url=success_url(parsed),
        cancel_url=cancel_url(),
    )
    with stripe_errors("creating checkout session"):
        session = gateway.create_session(**params)

    with store_errors("updating user"):
        store.update_app_metadata(user_id, {session_key(parsed): session["id"]})
    audit_event("checkout_session_create", user_id, req, outcome="success", flavour=parsed.value, price=price)
    return CheckoutSessionResp(id=session["id"])


@router.get("/check-stripe-session", response_model=MemberOut)
def check_stripe_session(
    flavour: str,
    req: Request,
    ctx=Depends(require_user),
    store: Auth0ManagementClient = Depends(get_identity_store),
) -> MemberOut:
    parsed = parse_flavour(flavour)
    gateway = get_gateway(parsed)

    user_id = ctx["user_sub"]
    with store_errors("getting user"):
        user = store.get_user(user_id)
    link = billing_link(user.get("app_metadata"), parsed)
    if not link.session_id:
        raise HTTPException(404, "No checkout session to check")

    with stripe_errors("retrieving checkout session"):
        session = gateway.retrieve_session(link.session_id)
    changes = reconcile_session(parsed, link, session)

    subscription_id = get_field(session, "subscription")
    if changes[status_key(parsed)] == "paid" and subscription_id:
        if not isinstance(subscription_id, str):
            subscription_id = get_field(subscription_id, "id")
        with stripe_errors("retrieving subscription"):
            subscription = gateway.retrieve_subscription(subscription_id)
        payment = payment_from_subscription(subscription)
        if payment is not None:
            changes[parsed.payment_key] = payment
        else:
            logger.warning("subscription %s for %s has no usable billing period", subscription_id, user_id)

    with store_errors("updating user"):
        user = store.update_app_metadata(user_id, changes)
    record_reconciliation(parsed.value, changes[status_key(parsed)])
    audit_event(
        "checkout_session_check",
        user_id,
        req,
        outcome="success",
        flavour=parsed.value,
        status=changes[status_key(parsed)],
    )
    return member_from_user(user)
