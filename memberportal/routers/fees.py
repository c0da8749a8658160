from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from memberportal.auth.deps import require_admin
from memberportal.metrics import record_fee_update
from memberportal.models import FeeUpdateReq, MemberOut
from memberportal.services.audit import audit_event
from memberportal.services.fee_mutation import CLEAR, validate_fee_mutation
from memberportal.services.identity import Auth0ManagementClient, get_identity_store, store_errors
from memberportal.services.members import member_from_user
from memberportal.services.payments import Flavour

router = APIRouter(prefix="/api", tags=["fees"])


def admin_update_user_fee(
    flavour: Flavour,
    user_id: str,
    body: FeeUpdateReq,
    req: Request,
    ctx,
    store: Auth0ManagementClient,
) -> MemberOut:
    payment, err = validate_fee_mutation(body.model_dump())
    if err is not None:
        audit_event("fee_update", ctx["user_sub"], req, outcome="rejected", target_user=user_id, flavour=flavour.value, field=err.field)
        raise HTTPException(400, err.message)

    action = "clear" if payment is CLEAR else "set"
    value = None if payment is CLEAR else payment
    with store_errors("updating user"):
        user = store.update_app_metadata(user_id, {flavour.payment_key: value})

    record_fee_update(flavour.value, action)
    audit_event("fee_update", ctx["user_sub"], req, outcome="success", target_user=user_id, flavour=flavour.value, action=action)
    return member_from_user(user)


@router.patch("/updateUserFee/{flavour}/{user_id}", response_model=MemberOut)
def update_user_fee(
    flavour: str,
    user_id: str,
    body: FeeUpdateReq,
    req: Request,
    ctx=Depends(require_admin),
    store: Auth0ManagementClient = Depends(get_identity_store),
) -> MemberOut:
    parsed = Flavour.parse(flavour)
    if parsed is None:
        raise HTTPException(400, "Invalid fee flavour")
    return admin_update_user_fee(parsed, user_id, body, req, ctx, store)


@router.patch("/updateUserMembership/{user_id}", response_model=MemberOut)
def update_user_membership(
    user_id: str,
    body: FeeUpdateReq,
    req: Request,
    ctx=Depends(require_admin),
    store: Auth0ManagementClient = Depends(get_identity_store),
) -> MemberOut:
    return admin_update_user_fee(Flavour.MEMBERSHIP, user_id, body, req, ctx, store)


@router.patch("/updateUserHousecard/{user_id}", response_model=MemberOut)
def update_user_housecard(
    user_id: str,
    body: FeeUpdateReq,
    req: Request,
    ctx=Depends(require_admin),
    store: Auth0ManagementClient = Depends(get_identity_store),
) -> MemberOut:
    return admin_update_user_fee(Flavour.HOUSECARD, user_id, body, req, ctx, store)
