from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Request, Response

from memberportal.auth.deps import require_admin, require_same_user, require_user
from memberportal.core.settings import S
from memberportal.metrics import record_fee_state_error
from memberportal.models import MemberOut, ProfileUpdateReq
from memberportal.services.audit import audit_event
from memberportal.services.export import EXPORT_FILENAME, export_rows, rows_to_csv
from memberportal.services.identity import Auth0ManagementClient, get_identity_store, store_errors
from memberportal.services.members import member_from_user, profile_update, roster

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["members"])


def observe_fee_errors(member: MemberOut) -> MemberOut:
    if member.payments is not None:
        for flavour, state in (("membership", member.payments.membership), ("housecard", member.payments.housecard)):
            if state.error:
                logger.warning("stored %s payment for %s is invalid: %s", flavour, member.user_id, state.error_message)
                record_fee_state_error(flavour)
    return member


@router.get("/getLoggedInUser", response_model=MemberOut)
def get_logged_in_user(
    ctx=Depends(require_user),
    store: Auth0ManagementClient = Depends(get_identity_store),
) -> MemberOut:
    with store_errors("getting user"):
        user = store.get_user(ctx["user_sub"])
    return observe_fee_errors(member_from_user(user))


@router.patch("/updateUserProfile/{user_id}")
def update_user_profile(
    user_id: str,
    body: ProfileUpdateReq,
    req: Request,
    ctx=Depends(require_user),
    store: Auth0ManagementClient = Depends(get_identity_store),
) -> Dict[str, bool]:
    require_same_user(user_id, ctx)
    changes = profile_update(body.model_dump())
    with store_errors("updating user profile"):
        store.update_user(user_id, changes)
    audit_event("profile_update", ctx["user_sub"], req, outcome="success")
    return {"ok": True}


@router.get("/getChangeUserPasswordUrl/{user_id}")
def get_change_password_url(
    user_id: str,
    ctx=Depends(require_user),
    store: Auth0ManagementClient = Depends(get_identity_store),
) -> Dict[str, str]:
    require_same_user(user_id, ctx)
    with store_errors("creating password change ticket"):
        url = store.create_password_change_ticket(user_id, f"https://{S.web_host}/login")
    return {"url": url}


@router.get("/getUsers", response_model=List[MemberOut])
def get_users(
    ctx=Depends(require_admin),
    store: Auth0ManagementClient = Depends(get_identity_store),
) -> List[MemberOut]:
    with store_errors("getting users"):
        users = store.list_users()
    return [observe_fee_errors(m) for m in roster(users)]


@router.get("/exportUsers")
def export_users(
    req: Request,
    ctx=Depends(require_admin),
    store: Auth0ManagementClient = Depends(get_identity_store),
) -> Response:
    with store_errors("getting users"):
        users: List[Dict[str, Any]] = store.list_users()
    rows = export_rows(users)
    audit_event("members_export", ctx["user_sub"], req, outcome="success", rows=len(rows))
    return Response(
        content=rows_to_csv(rows).encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )
