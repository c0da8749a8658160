from __future__ import annotations

from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional

from fastapi import HTTPException

from memberportal.core.normalize import split_roles
from memberportal.core.settings import S
from memberportal.models import MemberOut, Payments
from memberportal.services.payments import Flavour, fee_states

USER_METADATA_FIELDS = (
    "birth_date",
    "phone_number",
    "address_line_1",
    "address_line_2",
    "postal_code",
    "city",
    "country",
)

REQUIRED_PROFILE_FIELDS = (
    ("given_name", "First name is required"),
    ("family_name", "Surname is required"),
    ("birth_date", "Birth date is required"),
    ("phone_number", "Phone number is required"),
    ("address_line_1", "Address is required"),
    ("postal_code", "Postal code is required"),
    ("city", "City is required"),
    ("country", "Country is required"),
)


def user_has_role(user: Optional[Mapping[str, Any]], role: str) -> bool:
    if not user:
        return False
    app_metadata = user.get("app_metadata") or {}
    return role in split_roles(app_metadata.get("roles"))


def is_user_in_connection(user: Mapping[str, Any], connection: Optional[str] = None) -> bool:
    connection = S.auth0_user_connection if connection is None else connection
    for identity in user.get("identities") or []:
        if identity.get("provider") == "auth0" and identity.get("connection") == connection:
            return True
    return False


def member_from_user(user: Mapping[str, Any], include_payments: bool = True, today: Optional[date] = None) -> MemberOut:
    user_metadata = user.get("user_metadata") or {}
    app_metadata = user.get("app_metadata") or {}

    name = user.get("name")
    given, family = user.get("given_name"), user.get("family_name")
    if not name and (given or family):
        name = f"{given or ''} {family or ''}".strip()

    payments = None
    if include_payments:
        states = fee_states(app_metadata, today=today)
        payments = Payments(membership=states[Flavour.MEMBERSHIP], housecard=states[Flavour.HOUSECARD])

    return MemberOut(
        user_id=user.get("user_id"),
        picture=user.get("picture"),
        name=name,
        given_name=given,
        family_name=family,
        email=user.get("email"),
        roles=app_metadata.get("roles"),
        admin=user_has_role(user, "admin"),
        developer=user_has_role(user, "dev"),
        payments=payments,
        **{f: user_metadata.get(f) for f in USER_METADATA_FIELDS},
    )


def _name_key(member: MemberOut) -> str:
    return (member.name or "").upper()


def roster(users: Iterable[Mapping[str, Any]], connection: Optional[str] = None, today: Optional[date] = None) -> List[MemberOut]:
    members = [member_from_user(u, today=today) for u in users if is_user_in_connection(u, connection)]
    members.sort(key=_name_key)
    return members


def profile_update(body: Mapping[str, Any]) -> Dict[str, Any]:
    for field, message in REQUIRED_PROFILE_FIELDS:
        value = body.get(field)
        if not isinstance(value, str) or not value.strip():
            raise HTTPException(400, message)

    given = body["given_name"].strip()
    family = body["family_name"].strip()
    return {
        "name": f"{given} {family}",
        "given_name": given,
        "family_name": family,
        "user_metadata": {
            f: (body.get(f).strip() if isinstance(body.get(f), str) else None)
            for f in USER_METADATA_FIELDS
        },
    }
