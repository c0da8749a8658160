from __future__ import annotations

from functools import lru_cache
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, HTTPException, Request

from memberportal.core.settings import S
from memberportal.services.identity import Auth0ManagementClient, IdentityStoreError, get_identity_store
from memberportal.services.members import user_has_role


def _auth0_enabled() -> bool:
    return bool(S.auth0_domain and S.auth0_audience)


def _auth0_issuer() -> str:
    return f"https://{S.auth0_domain}/"


@lru_cache(maxsize=1)
def _jwks_client() -> jwt.PyJWKClient:
    return jwt.PyJWKClient(f"{_auth0_issuer()}.well-known/jwks.json", cache_keys=True)


def _decode_auth0_token(token: str) -> Dict[str, Any]:
    try:
        signing_key = _jwks_client().get_signing_key_from_jwt(token)
    except jwt.PyJWKClientError as exc:
        raise HTTPException(401, "Unknown signing key id") from exc
    except jwt.PyJWTError as exc:
        raise HTTPException(401, "Invalid token header") from exc

    try:
        return jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256"],
            audience=S.auth0_audience,
            issuer=_auth0_issuer(),
        )
    except jwt.ExpiredSignatureError as exc:
        raise HTTPException(401, "Token expired") from exc
    except jwt.PyJWTError as exc:
        raise HTTPException(401, "Invalid token") from exc


def _unverified_sub(token: str) -> Optional[str]:
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return None
    sub = claims.get("sub")
    return sub if isinstance(sub, str) and sub.strip() else None


def extract_bearer_token(auth_header: Optional[str]) -> str:
    if not auth_header:
        raise HTTPException(401, "Missing Authorization header")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(401, "Invalid Authorization header")
    return token.strip()


async def get_authenticated_user_sub(request: Request) -> str:
    """
    Validates the Auth0 access token when AUTH0_DOMAIN/AUTH0_AUDIENCE are set.

    Dev fallback: Authorization: Bearer <user_id>, or an unsigned JWT whose
    ``sub`` is used as-is.
    """
    token = extract_bearer_token(request.headers.get("authorization", ""))
    if not _auth0_enabled():
        return _unverified_sub(token) or token

    user_sub = _decode_auth0_token(token).get("sub")
    if not user_sub:
        raise HTTPException(401, "Token missing subject")
    return str(user_sub)


async def require_user(user_sub: str = Depends(get_authenticated_user_sub)) -> Dict[str, str]:
    return {"user_sub": user_sub}


def require_same_user(user_id: str, ctx: Dict[str, str]) -> None:
    # Members may only read or edit their own profile.
    if user_id != ctx["user_sub"]:
        raise HTTPException(401, "No logged in user")


async def require_admin(
    ctx: Dict[str, str] = Depends(require_user),
    store: Auth0ManagementClient = Depends(get_identity_store),
) -> Dict[str, str]:
    try:
        user = store.get_user(ctx["user_sub"])
    except IdentityStoreError as exc:
        raise HTTPException(502, "Error getting user") from exc
    if not user_has_role(user, "admin"):
        raise HTTPException(403, "Admin role required")
    return ctx
