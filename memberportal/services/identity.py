"""Auth0 Management API client (the identity store).

Users, profile fields and the ``app_metadata`` payment blobs live in Auth0.
Auth0 merges top-level ``app_metadata`` keys on PATCH and deletes keys set
to ``null``, so each fee write only touches its own flavour key.
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from functools import lru_cache
from typing import Any, Dict, Iterator, List, Optional
from urllib.parse import quote

import requests
from fastapi import HTTPException

from memberportal.core.settings import S
from memberportal.core.time import now_ts

logger = logging.getLogger(__name__)

USERS_PAGE_SIZE = 100


class IdentityStoreError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class Auth0ManagementClient:
    def __init__(
        self,
        domain: str,
        client_id: str,
        client_secret: str,
        *,
        timeout: int = 10,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.domain = domain
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout
        self.session = session or requests.Session()
        self._token: Optional[str] = None
        self._token_expires_at = 0
        self._lock = threading.Lock()

    @property
    def base_url(self) -> str:
        return f"https://{self.domain}/api/v2"

    def _access_token(self) -> str:
        with self._lock:
            if self._token and now_ts() < self._token_expires_at - 60:
                return self._token
            try:
                resp = self.session.post(
                    f"https://{self.domain}/oauth/token",
                    json={
                        "grant_type": "client_credentials",
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "audience": f"https://{self.domain}/api/v2/",
                    },
                    timeout=self.timeout,
                )
                resp.raise_for_status()
            except requests.RequestException as exc:
                raise IdentityStoreError(f"Auth0 token request failed: {exc}") from exc
            data = resp.json()
            self._token = data["access_token"]
            self._token_expires_at = now_ts() + int(data.get("expires_in", 3600))
            return self._token

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        headers = {"Authorization": f"Bearer {self._access_token()}"}
        try:
            resp = self.session.request(method, f"{self.base_url}{path}", headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise IdentityStoreError(f"Auth0 {method} {path} failed: {exc}") from exc
        if resp.status_code >= 400:
            raise IdentityStoreError(f"Auth0 {method} {path} returned {resp.status_code}", status_code=resp.status_code)
        if not resp.content:
            return None
        return resp.json()

    def get_user(self, user_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/users/{quote(user_id, safe='')}")

    def list_users(self) -> List[Dict[str, Any]]:
        users: List[Dict[str, Any]] = []
        page = 0
        while True:
            data = self._request(
                "GET",
                "/users",
                params={"page": page, "per_page": USERS_PAGE_SIZE, "include_totals": "true"},
            ) or {}
            batch = data.get("users", [])
            users.extend(batch)
            total = int(data.get("total", len(users)))
            if not batch or len(users) >= total:
                return users
            page += 1

    def update_user(self, user_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PATCH", f"/users/{quote(user_id, safe='')}", json=changes)

    def update_app_metadata(self, user_id: str, app_metadata: Dict[str, Any]) -> Dict[str, Any]:
        logger.info("updating app_metadata keys %s for %s", sorted(app_metadata), user_id)
        return self.update_user(user_id, {"app_metadata": app_metadata})

    def create_password_change_ticket(self, user_id: str, result_url: str) -> str:
        data = self._request("POST", "/tickets/password-change", json={"user_id": user_id, "result_url": result_url})
        return (data or {}).get("ticket", "")


@lru_cache(maxsize=1)
def _default_client() -> Auth0ManagementClient:
    return Auth0ManagementClient(
        S.auth0_mgt_domain,
        S.auth0_mgt_client_id,
        S.auth0_mgt_client_secret,
        timeout=S.auth0_http_timeout_seconds,
    )


def get_identity_store() -> Auth0ManagementClient:
    if not (S.auth0_mgt_domain and S.auth0_mgt_client_id and S.auth0_mgt_client_secret):
        raise HTTPException(501, "Auth0 management API is not configured")
    return _default_client()


@contextmanager
def store_errors(action: str) -> Iterator[None]:
    try:
        yield
    except IdentityStoreError as exc:
        logger.error("identity store error while %s: %s", action, exc)
        raise HTTPException(502, f"Error {action}") from exc
