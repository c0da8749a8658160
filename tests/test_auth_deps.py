import asyncio
import base64
import json
import unittest
from dataclasses import replace
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from fastapi import HTTPException

from fakes import FakeIdentityStore, make_user
from memberportal.auth import deps
from memberportal.core.settings import S

AUTH0_OFF = replace(S, auth0_domain="", auth0_audience="")
AUTH0_ON = replace(S, auth0_domain="tenant.eu.auth0.com", auth0_audience="https://api.example.org")


def run_async(coro):
    return asyncio.run(coro)


@patch.object(deps, "S", AUTH0_OFF)
class TestAuthDeps(unittest.TestCase):
    def test_get_authenticated_user_sub_requires_header(self):
        req = SimpleNamespace(headers={})
        with self.assertRaises(HTTPException) as ctx:
            run_async(deps.get_authenticated_user_sub(req))
        self.assertEqual(ctx.exception.status_code, 401)

    def test_get_authenticated_user_sub_rejects_invalid_scheme(self):
        req = SimpleNamespace(headers={"authorization": "Token abc"})
        with self.assertRaises(HTTPException) as ctx:
            run_async(deps.get_authenticated_user_sub(req))
        self.assertEqual(ctx.exception.status_code, 401)

    def test_get_authenticated_user_sub_accepts_bearer(self):
        req = SimpleNamespace(headers={"authorization": "Bearer auth0|user-1"})
        self.assertEqual(run_async(deps.get_authenticated_user_sub(req)), "auth0|user-1")

    def test_get_authenticated_user_sub_prefers_jwt_sub(self):
        header = base64.urlsafe_b64encode(json.dumps({"alg": "none"}).encode()).decode().rstrip("=")
        payload = base64.urlsafe_b64encode(json.dumps({"sub": "auth0|jwt-user"}).encode()).decode().rstrip("=")
        req = SimpleNamespace(headers={"authorization": f"Bearer {header}.{payload}."})
        self.assertEqual(run_async(deps.get_authenticated_user_sub(req)), "auth0|jwt-user")


def test_auth_uses_auth0_payload(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(deps, "S", AUTH0_ON)

    def fake_decode(token):
        assert token == "token123"
        return {"sub": "auth0|abc"}

    monkeypatch.setattr(deps, "_decode_auth0_token", fake_decode)
    req = SimpleNamespace(headers={"authorization": "Bearer token123"})
    assert run_async(deps.get_authenticated_user_sub(req)) == "auth0|abc"


def test_auth_requires_subject(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(deps, "S", AUTH0_ON)
    monkeypatch.setattr(deps, "_decode_auth0_token", lambda token: {})
    req = SimpleNamespace(headers={"authorization": "Bearer token123"})
    with pytest.raises(HTTPException) as exc:
        run_async(deps.get_authenticated_user_sub(req))
    assert exc.value.status_code == 401


def test_auth0_issuer(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(deps, "S", AUTH0_ON)
    assert deps._auth0_issuer() == "https://tenant.eu.auth0.com/"


def test_require_same_user():
    deps.require_same_user("auth0|1", {"user_sub": "auth0|1"})
    with pytest.raises(HTTPException) as exc:
        deps.require_same_user("auth0|2", {"user_sub": "auth0|1"})
    assert exc.value.status_code == 401
    assert exc.value.detail == "No logged in user"


class TestRequireAdmin(unittest.TestCase):
    def setUp(self):
        self.store = FakeIdentityStore(
            [make_user("auth0|admin", app_metadata={"roles": "admin"}), make_user("auth0|member")]
        )

    def test_admin_passes(self):
        ctx = {"user_sub": "auth0|admin"}
        self.assertEqual(run_async(deps.require_admin(ctx, self.store)), ctx)

    def test_member_is_forbidden(self):
        with self.assertRaises(HTTPException) as exc:
            run_async(deps.require_admin({"user_sub": "auth0|member"}, self.store))
        self.assertEqual(exc.exception.status_code, 403)

    def test_store_failure_is_bad_gateway(self):
        with self.assertRaises(HTTPException) as exc:
            run_async(deps.require_admin({"user_sub": "auth0|missing"}, self.store))
        self.assertEqual(exc.exception.status_code, 502)
        self.assertEqual(exc.exception.detail, "Error getting user")
