from __future__ import annotations

import json
import unittest
from dataclasses import replace
from unittest.mock import patch

import pytest
import requests
from fastapi import HTTPException

from memberportal.core.settings import S
from memberportal.services import identity
from memberportal.services.identity import Auth0ManagementClient, IdentityStoreError, store_errors


class FakeResponse:
    def __init__(self, status_code=200, data=None):
        self.status_code = status_code
        self._data = data
        self.content = b"" if data is None else json.dumps(data).encode()

    def json(self):
        return self._data

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    def __init__(self, responses=None, token_status=200):
        self.responses = list(responses or [])
        self.token_status = token_status
        self.token_calls = 0
        self.calls = []

    def post(self, url, json=None, timeout=None):
        self.token_calls += 1
        return FakeResponse(self.token_status, {"access_token": "mgmt-token", "expires_in": 86400})

    def request(self, method, url, headers=None, timeout=None, **kwargs):
        self.calls.append((method, url, headers, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def client(session):
    return Auth0ManagementClient("tenant.eu.auth0.com", "cid", "secret", timeout=5, session=session)


class TestAuth0ManagementClient(unittest.TestCase):
    def test_get_user_quotes_id_and_sends_token(self):
        session = FakeSession([FakeResponse(data={"user_id": "auth0|1"})])
        self.assertEqual(client(session).get_user("auth0|1"), {"user_id": "auth0|1"})
        method, url, headers, _ = session.calls[0]
        self.assertEqual(method, "GET")
        self.assertEqual(url, "https://tenant.eu.auth0.com/api/v2/users/auth0%7C1")
        self.assertEqual(headers["Authorization"], "Bearer mgmt-token")

    def test_token_is_cached(self):
        session = FakeSession([FakeResponse(data={}), FakeResponse(data={})])
        c = client(session)
        c.get_user("a")
        c.get_user("b")
        self.assertEqual(session.token_calls, 1)

    def test_list_users_paginates(self):
        session = FakeSession(
            [
                FakeResponse(data={"users": [{"user_id": "1"}, {"user_id": "2"}], "total": 3}),
                FakeResponse(data={"users": [{"user_id": "3"}], "total": 3}),
            ]
        )
        users = client(session).list_users()
        self.assertEqual([u["user_id"] for u in users], ["1", "2", "3"])
        self.assertEqual([call[3]["params"]["page"] for call in session.calls], [0, 1])

    def test_update_app_metadata_patches_user(self):
        session = FakeSession([FakeResponse(data={"user_id": "auth0|1", "app_metadata": {}})])
        client(session).update_app_metadata("auth0|1", {"membfee_payment": None})
        method, url, _, kwargs = session.calls[0]
        self.assertEqual(method, "PATCH")
        self.assertEqual(kwargs["json"], {"app_metadata": {"membfee_payment": None}})

    def test_password_change_ticket(self):
        session = FakeSession([FakeResponse(data={"ticket": "https://t"})])
        self.assertEqual(client(session).create_password_change_ticket("auth0|1", "https://x/login"), "https://t")

    def test_error_status_raises(self):
        session = FakeSession([FakeResponse(404, {"message": "nope"})])
        with self.assertRaises(IdentityStoreError) as exc:
            client(session).get_user("auth0|1")
        self.assertEqual(exc.exception.status_code, 404)

    def test_transport_error_raises(self):
        session = FakeSession([requests.ConnectionError("down")])
        with self.assertRaises(IdentityStoreError):
            client(session).get_user("auth0|1")

    def test_token_failure_raises(self):
        with self.assertRaises(IdentityStoreError):
            client(FakeSession(token_status=401)).get_user("auth0|1")

    def test_empty_body_returns_none(self):
        session = FakeSession([FakeResponse(204)])
        self.assertIsNone(client(session).update_user("auth0|1", {"name": "x"}))


def test_store_errors_maps_to_bad_gateway():
    with pytest.raises(HTTPException) as exc:
        with store_errors("updating user"):
            raise IdentityStoreError("boom", status_code=500)
    assert exc.value.status_code == 502
    assert exc.value.detail == "Error updating user"


def test_unconfigured_store_is_not_implemented():
    with patch.object(identity, "S", replace(S, auth0_mgt_domain="", auth0_mgt_client_id="", auth0_mgt_client_secret="")):
        with pytest.raises(HTTPException) as exc:
            identity.get_identity_store()
    assert exc.value.status_code == 501
