from __future__ import annotations

import unittest

from fastapi import HTTPException

from fakes import FakeIdentityStore, build_ctx, build_request, make_user
from memberportal.models import ProfileUpdateReq
from memberportal.routers import members
from memberportal.services.export import EXPORT_FILENAME


class TestMemberRoutes(unittest.TestCase):
    def setUp(self):
        self.store = FakeIdentityStore(
            [
                make_user("auth0|admin", "Admin", "User", app_metadata={"roles": "admin"}),
                make_user(
                    "auth0|1",
                    "Bo",
                    "Ek",
                    app_metadata={"membfee_payment": {"period_start": "2099-01-01", "interval": "decade"}},
                ),
                make_user("google|2", "Cy", "Ask", connection="google-oauth2"),
            ]
        )
        self.req = build_request()

    def test_get_logged_in_user(self):
        member = members.get_logged_in_user(build_ctx("auth0|1"), self.store)
        self.assertEqual(member.user_id, "auth0|1")
        self.assertTrue(member.payments.membership.error)
        self.assertEqual(member.payments.membership.error_message, "invalid interval")

    def test_get_logged_in_user_missing_is_bad_gateway(self):
        with self.assertRaises(HTTPException) as exc:
            members.get_logged_in_user(build_ctx("auth0|nobody"), self.store)
        self.assertEqual(exc.exception.status_code, 502)

    def test_get_users_lists_connection_members_sorted(self):
        result = members.get_users(build_ctx("auth0|admin"), self.store)
        self.assertEqual([m.name for m in result], ["Admin User", "Bo Ek"])

    def test_export_users_is_csv_with_bom(self):
        resp = members.export_users(self.req, build_ctx("auth0|admin"), self.store)
        self.assertTrue(resp.body.startswith(b"\xef\xbb\xbf\"First name\""))
        self.assertIn(EXPORT_FILENAME, resp.headers["content-disposition"])
        self.assertTrue(resp.headers["content-type"].startswith("text/csv"))
        self.assertEqual(resp.body.decode("utf-8-sig").count("\n"), 3)

    def test_update_profile(self):
        body = ProfileUpdateReq(
            given_name="Bo",
            family_name="Ekholm",
            birth_date="1990-01-01",
            phone_number="070",
            address_line_1="Gatan 1",
            postal_code="11122",
            city="Stockholm",
            country="Sweden",
        )
        self.assertEqual(members.update_user_profile("auth0|1", body, self.req, build_ctx("auth0|1"), self.store), {"ok": True})
        user = self.store.users["auth0|1"]
        self.assertEqual(user["name"], "Bo Ekholm")
        self.assertEqual(user["user_metadata"]["city"], "Stockholm")
        self.assertNotIn("address_line_2", user["user_metadata"])

    def test_update_profile_of_other_user_is_rejected(self):
        with self.assertRaises(HTTPException) as exc:
            members.update_user_profile("auth0|admin", ProfileUpdateReq(), self.req, build_ctx("auth0|1"), self.store)
        self.assertEqual(exc.exception.status_code, 401)
        self.assertEqual(self.store.updates, [])

    def test_update_profile_requires_fields(self):
        with self.assertRaises(HTTPException) as exc:
            members.update_user_profile("auth0|1", ProfileUpdateReq(given_name="Bo"), self.req, build_ctx("auth0|1"), self.store)
        self.assertEqual(exc.exception.detail, "Surname is required")

    def test_change_password_url(self):
        resp = members.get_change_password_url("auth0|1", build_ctx("auth0|1"), self.store)
        self.assertTrue(resp["url"].startswith("https://auth.example.org/tickets/auth0|1"))
