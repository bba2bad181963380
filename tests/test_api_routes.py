"""
tests/test_api_routes.py -- HTTP integration tests through the Flask test client.

Coverage:
  - signup / signin / refresh / logout envelopes and status codes
  - protected routes: missing bearer -> 401, invalid bearer -> 403
  - /token/verify, /token/decode, /token/info, /token/revoke-all, /token/generate
  - password reset and email verification over HTTP
  - credential errors share one response shape
"""

from __future__ import annotations

import pytest

from conftest import STRONG_PASSWORD, bearer, grant_roles

AUTH = "/api/v1/auth"
TOKEN = "/api/v1/token"


def _signin(client, email="a@x.com", password=STRONG_PASSWORD):
    return client.post(f"{AUTH}/signin", json={"email": email, "password": password})


class TestAuthRoutes:
    def test_health(self, client) -> None:
        resp = client.get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "ok"

    def test_signup_returns_user_and_tokens(self, client, signed_up) -> None:
        assert signed_up["user"]["email"] == "a@x.com"
        assert signed_up["user"]["email_verified"] is False
        assert "password_hash" not in signed_up["user"]
        tokens = signed_up["tokens"]
        assert tokens["token_type"] == "Bearer"
        assert tokens["expires_in"] == 15 * 60

        verify = client.post(f"{TOKEN}/verify", json={"token": tokens["access_token"]})
        assert verify.get_json()["data"]["valid"] is True
        assert verify.get_json()["data"]["user"]["id"] == signed_up["user"]["id"]

    def test_duplicate_signup_conflicts(self, client, signed_up) -> None:
        resp = client.post(f"{AUTH}/signup", json={"email": "A@X.com", "password": STRONG_PASSWORD})
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "CONFLICT"

    def test_weak_password_is_422(self, client) -> None:
        resp = client.post(f"{AUTH}/signup", json={"email": "w@x.com", "password": "password"})
        assert resp.status_code == 422
        assert resp.get_json()["error"] == "WEAK_PASSWORD"
        assert resp.get_json()["details"]["password"]

    def test_signup_validation_error(self, client) -> None:
        resp = client.post(f"{AUTH}/signup", json={"email": "not-an-email"})
        assert resp.status_code == 422
        assert set(resp.get_json()["details"]) >= {"email", "password"}

    def test_signin_failures_are_identical(self, client, signed_up) -> None:
        wrong_password = _signin(client, password="Wr0ngPass!")
        unknown_email = _signin(client, email="nobody@x.com")
        assert wrong_password.status_code == unknown_email.status_code == 401
        assert wrong_password.get_json() == unknown_email.get_json()

    def test_refresh_rotation_over_http(self, client, signed_up) -> None:
        r1 = signed_up["tokens"]["refresh_token"]

        first = client.post(f"{AUTH}/refresh", json={"refresh_token": r1})
        replay = client.post(f"{AUTH}/refresh", json={"refresh_token": r1})
        garbage = client.post(f"{AUTH}/refresh", json={"refresh_token": "garbage"})

        assert first.status_code == 200
        assert first.get_json()["data"]["refresh_token"] != r1
        assert replay.status_code == 401
        assert garbage.status_code == 401
        assert replay.get_json() == garbage.get_json()

    def test_logout_revokes_current_session_only(self, client, signed_up) -> None:
        other = _signin(client).get_json()["data"]["tokens"]
        access = signed_up["tokens"]["access_token"]

        resp = client.post(f"{AUTH}/logout", headers=bearer(access))

        assert resp.status_code == 204
        assert client.post(f"{AUTH}/refresh", json={"refresh_token": signed_up["tokens"]["refresh_token"]}).status_code == 401
        assert client.post(f"{AUTH}/refresh", json={"refresh_token": other["refresh_token"]}).status_code == 200

    def test_logout_all(self, client, signed_up) -> None:
        other = _signin(client).get_json()["data"]["tokens"]
        resp = client.post(f"{AUTH}/logout-all", headers=bearer(other["access_token"]))
        assert resp.status_code == 204
        for tokens in (signed_up["tokens"], other):
            assert client.post(f"{AUTH}/refresh", json={"refresh_token": tokens["refresh_token"]}).status_code == 401

    def test_me_and_sessions(self, client, signed_up) -> None:
        headers = bearer(signed_up["tokens"]["access_token"])
        me = client.get(f"{AUTH}/me", headers=headers)
        assert me.status_code == 200
        assert me.get_json()["data"]["name"] == "A"

        sessions = client.get(f"{AUTH}/sessions", headers=headers).get_json()
        assert sessions["meta"]["total"] == 1
        assert sessions["data"][0]["session_id"] == signed_up["tokens"]["session_id"]

    def test_missing_bearer_is_401_invalid_is_403(self, client) -> None:
        assert client.get(f"{AUTH}/me").status_code == 401
        resp = client.get(f"{AUTH}/me", headers=bearer("not-a-token"))
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "FORBIDDEN"

    def test_refresh_token_is_not_a_bearer_token(self, client, signed_up) -> None:
        resp = client.get(f"{AUTH}/me", headers=bearer(signed_up["tokens"]["refresh_token"]))
        assert resp.status_code == 403

    def test_password_reset_over_http(self, client, signed_up, notifier) -> None:
        accepted = client.post(f"{AUTH}/forgot-password", json={"email": "a@x.com"})
        unknown = client.post(f"{AUTH}/forgot-password", json={"email": "nobody@x.com"})
        assert accepted.status_code == unknown.status_code == 202
        assert accepted.get_json() == unknown.get_json()

        token = notifier.last("password_reset")[2]
        resp = client.post(f"{AUTH}/reset-password", json={"token": token, "password": "N3wPassword!"})
        assert resp.status_code == 200
        assert _signin(client, password="N3wPassword!").status_code == 200

        reused = client.post(f"{AUTH}/reset-password", json={"token": token, "password": "An0therPass!"})
        assert reused.status_code == 401

    def test_verify_email_over_http(self, client, signed_up, notifier) -> None:
        token = notifier.last("verification")[2]
        resp = client.post(f"{AUTH}/verify-email", json={"token": token})
        assert resp.status_code == 200
        assert resp.get_json()["data"]["email_verified"] is True

    def test_resend_verification_issues_fresh_token(self, client, signed_up, notifier) -> None:
        first = notifier.last("verification")[2]
        resp = client.post(f"{AUTH}/resend-verification", headers=bearer(signed_up["tokens"]["access_token"]))
        assert resp.status_code == 202
        second = notifier.last("verification")[2]
        assert second != first
        assert client.post(f"{AUTH}/verify-email", json={"token": first}).status_code == 401
        assert client.post(f"{AUTH}/verify-email", json={"token": second}).status_code == 200

    def test_change_password_returns_new_tokens(self, client, signed_up) -> None:
        resp = client.post(
            f"{AUTH}/change-password",
            headers=bearer(signed_up["tokens"]["access_token"]),
            json={"current_password": STRONG_PASSWORD, "new_password": "N3wPassword!"},
        )
        assert resp.status_code == 200
        new_refresh = resp.get_json()["data"]["refresh_token"]
        assert client.post(f"{AUTH}/refresh", json={"refresh_token": new_refresh}).status_code == 200
        assert client.post(
            f"{AUTH}/refresh", json={"refresh_token": signed_up["tokens"]["refresh_token"]}
        ).status_code == 401


class TestTokenRoutes:
    def test_verify_reports_reason_for_bad_token(self, client) -> None:
        resp = client.post(f"{TOKEN}/verify", json={"token": "abc.def.ghi"})
        assert resp.status_code == 200
        assert resp.get_json()["data"] == {"valid": False, "reason": "malformed"}

    def test_decode_does_not_verify(self, client, signed_up) -> None:
        resp = client.post(f"{TOKEN}/decode", json={"token": signed_up["tokens"]["access_token"]})
        data = resp.get_json()["data"]
        assert resp.status_code == 200
        assert data["decoded"]["sub"] == signed_up["user"]["id"]
        assert data["verified"] is False
        assert data["expires_at"] > data["issued_at"]

    def test_decode_rejects_garbage(self, client) -> None:
        resp = client.post(f"{TOKEN}/decode", json={"token": "garbage"})
        assert resp.status_code == 400

    def test_info_describes_bearer_token(self, client, signed_up) -> None:
        resp = client.get(f"{TOKEN}/info", headers=bearer(signed_up["tokens"]["access_token"]))
        data = resp.get_json()["data"]
        assert resp.status_code == 200
        assert data["algorithm"] == "HS256"
        assert data["expired"] is False
        assert 0 < data["valid_for"] <= 15 * 60

    def test_revoke_all_for_self(self, client, signed_up) -> None:
        resp = client.post(f"{TOKEN}/revoke-all", headers=bearer(signed_up["tokens"]["access_token"]), json={})
        assert resp.status_code == 200
        assert resp.get_json()["data"]["revoked"] == 1
        assert client.post(
            f"{AUTH}/refresh", json={"refresh_token": signed_up["tokens"]["refresh_token"]}
        ).status_code == 401

    def test_revoke_all_for_other_user_needs_admin(self, client, signed_up) -> None:
        other = client.post(f"{AUTH}/signup", json={"email": "b@x.com", "password": STRONG_PASSWORD}).get_json()["data"]
        resp = client.post(
            f"{TOKEN}/revoke-all",
            headers=bearer(other["tokens"]["access_token"]),
            json={"user_id": signed_up["user"]["id"]},
        )
        assert resp.status_code == 403

    def test_generate_requires_admin(self, app, client, signed_up) -> None:
        user_headers = bearer(signed_up["tokens"]["access_token"])
        assert client.post(f"{TOKEN}/generate", headers=user_headers, json={"payload": {}}).status_code == 403

        grant_roles(app.extensions["auth"], signed_up["user"]["id"], ["user", "admin"])
        admin_access = _signin(client).get_json()["data"]["tokens"]["access_token"]

        resp = client.post(
            f"{TOKEN}/generate",
            headers=bearer(admin_access),
            json={"payload": {"sub": "service-account", "scope": "reports"}, "expires_in": "1h"},
        )
        data = resp.get_json()["data"]
        assert resp.status_code == 200
        assert data["expires_in"] == 3600
        verified = client.post(f"{TOKEN}/verify", json={"token": data["token"]}).get_json()["data"]
        # custom subjects are signed but do not map to a stored user
        assert verified == {"valid": False, "reason": "user_not_found"}
        decoded = client.post(f"{TOKEN}/decode", json={"token": data["token"]}).get_json()["data"]["decoded"]
        assert decoded["scope"] == "reports"

    @pytest.mark.parametrize(
        "payload",
        [{"sub": ""}, {"sub": "   "}, {"sub": 0}, {"sub": None}, {"roles": "admin"}, {"roles": ["admin", 1]}],
    )
    def test_generate_rejects_unusable_claims(self, app, client, signed_up, payload) -> None:
        grant_roles(app.extensions["auth"], signed_up["user"]["id"], ["user", "admin"])
        admin_access = _signin(client).get_json()["data"]["tokens"]["access_token"]

        resp = client.post(f"{TOKEN}/generate", headers=bearer(admin_access), json={"payload": payload})

        assert resp.status_code == 422
        assert resp.get_json()["error"] == "VALIDATION_ERROR"
        assert "payload" in resp.get_json()["details"]

    def test_string_roles_claim_grants_nothing(self, app, client, signed_up) -> None:
        other = client.post(f"{AUTH}/signup", json={"email": "b@x.com", "password": STRONG_PASSWORD}).get_json()["data"]
        forged = app.extensions["auth"].engine.issue_access_token({"sub": other["user"]["id"], "roles": "admin"})

        revoke = client.post(
            f"{TOKEN}/revoke-all",
            headers=bearer(forged),
            json={"user_id": signed_up["user"]["id"]},
        )
        generate = client.post(f"{TOKEN}/generate", headers=bearer(forged), json={"payload": {}})

        assert revoke.status_code == 403
        assert generate.status_code == 403
        assert client.post(
            f"{AUTH}/refresh", json={"refresh_token": signed_up["tokens"]["refresh_token"]}
        ).status_code == 200
