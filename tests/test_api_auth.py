"""
Integration tests for /api/v1/auth/* via TestClient.

Covers the full account lifecycle over HTTP: register -> verify-email ->
login, the token error kinds, X-New-Token refresh, profile and password
changes, lockout + admin unlock, resend cooldown, and admin user management.

Verification tokens are read back from the FakeMailer (conftest.py) -- the
API never returns them.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from auth.tokens import create_access_token, decode_access_token

PASSWORD = "Passw0rd"


def _register(client, email: str, password: str = PASSWORD, **headers):
    return client.post(
        "/api/v1/auth/register",
        json={"name": "Jane Doe", "email": email, "password": password, "confirm_password": password},
        headers=headers,
    )


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _error(resp) -> dict:
    return resp.json()["error"]


# ---------------------------------------------------------------------------
# Registration and verification
# ---------------------------------------------------------------------------


class TestRegisterAndVerify:
    def test_register_returns_user_but_no_token(self, api_env) -> None:
        resp = _register(api_env.client, "reg1@folio.example.org", Origin="https://portfolio.example")
        assert resp.status_code == 201
        body = resp.json()
        assert "access_token" not in body
        assert body["user"]["email"] == "reg1@folio.example.org"
        assert body["user"]["is_verified"] is False
        assert api_env.mailer.verifications[-1].origin_url == "https://portfolio.example"

    def test_login_before_verification_is_refused(self, api_env) -> None:
        _register(api_env.client, "reg2@folio.example.org")
        resp = api_env.client.post("/api/v1/auth/login", json={"email": "reg2@folio.example.org", "password": PASSWORD})
        assert resp.status_code == 403
        assert _error(resp)["code"] == "email_not_verified"

    def test_verify_then_login(self, api_env) -> None:
        client = api_env.client
        _register(client, "reg3@folio.example.org")
        token = api_env.mailer.last_token_for("reg3@folio.example.org")

        resp = client.get("/api/v1/auth/verify-email", params={"email": "reg3@folio.example.org", "token": token})
        assert resp.status_code == 200
        assert resp.json()["user"]["is_verified"] is True

        # Repeating the link on a verified account still succeeds.
        resp = client.get("/api/v1/auth/verify-email", params={"email": "reg3@folio.example.org", "token": token})
        assert resp.status_code == 200

        resp = client.post("/api/v1/auth/login", json={"email": "REG3@folio.example.org", "password": PASSWORD})
        assert resp.status_code == 200
        assert resp.headers["Cache-Control"] == "no-store"
        body = resp.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["email"] == "reg3@folio.example.org"
        assert decode_access_token(body["access_token"]).identity_id == body["user"]["id"]

    def test_wrong_verification_token(self, api_env) -> None:
        _register(api_env.client, "reg4@folio.example.org")
        resp = api_env.client.get(
            "/api/v1/auth/verify-email", params={"email": "reg4@folio.example.org", "token": "0" * 64}
        )
        assert resp.status_code == 400
        assert _error(resp)["code"] == "invalid_or_expired_token"

    def test_duplicate_email(self, api_env) -> None:
        _register(api_env.client, "dup@folio.example.org")
        resp = _register(api_env.client, "DUP@folio.example.org")
        assert resp.status_code == 409
        assert _error(resp)["code"] == "duplicate_email"

    def test_weak_password_reports_field_without_value(self, api_env) -> None:
        resp = _register(api_env.client, "weak@folio.example.org", password="password")
        assert resp.status_code == 422
        err = _error(resp)
        assert err["code"] == "validation_error"
        password_errors = [f for f in err["fields"] if f["field"] == "password"]
        assert password_errors
        assert password_errors[0].get("value") is None

    def test_mismatched_confirmation_does_not_echo_body(self, api_env) -> None:
        resp = api_env.client.post(
            "/api/v1/auth/register",
            json={
                "name": "Jane Doe",
                "email": "mis@folio.example.org",
                "password": PASSWORD,
                "confirm_password": "Other123",
            },
        )
        assert resp.status_code == 422
        assert PASSWORD not in resp.text

    def test_invalid_name_and_email(self, api_env) -> None:
        resp = api_env.client.post(
            "/api/v1/auth/register",
            json={"name": "R2-D2", "email": "not-an-email", "password": PASSWORD, "confirm_password": PASSWORD},
        )
        assert resp.status_code == 422
        fields = {f["field"] for f in _error(resp)["fields"]}
        assert {"name", "email"} <= fields

    def test_email_with_empty_domain_label_is_rejected(self, api_env) -> None:
        for email in ("a@b..c", ".jane@example.com", "jane@example"):
            resp = _register(api_env.client, email)
            assert resp.status_code == 422, email
            assert "email" in [f["field"] for f in _error(resp)["fields"]]

    def test_resend_respects_cooldown(self, api_env) -> None:
        client = api_env.client
        _register(client, "resend@folio.example.org")
        resp = client.post("/api/v1/auth/resend-verification", json={"email": "resend@folio.example.org"})
        assert resp.status_code == 429
        err = _error(resp)
        assert err["code"] == "too_many_requests"
        assert 0 < err["retry_after"] <= 60
        assert resp.headers["Retry-After"] == str(err["retry_after"])

        api_env.clock.advance(61)
        resp = client.post("/api/v1/auth/resend-verification", json={"email": "resend@folio.example.org"})
        assert resp.status_code == 200
        assert resp.json()["cooldown"] == 60

    def test_resend_for_verified_account(self, api_env, make_user) -> None:
        email, _ = make_user()
        api_env.clock.advance(61)
        resp = api_env.client.post("/api/v1/auth/resend-verification", json={"email": email})
        assert resp.status_code == 400
        assert _error(resp)["code"] == "already_verified"


# ---------------------------------------------------------------------------
# Login and bearer tokens
# ---------------------------------------------------------------------------


class TestLoginAndTokens:
    def test_wrong_password_and_unknown_email_look_the_same(self, api_env, make_user) -> None:
        email, _ = make_user()
        wrong = api_env.client.post("/api/v1/auth/login", json={"email": email, "password": "Wrong1234"})
        unknown = api_env.client.post(
            "/api/v1/auth/login", json={"email": "ghost@folio.example.org", "password": PASSWORD}
        )
        assert wrong.status_code == unknown.status_code == 401
        assert _error(wrong) == _error(unknown)
        assert _error(wrong)["code"] == "invalid_credentials"

    def test_me_requires_token(self, api_env) -> None:
        resp = api_env.client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert _error(resp)["code"] == "unauthorized"

    def test_malformed_token(self, api_env) -> None:
        resp = api_env.client.get("/api/v1/auth/me", headers=_auth("garbage"))
        assert resp.status_code == 401
        assert _error(resp)["code"] == "malformed_token"

    def test_bearer_with_extra_space_is_not_accepted(self, api_env, make_user) -> None:
        _, token = make_user()
        resp = api_env.client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer  {token}"})
        assert resp.status_code == 401
        assert _error(resp)["code"] == "malformed_token"

    def test_expired_token(self, api_env) -> None:
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        token = create_access_token(api_env.admin_id, expire_seconds=60, now=past)
        resp = api_env.client.get("/api/v1/auth/me", headers=_auth(token))
        assert resp.status_code == 401
        assert _error(resp)["code"] == "expired_token"

    def test_me_with_fresh_token_has_no_refresh_header(self, api_env, make_user) -> None:
        email, token = make_user()
        resp = api_env.client.get("/api/v1/auth/me", headers=_auth(token))
        assert resp.status_code == 200
        assert resp.json()["user"]["email"] == email
        assert "X-New-Token" not in resp.headers

    def test_token_near_expiry_is_refreshed_via_header(self, api_env) -> None:
        resp = api_env.client.get("/api/v1/auth/me", headers=api_env.admin_headers)
        assert resp.status_code == 200
        new_token = resp.headers["X-New-Token"]
        assert decode_access_token(new_token).identity_id == api_env.admin_id
        assert api_env.client.get("/api/v1/auth/me", headers=_auth(new_token)).status_code == 200

    def test_refresh_and_verify_token(self, api_env, make_user) -> None:
        _, token = make_user()
        resp = api_env.client.post("/api/v1/auth/refresh-token", headers=_auth(token))
        assert resp.status_code == 200
        assert resp.headers["Cache-Control"] == "no-store"
        refreshed = resp.json()["access_token"]
        resp = api_env.client.post("/api/v1/auth/verify-token", headers=_auth(refreshed))
        assert resp.status_code == 200
        assert resp.json()["valid"] is True

    def test_logout(self, api_env) -> None:
        resp = api_env.client.post("/api/v1/auth/logout")
        assert resp.status_code == 200
        assert resp.json() == {"message": "Logged out."}


# ---------------------------------------------------------------------------
# Profile and password
# ---------------------------------------------------------------------------


class TestProfile:
    def test_update_name(self, api_env, make_user) -> None:
        _, token = make_user()
        resp = api_env.client.put("/api/v1/auth/profile", json={"name": "Janet Doe"}, headers=_auth(token))
        assert resp.status_code == 200
        assert resp.json()["user"]["name"] == "Janet Doe"

    def test_empty_update_is_invalid(self, api_env, make_user) -> None:
        _, token = make_user()
        resp = api_env.client.put("/api/v1/auth/profile", json={}, headers=_auth(token))
        assert resp.status_code == 400
        assert _error(resp)["code"] == "invalid_request"

    def test_email_taken(self, api_env, make_user) -> None:
        other_email, _ = make_user()
        _, token = make_user()
        resp = api_env.client.put("/api/v1/auth/profile", json={"email": other_email}, headers=_auth(token))
        assert resp.status_code == 409

    def test_change_password(self, api_env, make_user) -> None:
        email, token = make_user()
        client = api_env.client
        resp = client.put(
            "/api/v1/auth/change-password",
            json={"current_password": "Wrong1234", "new_password": "NewPassw0rd", "confirm_password": "NewPassw0rd"},
            headers=_auth(token),
        )
        assert resp.status_code == 400
        assert _error(resp)["code"] == "invalid_current_password"

        resp = client.put(
            "/api/v1/auth/change-password",
            json={"current_password": PASSWORD, "new_password": "NewPassw0rd", "confirm_password": "NewPassw0rd"},
            headers=_auth(token),
        )
        assert resp.status_code == 200
        resp = client.post("/api/v1/auth/login", json={"email": email, "password": "NewPassw0rd"})
        assert resp.status_code == 200


# ---------------------------------------------------------------------------
# Lockout and admin user management
# ---------------------------------------------------------------------------


class TestAdminUserManagement:
    def test_users_list_is_admin_only(self, api_env, make_user) -> None:
        _, token = make_user()
        resp = api_env.client.get("/api/v1/auth/users", headers=_auth(token))
        assert resp.status_code == 403
        assert _error(resp)["code"] == "forbidden"

        resp = api_env.client.get("/api/v1/auth/users", headers=api_env.admin_headers)
        assert resp.status_code == 200
        users = resp.json()
        assert "admin@folio.example.org" in [u["email"] for u in users]
        assert "failed_login_count" in users[0]
        assert "password_hash" not in users[0]

    def test_lockout_and_admin_unlock(self, api_env, make_user) -> None:
        client = api_env.client
        email, token = make_user()
        user_id = client.get("/api/v1/auth/me", headers=_auth(token)).json()["user"]["id"]

        for _ in range(5):
            resp = client.post("/api/v1/auth/login", json={"email": email, "password": "Wrong1234"})
            assert resp.status_code == 401
        resp = client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
        assert resp.status_code == 423
        assert _error(resp)["code"] == "account_locked"
        assert _error(resp)["lock_until"]

        resp = client.post(f"/api/v1/auth/users/{user_id}/unlock", headers=api_env.admin_headers)
        assert resp.status_code == 200
        assert resp.json()["failed_login_count"] == 0
        resp = client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
        assert resp.status_code == 200

    def test_deactivated_user_is_rejected(self, api_env, make_user) -> None:
        client = api_env.client
        email, token = make_user()
        user_id = client.get("/api/v1/auth/me", headers=_auth(token)).json()["user"]["id"]

        resp = client.patch(f"/api/v1/auth/users/{user_id}", json={"is_active": False}, headers=api_env.admin_headers)
        assert resp.status_code == 200
        assert resp.json()["is_active"] is False

        resp = client.get("/api/v1/auth/me", headers=_auth(token))
        assert resp.status_code == 401
        assert _error(resp)["code"] == "account_deactivated"
        resp = client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
        assert _error(resp)["code"] == "account_deactivated"

    def test_admin_cannot_deactivate_self(self, api_env) -> None:
        resp = api_env.client.patch(
            f"/api/v1/auth/users/{api_env.admin_id}", json={"is_active": False}, headers=api_env.admin_headers
        )
        assert resp.status_code == 400
        assert _error(resp)["code"] == "self_deactivation"

    def test_unknown_user(self, api_env) -> None:
        resp = api_env.client.post("/api/v1/auth/users/99999/unlock", headers=api_env.admin_headers)
        assert resp.status_code == 404
        assert _error(resp)["code"] == "user_not_found"

    def test_create_admin_when_admin_exists(self, api_env) -> None:
        resp = api_env.client.post(
            "/api/v1/auth/create-admin",
            json={"email": "second@folio.example.org", "password": "AdminPass1", "name": "Second Admin"},
        )
        assert resp.status_code == 409
        assert _error(resp)["code"] == "admin_exists"

    def test_docs_are_admin_only(self, api_env) -> None:
        assert api_env.client.get("/docs").status_code == 401
        assert api_env.client.get("/docs", headers=api_env.admin_headers).status_code == 200
