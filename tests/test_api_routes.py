"""
tests/test_api_routes.py -- Integration tests for the auth and users REST routes.

These tests exercise the full stack: FastAPI routing -> request validation ->
access gate -> AuthService/UserAdminService -> UserStore -> response model
serialization and the error envelope.

Fixtures used (from conftest.py):
  - api_client: (client, store, issuer). An ADMIN admin@example.com / admin123
    exists before each test; every test gets a fresh database.

Coverage:
  - register: 200 + camelCase user + accessToken + httpOnly cookie; 409; 400 validation
  - register input: password kept byte-for-byte, fullName trimmed, email stored as submitted
  - login: 200 with both tokens; 400 bad_credentials (same for unknown email); 403 blocked
  - refresh: 200 from cookie; 401 without cookie, after logout, and for tampered tokens
  - logout: 200 and cookie cleared, even without a session
  - users: own profile, 403 for others, 404, 400 bad id, admin list, block + last-admin guard
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from auth.store import UserStore
from auth.tokens import TokenIssuer

REGISTER_BODY = {"fullName": "A", "birthDate": "1990-01-01", "email": "a@x.com", "password": "secret1"}


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _set_cookie_headers(resp) -> list[str]:
    return [v for k, v in resp.headers.multi_items() if k.lower() == "set-cookie"]


def _admin_token(client: TestClient) -> str:
    resp = client.post("/api/v1/auth/login", json={"email": "admin@example.com", "password": "admin123"})
    assert resp.status_code == 200, resp.text
    return resp.json()["accessToken"]


class TestRegister:
    def test_register_success(self, api_client: tuple[TestClient, UserStore, TokenIssuer]) -> None:
        client, _store, _issuer = api_client
        resp = client.post("/api/v1/auth/register", json=REGISTER_BODY)
        assert resp.status_code == 200, resp.text
        data = resp.json()
        user = data["user"]
        assert user["role"] == "USER"
        assert user["status"] == "ACTIVE"
        assert user["fullName"] == "A"
        assert user["birthDate"] == "1990-01-01"
        assert "password" not in user
        assert "hashedPassword" not in user
        assert "refreshToken" not in user
        assert data["accessToken"]
        assert resp.headers["cache-control"] == "no-store"

    def test_register_sets_httponly_refresh_cookie(self, api_client: tuple[TestClient, UserStore, TokenIssuer]) -> None:
        client, _store, _issuer = api_client
        resp = client.post("/api/v1/auth/register", json=REGISTER_BODY)
        cookies = [h for h in _set_cookie_headers(resp) if h.startswith("refreshToken=")]
        assert len(cookies) == 1
        assert "httponly" in cookies[0].lower()
        assert "max-age=2592000" in cookies[0].lower()

    def test_register_duplicate_email_conflict(self, api_client: tuple[TestClient, UserStore, TokenIssuer]) -> None:
        client, _store, _issuer = api_client
        assert client.post("/api/v1/auth/register", json=REGISTER_BODY).status_code == 200
        other = {**REGISTER_BODY, "fullName": "B", "password": "another1"}
        resp = client.post("/api/v1/auth/register", json=other)
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "conflict"

    def test_register_short_password_rejected(self, api_client: tuple[TestClient, UserStore, TokenIssuer]) -> None:
        client, _store, _issuer = api_client
        resp = client.post("/api/v1/auth/register", json={**REGISTER_BODY, "password": "12345"})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"

    def test_register_bad_email_rejected(self, api_client: tuple[TestClient, UserStore, TokenIssuer]) -> None:
        client, _store, _issuer = api_client
        resp = client.post("/api/v1/auth/register", json={**REGISTER_BODY, "email": "not-an-email"})
        assert resp.status_code == 400

    def test_register_bad_birth_date_rejected(self, api_client: tuple[TestClient, UserStore, TokenIssuer]) -> None:
        client, _store, _issuer = api_client
        resp = client.post("/api/v1/auth/register", json={**REGISTER_BODY, "birthDate": "01/01/1990"})
        assert resp.status_code == 400

    def test_register_blank_name_rejected(self, api_client: tuple[TestClient, UserStore, TokenIssuer]) -> None:
        client, _store, _issuer = api_client
        resp = client.post("/api/v1/auth/register", json={**REGISTER_BODY, "fullName": "   "})
        assert resp.status_code == 400

    def test_register_keeps_password_whitespace(self, api_client: tuple[TestClient, UserStore, TokenIssuer]) -> None:
        """The password is hashed exactly as typed, so the same string logs in."""
        client, _store, _issuer = api_client
        body = {**REGISTER_BODY, "password": " secret1 "}
        assert client.post("/api/v1/auth/register", json=body).status_code == 200

        same = client.post("/api/v1/auth/login", json={"email": "a@x.com", "password": " secret1 "})
        trimmed = client.post("/api/v1/auth/login", json={"email": "a@x.com", "password": "secret1"})
        assert same.status_code == 200
        assert trimmed.status_code == 400

    def test_register_trims_full_name(self, api_client: tuple[TestClient, UserStore, TokenIssuer]) -> None:
        client, _store, _issuer = api_client
        resp = client.post("/api/v1/auth/register", json={**REGISTER_BODY, "fullName": "  Ada  "})
        assert resp.json()["user"]["fullName"] == "Ada"

    def test_register_stores_email_as_submitted(self, api_client: tuple[TestClient, UserStore, TokenIssuer]) -> None:
        client, store, _issuer = api_client
        resp = client.post("/api/v1/auth/register", json={**REGISTER_BODY, "email": "Mixed.Case@X.com"})
        assert resp.status_code == 200
        assert resp.json()["user"]["email"] == "Mixed.Case@X.com"
        assert store.find_by_email("Mixed.Case@X.com") is not None
        assert store.find_by_email("Mixed.Case@x.com") is None

    def test_emails_differing_in_domain_case_are_distinct(
        self, api_client: tuple[TestClient, UserStore, TokenIssuer]
    ) -> None:
        client, _store, _issuer = api_client
        assert client.post("/api/v1/auth/register", json={**REGISTER_BODY, "email": "a@X.com"}).status_code == 200
        assert client.post("/api/v1/auth/register", json=REGISTER_BODY).status_code == 200
        resp = client.post("/api/v1/auth/login", json={"email": "a@X.com", "password": "secret1"})
        assert resp.status_code == 200
        assert resp.json()["user"]["email"] == "a@X.com"


class TestLogin:
    def test_login_returns_both_tokens(self, api_client: tuple[TestClient, UserStore, TokenIssuer]) -> None:
        client, _store, _issuer = api_client
        resp = client.post("/api/v1/auth/login", json={"email": "admin@example.com", "password": "admin123"})
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["accessToken"]
        assert data["refreshToken"]
        assert data["expiresIn"] == 900
        assert data["user"]["role"] == "ADMIN"
        assert resp.cookies.get("refreshToken") == data["refreshToken"]

    def test_wrong_password_and_unknown_email_look_the_same(
        self, api_client: tuple[TestClient, UserStore, TokenIssuer]
    ) -> None:
        client, _store, _issuer = api_client
        wrong = client.post("/api/v1/auth/login", json={"email": "admin@example.com", "password": "nope"})
        unknown = client.post("/api/v1/auth/login", json={"email": "ghost@example.com", "password": "admin123"})
        assert wrong.status_code == unknown.status_code == 400
        assert wrong.json() == unknown.json()
        assert wrong.json()["error"]["code"] == "bad_credentials"

    def test_blocked_user_login_forbidden(self, api_client: tuple[TestClient, UserStore, TokenIssuer]) -> None:
        client, _store, _issuer = api_client
        user_id = client.post("/api/v1/auth/register", json=REGISTER_BODY).json()["user"]["id"]
        admin_token = _admin_token(client)
        assert client.patch(f"/api/v1/users/{user_id}/block", headers=_bearer(admin_token)).status_code == 200

        resp = client.post("/api/v1/auth/login", json={"email": "a@x.com", "password": "secret1"})
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "forbidden"


class TestRefreshAndLogout:
    def test_refresh_from_cookie(self, api_client: tuple[TestClient, UserStore, TokenIssuer]) -> None:
        client, _store, issuer = api_client
        client.post("/api/v1/auth/register", json=REGISTER_BODY)
        resp = client.post("/api/v1/auth/refresh")
        assert resp.status_code == 200, resp.text
        claims = issuer.verify_access(resp.json()["accessToken"])
        assert claims is not None
        assert claims.email == "a@x.com"

    def test_refresh_without_cookie_unauthorized(self, api_client: tuple[TestClient, UserStore, TokenIssuer]) -> None:
        client, _store, _issuer = api_client
        resp = client.post("/api/v1/auth/refresh")
        assert resp.status_code == 401

    def test_refresh_with_tampered_token_unauthorized(
        self, api_client: tuple[TestClient, UserStore, TokenIssuer]
    ) -> None:
        client, _store, _issuer = api_client
        token = client.post("/api/v1/auth/register", json=REGISTER_BODY).cookies.get("refreshToken")
        head, payload, sig = token.split(".")
        tampered = f"{head}.{payload}.{'A' if sig[0] != 'A' else 'B'}{sig[1:]}"
        client.cookies.clear()
        resp = client.post("/api/v1/auth/refresh", cookies={"refreshToken": tampered})
        assert resp.status_code == 401

    def test_logout_then_refresh_unauthorized(self, api_client: tuple[TestClient, UserStore, TokenIssuer]) -> None:
        client, _store, _issuer = api_client
        token = client.post("/api/v1/auth/register", json=REGISTER_BODY).cookies.get("refreshToken")
        resp = client.post("/api/v1/auth/logout")
        assert resp.status_code == 200
        assert any(h.startswith("refreshToken=") for h in _set_cookie_headers(resp))

        client.cookies.clear()
        resp = client.post("/api/v1/auth/refresh", cookies={"refreshToken": token})
        assert resp.status_code == 401

    def test_logout_without_session_is_ok(self, api_client: tuple[TestClient, UserStore, TokenIssuer]) -> None:
        client, _store, _issuer = api_client
        assert client.post("/api/v1/auth/logout").status_code == 200
        assert client.post("/api/v1/auth/logout").status_code == 200


class TestUserRoutes:
    def test_user_reads_own_profile(self, api_client: tuple[TestClient, UserStore, TokenIssuer]) -> None:
        client, _store, _issuer = api_client
        data = client.post("/api/v1/auth/register", json=REGISTER_BODY).json()
        resp = client.get(f"/api/v1/users/{data['user']['id']}", headers=_bearer(data["accessToken"]))
        assert resp.status_code == 200
        body = resp.json()
        assert body["email"] == "a@x.com"
        assert set(body) == {"id", "fullName", "birthDate", "email", "role", "status", "createdAt"}

    def test_user_cannot_read_admin_profile(self, api_client: tuple[TestClient, UserStore, TokenIssuer]) -> None:
        client, store, _issuer = api_client
        admin_id = store.find_by_email("admin@example.com").id
        token = client.post("/api/v1/auth/register", json=REGISTER_BODY).json()["accessToken"]
        assert client.get(f"/api/v1/users/{admin_id}", headers=_bearer(token)).status_code == 403

    def test_admin_missing_user_not_found(self, api_client: tuple[TestClient, UserStore, TokenIssuer]) -> None:
        client, _store, _issuer = api_client
        resp = client.get("/api/v1/users/99999", headers=_bearer(_admin_token(client)))
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "not_found"

    def test_non_numeric_id_bad_request(self, api_client: tuple[TestClient, UserStore, TokenIssuer]) -> None:
        client, _store, _issuer = api_client
        resp = client.get("/api/v1/users/abc", headers=_bearer(_admin_token(client)))
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"

    def test_admin_lists_users(self, api_client: tuple[TestClient, UserStore, TokenIssuer]) -> None:
        client, _store, _issuer = api_client
        client.post("/api/v1/auth/register", json=REGISTER_BODY)
        resp = client.get("/api/v1/users", headers=_bearer(_admin_token(client)))
        assert resp.status_code == 200
        emails = [u["email"] for u in resp.json()]
        assert emails == ["admin@example.com", "a@x.com"]
        assert all("refreshToken" not in u for u in resp.json())

    def test_user_cannot_list_users(self, api_client: tuple[TestClient, UserStore, TokenIssuer]) -> None:
        client, _store, _issuer = api_client
        token = client.post("/api/v1/auth/register", json=REGISTER_BODY).json()["accessToken"]
        assert client.get("/api/v1/users", headers=_bearer(token)).status_code == 403

    def test_block_returns_id_and_status(self, api_client: tuple[TestClient, UserStore, TokenIssuer]) -> None:
        client, _store, _issuer = api_client
        user_id = client.post("/api/v1/auth/register", json=REGISTER_BODY).json()["user"]["id"]
        resp = client.patch(f"/api/v1/users/{user_id}/block", headers=_bearer(_admin_token(client)))
        assert resp.status_code == 200
        assert resp.json() == {"id": user_id, "status": "BLOCKED"}

    def test_admin_cannot_block_self(self, api_client: tuple[TestClient, UserStore, TokenIssuer]) -> None:
        client, store, _issuer = api_client
        admin_id = store.find_by_email("admin@example.com").id
        resp = client.patch(f"/api/v1/users/{admin_id}/block", headers=_bearer(_admin_token(client)))
        assert resp.status_code == 403

    def test_block_missing_user_not_found(self, api_client: tuple[TestClient, UserStore, TokenIssuer]) -> None:
        client, _store, _issuer = api_client
        resp = client.patch("/api/v1/users/99999/block", headers=_bearer(_admin_token(client)))
        assert resp.status_code == 404

    def test_user_cannot_block(self, api_client: tuple[TestClient, UserStore, TokenIssuer]) -> None:
        client, store, _issuer = api_client
        admin_id = store.find_by_email("admin@example.com").id
        token = client.post("/api/v1/auth/register", json=REGISTER_BODY).json()["accessToken"]
        assert client.patch(f"/api/v1/users/{admin_id}/block", headers=_bearer(token)).status_code == 403
