"""
tests/test_api_routes.py -- Integration tests for the /api/v1/auth routes.

These tests exercise the full stack: FastAPI routing -> auth dependency injection
-> SessionManager/RequestAuthenticator -> UserStore -> response model
serialization and the error envelope.

Coverage:
  - register: 201, 409 on duplicates, 422 on bad input
  - login: 200 with pair + cookies; wrong password and unknown user share one 401
  - me: Bearer header, access cookie, 401 without credentials
  - refresh: body token, cookie token, replay rejected, no token
  - logout: revokes refresh token, clears cookies
  - change-password: revokes refresh token, new password required for login

Fixtures used (from conftest.py):
  - api_client: TestClient over create_app() with an isolated UserStore.
    The client keeps a cookie jar, so cookies set by login/refresh are sent on
    later requests.
"""

from __future__ import annotations

from fastapi.testclient import TestClient

PASSWORD = "correct-pw"


def _register(client: TestClient, username: str = "alice", email: str = "alice@example.com"):
    return client.post(
        "/api/v1/auth/register",
        json={"username": username, "email": email, "fullname": "Alice Liddell", "password": PASSWORD},
    )


def _login(client: TestClient, identifier: str = "alice", password: str = PASSWORD):
    return client.post("/api/v1/auth/login", json={"identifier": identifier, "password": password})


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class TestRegister:
    def test_register_created(self, api_client: TestClient) -> None:
        resp = _register(api_client, username="Alice", email="Alice@Example.com")
        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["username"] == "alice"
        assert data["email"] == "alice@example.com"
        assert "hashed_password" not in data
        assert "password" not in data

    def test_register_duplicate_conflict(self, api_client: TestClient) -> None:
        _register(api_client)
        resp = _register(api_client, email="other@example.com")
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "conflict"

    def test_register_bad_email(self, api_client: TestClient) -> None:
        resp = _register(api_client, email="not-an-email")
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"

    def test_register_blank_username(self, api_client: TestClient) -> None:
        """Whitespace-only passes the length check but not the core's trim."""
        resp = _register(api_client, username="   ")
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"


class TestLogin:
    def test_login_returns_pair_and_sets_cookies(self, api_client: TestClient) -> None:
        _register(api_client)
        resp = _login(api_client)
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["token_type"] == "bearer"
        assert data["access_token"] and data["refresh_token"]
        assert data["expires_in"] == 15 * 60
        assert data["user"]["username"] == "alice"
        assert resp.headers["cache-control"] == "no-store"
        set_cookie = ",".join(resp.headers.get_list("set-cookie"))
        assert "access_token=" in set_cookie
        assert "refresh_token=" in set_cookie
        assert "HttpOnly" in set_cookie

    def test_login_by_email(self, api_client: TestClient) -> None:
        _register(api_client)
        assert _login(api_client, identifier="ALICE@example.com").status_code == 200

    def test_wrong_password_and_unknown_user_look_alike(self, api_client: TestClient) -> None:
        _register(api_client)
        wrong = _login(api_client, password="wrong-pw")
        ghost = _login(api_client, identifier="ghost", password="x")
        assert wrong.status_code == ghost.status_code == 401
        assert wrong.json() == ghost.json()
        assert wrong.json()["error"]["code"] == "bad_credentials"


class TestMe:
    def test_me_with_bearer(self, api_client: TestClient) -> None:
        _register(api_client)
        token = _login(api_client).json()["access_token"]
        api_client.cookies.clear()
        resp = api_client.get("/api/v1/auth/me", headers=_bearer(token))
        assert resp.status_code == 200
        assert resp.json()["username"] == "alice"

    def test_me_with_cookie(self, api_client: TestClient) -> None:
        _register(api_client)
        _login(api_client)
        resp = api_client.get("/api/v1/auth/me")
        assert resp.status_code == 200
        assert resp.json()["email"] == "alice@example.com"

    def test_me_unauthenticated(self, api_client: TestClient) -> None:
        resp = api_client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert resp.json() == {"error": {"code": "unauthorized", "message": "Authentication required."}}

    def test_me_rejects_refresh_token(self, api_client: TestClient) -> None:
        _register(api_client)
        token = _login(api_client).json()["refresh_token"]
        api_client.cookies.clear()
        assert api_client.get("/api/v1/auth/me", headers=_bearer(token)).status_code == 401


class TestRefresh:
    def test_refresh_with_body(self, api_client: TestClient) -> None:
        _register(api_client)
        first = _login(api_client).json()
        api_client.cookies.clear()
        resp = api_client.post("/api/v1/auth/refresh", json={"refresh_token": first["refresh_token"]})
        assert resp.status_code == 200, resp.text
        assert resp.json()["refresh_token"] != first["refresh_token"]

    def test_refresh_with_cookie(self, api_client: TestClient) -> None:
        _register(api_client)
        first = _login(api_client).json()
        resp = api_client.post("/api/v1/auth/refresh")
        assert resp.status_code == 200, resp.text
        assert resp.json()["refresh_token"] != first["refresh_token"]

    def test_replayed_refresh_token_rejected(self, api_client: TestClient) -> None:
        _register(api_client)
        old = _login(api_client).json()["refresh_token"]
        assert api_client.post("/api/v1/auth/refresh", json={"refresh_token": old}).status_code == 200
        resp = api_client.post("/api/v1/auth/refresh", json={"refresh_token": old})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "invalid_refresh_token"

    def test_refresh_without_token(self, api_client: TestClient) -> None:
        resp = api_client.post("/api/v1/auth/refresh")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "invalid_refresh_token"

    def test_refresh_with_garbage(self, api_client: TestClient) -> None:
        resp = api_client.post("/api/v1/auth/refresh", json={"refresh_token": "garbage"})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "invalid_refresh_token"


class TestLogout:
    def test_logout_revokes_refresh_token(self, api_client: TestClient) -> None:
        _register(api_client)
        pair = _login(api_client).json()
        resp = api_client.post("/api/v1/auth/logout")
        assert resp.status_code == 200
        assert resp.json()["message"] == "Logged out."
        refreshed = api_client.post("/api/v1/auth/refresh", json={"refresh_token": pair["refresh_token"]})
        assert refreshed.status_code == 401
        assert refreshed.json()["error"]["code"] == "invalid_refresh_token"

    def test_logout_clears_cookies(self, api_client: TestClient) -> None:
        _register(api_client)
        _login(api_client)
        api_client.post("/api/v1/auth/logout")
        assert api_client.get("/api/v1/auth/me").status_code == 401

    def test_logout_requires_auth(self, api_client: TestClient) -> None:
        assert api_client.post("/api/v1/auth/logout").status_code == 401


class TestChangePassword:
    def test_change_password_flow(self, api_client: TestClient) -> None:
        _register(api_client)
        pair = _login(api_client).json()
        resp = api_client.post(
            "/api/v1/auth/change-password",
            json={"old_password": PASSWORD, "new_password": "brand-new-pw"},
        )
        assert resp.status_code == 200, resp.text

        refreshed = api_client.post("/api/v1/auth/refresh", json={"refresh_token": pair["refresh_token"]})
        assert refreshed.status_code == 401
        assert _login(api_client).status_code == 401
        assert _login(api_client, password="brand-new-pw").status_code == 200

    def test_wrong_old_password(self, api_client: TestClient) -> None:
        _register(api_client)
        _login(api_client)
        resp = api_client.post(
            "/api/v1/auth/change-password",
            json={"old_password": "not-it", "new_password": "brand-new-pw"},
        )
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "bad_credentials"

    def test_requires_auth(self, api_client: TestClient) -> None:
        resp = api_client.post(
            "/api/v1/auth/change-password",
            json={"old_password": PASSWORD, "new_password": "brand-new-pw"},
        )
        assert resp.status_code == 401
