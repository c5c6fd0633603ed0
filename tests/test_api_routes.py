"""Integration tests for the /users routes via TestClient.

Covers:
- register: 201 / 400 invalid value / 409 duplicate / 422 wrong shape
- login: 200 with Cache-Control: no-store, identical 401 bodies for
  unknown email and wrong password
- getInfo: 200 with public fields only, 401 for missing, malformed,
  forged or unknown-user tokens
- 503 with Retry-After when the store is unavailable
"""

from unittest.mock import MagicMock

import pytest

from auth.models import SessionClaims
from auth.tokens import TokenIssuer
from core.errors import TransientIOError

_ACCOUNT = {"email": "a@b.com", "password": "Passw0rd!", "username": "abc", "name": "A B"}


def _register(client, **overrides):
    return client.post("/users/register", json={**_ACCOUNT, **overrides})


def _login(client, email="a@b.com", password="Passw0rd!"):
    return client.post("/users/login", json={"email": email, "password": password})


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# POST /users/register
# ---------------------------------------------------------------------------


class TestRegister:
    def test_created(self, api_client):
        client, _ = api_client
        resp = _register(client)
        assert resp.status_code == 201
        assert resp.json() == {"message": "User registered."}

    def test_weak_password(self, api_client):
        client, _ = api_client
        resp = _register(client, password="short")
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_value"

    def test_password_with_trailing_newline(self, api_client):
        client, _ = api_client
        resp = _register(client, password="Passw0rd!\n")
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_value"

    def test_malformed_email(self, api_client):
        client, _ = api_client
        resp = _register(client, email="not-an-email")
        assert resp.status_code == 400

    def test_duplicate(self, api_client):
        client, _ = api_client
        _register(client)
        resp = _register(client, email="A@B.com", username="other")
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "conflict"

    def test_missing_field(self, api_client):
        client, _ = api_client
        resp = client.post("/users/register", json={"email": "a@b.com", "password": "Passw0rd!"})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"

    def test_register_does_not_log_in(self, api_client):
        client, _ = api_client
        resp = _register(client)
        assert "token" not in resp.json()


# ---------------------------------------------------------------------------
# POST /users/login
# ---------------------------------------------------------------------------


class TestLogin:
    def test_success(self, api_client):
        client, _ = api_client
        _register(client)
        resp = _login(client)
        assert resp.status_code == 200
        assert set(resp.json()) == {"token"}
        assert resp.headers["cache-control"] == "no-store"

    def test_unknown_email_and_wrong_password_look_the_same(self, api_client):
        client, _ = api_client
        _register(client)
        unknown = _login(client, email="nobody@b.com")
        wrong = _login(client, password="Wr0ngpass!")
        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json() == wrong.json()
        assert unknown.headers["www-authenticate"] == "Bearer"

    def test_empty_password_is_a_shape_error(self, api_client):
        client, _ = api_client
        assert _login(client, password="").status_code == 422


# ---------------------------------------------------------------------------
# GET /users/getInfo
# ---------------------------------------------------------------------------


class TestGetInfo:
    def test_returns_public_fields(self, api_client):
        client, _ = api_client
        _register(client)
        token = _login(client).json()["token"]
        resp = client.get("/users/getInfo", headers=_bearer(token))
        assert resp.status_code == 200
        body = resp.json()
        assert set(body) == {"id", "email", "username", "name"}
        assert body["email"] == "a@b.com"
        assert body["username"] == "abc"
        assert body["name"] == "A B"
        assert "Passw0rd!" not in resp.text
        assert "$2b$" not in resp.text

    def test_repeat_calls_agree(self, api_client):
        client, _ = api_client
        _register(client)
        token = _login(client).json()["token"]
        first = client.get("/users/getInfo", headers=_bearer(token)).json()
        second = client.get("/users/getInfo", headers=_bearer(token)).json()
        assert first == second

    @pytest.mark.parametrize(
        "headers",
        [
            {},
            {"Authorization": "Bearer"},
            {"Authorization": "Bearer "},
            {"Authorization": "Basic YTpi"},
            {"Authorization": "Bearer not-a-token"},
        ],
    )
    def test_rejected_headers(self, api_client, headers):
        client, _ = api_client
        resp = client.get("/users/getInfo", headers=headers)
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"

    def test_forged_token(self, api_client):
        client, service = api_client
        _register(client)
        forged = TokenIssuer("another-secret-that-is-also-32-chars-long", service.issuer.lifetime_seconds)
        token = forged.issue(forged.stamp(SessionClaims("x", "a@b.com", "abc", "A B")))
        assert client.get("/users/getInfo", headers=_bearer(token)).status_code == 401

    def test_token_for_unknown_user(self, api_client):
        client, service = api_client
        token = service.issuer.issue(service.issuer.stamp(SessionClaims("x", "ghost@b.com", "ghost", "Ghost")))
        resp = client.get("/users/getInfo", headers=_bearer(token))
        assert resp.status_code == 401
        assert resp.json()["error"]["message"] == "Invalid credentials or token."


# ---------------------------------------------------------------------------
# Store outage
# ---------------------------------------------------------------------------


def test_store_unavailable_is_503(api_client):
    client, service = api_client
    original = service.store.find_by_email
    service.store.find_by_email = MagicMock(side_effect=TransientIOError("database is locked"))
    try:
        resp = _login(client)
    finally:
        service.store.find_by_email = original
    assert resp.status_code == 503
    assert resp.headers["retry-after"] == "5"
    assert resp.json()["error"]["code"] == "unavailable"
