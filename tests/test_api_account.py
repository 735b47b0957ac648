"""API tests for /api/v1/account/* -- register, login, logout, me, email-available."""

import pytest

from api.limiter import limiter
from core.config import get_settings
from helpers import ADMIN_EMAIL, ADMIN_PASSWORD, GOOD_PASSWORD

BASE = "/api/v1/account"


@pytest.fixture(autouse=True)
def _clear_cookies(api_client):
    """Tests authenticate with explicit headers; drop any cookie a response set."""
    yield
    api_client.client.cookies.clear()


def _register(client, email, password=GOOD_PASSWORD, confirm=None):
    return client.post(
        f"{BASE}/register",
        json={"email": email, "password": password, "confirm_password": confirm or password},
    )


def _login(client, email, password=GOOD_PASSWORD, **extra):
    return client.post(f"{BASE}/login", json={"email": email, "password": password, **extra})


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Register
# ---------------------------------------------------------------------------


class TestRegister:
    def test_register_signs_in(self, api_client):
        resp = _register(api_client.client, "reg@example.com")
        assert resp.status_code == 201
        body = resp.json()
        assert body["email"] == "reg@example.com"
        assert body["persistent"] is False
        assert body["roles"] == []
        assert "access_token" in resp.cookies
        assert resp.headers["Cache-Control"] == "no-store"

    def test_weak_password_returns_field_errors(self, api_client):
        resp = _register(api_client.client, "weak@example.com", password="abcdef")
        assert resp.status_code == 422
        error = resp.json()["error"]
        assert error["code"] == "validation_error"
        assert "password" in error["fields"]

    def test_mismatched_confirmation(self, api_client):
        resp = _register(api_client.client, "mismatch@example.com", confirm="Str0ng!pX")
        assert resp.status_code == 422
        assert "confirm_password" in resp.json()["error"]["fields"]

    def test_duplicate_email_conflict(self, api_client):
        _register(api_client.client, "twice@example.com")
        resp = _register(api_client.client, "TWICE@example.com")
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "duplicate_email"

    def test_missing_field_is_422(self, api_client):
        resp = api_client.client.post(f"{BASE}/register", json={"email": "x@example.com"})
        assert resp.status_code == 422
        assert "password" in resp.json()["error"]["fields"]


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


class TestLogin:
    def test_login_success(self, api_client):
        resp = _login(api_client.client, ADMIN_EMAIL, ADMIN_PASSWORD)
        assert resp.status_code == 200
        body = resp.json()
        assert body["email"] == ADMIN_EMAIL
        assert body["roles"] == [get_settings().admin_role]
        assert body["redirect_to"] == "/"
        assert "access_token" in resp.cookies

    def test_local_return_url_is_kept(self, api_client):
        resp = _login(api_client.client, ADMIN_EMAIL, ADMIN_PASSWORD, return_url="/reports?page=2")
        assert resp.json()["redirect_to"] == "/reports?page=2"

    @pytest.mark.parametrize(
        "return_url",
        ["https://evil.example.com", "//evil.example.com", "/\\evil.example.com", "javascript:alert(1)"],
    )
    def test_external_return_url_is_replaced(self, api_client, return_url):
        resp = _login(api_client.client, ADMIN_EMAIL, ADMIN_PASSWORD, return_url=return_url)
        assert resp.json()["redirect_to"] == "/"

    def test_unknown_and_wrong_password_look_the_same(self, api_client):
        _register(api_client.client, "known@example.com")
        wrong = _login(api_client.client, "known@example.com", "Wr0ng!pass")
        unknown = _login(api_client.client, "nobody@example.com", "Wr0ng!pass")
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()
        assert wrong.json()["error"]["code"] == "invalid_credentials"

    def test_lockout_returns_423_with_retry_after(self, api_client):
        _register(api_client.client, "locked@example.com")
        for _ in range(get_settings().lockout_max_failed_attempts):
            assert _login(api_client.client, "locked@example.com", "Wr0ng!pass").status_code == 401

        resp = _login(api_client.client, "locked@example.com")
        assert resp.status_code == 423
        assert resp.json()["error"]["code"] == "locked_out"
        assert 0 < int(resp.headers["Retry-After"]) <= get_settings().lockout_seconds

    def test_remember_me_sets_persistent_cookie(self, api_client):
        resp = _login(api_client.client, ADMIN_EMAIL, ADMIN_PASSWORD, remember_me=True)
        assert resp.json()["persistent"] is True
        assert "Max-Age" in resp.headers["set-cookie"]

    def test_session_cookie_has_no_max_age(self, api_client):
        resp = _login(api_client.client, ADMIN_EMAIL, ADMIN_PASSWORD)
        cookie = resp.headers["set-cookie"]
        assert "HttpOnly" in cookie
        assert "Max-Age" not in cookie


# ---------------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------------


class TestSession:
    def test_me_requires_auth(self, api_client):
        resp = api_client.client.get(f"{BASE}/me")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"

    def test_me_with_bearer(self, api_client):
        resp = api_client.client.get(f"{BASE}/me", headers=api_client.admin_headers())
        assert resp.status_code == 200
        assert resp.json()["user_id"] == api_client.admin_id

    def test_me_with_cookie(self, api_client):
        _login(api_client.client, ADMIN_EMAIL, ADMIN_PASSWORD)
        resp = api_client.client.get(f"{BASE}/me")
        assert resp.status_code == 200
        assert resp.json()["email"] == ADMIN_EMAIL

    def test_garbage_token_is_401(self, api_client):
        resp = api_client.client.get(f"{BASE}/me", headers=_bearer("not.a.token"))
        assert resp.status_code == 401

    def test_logout_revokes_token(self, api_client):
        _register(api_client.client, "leaving@example.com")
        api_client.client.cookies.clear()
        token = _login(api_client.client, "leaving@example.com").json()["access_token"]
        api_client.client.cookies.clear()

        assert api_client.client.get(f"{BASE}/me", headers=_bearer(token)).status_code == 200
        resp = api_client.client.post(f"{BASE}/logout", headers=_bearer(token))
        assert resp.status_code == 200
        assert api_client.client.get(f"{BASE}/me", headers=_bearer(token)).status_code == 401

    def test_logout_is_idempotent(self, api_client):
        token = _login(api_client.client, ADMIN_EMAIL, ADMIN_PASSWORD).json()["access_token"]
        api_client.client.cookies.clear()
        assert api_client.client.post(f"{BASE}/logout", headers=_bearer(token)).status_code == 200
        assert api_client.client.post(f"{BASE}/logout", headers=_bearer(token)).status_code == 200
        assert api_client.client.post(f"{BASE}/logout").status_code == 200


# ---------------------------------------------------------------------------
# Email availability
# ---------------------------------------------------------------------------


class TestEmailAvailable:
    def test_disabled_by_default(self, api_client):
        resp = api_client.client.get(f"{BASE}/email-available", params={"email": ADMIN_EMAIL})
        assert resp.status_code == 404

    def test_enabled(self, api_client, monkeypatch):
        monkeypatch.setattr(get_settings(), "email_check_enabled", True)
        taken = api_client.client.get(f"{BASE}/email-available", params={"email": ADMIN_EMAIL.upper()})
        free = api_client.client.get(f"{BASE}/email-available", params={"email": "free@example.com"})
        assert taken.status_code == free.status_code == 200
        assert taken.json()["available"] is False
        assert free.json()["available"] is True


# ---------------------------------------------------------------------------
# Rate limiting (kept last: it exhausts the login allowance for this client)
# ---------------------------------------------------------------------------


def test_login_rate_limited(api_client, monkeypatch):
    limiter.reset()
    monkeypatch.setattr(get_settings(), "login_rate_limit", "2/minute")
    try:
        for _ in range(2):
            _login(api_client.client, "nobody@example.com", "Wr0ng!pass")
        resp = _login(api_client.client, "nobody@example.com", "Wr0ng!pass")
        assert resp.status_code == 429
        assert resp.json()["error"]["code"] == "rate_limited"
        assert "Retry-After" in resp.headers
    finally:
        limiter.reset()


def test_email_check_rate_limited(api_client, monkeypatch):
    limiter.reset()
    monkeypatch.setattr(get_settings(), "email_check_enabled", True)
    monkeypatch.setattr(get_settings(), "email_check_rate_limit", "2/minute")
    try:
        for _ in range(2):
            ok = api_client.client.get(f"{BASE}/email-available", params={"email": "someone@example.com"})
            assert ok.status_code == 200
        resp = api_client.client.get(f"{BASE}/email-available", params={"email": "someone@example.com"})
        assert resp.status_code == 429
    finally:
        limiter.reset()
