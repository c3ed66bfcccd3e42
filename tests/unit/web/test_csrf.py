"""Tests for double-submit CSRF protection."""

import pytest
from fastapi.testclient import TestClient

from notesauth.web.csrf import CSRF_COOKIE, CSRF_HEADER, csrf_tokens_match

CREDENTIALS = {"email": "alice@example.com", "password": "secret123"}


@pytest.fixture
def bare_client(fastapi_app):
    """Client that has not fetched a CSRF token yet."""
    return TestClient(fastapi_app)


class TestCsrfTokensMatch:
    """Tests for the comparison helper."""

    def test_equal_tokens(self):
        assert csrf_tokens_match("abc", "abc") is True

    def test_different_tokens(self):
        assert csrf_tokens_match("abc", "abd") is False

    @pytest.mark.parametrize(("cookie", "header"), [(None, "abc"), ("abc", None), ("", ""), (None, None)])
    def test_missing_values(self, cookie, header):
        assert csrf_tokens_match(cookie, header) is False


class TestCsrfEndpoint:
    """Tests for GET /api/csrf."""

    def test_returns_token_and_sets_cookie(self, bare_client):
        response = bare_client.get("/api/csrf")
        assert response.status_code == 200
        token = response.json()["token"]
        assert bare_client.cookies.get(CSRF_COOKIE) == token

    def test_cookie_is_readable_by_scripts(self, bare_client):
        response = bare_client.get("/api/csrf")
        set_cookie = response.headers["set-cookie"]
        assert set_cookie.startswith(f"{CSRF_COOKIE}=")
        assert "httponly" not in set_cookie.lower()


class TestCsrfMiddleware:
    """Tests for rejection of mutating requests."""

    def test_matching_header_passes(self, client):
        """Test that a request with a matching header reaches the route."""
        response = client.post("/api/auth/login", json=CREDENTIALS)
        assert response.status_code == 401

    def test_missing_cookie_and_header(self, bare_client):
        response = bare_client.post("/api/auth/login", json=CREDENTIALS)
        assert response.status_code == 403
        assert response.json() == {"message": "Invalid CSRF token", "type": "csrf_mismatch"}

    def test_cookie_without_header(self, bare_client):
        """Test that a cross-site form, which only carries the cookie, is rejected."""
        bare_client.get("/api/csrf")
        response = bare_client.post("/api/auth/login", json=CREDENTIALS)
        assert response.status_code == 403

    def test_header_without_cookie(self, bare_client):
        response = bare_client.post("/api/auth/login", json=CREDENTIALS, headers={CSRF_HEADER: "guessed"})
        assert response.status_code == 403

    def test_mismatched_header(self, bare_client):
        bare_client.get("/api/csrf")
        response = bare_client.post("/api/auth/login", json=CREDENTIALS, headers={CSRF_HEADER: "guessed"})
        assert response.status_code == 403

    def test_safe_methods_need_no_header(self, bare_client):
        response = bare_client.get("/api/auth/me")
        assert response.status_code == 401

    def test_rejected_before_authentication_matters(self, client, fastapi_app):
        """Test that a valid session does not excuse a missing CSRF header."""
        client.post("/api/auth/register", json=CREDENTIALS)
        session_token = client.cookies.get("session_token")

        attacker = TestClient(fastapi_app)
        attacker.cookies.set("session_token", session_token)
        response = attacker.post("/api/auth/logout")
        assert response.status_code == 403
        assert client.get("/api/auth/me").status_code == 200
