# =============================================================================
# tests/test_auth.py - Authentication Tests
# =============================================================================
# Tests for registration, login, token handling and the failed-attempt
# budget on the auth routes.
#
# Run with: pytest tests/test_auth.py -v
# =============================================================================

import asyncio
from datetime import timedelta

import pytest
from fastapi.security import HTTPAuthorizationCredentials

from app.auth.dependencies import get_current_user_optional
from lib.security import create_access_token, decode_access_token, hash_password, verify_password
from tests.conftest import STRONG_PASSWORD, register


# =============================================================================
# Password and Token Helpers
# =============================================================================

class TestSecurityHelpers:

    def test_password_round_trip(self):
        hashed = hash_password(STRONG_PASSWORD)

        assert hashed != STRONG_PASSWORD
        assert verify_password(STRONG_PASSWORD, hashed)
        assert not verify_password("Wrong@1234", hashed)

    @pytest.mark.parametrize("stored", [None, "", "not-a-bcrypt-hash"])
    def test_verify_against_missing_or_bad_hash(self, stored):
        assert not verify_password(STRONG_PASSWORD, stored)

    def test_token_claims(self):
        payload = decode_access_token(create_access_token("user-1", "ada@example.com"))

        assert payload["sub"] == "user-1"
        assert payload["email"] == "ada@example.com"
        assert payload["exp"] > payload["iat"]


# =============================================================================
# Register
# =============================================================================

class TestRegister:

    def test_register_returns_token_and_public_user(self, client, fake_db):
        response = register(client, email="Ada@Example.com")

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["token"]
        assert data["user"]["email"] == "ada@example.com"
        assert data["user"]["preferences"]["coaching_style"] == "supportive"
        assert "password_hash" not in data["user"]

        stored = next(iter(fake_db.users.values()))
        assert stored["password_hash"].startswith("$2")
        assert stored["metrics"]["last_active"] is not None

    def test_duplicate_email(self, client):
        register(client)
        response = register(client, email="ADA@example.com")

        assert response.status_code == 400
        assert response.json()["code"] == "USER_EXISTS"

    def test_weak_password_is_validation_error(self, client):
        response = register(client, password="password")

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["details"][0]["field"] == "password"


# =============================================================================
# Login
# =============================================================================

class TestLogin:

    def test_login(self, client):
        register(client)

        response = client.post("/api/auth/login", json={"email": "ada@example.com", "password": STRONG_PASSWORD})

        assert response.status_code == 200
        assert response.json()["user"]["name"] == "Ada Lovelace"

    @pytest.mark.parametrize("email,password", [
        ("ada@example.com", "Wrong@1234"),
        ("nobody@example.com", STRONG_PASSWORD),
    ])
    def test_bad_credentials_look_the_same(self, client, email, password):
        register(client)

        response = client.post("/api/auth/login", json={"email": email, "password": password})

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Invalid credentials", "code": "INVALID_CREDENTIALS"}

    def test_suspended_account(self, client, fake_db):
        register(client)
        next(iter(fake_db.users.values()))["status"] = "suspended"

        response = client.post("/api/auth/login", json={"email": "ada@example.com", "password": STRONG_PASSWORD})

        assert response.status_code == 403
        assert response.json()["code"] == "ACCOUNT_DISABLED"

    def test_failed_attempts_are_limited(self, client):
        register(client)
        wrong = {"email": "ada@example.com", "password": "Wrong@1234"}

        for _ in range(5):
            assert client.post("/api/auth/login", json=wrong).status_code == 401

        response = client.post("/api/auth/login", json={"email": "ada@example.com", "password": STRONG_PASSWORD})

        assert response.status_code == 429
        assert response.json()["error"] == "Too many authentication attempts, please try again later."
        assert int(response.headers["Retry-After"]) >= 1

    def test_rejected_payloads_are_limited(self, client):
        weak = {"name": "Ada", "email": "ada@example.com", "password": "short"}
        malformed = {"email": "not-an-email", "password": "Wrong@1234"}

        statuses = [client.post("/api/auth/register", json=weak).status_code for _ in range(3)]
        statuses += [client.post("/api/auth/login", json=malformed).status_code for _ in range(2)]
        assert statuses == [400] * 5

        response = client.post("/api/auth/login", json=malformed)

        assert response.status_code == 429
        assert response.json()["code"] == "RATE_LIMIT_EXCEEDED"

    def test_successful_logins_are_not_counted(self, client):
        register(client)
        good = {"email": "ada@example.com", "password": STRONG_PASSWORD}

        for _ in range(7):
            assert client.post("/api/auth/login", json=good).status_code == 200


# =============================================================================
# Tokens on Protected Routes
# =============================================================================

class TestTokens:

    def test_me(self, client, auth):
        response = client.get("/api/auth/me", headers=auth.headers)

        assert response.status_code == 200
        assert response.json()["user"]["id"] == auth.user["id"]

    def test_verify(self, client, auth):
        response = client.get("/api/auth/verify", headers=auth.headers)

        assert response.json() == {
            "success": True,
            "valid": True,
            "user_id": auth.user["id"],
            "email": "ada@example.com",
        }

    def test_missing_token(self, client):
        response = client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json()["error"] == "Access denied. No token provided."

    def test_garbage_token(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid token."

    def test_expired_token(self, client, auth):
        token = create_access_token(auth.user["id"], expires_delta=timedelta(seconds=-10))

        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["error"] == "Token has expired."

    def test_deleted_user(self, client, auth, fake_db):
        fake_db.users.clear()

        response = client.get("/api/auth/me", headers=auth.headers)

        assert response.status_code == 401
        assert response.json()["error"] == "Token is valid but user not found."

    def test_request_updates_last_active(self, client, auth, fake_db):
        stored = fake_db.users[auth.user["id"]]
        stored["metrics"]["last_active"] = "2020-01-01T00:00:00+00:00"

        client.get("/api/auth/me", headers=auth.headers)

        assert fake_db.users[auth.user["id"]]["metrics"]["last_active"] > "2020-01-01T00:00:00+00:00"


class TestOptionalUser:

    def _resolve(self, token):
        credentials = None
        if token is not None:
            credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)
        return asyncio.run(get_current_user_optional(credentials))

    def test_valid_token(self, auth):
        user = self._resolve(auth.token)
        assert user.id == auth.user["id"]

    @pytest.mark.parametrize("token", [None, "not-a-jwt"])
    def test_no_usable_token(self, token):
        assert self._resolve(token) is None

    def test_suspended_account(self, auth, fake_db):
        fake_db.users[auth.user["id"]]["status"] = "suspended"
        assert self._resolve(auth.token) is None
