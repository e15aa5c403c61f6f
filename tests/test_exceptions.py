# =============================================================================
# tests/test_exceptions.py - Error Envelope Tests
# =============================================================================
# Tests for the exception classes and the handlers that turn every failure
# into {success: false, error, code, ...}.
#
# Run with: pytest tests/test_exceptions.py -v
# =============================================================================

import pytest
from fastapi.testclient import TestClient

from app.config import settings
from app.exceptions import (
    AIServiceError,
    GoalNotFoundError,
    InvalidUpdateError,
    LifeCoachException,
    RateLimitExceededError,
)
from app.main import app
from lib.supabase_client import SupabaseClient, SupabaseClientError


class TestExceptionClasses:

    def test_to_dict_minimal(self):
        exc = LifeCoachException("Boom", code="BOOM", status_code=418)

        assert exc.to_dict() == {"success": False, "error": "Boom", "code": "BOOM"}

    def test_to_dict_with_suggestion_and_details(self):
        exc = InvalidUpdateError(["email"], ["name", "preferences"])
        body = exc.to_dict()

        assert body["code"] == "INVALID_UPDATES"
        assert body["suggestion"] == "Only these fields can be updated: name, preferences"
        assert body["details"] == {"rejected_fields": ["email"], "allowed_fields": ["name", "preferences"]}

    def test_not_found(self):
        exc = GoalNotFoundError("g-1")
        assert (exc.status_code, exc.code) == (404, "GOAL_NOT_FOUND")

    def test_rate_limit_headers(self):
        exc = RateLimitExceededError("slow down", retry_after=42)
        assert exc.headers == {"Retry-After": "42"}
        assert exc.details == {"retry_after": 42}

    @pytest.mark.parametrize("provider_status,expected", [
        (400, 400),
        (401, 500),
        (429, 429),
        (500, 503),
        (503, 503),
        (None, 500),
    ])
    def test_ai_status_mapping(self, provider_status, expected):
        exc = AIServiceError(provider_status, "provider said no")

        assert exc.status_code == expected
        assert exc.code == "AI_SERVICE_ERROR"
        assert exc.is_operational is (expected != 500)


# =============================================================================
# Handlers
# =============================================================================

def _raise(exc):
    def method(*args, **kwargs):
        raise exc
    return method


class TestHandlers:

    def test_unknown_route(self, client):
        response = client.get("/api/does-not-exist")

        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "ROUTE_NOT_FOUND"

    def test_method_not_allowed(self, client):
        response = client.put("/health", json={})

        assert response.status_code == 405
        assert response.json()["code"] == "HTTP_ERROR"

    def test_validation_details(self, client):
        response = client.post("/api/auth/register", json={"name": "R2D2", "email": "nope"})

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        fields = {d["field"] for d in body["details"]}
        assert {"name", "email", "password"} <= fields

    def test_database_error(self, client, auth, monkeypatch):
        monkeypatch.setattr(SupabaseClient, "fetch_goals", _raise(SupabaseClientError("connection refused")))

        response = client.get("/api/goals", headers=auth.headers)

        assert response.status_code == 500
        body = response.json()
        assert body["code"] == "DATABASE_ERROR"
        assert body["error"] == "Something went wrong on our end. Please try again later."
        assert "connection refused" in body["debug"]["message"]

    def test_database_error_masked_in_production(self, client, auth, monkeypatch):
        monkeypatch.setattr(SupabaseClient, "fetch_goals", _raise(SupabaseClientError("connection refused")))
        monkeypatch.setattr(settings, "ENVIRONMENT", "production")

        body = client.get("/api/goals", headers=auth.headers).json()

        assert "debug" not in body
        assert "connection refused" not in str(body)

    def test_unhandled_error(self, auth, monkeypatch):
        monkeypatch.setattr(SupabaseClient, "fetch_goals", _raise(RuntimeError("kaboom")))

        with TestClient(app, raise_server_exceptions=False) as raw_client:
            response = raw_client.get("/api/goals", headers=auth.headers)

        assert response.status_code == 500
        body = response.json()
        assert body["code"] == "INTERNAL_ERROR"
        assert body["debug"] == {"type": "RuntimeError", "message": "kaboom"}

    def test_non_operational_masked_in_production(self, client, auth, monkeypatch):
        monkeypatch.setattr(settings, "ENVIRONMENT", "production")
        monkeypatch.setattr(SupabaseClient, "fetch_goals", _raise(AIServiceError(401, "bad key")))

        response = client.get("/api/goals", headers=auth.headers)

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "error": "Something went wrong on our end. Please try again later.",
            "code": "INTERNAL_ERROR",
        }
