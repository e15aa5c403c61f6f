# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up test environment variables before any imports
# - Replaces SupabaseClient's data methods with an in-memory store
# - Provides a TestClient with a stubbed OpenAI client behind the coach
# - Resets rate-limit counters and the vector index between tests
# =============================================================================

import copy
import os
from datetime import timedelta
from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock
from uuid import uuid4

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-0123456789")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("RATE_LIMIT_STORAGE_URL", "memory://")
os.environ["OPENAI_API_KEY"] = ""
os.environ["BCRYPT_ROUNDS"] = "4"

import pytest
from fastapi.testclient import TestClient

from agents.coach import CoachAgent
from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import parse_datetime, utc_now
from lib.vector_store import vector_store


STRONG_PASSWORD = "Engine@1843"


# =============================================================================
# In-memory Supabase
# =============================================================================

class FakeSupabase:
    """
    Dict-backed stand-in for the SupabaseClient data methods.

    Rows are deep-copied in and out so tests can't mutate stored state by
    accident, matching how real query results behave.
    """

    def __init__(self):
        self.users: dict[str, dict[str, Any]] = {}
        self.goals: dict[str, dict[str, Any]] = {}
        self.messages: dict[str, dict[str, Any]] = {}
        self.ping_error: Exception | None = None
        self._sequence = 0

    def _stamp(self, data: dict[str, Any]) -> dict[str, Any]:
        row = copy.deepcopy(data)
        row.setdefault("id", str(uuid4()))
        row.setdefault("created_at", utc_now().isoformat())
        self._sequence += 1
        row["_seq"] = self._sequence
        return row

    @staticmethod
    def _out(row: dict[str, Any] | None) -> dict[str, Any] | None:
        if row is None:
            return None
        result = copy.deepcopy(row)
        result.pop("_seq", None)
        return result

    # Health ------------------------------------------------------------------

    def ping(self) -> bool:
        if self.ping_error:
            raise self.ping_error
        return True

    # Users -------------------------------------------------------------------

    def fetch_user(self, user_id):
        return self._out(self.users.get(str(user_id)))

    def fetch_user_by_email(self, email):
        email = email.strip().lower()
        return self._out(next((u for u in self.users.values() if u["email"] == email), None))

    def fetch_users(self, status="active", reminder_frequency=None):
        rows = [
            u for u in self.users.values()
            if (not status or u.get("status") == status)
            and (not reminder_frequency
                 or (u.get("preferences") or {}).get("reminder_frequency") == reminder_frequency)
        ]
        return [self._out(u) for u in rows]

    def insert_user(self, data):
        row = self._stamp(data)
        self.users[row["id"]] = row
        return self._out(row)

    def update_user(self, user_id, data):
        row = self.users.get(str(user_id))
        if row is None:
            return None
        row.update(copy.deepcopy(data))
        return self._out(row)

    def delete_user(self, user_id):
        self.users.pop(str(user_id), None)

    # Goals -------------------------------------------------------------------

    def fetch_goals(self, user_id, status=None, category=None, goal_type=None):
        statuses = status if isinstance(status, list) else ([status] if status else None)
        rows = [
            g for g in self.goals.values()
            if g["user_id"] == str(user_id)
            and (statuses is None or g.get("status") in statuses)
            and (not category or g.get("category") == category)
            and (not goal_type or g.get("type") == goal_type)
        ]
        rows.sort(key=lambda g: (g["created_at"], g["_seq"]), reverse=True)
        return [self._out(g) for g in rows]

    def fetch_goal(self, goal_id, user_id):
        goal = self.goals.get(str(goal_id))
        if goal is None or goal["user_id"] != str(user_id):
            return None
        return self._out(goal)

    def insert_goal(self, data):
        row = self._stamp(data)
        self.goals[row["id"]] = row
        return self._out(row)

    def update_goal(self, goal_id, data):
        row = self.goals.get(str(goal_id))
        if row is None:
            return None
        row.update(copy.deepcopy(data))
        return self._out(row)

    def delete_goal(self, goal_id):
        self.goals.pop(str(goal_id), None)

    def delete_goals_for_user(self, user_id):
        for goal_id in [k for k, g in self.goals.items() if g["user_id"] == str(user_id)]:
            del self.goals[goal_id]

    # Messages ----------------------------------------------------------------

    def _user_messages(self, user_id, conversation_id=None, message_type=None, since=None):
        since_dt = parse_datetime(since)
        rows = [
            m for m in self.messages.values()
            if m["user_id"] == str(user_id)
            and (not conversation_id or m.get("conversation_id") == conversation_id)
            and (not message_type or m.get("type") == message_type)
            and (since_dt is None or parse_datetime(m["created_at"]) >= since_dt)
        ]
        rows.sort(key=lambda m: (parse_datetime(m["created_at"]), m["_seq"]))
        return rows

    def _message_out(self, row):
        result = self._out(row)
        if result is not None:
            result.pop("embedding", None)
        return result

    def fetch_messages(self, user_id, conversation_id=None, message_type=None, since=None, limit=None):
        rows = self._user_messages(user_id, conversation_id, message_type, since)
        if limit:
            rows = rows[-limit:]
        return [self._message_out(m) for m in rows]

    def fetch_message(self, message_id, user_id):
        row = self.messages.get(str(message_id))
        if row is None or row["user_id"] != str(user_id):
            return None
        return self._message_out(row)

    def fetch_message_embeddings(self, user_id, limit=1000):
        rows = [
            m for m in self._user_messages(user_id, message_type="ai")
            if m.get("embedding") is not None
        ]
        return [self._out(m) for m in rows[-limit:]]

    def count_messages(self, user_id, message_type=None, since=None):
        return len(self._user_messages(user_id, message_type=message_type, since=since))

    def insert_message(self, data):
        row = self._stamp(data)
        self.messages[row["id"]] = row
        return self._message_out(row)

    def update_message(self, message_id, data):
        row = self.messages.get(str(message_id))
        if row is None:
            return None
        row.update(copy.deepcopy(data))
        return self._message_out(row)

    def delete_messages(self, user_id, conversation_id=None):
        doomed = [m["id"] for m in self._user_messages(user_id, conversation_id=conversation_id)]
        for message_id in doomed:
            del self.messages[message_id]
        return len(doomed)


FAKE_METHODS = [
    "ping",
    "fetch_user", "fetch_user_by_email", "fetch_users", "insert_user", "update_user", "delete_user",
    "fetch_goals", "fetch_goal", "insert_goal", "update_goal", "delete_goal", "delete_goals_for_user",
    "fetch_messages", "fetch_message", "fetch_message_embeddings", "count_messages",
    "insert_message", "update_message", "delete_messages",
]


def _no_network():
    raise SupabaseClientError("Tests must not create a real Supabase client", code="TEST_NO_NETWORK")


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def fake_db(monkeypatch):
    """In-memory database patched onto every SupabaseClient data method."""
    db = FakeSupabase()
    for name in FAKE_METHODS:
        monkeypatch.setattr(SupabaseClient, name, getattr(db, name))
    monkeypatch.setattr(SupabaseClient, "get_client", _no_network)
    return db


@pytest.fixture(autouse=True)
def reset_shared_state():
    """Fresh rate-limit counters and vector index for every test."""
    from app.middleware.rate_limit import limiter

    limiter.reset()
    vector_store._records.clear()
    vector_store._vectors.clear()
    vector_store._loaded.clear()
    yield
    limiter.reset()


def make_openai_client(reply: str = "Let's plan your next step together.", embedding=None):
    """MagicMock shaped like the OpenAI client for chat and embeddings."""
    client = MagicMock()
    client.chat.completions.create.return_value = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=reply))]
    )
    client.embeddings.create.return_value = SimpleNamespace(
        data=[SimpleNamespace(embedding=embedding or [0.1, 0.2, 0.3])]
    )
    return client


@pytest.fixture
def openai_client():
    return make_openai_client()


@pytest.fixture
def coach(openai_client):
    return CoachAgent(model="gpt-4", client=openai_client)


@pytest.fixture
def client(coach):
    """TestClient whose coach talks to a mocked OpenAI client."""
    from app.dependencies import get_coach
    from app.main import app

    app.dependency_overrides[get_coach] = lambda: coach
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def register(client, name="Ada Lovelace", email="ada@example.com", password=STRONG_PASSWORD):
    """Register through the API; returns the response."""
    return client.post(
        "/api/auth/register",
        json={"name": name, "email": email, "password": password},
    )


@pytest.fixture
def auth(client):
    """Registered user: SimpleNamespace(token, user, headers)."""
    response = register(client)
    assert response.status_code == 201, response.text
    data = response.json()
    return SimpleNamespace(
        token=data["token"],
        user=data["user"],
        headers={"Authorization": f"Bearer {data['token']}"},
    )


# =============================================================================
# Data Factories
# =============================================================================

def make_goal(
    progress: float = 0,
    status: str = "active",
    category: str = "fitness",
    history: list[tuple[int, float]] | None = None,
    check_in_days_ago: list[int] | None = None,
    milestones: list[dict[str, Any]] | None = None,
    now=None,
    **extra,
) -> dict[str, Any]:
    """
    Goal row for pure unit tests.

    Args:
        history: (days_ago, progress) pairs for progress_history
        check_in_days_ago: days ago of each check-in
    """
    now = now or utc_now()
    goal = {
        "id": str(uuid4()),
        "user_id": "user-1",
        "title": "Run a half marathon",
        "category": category,
        "type": "long-term",
        "status": status,
        "priority": "medium",
        "progress": progress,
        "milestones": milestones or [],
        "progress_history": [
            {"date": (now - timedelta(days=days)).isoformat(), "progress": value, "note": None}
            for days, value in (history or [])
        ],
        "check_ins": [
            {"date": (now - timedelta(days=days)).isoformat(), "mood": 4}
            for days in (check_in_days_ago or [])
        ],
        "created_at": (now - timedelta(days=60)).isoformat(),
    }
    goal.update(extra)
    return goal
