# =============================================================================
# tests/test_supabase_client.py - Supabase Query Tests
# =============================================================================
# Tests for how SupabaseClient builds message queries:
# - Unbounded reads are paged with range() until a short page comes back
# - Limited reads keep the newest rows, returned oldest first
#
# The autouse fake_db fixture patches the data methods, so these tests put
# the real fetch_messages back and give it a recording query builder.
#
# Run with: pytest tests/test_supabase_client.py -v
# =============================================================================

from types import SimpleNamespace

import pytest

import lib.supabase_client as supabase_module
from lib.supabase_client import SupabaseClient, SupabaseClientError

REAL_FETCH_MESSAGES = SupabaseClient.__dict__["fetch_messages"]


class RecordingQuery:
    """Chainable stand-in for a PostgREST query over a list of rows."""

    def __init__(self, rows, calls):
        self.rows = rows
        self.calls = calls
        self.bounds = None
        self.newest_first = False
        self.max_rows = None

    def select(self, *args, **kwargs):
        return self

    def eq(self, column, value):
        self.calls.append(("eq", column, value))
        return self

    def gte(self, column, value):
        self.calls.append(("gte", column, value))
        return self

    def order(self, column, desc=False):
        self.newest_first = self.newest_first or desc
        return self

    def limit(self, count):
        self.max_rows = count
        return self

    def range(self, start, end):
        self.calls.append(("range", start, end))
        self.bounds = (start, end)
        return self

    def execute(self):
        rows = list(reversed(self.rows)) if self.newest_first else list(self.rows)
        if self.bounds:
            rows = rows[self.bounds[0]:self.bounds[1] + 1]
        if self.max_rows:
            rows = rows[:self.max_rows]
        return SimpleNamespace(data=rows)


@pytest.fixture
def messages_table(monkeypatch):
    """Seven stored messages served through RecordingQuery, three per page."""
    rows = [{"id": f"m{i}", "content": f"message {i}"} for i in range(7)]
    calls = []
    client = SimpleNamespace(table=lambda name: RecordingQuery(rows, calls))

    monkeypatch.setattr(SupabaseClient, "fetch_messages", REAL_FETCH_MESSAGES)
    monkeypatch.setattr(SupabaseClient, "get_client", lambda: client)
    monkeypatch.setattr(supabase_module, "MESSAGE_PAGE_SIZE", 3)
    return SimpleNamespace(rows=rows, calls=calls)


class TestFetchMessages:

    def test_reads_every_page(self, messages_table):
        messages = SupabaseClient.fetch_messages("user-1")

        assert [m["id"] for m in messages] == [f"m{i}" for i in range(7)]
        ranges = [call[1:] for call in messages_table.calls if call[0] == "range"]
        assert ranges == [(0, 2), (3, 5), (6, 8)]

    def test_exact_multiple_ends_on_empty_page(self, messages_table):
        del messages_table.rows[6]

        messages = SupabaseClient.fetch_messages("user-1")

        assert len(messages) == 6
        assert [c for c in messages_table.calls if c[0] == "range"][-1] == ("range", 6, 8)

    def test_filters_applied_to_each_page(self, messages_table):
        SupabaseClient.fetch_messages("user-1", message_type="user", since="2026-10-01T00:00:00+00:00")

        assert messages_table.calls.count(("eq", "type", "user")) == 3
        assert messages_table.calls.count(("gte", "created_at", "2026-10-01T00:00:00+00:00")) == 3

    def test_limit_keeps_newest_oldest_first(self, messages_table):
        messages = SupabaseClient.fetch_messages("user-1", limit=2)

        assert [m["id"] for m in messages] == ["m5", "m6"]
        assert not any(call[0] == "range" for call in messages_table.calls)

    def test_query_failure_is_wrapped(self, monkeypatch):
        def broken():
            raise RuntimeError("connection reset")

        monkeypatch.setattr(SupabaseClient, "fetch_messages", REAL_FETCH_MESSAGES)
        monkeypatch.setattr(SupabaseClient, "get_client", broken)

        with pytest.raises(SupabaseClientError) as exc_info:
            SupabaseClient.fetch_messages("user-1")

        assert exc_info.value.code == "FETCH_MESSAGES_FAILED"
