# =============================================================================
# lib/supabase_client.py - Supabase Client Wrapper
# =============================================================================
# This module provides a typed wrapper for Supabase database operations.
# It implements the singleton pattern to reuse a single client connection
# and provides specialized methods for the three tables the coach uses:
# - users: accounts, preferences and cached metrics
# - goals: goals with embedded milestones, progress history and check-ins
# - messages: chat messages (user, ai, system) with optional embeddings
#
# Every method raises SupabaseClientError on failure so routes never see
# raw PostgREST exceptions. "Not found" is returned as None, not raised.
#
# Usage:
#   from lib.supabase_client import SupabaseClient
#   goals = SupabaseClient.fetch_goals(user_id, status=["active", "paused"])
# =============================================================================

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from supabase import create_client, Client

from app.config import settings

# Set up logging for this module
logger = logging.getLogger(__name__)

# Columns returned for messages. Embeddings are large and never leave the
# server, so they are only selected by fetch_message_embeddings().
MESSAGE_COLUMNS = "id, user_id, conversation_id, type, content, metadata, created_at"

# Matches the PostgREST max-rows default; larger reads are paged
MESSAGE_PAGE_SIZE = 1000


class SupabaseClientError(Exception):
    """
    Error during Supabase operations.

    Provides actionable error messages following the principle:
    "Errors should tell HOW to fix, not just WHAT failed."
    """

    def __init__(
        self,
        message: str,
        code: str = "SUPABASE_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f" Suggestion: {self.suggestion}"
        return result


class SupabaseClient:
    """
    Typed wrapper for Supabase database operations.

    Implements singleton pattern - one client instance is shared across
    the application. All methods are class methods for easy access without
    instantiation.

    Example:
        user = SupabaseClient.fetch_user_by_email("ada@example.com")
        goals = SupabaseClient.fetch_goals(user["id"], status="active")
    """

    _instance: Client | None = None

    @classmethod
    def get_client(cls) -> Client:
        """
        Get or create the singleton Supabase client.

        Uses service_role key which bypasses Row Level Security (RLS).
        Ownership is enforced by filtering on user_id in every query.

        Raises:
            SupabaseClientError: If client creation fails
        """
        if cls._instance is None:
            try:
                cls._instance = create_client(
                    settings.SUPABASE_URL,
                    settings.SUPABASE_SERVICE_KEY
                )
                logger.info("Supabase client initialized successfully")
            except Exception as e:
                raise SupabaseClientError(
                    message=f"Failed to create Supabase client: {e}",
                    code="CLIENT_INIT_FAILED",
                    suggestion="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in your .env file"
                )
        return cls._instance

    @classmethod
    def _normalize_uuid(cls, uuid_value: str | UUID) -> str:
        """Convert UUID to string for queries."""
        return str(uuid_value) if isinstance(uuid_value, UUID) else uuid_value

    @classmethod
    def _first(cls, response: Any) -> dict[str, Any] | None:
        """First row of a response, or None when nothing matched."""
        data = response.data or []
        return data[0] if data else None

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    @classmethod
    def ping(cls) -> bool:
        """
        Check database connectivity with a one-row query.

        Raises:
            SupabaseClientError: If the database is unreachable
        """
        client = cls.get_client()
        try:
            client.table("users").select("id").limit(1).execute()
            return True
        except Exception as e:
            raise SupabaseClientError(
                message=f"Database ping failed: {e}",
                code="PING_FAILED",
                suggestion="Check that the Supabase project is running and reachable"
            )

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_user(cls, user_id: str | UUID) -> dict[str, Any] | None:
        """
        Fetch a user by ID.

        Returns:
            User dict (including password_hash), or None if not found
        """
        client = cls.get_client()
        user_id_str = cls._normalize_uuid(user_id)

        try:
            response = (
                client.table("users")
                .select("*")
                .eq("id", user_id_str)
                .limit(1)
                .execute()
            )
            return cls._first(response)

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch user: {e}",
                code="FETCH_USER_FAILED",
                details={"user_id": user_id_str}
            )

    @classmethod
    def fetch_user_by_email(cls, email: str) -> dict[str, Any] | None:
        """Fetch a user by (lower-cased) email, or None."""
        client = cls.get_client()

        try:
            response = (
                client.table("users")
                .select("*")
                .eq("email", email.strip().lower())
                .limit(1)
                .execute()
            )
            return cls._first(response)

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch user by email: {e}",
                code="FETCH_USER_FAILED",
            )

    @classmethod
    def fetch_users(
        cls,
        status: str | None = "active",
        reminder_frequency: str | None = None,
    ) -> list[dict[str, Any]]:
        """
        Fetch users for background jobs.

        Args:
            status: Only users with this account status (None for all)
            reminder_frequency: Only users whose preferences ask for this cadence
        """
        client = cls.get_client()

        try:
            query = client.table("users").select("*")
            if status:
                query = query.eq("status", status)
            if reminder_frequency:
                query = query.eq("preferences->>reminder_frequency", reminder_frequency)
            response = query.execute()
            return response.data or []

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch users: {e}",
                code="FETCH_USERS_FAILED",
                details={"status": status, "reminder_frequency": reminder_frequency}
            )

    @classmethod
    def insert_user(cls, data: dict[str, Any]) -> dict[str, Any]:
        """
        Insert a new user row.

        Returns:
            Inserted user dict with generated id and created_at

        Raises:
            SupabaseClientError: If insert fails
        """
        client = cls.get_client()

        try:
            response = client.table("users").insert(data).execute()
            row = cls._first(response)
            if row:
                return row
            raise SupabaseClientError(
                message="Insert returned no data",
                code="INSERT_NO_DATA"
            )

        except SupabaseClientError:
            raise
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to insert user: {e}",
                code="INSERT_USER_FAILED",
                suggestion="Check that the users table exists and the email is unique",
            )

    @classmethod
    def update_user(cls, user_id: str | UUID, data: dict[str, Any]) -> dict[str, Any] | None:
        """Update columns of a user; returns the updated row or None."""
        client = cls.get_client()
        user_id_str = cls._normalize_uuid(user_id)

        try:
            response = (
                client.table("users")
                .update(data)
                .eq("id", user_id_str)
                .execute()
            )
            return cls._first(response)

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to update user: {e}",
                code="UPDATE_USER_FAILED",
                details={"user_id": user_id_str, "fields": list(data)}
            )

    @classmethod
    def delete_user(cls, user_id: str | UUID) -> None:
        """Hard-delete a user row."""
        client = cls.get_client()
        user_id_str = cls._normalize_uuid(user_id)

        try:
            client.table("users").delete().eq("id", user_id_str).execute()
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to delete user: {e}",
                code="DELETE_USER_FAILED",
                details={"user_id": user_id_str}
            )

    # -------------------------------------------------------------------------
    # Goals
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_goals(
        cls,
        user_id: str | UUID,
        status: str | list[str] | None = None,
        category: str | None = None,
        goal_type: str | None = None,
    ) -> list[dict[str, Any]]:
        """
        Fetch a user's goals, newest first.

        Args:
            user_id: Owner UUID
            status: One status or a list of statuses to include
            category: Optional category filter
            goal_type: Optional type filter ("short-term" / "long-term")
        """
        client = cls.get_client()
        user_id_str = cls._normalize_uuid(user_id)

        try:
            query = client.table("goals").select("*").eq("user_id", user_id_str)
            if isinstance(status, list):
                query = query.in_("status", status)
            elif status:
                query = query.eq("status", status)
            if category:
                query = query.eq("category", category)
            if goal_type:
                query = query.eq("type", goal_type)

            response = query.order("created_at", desc=True).execute()
            goals = response.data or []
            logger.debug(f"Fetched {len(goals)} goals for user {user_id_str}")
            return goals

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch goals: {e}",
                code="FETCH_GOALS_FAILED",
                details={"user_id": user_id_str}
            )

    @classmethod
    def fetch_goal(cls, goal_id: str | UUID, user_id: str | UUID) -> dict[str, Any] | None:
        """
        Fetch one goal owned by the user.

        Returns None both when the goal doesn't exist and when it belongs to
        someone else.
        """
        client = cls.get_client()
        goal_id_str = cls._normalize_uuid(goal_id)

        try:
            response = (
                client.table("goals")
                .select("*")
                .eq("id", goal_id_str)
                .eq("user_id", cls._normalize_uuid(user_id))
                .limit(1)
                .execute()
            )
            return cls._first(response)

        except Exception as e:
            # Malformed UUIDs come back as invalid input syntax - treat as missing
            if "22P02" in str(e):
                return None
            raise SupabaseClientError(
                message=f"Failed to fetch goal: {e}",
                code="FETCH_GOAL_FAILED",
                details={"goal_id": goal_id_str}
            )

    @classmethod
    def insert_goal(cls, data: dict[str, Any]) -> dict[str, Any]:
        """Insert a goal and return the stored row."""
        client = cls.get_client()

        try:
            response = client.table("goals").insert(data).execute()
            row = cls._first(response)
            if row:
                return row
            raise SupabaseClientError(
                message="Insert returned no data",
                code="INSERT_NO_DATA"
            )

        except SupabaseClientError:
            raise
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to insert goal: {e}",
                code="INSERT_GOAL_FAILED",
                details={"user_id": data.get("user_id")}
            )

    @classmethod
    def update_goal(cls, goal_id: str | UUID, data: dict[str, Any]) -> dict[str, Any] | None:
        """Update columns of a goal; returns the updated row."""
        client = cls.get_client()
        goal_id_str = cls._normalize_uuid(goal_id)

        try:
            response = (
                client.table("goals")
                .update(data)
                .eq("id", goal_id_str)
                .execute()
            )
            return cls._first(response)

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to update goal: {e}",
                code="UPDATE_GOAL_FAILED",
                details={"goal_id": goal_id_str, "fields": list(data)}
            )

    @classmethod
    def delete_goal(cls, goal_id: str | UUID) -> None:
        client = cls.get_client()
        goal_id_str = cls._normalize_uuid(goal_id)

        try:
            client.table("goals").delete().eq("id", goal_id_str).execute()
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to delete goal: {e}",
                code="DELETE_GOAL_FAILED",
                details={"goal_id": goal_id_str}
            )

    @classmethod
    def delete_goals_for_user(cls, user_id: str | UUID) -> None:
        client = cls.get_client()
        user_id_str = cls._normalize_uuid(user_id)

        try:
            client.table("goals").delete().eq("user_id", user_id_str).execute()
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to delete goals: {e}",
                code="DELETE_GOALS_FAILED",
                details={"user_id": user_id_str}
            )

    # -------------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------------

    @classmethod
    def _messages_query(
        cls,
        user_id_str: str,
        conversation_id: str | None,
        message_type: str | None,
        since: str | None,
    ):
        query = cls.get_client().table("messages").select(MESSAGE_COLUMNS).eq("user_id", user_id_str)
        if conversation_id:
            query = query.eq("conversation_id", conversation_id)
        if message_type:
            query = query.eq("type", message_type)
        if since:
            query = query.gte("created_at", since)
        return query

    @classmethod
    def fetch_messages(
        cls,
        user_id: str | UUID,
        conversation_id: str | None = None,
        message_type: str | None = None,
        since: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        Fetch a user's chat messages in chronological order (oldest first).

        When `limit` is set, the newest `limit` messages are returned - still
        oldest first - which is what conversation context needs. Without a
        limit every matching message is read, MESSAGE_PAGE_SIZE rows per
        request, since PostgREST caps a single response.

        Args:
            user_id: Owner UUID
            conversation_id: Restrict to one conversation
            message_type: "user", "ai" or "system"
            since: ISO timestamp lower bound (inclusive)
            limit: Max number of most recent messages

        Returns:
            List of message dicts without embeddings
        """
        user_id_str = cls._normalize_uuid(user_id)
        filters = (user_id_str, conversation_id, message_type, since)

        try:
            if limit:
                # Newest first so the limit keeps the latest messages
                query = cls._messages_query(*filters).order("created_at", desc=True).limit(limit)
                messages = list(reversed(query.execute().data or []))
            else:
                messages = []
                while True:
                    start = len(messages)
                    page = (
                        cls._messages_query(*filters)
                        .order("created_at")
                        .order("id")
                        .range(start, start + MESSAGE_PAGE_SIZE - 1)
                        .execute()
                        .data
                    ) or []
                    messages.extend(page)
                    if len(page) < MESSAGE_PAGE_SIZE:
                        break

            logger.debug(f"Fetched {len(messages)} messages for user {user_id_str}")
            return messages

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch chat messages: {e}",
                code="FETCH_MESSAGES_FAILED",
                suggestion="Check that the messages table is accessible",
                details={"user_id": user_id_str, "conversation_id": conversation_id, "limit": limit}
            )

    @classmethod
    def fetch_message(cls, message_id: str | UUID, user_id: str | UUID) -> dict[str, Any] | None:
        """Fetch one message owned by the user, or None."""
        client = cls.get_client()
        message_id_str = cls._normalize_uuid(message_id)

        try:
            response = (
                client.table("messages")
                .select(MESSAGE_COLUMNS)
                .eq("id", message_id_str)
                .eq("user_id", cls._normalize_uuid(user_id))
                .limit(1)
                .execute()
            )
            return cls._first(response)

        except Exception as e:
            if "22P02" in str(e):
                return None
            raise SupabaseClientError(
                message=f"Failed to fetch message: {e}",
                code="FETCH_MESSAGE_FAILED",
                details={"message_id": message_id_str}
            )

    @classmethod
    def fetch_message_embeddings(
        cls,
        user_id: str | UUID,
        limit: int = 1000,
    ) -> list[dict[str, Any]]:
        """
        Fetch the user's most recent AI messages that carry an embedding.

        Used to warm the in-memory vector index.
        """
        client = cls.get_client()
        user_id_str = cls._normalize_uuid(user_id)

        try:
            response = (
                client.table("messages")
                .select("id, conversation_id, content, embedding, created_at")
                .eq("user_id", user_id_str)
                .eq("type", "ai")
                .not_.is_("embedding", "null")
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
            return list(reversed(response.data or []))

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch message embeddings: {e}",
                code="FETCH_EMBEDDINGS_FAILED",
                details={"user_id": user_id_str}
            )

    @classmethod
    def count_messages(
        cls,
        user_id: str | UUID,
        message_type: str | None = None,
        since: str | None = None,
    ) -> int:
        """Count a user's messages without transferring them."""
        client = cls.get_client()
        user_id_str = cls._normalize_uuid(user_id)

        try:
            query = client.table("messages").select("id", count="exact").eq("user_id", user_id_str)
            if message_type:
                query = query.eq("type", message_type)
            if since:
                query = query.gte("created_at", since)
            response = query.limit(1).execute()
            return response.count or 0

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to count messages: {e}",
                code="COUNT_MESSAGES_FAILED",
                details={"user_id": user_id_str}
            )

    @classmethod
    def insert_message(cls, data: dict[str, Any]) -> dict[str, Any]:
        """
        Insert a chat message.

        Returns:
            Inserted message dict (without embedding)
        """
        client = cls.get_client()

        try:
            response = client.table("messages").insert(data).execute()
            row = cls._first(response)
            if row:
                row.pop("embedding", None)
                return row
            raise SupabaseClientError(
                message="Insert returned no data",
                code="INSERT_NO_DATA"
            )

        except SupabaseClientError:
            raise
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to insert chat message: {e}",
                code="INSERT_MESSAGE_FAILED",
                details={"conversation_id": data.get("conversation_id"), "type": data.get("type")}
            )

    @classmethod
    def update_message(cls, message_id: str | UUID, data: dict[str, Any]) -> dict[str, Any] | None:
        client = cls.get_client()
        message_id_str = cls._normalize_uuid(message_id)

        try:
            response = (
                client.table("messages")
                .update(data)
                .eq("id", message_id_str)
                .execute()
            )
            row = cls._first(response)
            if row:
                row.pop("embedding", None)
            return row

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to update message: {e}",
                code="UPDATE_MESSAGE_FAILED",
                details={"message_id": message_id_str}
            )

    @classmethod
    def delete_messages(
        cls,
        user_id: str | UUID,
        conversation_id: str | None = None,
    ) -> int:
        """
        Delete a user's messages, optionally only one conversation.

        Returns:
            Number of deleted rows
        """
        client = cls.get_client()
        user_id_str = cls._normalize_uuid(user_id)

        try:
            query = client.table("messages").delete().eq("user_id", user_id_str)
            if conversation_id:
                query = query.eq("conversation_id", conversation_id)
            response = query.execute()
            return len(response.data or [])

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to delete messages: {e}",
                code="DELETE_MESSAGES_FAILED",
                details={"user_id": user_id_str, "conversation_id": conversation_id}
            )
