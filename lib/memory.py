# =============================================================================
# lib/memory.py - Coaching Context Builder
# =============================================================================
# This module builds the context the coach agent needs to answer a message:
# - the user's profile, preferences and metrics
# - their active and paused goals
# - the most recent chat messages
# - semantically similar past coach replies (from the vector index)
# - their most recent progress entries across goals
#
# Fetch only what's needed, when it's needed. Retrieval failures degrade
# the context instead of failing the chat.
#
# Usage:
#   from lib.memory import build_coaching_context
#   context = build_coaching_context(user, query_embedding=embedding)
#   history = context.history_for_openai()
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from core.models.message import OPENAI_ROLES
from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import parse_datetime
from lib.vector_store import VectorStore, vector_store as default_vector_store

# Set up logging for this module
logger = logging.getLogger(__name__)

PROGRESS_DATA_LIMIT = 50


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class ChatMessage:
    """
    A single chat message in conversation history.

    A simplified view of a messages row, with the message type already
    mapped to the role name the chat completion API expects.
    """
    role: str  # "user", "assistant" or "system"
    content: str
    created_at: datetime | None = None
    conversation_id: str | None = None

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "ChatMessage":
        """Create ChatMessage from a database row."""
        return cls(
            role=OPENAI_ROLES.get(row.get("type", "user"), "user"),
            content=row.get("content", ""),
            created_at=parse_datetime(row.get("created_at")),
            conversation_id=row.get("conversation_id"),
        )


@dataclass
class CoachingContext:
    """
    Everything the coach sees about a user for one reply.

    Example:
        context = build_coaching_context(user, query_embedding=embedding)
        context.active_goals        # goals with status "active"
        context.history_for_openai() # [{"role": ..., "content": ...}, ...]
    """

    user: dict[str, Any]
    goals: list[dict[str, Any]] = field(default_factory=list)
    messages: list[ChatMessage] = field(default_factory=list)
    similar_conversations: list[dict[str, Any]] = field(default_factory=list)
    progress_data: list[dict[str, Any]] = field(default_factory=list)

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self.user.get("name") or "there"

    @property
    def preferences(self) -> dict[str, Any]:
        return self.user.get("preferences") or {}

    @property
    def metrics(self) -> dict[str, Any]:
        return self.user.get("metrics") or {}

    @property
    def coaching_style(self) -> str:
        return self.preferences.get("coaching_style") or "supportive"

    @property
    def active_goals(self) -> list[dict[str, Any]]:
        return [g for g in self.goals if g.get("status") == "active"]

    @property
    def completed_goal_count(self) -> int:
        return int(self.metrics.get("completed_goals") or 0)

    def history_for_openai(self) -> list[dict[str, str]]:
        """
        Format recent messages for OpenAI's messages array.

        Example:
            [{"role": "user", "content": "Hi"}, {"role": "assistant", "content": "Hello!"}]
        """
        return [
            {"role": msg.role, "content": msg.content}
            for msg in self.messages
            if msg.content
        ]


# =============================================================================
# Context Building Functions
# =============================================================================

def collect_progress_data(
    goals: list[dict[str, Any]],
    limit: int = PROGRESS_DATA_LIMIT,
) -> list[dict[str, Any]]:
    """
    Flatten progress history across goals, oldest first, newest `limit` kept.

    Example:
        [{"goal_id": "...", "title": "Run 5k", "date": "...", "progress": 40.0}, ...]
    """
    entries = []
    for goal in goals:
        for entry in goal.get("progress_history") or []:
            when = parse_datetime(entry.get("date"))
            if when is None:
                continue
            entries.append({
                "goal_id": goal.get("id"),
                "title": goal.get("title"),
                "date": when,
                "progress": float(entry.get("progress") or 0),
            })

    entries.sort(key=lambda e: e["date"])
    return entries[-limit:]


def build_coaching_context(
    user: dict[str, Any],
    query_embedding: list[float] | None = None,
    message_limit: int = 10,
    similar_limit: int = 3,
    index: VectorStore | None = None,
) -> CoachingContext:
    """
    Build the context for one coach reply.

    Args:
        user: The user row
        query_embedding: Embedding of the incoming message (None skips
            similarity search)
        message_limit: How many recent messages to include
        similar_limit: How many similar past replies to include
        index: Vector index to search (defaults to the process-wide one)

    Returns:
        CoachingContext ready for prompt building

    Raises:
        SupabaseClientError: If goals cannot be fetched
    """
    user_id = str(user["id"])
    index = index or default_vector_store
    logger.info(f"Building coaching context for user {user_id}")

    context = CoachingContext(user=user)

    # -------------------------------------------------------------------------
    # 1. Goals (the coach can't work without them)
    # -------------------------------------------------------------------------
    context.goals = SupabaseClient.fetch_goals(user_id, status=["active", "paused"])

    # -------------------------------------------------------------------------
    # 2. Recent Messages
    # -------------------------------------------------------------------------
    try:
        rows = SupabaseClient.fetch_messages(user_id, limit=message_limit)
        context.messages = [ChatMessage.from_db_row(row) for row in rows]
    except SupabaseClientError as e:
        logger.warning(f"Failed to fetch recent messages: {e}")

    # -------------------------------------------------------------------------
    # 3. Similar Past Replies
    # -------------------------------------------------------------------------
    if query_embedding is not None:
        context.similar_conversations = index.search(user_id, query_embedding, top_k=similar_limit)

    # -------------------------------------------------------------------------
    # 4. Progress Data
    # -------------------------------------------------------------------------
    context.progress_data = collect_progress_data(context.goals)

    logger.debug(
        f"Context for {user_id}: {len(context.goals)} goals, {len(context.messages)} messages, "
        f"{len(context.similar_conversations)} similar, {len(context.progress_data)} progress entries"
    )
    return context
