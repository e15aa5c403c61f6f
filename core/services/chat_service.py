# =============================================================================
# core/services/chat_service.py - Coach Chat Business Logic
# =============================================================================
# Handles one chat turn end to end, plus history, conversations and feedback.
#
# A chat turn:
# 1. Embed the user's message (None when embeddings are unavailable)
# 2. Build the coaching context (goals, recent messages, similar replies)
# 3. Store the user message
# 4. Generate the coach reply (fallback reply if the model is down)
# 5. Embed and store the reply, then index it for future similarity search
# =============================================================================

import logging
import time
from typing import Any
from uuid import UUID

from agents.coach import CoachAgent, get_coach_agent
from app.config import settings
from app.exceptions import ConversationNotFoundError, MessageNotFoundError
from core.models.message import ChatMessageRequest, FeedbackRequest, MessageType
from lib.memory import build_coaching_context
from lib.supabase_client import SupabaseClient
from lib.utils import utc_now_iso
from lib.vector_store import VectorStore, vector_store

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 100


def new_conversation_id() -> str:
    """Conversation IDs are "conv_" plus the epoch time in milliseconds."""
    return f"conv_{int(time.time() * 1000)}"


class ChatService:
    """
    Service for coach chat operations.

    Provides a clean interface between API routes and database.
    """

    @staticmethod
    def send_message(
        user: dict[str, Any],
        request: ChatMessageRequest,
        agent: CoachAgent | None = None,
        index: VectorStore | None = None,
    ) -> dict[str, Any]:
        """
        Run one chat turn.

        Args:
            user: The authenticated user row
            request: The incoming message
            agent: Coach to use (defaults to the process-wide one)
            index: Vector index (defaults to the process-wide one)

        Returns:
            {"user_message", "ai_message", "conversation_id"}
        """
        agent = agent or get_coach_agent()
        index = index or vector_store
        user_id = str(user["id"])
        conversation_id = request.conversation_id or new_conversation_id()

        # ---------------------------------------------------------------------
        # 1-2. Embed and gather context (before storing, so the new message
        #      isn't part of its own history)
        # ---------------------------------------------------------------------
        query_embedding = agent.embed(request.message)
        context = build_coaching_context(
            user,
            query_embedding=query_embedding,
            message_limit=settings.COACH_CONTEXT_MESSAGES,
            index=index,
        )

        # ---------------------------------------------------------------------
        # 3. Store the user message
        # ---------------------------------------------------------------------
        user_row: dict[str, Any] = {
            "user_id": user_id,
            "conversation_id": conversation_id,
            "type": MessageType.USER.value,
            "content": request.message,
            "metadata": {},
            "created_at": utc_now_iso(),
        }
        if query_embedding is not None:
            user_row["embedding"] = query_embedding
        user_message = SupabaseClient.insert_message(user_row)

        # ---------------------------------------------------------------------
        # 4. Generate the reply
        # ---------------------------------------------------------------------
        reply = agent.generate_reply(context, request.message)

        # ---------------------------------------------------------------------
        # 5. Store and index the reply
        # ---------------------------------------------------------------------
        reply_embedding = None if reply.is_fallback else agent.embed(reply.content)
        ai_row: dict[str, Any] = {
            "user_id": user_id,
            "conversation_id": conversation_id,
            "type": MessageType.AI.value,
            "content": reply.content,
            "metadata": reply.metadata,
            "created_at": utc_now_iso(),
        }
        if reply_embedding is not None:
            ai_row["embedding"] = reply_embedding
        ai_message = SupabaseClient.insert_message(ai_row)

        if reply_embedding is not None:
            index.add(
                user_id,
                ai_message["id"],
                reply_embedding,
                reply.content,
                conversation_id=conversation_id,
                created_at=ai_message.get("created_at"),
            )

        logger.info(
            f"Chat turn for user {user_id} in {conversation_id}: "
            f"intent={reply.metadata.get('intent')}, fallback={reply.is_fallback}"
        )
        return {
            "user_message": user_message,
            "ai_message": ai_message,
            "conversation_id": conversation_id,
        }

    @staticmethod
    def get_history(
        user_id: str | UUID,
        conversation_id: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Most recent `limit` messages, oldest first."""
        return SupabaseClient.fetch_messages(user_id, conversation_id=conversation_id, limit=limit)

    @staticmethod
    def list_conversations(user_id: str | UUID) -> list[dict[str, Any]]:
        """
        Summaries of the user's conversations, most recently active first.

        Example:
            [{"conversation_id": "conv_1718...", "message_count": 6,
              "last_message": "Great work this week...", "last_activity": "..."}]
        """
        conversations: dict[str, dict[str, Any]] = {}
        for message in SupabaseClient.fetch_messages(user_id):
            conversation_id = message.get("conversation_id")
            if not conversation_id:
                continue
            summary = conversations.setdefault(conversation_id, {
                "conversation_id": conversation_id,
                "message_count": 0,
                "started_at": message.get("created_at"),
            })
            # Messages arrive oldest first, so the last one seen is the latest
            summary["message_count"] += 1
            summary["last_message"] = (message.get("content") or "")[:PREVIEW_LENGTH]
            summary["last_message_type"] = message.get("type")
            summary["last_activity"] = message.get("created_at")

        return sorted(conversations.values(), key=lambda c: c.get("last_activity") or "", reverse=True)

    @staticmethod
    def delete_conversation(user_id: str | UUID, conversation_id: str) -> int:
        """
        Delete every message in a conversation.

        Raises:
            ConversationNotFoundError: If the user has no such conversation
        """
        deleted = SupabaseClient.delete_messages(user_id, conversation_id=conversation_id)
        if not deleted:
            raise ConversationNotFoundError(conversation_id)

        vector_store.remove_conversation(str(user_id), conversation_id)
        logger.info(f"Deleted conversation {conversation_id} ({deleted} messages) for user {user_id}")
        return deleted

    @staticmethod
    def add_feedback(user_id: str | UUID, request: FeedbackRequest) -> dict[str, Any]:
        """
        Attach a rating (and optional comment) to a message.

        Raises:
            MessageNotFoundError: If the message doesn't exist or isn't the user's
        """
        message = SupabaseClient.fetch_message(request.message_id, user_id)
        if not message:
            raise MessageNotFoundError(request.message_id)

        metadata = {
            **(message.get("metadata") or {}),
            "user_rating": request.rating,
            "user_feedback": request.feedback,
            "feedback_date": utc_now_iso(),
        }
        updated = SupabaseClient.update_message(message["id"], {"metadata": metadata})
        logger.info(f"Feedback on message {message['id']}: rating={request.rating}")
        return updated or {**message, "metadata": metadata}
