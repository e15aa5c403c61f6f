# =============================================================================
# app/routers/chat.py - Coach Chat Endpoints
# =============================================================================
# Handles the conversation with the AI coach.
#
# Flow for POST /message:
# 1. Embed and store the user's message
# 2. Build coaching context (goals, recent messages, similar past replies)
# 3. Generate the coach reply (canned fallback if OpenAI is unavailable)
# 4. Store and index the reply
#
# Endpoints (mounted at /api/chat):
# - POST   /message                          - Send a message, get a reply
# - GET    /history                          - Message history
# - GET    /conversations                    - Conversation summaries
# - DELETE /conversations/{conversation_id}  - Delete a conversation
# - POST   /feedback                         - Rate a reply
# =============================================================================

import logging
from typing import Annotated

from fastapi import APIRouter, Path, Query

from app.dependencies import CoachDep, CurrentUser
from core.models.message import ChatMessageRequest, FeedbackRequest
from core.services.chat_service import ChatService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/message")
async def send_message(request: ChatMessageRequest, user: CurrentUser, coach: CoachDep):
    """
    Send a message to the coach.

    A new conversation is started when conversation_id is omitted.

    Returns:
        user_message, ai_message and conversation_id
    """
    result = ChatService.send_message(user.record, request, agent=coach)
    return {"success": True, **result}


@router.get("/history")
async def get_history(
    user: CurrentUser,
    conversation_id: Annotated[str | None, Query(max_length=100)] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
):
    """Most recent messages, oldest first."""
    messages = ChatService.get_history(user.id, conversation_id=conversation_id, limit=limit)
    return {
        "success": True,
        "messages": messages,
        "total": len(messages),
        "conversation_id": conversation_id,
    }


@router.get("/conversations")
async def list_conversations(user: CurrentUser):
    conversations = ChatService.list_conversations(user.id)
    return {"success": True, "conversations": conversations, "total": len(conversations)}


@router.delete("/conversations/{conversation_id}")
async def delete_conversation(
    conversation_id: Annotated[str, Path(max_length=100)],
    user: CurrentUser,
):
    deleted = ChatService.delete_conversation(user.id, conversation_id)
    return {
        "success": True,
        "message": "Conversation deleted successfully",
        "deleted_count": deleted,
    }


@router.post("/feedback")
async def submit_feedback(request: FeedbackRequest, user: CurrentUser):
    """Rate a message (1-5) with an optional comment."""
    message = ChatService.add_feedback(user.id, request)
    return {"success": True, "message": "Feedback recorded", "data": message}
