# =============================================================================
# core/models/message.py - Chat Schemas
# =============================================================================
# These models define the API contract for the coach chat:
# - ChatMessageRequest: a user message
# - FeedbackRequest: rating an AI reply
# - MessageType: who wrote a message
# =============================================================================

from enum import Enum

from pydantic import BaseModel, Field, field_validator


class MessageType(str, Enum):
    """
    Author of a message.

    - user: typed by the user
    - ai: generated by the coach
    - system: generated by the platform (reminders, reports)
    """
    USER = "user"
    AI = "ai"
    SYSTEM = "system"


# Role names the chat completion API expects for each message type
OPENAI_ROLES = {
    MessageType.USER.value: "user",
    MessageType.AI.value: "assistant",
    MessageType.SYSTEM.value: "system",
}


class ChatMessageRequest(BaseModel):
    """
    A message to the coach.

    Example:
        {"message": "I skipped my run again this week", "conversation_id": "conv_1718000000000"}
    """

    message: str = Field(..., min_length=1, max_length=2000, description="Message text")
    conversation_id: str | None = Field(
        default=None,
        min_length=1,
        max_length=100,
        description="Conversation to continue; a new one is started when omitted"
    )

    @field_validator("message")
    @classmethod
    def strip_message(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Message must be between 1 and 2000 characters")
        return value


class FeedbackRequest(BaseModel):
    message_id: str = Field(..., min_length=1, description="ID of the AI message being rated")
    rating: int = Field(..., ge=1, le=5, description="1 (unhelpful) to 5 (very helpful)")
    feedback: str | None = Field(default=None, max_length=500)
