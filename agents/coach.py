# =============================================================================
# agents/coach.py - Life Coach Agent
# =============================================================================
# This module implements the coach: it turns a user message plus their
# coaching context into a reply from the chat completion API.
#
# The coach's job:
# 1. Assemble the system prompt from goals, metrics and recent patterns
# 2. Call OpenAI with the prompt, recent history and the new message
# 3. Attach lightweight metadata (intent, sentiment, relevant goals)
#
# The coach never fails a chat: when the model is unreachable or no API key
# is configured, it answers with a canned fallback reply instead.
#
# Usage:
#   from agents.coach import get_coach_agent
#   reply = get_coach_agent().generate_reply(context, "I keep skipping runs")
# =============================================================================

from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass, field
from functools import lru_cache
from statistics import mean
from typing import Any

import openai
from openai import OpenAI

from app.config import settings
from app.exceptions import AIServiceError
from agents.prompts.coach_system import build_coach_prompt
from lib.memory import CoachingContext
from lib.utils import ApplicationError

# Set up logging for this module
logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================

class CoachError(ApplicationError):
    """Error while talking to the language model that isn't an HTTP status."""

    def __init__(self, message: str, **kwargs: Any):
        super().__init__(message, code="COACH_ERROR", **kwargs)


# =============================================================================
# Heuristics
# =============================================================================

# Checked in order; the first intent with a matching keyword wins
INTENT_KEYWORDS: dict[str, list[str]] = {
    "progress_check": ["progress", "how am i doing", "update"],
    "motivation": ["stuck", "unmotivated", "give up", "difficult"],
    "goal_creation": ["new goal", "want to", "plan to", "thinking about"],
    "strategy": ["how to", "what should", "best way", "help me"],
    "celebration": ["completed", "finished", "achieved", "success"],
}

POSITIVE_WORDS = {"good", "great", "excited", "happy", "progress", "achieved"}
NEGATIVE_WORDS = {"stuck", "difficult", "frustrated", "behind", "failed"}

FALLBACK_RESPONSES = [
    "I understand you're working on your goals. Can you tell me more about what specific challenge you're facing right now?",
    "Based on your current progress, you're making steady advancement. What area would you like to focus on improving?",
    "Let's break this down step by step. What's the most important thing you could do today to move forward?",
]

REPLY_CONFIDENCE = 0.85
FALLBACK_CONFIDENCE = 0.5

_WORD_PATTERN = re.compile(r"[a-z0-9']+")
_STOPWORDS = {"the", "and", "for", "with", "that", "this", "from", "into", "your", "more", "less"}


def extract_intent(message: str) -> str:
    """Keyword intent of a user message, "general" when nothing matches."""
    lowered = message.lower()
    for intent, keywords in INTENT_KEYWORDS.items():
        if any(keyword in lowered for keyword in keywords):
            return intent
    return "general"


def analyze_sentiment(text: str) -> float:
    """
    Word-list sentiment in [-1, 1].

    (positive - negative) / max(words / 10, 1), so long messages need
    proportionally more signal words to score strongly.
    """
    words = _WORD_PATTERN.findall(text.lower())
    if not words:
        return 0.0
    positive = sum(1 for w in words if w in POSITIVE_WORDS)
    negative = sum(1 for w in words if w in NEGATIVE_WORDS)
    score = (positive - negative) / max(len(words) / 10, 1)
    return round(max(-1.0, min(1.0, score)), 3)


def find_relevant_goals(message: str, goals: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Goals whose title shares keywords with the message.

    Returns:
        [{"goal_id", "title", "relevance_score"}] sorted by score, best first
    """
    message_words = set(_WORD_PATTERN.findall(message.lower()))
    relevant = []
    for goal in goals:
        keywords = {
            w for w in _WORD_PATTERN.findall((goal.get("title") or "").lower())
            if len(w) > 2 and w not in _STOPWORDS
        }
        if not keywords:
            continue
        matched = keywords & message_words
        if matched:
            relevant.append({
                "goal_id": goal.get("id"),
                "title": goal.get("title"),
                "relevance_score": round(len(matched) / len(keywords), 2),
            })
    return sorted(relevant, key=lambda g: g["relevance_score"], reverse=True)


def calculate_consistency(entries: list[dict[str, Any]]) -> str:
    """Mean absolute change between entries: <5 high, <15 medium, else low."""
    if len(entries) < 3:
        return "insufficient data"
    values = [float(e.get("progress") or 0) for e in entries]
    average_change = mean(abs(b - a) for a, b in zip(values, values[1:]))
    if average_change < 5:
        return "high"
    if average_change < 15:
        return "medium"
    return "low"


def analyze_progress_patterns(progress_data: list[dict[str, Any]]) -> str:
    """One-line summary of the last seven progress entries."""
    if not progress_data:
        return "No recent progress data available."

    recent = progress_data[-7:]
    improving = float(recent[-1].get("progress") or 0) > float(recent[0].get("progress") or 0)
    return f"Recent trend: {'improving' if improving else 'stable'}, consistency: {calculate_consistency(recent)}"


# =============================================================================
# Coach Agent
# =============================================================================

@dataclass
class CoachReply:
    """A generated reply and the metadata stored with it."""
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    is_fallback: bool = False


class CoachAgent:
    """
    The life coach.

    Example:
        agent = CoachAgent()
        context = build_coaching_context(user, query_embedding=embedding)
        reply = agent.generate_reply(context, "I finished my first 5k!")
        reply.metadata["intent"]  # "celebration"

    Attributes:
        model: OpenAI chat model
        temperature: Generation temperature
        max_tokens: Reply length cap
        embedding_model: OpenAI embedding model
    """

    def __init__(
        self,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        client: OpenAI | None = None,
    ):
        """
        Initialize the coach.

        Args:
            model: OpenAI model ID (default: settings.OPENAI_MODEL)
            temperature: Generation temperature (default: settings.COACH_TEMPERATURE)
            max_tokens: Max reply tokens (default: settings.COACH_MAX_TOKENS)
            client: Pre-built OpenAI client; one is created when an API key is set
        """
        if client is None and settings.OPENAI_API_KEY:
            client = OpenAI(api_key=settings.OPENAI_API_KEY)
        self.client = client
        self.model = model or settings.OPENAI_MODEL
        self.temperature = temperature if temperature is not None else settings.COACH_TEMPERATURE
        self.max_tokens = max_tokens or settings.COACH_MAX_TOKENS
        self.embedding_model = settings.OPENAI_EMBEDDING_MODEL

        if self.client is None:
            logger.warning("OPENAI_API_KEY not set - coach will answer with fallback replies")
        else:
            logger.info(f"CoachAgent initialized with model={self.model}, temp={self.temperature}")

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    # -------------------------------------------------------------------------
    # Message Building
    # -------------------------------------------------------------------------

    def build_system_prompt(self, context: CoachingContext) -> str:
        active = context.active_goals
        average = mean(float(g.get("progress") or 0) for g in active) if active else 0.0
        return build_coach_prompt(
            name=context.name,
            coaching_style=context.coaching_style,
            active_goal_count=len(active),
            completed_goal_count=context.completed_goal_count,
            average_progress=average,
            streak_days=int(context.metrics.get("streak_days") or 0),
            focus_areas=context.preferences.get("focus_areas") or [],
            goals=active,
            progress_pattern=analyze_progress_patterns(context.progress_data),
            similar_conversations=context.similar_conversations,
        )

    def build_messages(self, context: CoachingContext, user_message: str) -> list[dict[str, str]]:
        """
        Build the OpenAI messages array.

        Structure:
        1. System prompt with goals and patterns
        2. Recent conversation history
        3. Current user message
        """
        messages = [{"role": "system", "content": self.build_system_prompt(context)}]
        messages.extend(context.history_for_openai())
        messages.append({"role": "user", "content": user_message})
        logger.debug(f"Built {len(messages)} messages for OpenAI")
        return messages

    # -------------------------------------------------------------------------
    # Model Calls
    # -------------------------------------------------------------------------

    def complete(self, messages: list[dict[str, str]]) -> str:
        """
        Call the chat completion API.

        Raises:
            AIServiceError: If the API answered with an error status
            CoachError: If no client is configured or the call failed otherwise
        """
        if self.client is None:
            raise CoachError(
                "OpenAI client is not configured",
                suggestion="Set OPENAI_API_KEY in your .env file",
            )

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                messages=messages,
            )
        except openai.APIStatusError as e:
            raise AIServiceError(e.status_code, str(e))
        except openai.OpenAIError as e:
            raise CoachError(
                f"OpenAI API call failed: {e}",
                suggestion="Check your network connection and OpenAI status",
                details={"model": self.model},
            )

        content = (response.choices[0].message.content or "").strip()
        if not content:
            raise CoachError("OpenAI returned an empty reply", details={"model": self.model})
        return content

    def embed(self, text: str) -> list[float] | None:
        """
        Embedding for a piece of text, or None when unavailable.

        Embeddings only improve context, so failures are logged and swallowed.
        """
        if self.client is None or not text:
            return None
        try:
            response = self.client.embeddings.create(model=self.embedding_model, input=text)
            return list(response.data[0].embedding)
        except (openai.OpenAIError, IndexError, AttributeError) as e:
            logger.warning(f"Embedding generation failed: {e}")
            return None

    # -------------------------------------------------------------------------
    # Replies
    # -------------------------------------------------------------------------

    def analyze_message(self, user_message: str, goals: list[dict[str, Any]]) -> dict[str, Any]:
        """Metadata stored with a reply."""
        return {
            "intent": extract_intent(user_message),
            "sentiment": analyze_sentiment(user_message),
            "confidence": REPLY_CONFIDENCE,
            "goal_context": find_relevant_goals(user_message, goals),
        }

    def fallback_reply(self, user_message: str, reason: str) -> CoachReply:
        return CoachReply(
            content=random.choice(FALLBACK_RESPONSES),
            metadata={
                "intent": "fallback",
                "confidence": FALLBACK_CONFIDENCE,
                "sentiment": analyze_sentiment(user_message),
                "fallback_reason": reason,
            },
            is_fallback=True,
        )

    def generate_reply(self, context: CoachingContext, user_message: str) -> CoachReply:
        """
        Generate the coach's reply to a message.

        Any model failure produces a fallback reply rather than an error.
        """
        logger.info(f"Generating coach reply for user {context.user.get('id')}: '{user_message[:50]}'")

        try:
            content = self.complete(self.build_messages(context, user_message))
        except AIServiceError as e:
            logger.error(f"AI service error (status {e.status_code}): {e.error}")
            return self.fallback_reply(user_message, reason=e.code)
        except CoachError as e:
            logger.error(f"Coach error: {e}")
            return self.fallback_reply(user_message, reason=e.code)

        return CoachReply(content=content, metadata=self.analyze_message(user_message, context.goals))


@lru_cache
def get_coach_agent() -> CoachAgent:
    """Process-wide coach instance (one OpenAI client)."""
    return CoachAgent()
