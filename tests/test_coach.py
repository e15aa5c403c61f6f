# =============================================================================
# tests/test_coach.py - Coach Agent Tests
# =============================================================================
# Tests for the coach agent:
# - Message heuristics (intent, sentiment, relevant goals, patterns)
# - Prompt and message assembly
# - OpenAI calls with a mocked client, including fallback on every failure
#
# Run with: pytest tests/test_coach.py -v
# =============================================================================

from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import openai
import pytest

from agents.coach import (
    FALLBACK_CONFIDENCE,
    FALLBACK_RESPONSES,
    REPLY_CONFIDENCE,
    CoachAgent,
    CoachError,
    analyze_progress_patterns,
    analyze_sentiment,
    calculate_consistency,
    extract_intent,
    find_relevant_goals,
)
from agents.prompts import build_coach_prompt
from app.exceptions import AIServiceError
from lib.memory import ChatMessage, CoachingContext
from tests.conftest import make_goal, make_openai_client


def _context(**overrides) -> CoachingContext:
    user = {
        "id": "user-1",
        "name": "Ada",
        "preferences": {"coaching_style": "direct", "focus_areas": ["fitness"]},
        "metrics": {"completed_goals": 2, "streak_days": 4},
    }
    context = CoachingContext(user=user, goals=[make_goal(40, title="Run a half marathon")])
    for key, value in overrides.items():
        setattr(context, key, value)
    return context


def _status_error(status: int) -> openai.APIStatusError:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(status, request=request)
    return openai.APIStatusError("boom", response=response, body=None)


# =============================================================================
# Heuristics
# =============================================================================

class TestHeuristics:

    @pytest.mark.parametrize("message,intent", [
        ("How am I doing this week?", "progress_check"),
        ("I feel stuck and want to give up", "motivation"),
        ("I have a new goal in mind", "goal_creation"),
        ("What should I focus on first?", "strategy"),
        ("I finished my first 10k!", "celebration"),
        ("Hello there", "general"),
    ])
    def test_extract_intent(self, message, intent):
        assert extract_intent(message) == intent

    def test_sentiment_sign(self):
        assert analyze_sentiment("I feel great and happy") > 0
        assert analyze_sentiment("I am stuck and frustrated") < 0
        assert analyze_sentiment("") == 0.0

    def test_sentiment_dampened_for_long_messages(self):
        short = analyze_sentiment("great")
        long = analyze_sentiment("great " + "word " * 29)
        assert short == 1.0
        assert 0 < long < short

    def test_find_relevant_goals(self):
        marathon = make_goal(title="Run a half marathon")
        savings = make_goal(title="Save for a house")

        relevant = find_relevant_goals("My marathon training run went well", [marathon, savings])

        assert [g["goal_id"] for g in relevant] == [marathon["id"]]
        assert relevant[0]["relevance_score"] == pytest.approx(0.67)

    def test_calculate_consistency(self):
        entries = [{"progress": p} for p in (10, 12, 14)]
        assert calculate_consistency(entries) == "high"
        assert calculate_consistency(entries[:2]) == "insufficient data"

    def test_progress_patterns(self):
        assert analyze_progress_patterns([]) == "No recent progress data available."
        data = [{"progress": p} for p in (10, 20, 30)]
        assert analyze_progress_patterns(data) == "Recent trend: improving, consistency: medium"


# =============================================================================
# Prompt Assembly
# =============================================================================

class TestPrompt:

    def test_prompt_includes_user_context(self):
        prompt = build_coach_prompt(
            name="Ada",
            coaching_style="analytical",
            active_goal_count=1,
            completed_goal_count=3,
            average_progress=42.4,
            streak_days=5,
            focus_areas=["career"],
            goals=[make_goal(40, title="Ship the side project", category="career")],
            progress_pattern="Recent trend: stable, consistency: high",
            similar_conversations=[{"content": "Last time we talked about time blocking."}],
        )

        assert "Name: Ada" in prompt
        assert "Average progress: 42%" in prompt
        assert "Ship the side project (career) - 40% complete" in prompt
        assert "time blocking" in prompt
        assert "Use a analytical style." in prompt

    def test_prompt_without_goals(self):
        prompt = build_coach_prompt(
            name="Ada", coaching_style="supportive", active_goal_count=0, completed_goal_count=0,
            average_progress=0, streak_days=0, focus_areas=[], goals=[], progress_pattern="",
        )
        assert "No active goals yet." in prompt
        assert "relevant_past_conversations" not in prompt

    def test_build_messages_order(self):
        agent = CoachAgent(client=MagicMock())
        context = _context(messages=[
            ChatMessage(role="user", content="Hi"),
            ChatMessage(role="assistant", content="Hello Ada"),
        ])

        messages = agent.build_messages(context, "What next?")

        assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
        assert messages[-1]["content"] == "What next?"
        assert "Coaching style: direct" in messages[0]["content"]


# =============================================================================
# Model Calls
# =============================================================================

class TestCoachAgent:

    def test_generate_reply(self):
        client = make_openai_client(reply="  Keep the long run on Sundays.  ")
        agent = CoachAgent(model="gpt-4", temperature=0.5, max_tokens=200, client=client)

        reply = agent.generate_reply(_context(), "How is my marathon progress?")

        assert reply.content == "Keep the long run on Sundays."
        assert not reply.is_fallback
        assert reply.metadata["intent"] == "progress_check"
        assert reply.metadata["confidence"] == REPLY_CONFIDENCE
        assert reply.metadata["goal_context"][0]["title"] == "Run a half marathon"

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4"
        assert kwargs["temperature"] == 0.5
        assert kwargs["max_tokens"] == 200

    @pytest.mark.parametrize("status,expected", [(400, 400), (401, 500), (429, 429), (502, 503)])
    def test_status_errors_map(self, status, expected):
        client = MagicMock()
        client.chat.completions.create.side_effect = _status_error(status)
        agent = CoachAgent(client=client)

        with pytest.raises(AIServiceError) as exc_info:
            agent.complete([{"role": "user", "content": "hi"}])

        assert exc_info.value.status_code == expected

    def test_connection_error_becomes_coach_error(self):
        client = MagicMock()
        client.chat.completions.create.side_effect = openai.OpenAIError("network down")
        agent = CoachAgent(client=client)

        with pytest.raises(CoachError):
            agent.complete([{"role": "user", "content": "hi"}])

    def test_empty_reply_is_an_error(self):
        agent = CoachAgent(client=make_openai_client(reply="   "))
        with pytest.raises(CoachError):
            agent.complete([{"role": "user", "content": "hi"}])

    def test_fallback_on_api_error(self):
        client = MagicMock()
        client.chat.completions.create.side_effect = _status_error(503)
        agent = CoachAgent(client=client)

        reply = agent.generate_reply(_context(), "I feel stuck")

        assert reply.is_fallback
        assert reply.content in FALLBACK_RESPONSES
        assert reply.metadata["intent"] == "fallback"
        assert reply.metadata["confidence"] == FALLBACK_CONFIDENCE
        assert reply.metadata["fallback_reason"] == "AI_SERVICE_ERROR"
        assert reply.metadata["sentiment"] < 0

    def test_fallback_without_api_key(self):
        agent = CoachAgent()

        assert not agent.is_configured
        reply = agent.generate_reply(_context(), "hello")

        assert reply.is_fallback
        assert reply.metadata["fallback_reason"] == "COACH_ERROR"
        assert agent.embed("hello") is None

    def test_embed(self):
        agent = CoachAgent(client=make_openai_client(embedding=[0.5, 0.25]))
        assert agent.embed("hello") == [0.5, 0.25]

    def test_embed_failure_returns_none(self):
        client = MagicMock()
        client.embeddings.create.side_effect = openai.OpenAIError("quota")
        agent = CoachAgent(client=client)

        assert agent.embed("hello") is None

    def test_embed_malformed_response(self):
        client = MagicMock()
        client.embeddings.create.return_value = SimpleNamespace(data=[])
        agent = CoachAgent(client=client)

        assert agent.embed("hello") is None
