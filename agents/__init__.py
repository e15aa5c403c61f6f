# =============================================================================
# agents/ - AI Agent Definitions
# =============================================================================
# This package contains the life coach agent:
# - coach.py: Builds prompts, calls OpenAI, falls back when the model is down
#
# Prompts:
# - prompts/coach_system.py: System prompt for the coach
# =============================================================================

from agents.coach import (
    CoachAgent,
    CoachError,
    CoachReply,
    get_coach_agent,
)

__all__ = [
    "CoachAgent",
    "CoachError",
    "CoachReply",
    "get_coach_agent",
]
