# =============================================================================
# agents/prompts/ - System Prompts for AI Agents
# =============================================================================
# This package contains system prompts for each agent:
# - coach_system.py: Life coach prompt
#
# Organized with XML tags for clear structure.
# =============================================================================

from agents.prompts.coach_system import (
    COACH_SYSTEM_PROMPT,
    build_coach_prompt,
)

__all__ = [
    "COACH_SYSTEM_PROMPT",
    "build_coach_prompt",
]
