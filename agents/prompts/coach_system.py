# =============================================================================
# agents/prompts/coach_system.py - Life Coach System Prompt
# =============================================================================
# This module contains the system prompt for the coach agent.
#
# The prompt has a fixed part (role and coaching principles) and a dynamic
# part rebuilt for every reply from the user's goals, metrics, progress
# pattern and relevant past conversations. Sections are wrapped in XML tags
# so the model can tell them apart.
#
# Usage:
#   prompt = build_coach_prompt(
#       name="Ada",
#       coaching_style="direct",
#       goals=[...],
#       ...
#   )
# =============================================================================

from __future__ import annotations

from typing import Any

from lib.utils import parse_datetime

# =============================================================================
# Base System Prompt
# =============================================================================

COACH_SYSTEM_PROMPT = """
<role>
You are an expert AI life coach. You help one person make steady, concrete
progress on the goals they have set for themselves.
</role>

<coaching_principles>
1. Be specific and actionable, not generic
2. Reference their actual goals and progress
3. Ask targeted questions to uncover obstacles
4. Celebrate wins and reframe setbacks
5. Focus on systems and habits over just outcomes
6. Match their preferred coaching style
</coaching_principles>

<style_guide>
- supportive: warm and encouraging, lead with what is going well
- direct: brief and candid, name the next action plainly
- analytical: reason from their numbers and trends, suggest experiments
</style_guide>
"""


def _format_goal(goal: dict[str, Any]) -> str:
    target = parse_datetime(goal.get("target_date"))
    due = f", due {target.date().isoformat()}" if target else ""
    progress = float(goal.get("progress") or 0)
    return f"- {goal.get('title')} ({goal.get('category')}) - {progress:.0f}% complete{due}"


def build_coach_prompt(
    name: str,
    coaching_style: str,
    active_goal_count: int,
    completed_goal_count: int,
    average_progress: float,
    streak_days: int,
    focus_areas: list[str],
    goals: list[dict[str, Any]],
    progress_pattern: str,
    similar_conversations: list[dict[str, Any]] | None = None,
) -> str:
    """
    Build the complete system prompt for one coach reply.

    Args:
        name: The user's display name
        coaching_style: supportive, direct or analytical
        active_goal_count: Number of active goals
        completed_goal_count: Number of completed goals
        average_progress: Mean progress of active goals (0-100)
        streak_days: Current activity streak
        focus_areas: Areas the user wants to focus on
        goals: Active goals to list
        progress_pattern: One-line summary of recent progress
        similar_conversations: Relevant past coach replies

    Returns:
        Complete system prompt ready for OpenAI
    """
    dynamic_sections = []

    dynamic_sections.append(f"""
<user_context>
Name: {name}
Coaching style: {coaching_style}
Active goals: {active_goal_count}
Completed goals: {completed_goal_count}
Average progress: {round(average_progress)}%
Streak: {streak_days} days
Focus areas: {', '.join(focus_areas) if focus_areas else 'not set'}
</user_context>
""")

    goal_lines = "\n".join(_format_goal(g) for g in goals) or "No active goals yet."
    dynamic_sections.append(f"""
<current_goals>
{goal_lines}
</current_goals>
""")

    dynamic_sections.append(f"""
<recent_patterns>
{progress_pattern}
</recent_patterns>
""")

    if similar_conversations:
        snippets = "\n".join(f"- {c['content']}" for c in similar_conversations)
        dynamic_sections.append(f"""
<relevant_past_conversations>
{snippets}
</relevant_past_conversations>
""")

    dynamic_context = "\n".join(dynamic_sections)

    return f"""{COACH_SYSTEM_PROMPT}

{dynamic_context}

You are coaching {name}. Use a {coaching_style} style.
Respond in a conversational tone. Keep responses under 300 words unless
providing detailed guidance.
"""
