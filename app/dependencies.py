# =============================================================================
# app/dependencies.py - Shared Dependencies
# =============================================================================
# FastAPI dependency injection for shared resources.
# These are injected into route handlers using Depends().
# =============================================================================

from typing import Annotated

from fastapi import Depends

from agents.coach import CoachAgent, get_coach_agent
from app.auth import AuthUser, get_current_user
from lib.supabase_client import SupabaseClient


def get_supabase_client() -> type[SupabaseClient]:
    """
    Get Supabase client wrapper.

    Returns the singleton client wrapper.
    """
    return SupabaseClient


def get_coach() -> CoachAgent:
    """Process-wide coach agent; override in tests to stub OpenAI."""
    return get_coach_agent()


# Type aliases for dependency injection
SupabaseDep = Annotated[type[SupabaseClient], Depends(get_supabase_client)]
CoachDep = Annotated[CoachAgent, Depends(get_coach)]
CurrentUser = Annotated[AuthUser, Depends(get_current_user)]
