# =============================================================================
# app/routers/goals.py - Goal Endpoints
# =============================================================================
# CRUD for goals plus progress updates, check-ins and milestones.
#
# Endpoints (mounted at /api/goals):
# - GET    /                                  - List goals (status/category/type filters)
# - POST   /                                  - Create a goal
# - GET    /analytics                         - Goal analysis and weekly report
# - GET    /{goal_id}                         - Get one goal
# - PATCH  /{goal_id}                         - Update a goal
# - DELETE /{goal_id}                         - Delete a goal
# - PUT    /{goal_id}/progress                - Report progress
# - POST   /{goal_id}/checkin                 - Record a check-in
# - PATCH  /{goal_id}/milestones/{milestone_id} - Complete a milestone
#
# Another user's goal is always a 404.
# =============================================================================

import logging
from typing import Annotated

from fastapi import APIRouter, Path, Query, status

from app.dependencies import CurrentUser
from core.models.goal import (
    CheckInCreate,
    GoalCategory,
    GoalCreate,
    GoalStatus,
    GoalType,
    GoalUpdate,
    ProgressUpdate,
)
from core.services.goal_analysis import GoalAnalysisService
from core.services.goal_service import GoalService

logger = logging.getLogger(__name__)

router = APIRouter()

GoalId = Annotated[str, Path(description="Goal UUID")]


@router.get("")
async def list_goals(
    user: CurrentUser,
    status_filter: Annotated[GoalStatus | None, Query(alias="status")] = None,
    category: GoalCategory | None = None,
    goal_type: Annotated[GoalType | None, Query(alias="type")] = None,
):
    """List the user's goals, newest first."""
    goals = GoalService.list_goals(
        user.id,
        status=status_filter.value if status_filter else None,
        category=category.value if category else None,
        goal_type=goal_type.value if goal_type else None,
    )
    return {"success": True, "goals": goals, "total": len(goals)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_goal(request: GoalCreate, user: CurrentUser):
    """
    Create a goal.

    Milestones get generated IDs; the user's metrics are recalculated.
    """
    goal = GoalService.create_goal(user.id, request)
    return {"success": True, "goal": goal}


@router.get("/analytics")
async def goal_analytics(user: CurrentUser):
    """Overall progress, trends, insights, recommendations and weekly report."""
    goals = GoalService.list_goals(user.id)
    return {
        "success": True,
        "analysis": GoalAnalysisService.analyze_goal_progress(goals),
        "weekly_report": GoalAnalysisService.generate_weekly_report(user.id, goals),
    }


@router.get("/{goal_id}")
async def get_goal(goal_id: GoalId, user: CurrentUser):
    return {"success": True, "goal": GoalService.get_goal(goal_id, user.id)}


@router.patch("/{goal_id}")
async def update_goal(goal_id: GoalId, request: GoalUpdate, user: CurrentUser):
    """
    Update goal fields.

    Setting status to completed also sets progress to 100.
    """
    goal = GoalService.update_goal(goal_id, user.id, request)
    return {"success": True, "goal": goal}


@router.delete("/{goal_id}")
async def delete_goal(goal_id: GoalId, user: CurrentUser):
    GoalService.delete_goal(goal_id, user.id)
    return {"success": True, "message": "Goal deleted successfully"}


@router.put("/{goal_id}/progress")
async def update_progress(goal_id: GoalId, request: ProgressUpdate, user: CurrentUser):
    """
    Report progress.

    The value is clamped to 0-100. Reaching 100 completes the goal;
    dropping below 100 reopens it.
    """
    goal = GoalService.update_progress(goal_id, user.id, request)
    return {"success": True, "goal": goal}


@router.post("/{goal_id}/checkin", status_code=status.HTTP_201_CREATED)
async def add_check_in(goal_id: GoalId, request: CheckInCreate, user: CurrentUser):
    goal = GoalService.add_check_in(goal_id, user.id, request)
    return {"success": True, "goal": goal}


@router.patch("/{goal_id}/milestones/{milestone_id}")
async def complete_milestone(
    goal_id: GoalId,
    milestone_id: Annotated[str, Path(description="Milestone ID")],
    user: CurrentUser,
):
    goal = GoalService.complete_milestone(goal_id, user.id, milestone_id)
    return {"success": True, "goal": goal}
