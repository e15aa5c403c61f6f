# =============================================================================
# core/services/goal_service.py - Goal Business Logic
# =============================================================================
# Handles goal CRUD, progress updates, check-ins and milestones.
#
# Progress rules:
# - reported progress is clamped to 0-100
# - every report appends one progress_history entry
# - reaching 100 completes the goal; dropping below 100 reopens it
#
# Every mutation recalculates the owner's cached metrics.
# =============================================================================

import logging
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from core.models.goal import (
    CheckInCreate,
    GoalCreate,
    GoalStatus,
    GoalUpdate,
    ProgressUpdate,
)
from core.services.user_service import UserService
from lib.supabase_client import SupabaseClient
from lib.utils import to_iso, utc_now
from app.exceptions import GoalNotFoundError, MilestoneNotFoundError, ValidationFailedError

logger = logging.getLogger(__name__)


def clamp_progress(value: float) -> float:
    """Clamp a progress value into [0, 100]."""
    return max(0.0, min(100.0, float(value)))


class GoalService:
    """
    Service for goal management operations.

    Provides a clean interface between API routes and database.
    """

    UNFINISHED_STATUSES = (GoalStatus.ACTIVE.value, GoalStatus.PAUSED.value, GoalStatus.ARCHIVED.value)

    # -------------------------------------------------------------------------
    # Pure state transitions
    # -------------------------------------------------------------------------

    @staticmethod
    def apply_progress(
        goal: dict[str, Any],
        progress: float,
        note: str | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """
        Compute the column changes for a progress report.

        Args:
            goal: Current goal row
            progress: Reported progress (any number, clamped)
            note: Optional note stored with the history entry
            now: Timestamp for the entry

        Returns:
            Dict of changed columns (progress, progress_history and,
            when the completion state flips, status and completed_date)
        """
        now = now or utc_now()
        value = clamp_progress(progress)

        changes: dict[str, Any] = {
            "progress": value,
            "progress_history": list(goal.get("progress_history") or []) + [
                {"date": now.isoformat(), "progress": value, "note": note}
            ],
        }

        status = goal.get("status")
        if value >= 100 and status != GoalStatus.COMPLETED.value:
            changes["status"] = GoalStatus.COMPLETED.value
            changes["completed_date"] = now.isoformat()
        elif value < 100 and status == GoalStatus.COMPLETED.value:
            changes["status"] = GoalStatus.ACTIVE.value
            changes["completed_date"] = None

        return changes

    @staticmethod
    def build_goal_row(user_id: str, request: GoalCreate, now: datetime | None = None) -> dict[str, Any]:
        """Database row for a new goal."""
        now = now or utc_now()
        return {
            "user_id": user_id,
            "title": request.title,
            "description": request.description,
            "category": request.category.value,
            "type": request.type.value,
            "status": GoalStatus.ACTIVE.value,
            "progress": 0,
            "priority": request.priority.value,
            "target_date": to_iso(request.target_date),
            "start_date": now.isoformat(),
            "completed_date": None,
            "tags": request.tags,
            "milestones": [
                {
                    "id": str(uuid4()),
                    "text": milestone.text,
                    "completed": False,
                    "completed_at": None,
                    "due_date": to_iso(milestone.due_date),
                }
                for milestone in request.milestones
            ],
            "progress_history": [],
            "check_ins": [],
            "created_at": now.isoformat(),
            "updated_at": now.isoformat(),
        }

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @staticmethod
    def list_goals(
        user_id: str | UUID,
        status: str | None = None,
        category: str | None = None,
        goal_type: str | None = None,
    ) -> list[dict[str, Any]]:
        return SupabaseClient.fetch_goals(user_id, status=status, category=category, goal_type=goal_type)

    @staticmethod
    def get_goal(goal_id: str | UUID, user_id: str | UUID) -> dict[str, Any]:
        """
        Get a goal owned by the user.

        Raises:
            GoalNotFoundError: If it doesn't exist or the user doesn't own it
        """
        goal = SupabaseClient.fetch_goal(goal_id, user_id)
        if not goal:
            raise GoalNotFoundError(str(goal_id))
        return goal

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    @staticmethod
    def _save(goal: dict[str, Any], changes: dict[str, Any], user_id: str | UUID) -> dict[str, Any]:
        changes["updated_at"] = utc_now().isoformat()
        updated = SupabaseClient.update_goal(goal["id"], changes) or {**goal, **changes}
        UserService.recalculate_metrics(user_id)
        return updated

    @staticmethod
    def create_goal(user_id: str | UUID, request: GoalCreate) -> dict[str, Any]:
        goal = SupabaseClient.insert_goal(GoalService.build_goal_row(str(user_id), request))
        UserService.recalculate_metrics(user_id)
        logger.info(f"Created goal {goal['id']} for user {user_id}")
        return goal

    @staticmethod
    def update_goal(goal_id: str | UUID, user_id: str | UUID, request: GoalUpdate) -> dict[str, Any]:
        """
        Apply a partial update.

        Setting status to completed also sets progress to 100. A goal at 100
        stays completed: moving it to active, paused or archived is rejected
        until its progress is lowered through the progress endpoint.
        """
        goal = GoalService.get_goal(goal_id, user_id)
        changes = request.model_dump(exclude_unset=True, mode="json")

        status = changes.get("status")
        if status == GoalStatus.COMPLETED.value and goal.get("status") != GoalStatus.COMPLETED.value:
            changes.update(GoalService.apply_progress(goal, 100, note="Marked as completed"))
        elif status in GoalService.UNFINISHED_STATUSES and float(goal.get("progress") or 0) >= 100:
            raise ValidationFailedError(
                [{"field": "status", "message": "A goal at 100% progress is completed", "value": status}],
                message="Lower the goal's progress below 100 to reopen it",
            )

        if not changes:
            return goal

        updated = GoalService._save(goal, changes, user_id)
        logger.info(f"Updated goal {goal['id']}: {sorted(changes)}")
        return updated

    @staticmethod
    def update_progress(goal_id: str | UUID, user_id: str | UUID, request: ProgressUpdate) -> dict[str, Any]:
        goal = GoalService.get_goal(goal_id, user_id)
        changes = GoalService.apply_progress(goal, request.progress, request.note)
        updated = GoalService._save(goal, changes, user_id)

        if changes.get("status") == GoalStatus.COMPLETED.value:
            logger.info(f"Goal completed: {goal['id']} for user {user_id}")
        return updated

    @staticmethod
    def add_check_in(goal_id: str | UUID, user_id: str | UUID, request: CheckInCreate) -> dict[str, Any]:
        goal = GoalService.get_goal(goal_id, user_id)
        entry = {"date": utc_now().isoformat(), **request.model_dump()}
        changes = {"check_ins": list(goal.get("check_ins") or []) + [entry]}
        return GoalService._save(goal, changes, user_id)

    @staticmethod
    def complete_milestone(goal_id: str | UUID, user_id: str | UUID, milestone_id: str) -> dict[str, Any]:
        """
        Mark a milestone completed. Completing it twice is a no-op.

        Raises:
            MilestoneNotFoundError: If the goal has no such milestone
        """
        goal = GoalService.get_goal(goal_id, user_id)
        milestones = [dict(m) for m in goal.get("milestones") or []]

        target = next((m for m in milestones if m.get("id") == milestone_id), None)
        if target is None:
            raise MilestoneNotFoundError(str(goal_id), milestone_id)
        if target.get("completed"):
            return goal

        target["completed"] = True
        target["completed_at"] = utc_now().isoformat()
        return GoalService._save(goal, {"milestones": milestones}, user_id)

    @staticmethod
    def delete_goal(goal_id: str | UUID, user_id: str | UUID) -> None:
        goal = GoalService.get_goal(goal_id, user_id)
        SupabaseClient.delete_goal(goal["id"])
        UserService.recalculate_metrics(user_id)
        logger.info(f"Deleted goal {goal['id']} for user {user_id}")
