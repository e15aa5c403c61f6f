# =============================================================================
# core/services/user_service.py - User Account Business Logic
# =============================================================================
# Registration, login, profile and password changes, avatar handling,
# statistics, export and account deletion.
#
# Also owns the cached metrics on the user row. Metrics are recalculated
# from the user's goals after every goal mutation instead of being
# incremented, so they can't drift.
# =============================================================================

import logging
from datetime import date, datetime, timedelta
from statistics import mean
from typing import Any
from uuid import UUID

from pydantic import ValidationError

from core.models.goal import GoalStatus
from core.models.user import (
    LoginRequest,
    PasswordUpdateRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    UserMetrics,
    UserPreferences,
    UserResponse,
    UserStatus,
)
from core.services.storage_service import StorageService
from lib.security import create_access_token, hash_password, verify_password
from lib.supabase_client import SupabaseClient
from lib.utils import parse_datetime, utc_now, utc_now_iso
from lib.vector_store import vector_store
from app.exceptions import (
    AccountDisabledError,
    IncorrectPasswordError,
    InvalidCredentialsError,
    InvalidUpdateError,
    UserAlreadyExistsError,
    UserNotFoundError,
    ValidationFailedError,
)

logger = logging.getLogger(__name__)

UPDATABLE_PROFILE_FIELDS = ["name", "preferences"]
EXPORT_VERSION = "1.0"


def _validation_details(error: ValidationError) -> list[dict[str, Any]]:
    return [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())) or "body",
            "message": err.get("msg", "Invalid value"),
            "value": err.get("input"),
        }
        for err in error.errors()
    ]


class UserService:
    """
    Service for user account operations.

    Provides a clean interface between API routes and database.
    """

    # -------------------------------------------------------------------------
    # Metrics (pure)
    # -------------------------------------------------------------------------

    @staticmethod
    def compute_streak(goals: list[dict[str, Any]], now: datetime | None = None) -> int:
        """
        Consecutive days with goal activity.

        A day counts when it has at least one progress entry or check-in.
        The streak may end today or yesterday; anything older breaks it.
        """
        now = now or utc_now()
        active_days: set[date] = set()
        for goal in goals:
            for entry in (goal.get("progress_history") or []) + (goal.get("check_ins") or []):
                when = parse_datetime(entry.get("date"))
                if when:
                    active_days.add(when.date())

        day = now.date()
        if day not in active_days:
            day -= timedelta(days=1)

        streak = 0
        while day in active_days:
            streak += 1
            day -= timedelta(days=1)
        return streak

    @staticmethod
    def compute_metrics(
        goals: list[dict[str, Any]],
        last_active: Any = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Metrics document for a user from their goals."""
        tracked = [g for g in goals if g.get("status") != GoalStatus.ARCHIVED.value]
        completed = [g for g in goals if g.get("status") == GoalStatus.COMPLETED.value]
        average = mean(float(g.get("progress") or 0) for g in tracked) if tracked else 0.0

        return {
            "total_goals": len(goals),
            "completed_goals": len(completed),
            "average_progress": round(average, 1),
            "streak_days": UserService.compute_streak(goals, now=now),
            "last_active": last_active,
        }

    @staticmethod
    def recalculate_metrics(user_id: str | UUID, goals: list[dict[str, Any]] | None = None) -> dict[str, Any]:
        """
        Recompute and store a user's metrics.

        Args:
            user_id: The user UUID
            goals: The user's goals, when the caller already has them

        Returns:
            The new metrics dict
        """
        user = SupabaseClient.fetch_user(user_id)
        if not user:
            raise UserNotFoundError(str(user_id))

        if goals is None:
            goals = SupabaseClient.fetch_goals(user_id)

        last_active = (user.get("metrics") or {}).get("last_active")
        metrics = UserService.compute_metrics(goals, last_active=last_active)
        SupabaseClient.update_user(user_id, {"metrics": metrics, "updated_at": utc_now_iso()})

        logger.debug(f"Recalculated metrics for user {user_id}: {metrics}")
        return metrics

    @staticmethod
    def touch_last_active(user: dict[str, Any]) -> dict[str, Any]:
        """Stamp metrics.last_active with the current time."""
        metrics = {**UserMetrics().model_dump(mode="json"), **(user.get("metrics") or {})}
        metrics["last_active"] = utc_now_iso()
        updated = SupabaseClient.update_user(user["id"], {"metrics": metrics})
        return updated or {**user, "metrics": metrics}

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    @staticmethod
    def register(request: RegisterRequest) -> tuple[dict[str, Any], str]:
        """
        Create an account.

        Returns:
            (user row, access token)

        Raises:
            UserAlreadyExistsError: If the email is taken
        """
        if SupabaseClient.fetch_user_by_email(request.email):
            raise UserAlreadyExistsError(request.email)

        now = utc_now_iso()
        metrics = UserMetrics().model_dump(mode="json")
        metrics["last_active"] = now

        user = SupabaseClient.insert_user({
            "email": request.email,
            "password_hash": hash_password(request.password),
            "name": request.name,
            "status": UserStatus.ACTIVE.value,
            "preferences": UserPreferences().model_dump(mode="json"),
            "metrics": metrics,
            "created_at": now,
            "updated_at": now,
        })

        logger.info(f"Registered user: {user['id']}")
        return user, create_access_token(user["id"], user["email"])

    @staticmethod
    def authenticate(request: LoginRequest) -> tuple[dict[str, Any], str]:
        """
        Check credentials and issue a token.

        Unknown email and wrong password produce the same error.

        Raises:
            InvalidCredentialsError: On a bad email/password pair
            AccountDisabledError: If the account is suspended or deleted
        """
        user = SupabaseClient.fetch_user_by_email(request.email)
        if not user or not verify_password(request.password, user.get("password_hash")):
            logger.warning("Failed login attempt")
            raise InvalidCredentialsError()

        status = user.get("status") or UserStatus.ACTIVE.value
        if status != UserStatus.ACTIVE.value:
            raise AccountDisabledError(status)

        user = UserService.touch_last_active(user)
        logger.info(f"User logged in: {user['id']}")
        return user, create_access_token(user["id"], user["email"])

    @staticmethod
    def get_user(user_id: str | UUID) -> dict[str, Any]:
        user = SupabaseClient.fetch_user(user_id)
        if not user:
            raise UserNotFoundError(str(user_id))
        return user

    # -------------------------------------------------------------------------
    # Profile
    # -------------------------------------------------------------------------

    @staticmethod
    def update_profile(user_id: str | UUID, updates: dict[str, Any]) -> dict[str, Any]:
        """
        Update name and/or preferences.

        Preferences are merged into the stored document, so a partial
        update leaves other keys alone.

        Raises:
            InvalidUpdateError: If any key other than name/preferences is sent
            ValidationFailedError: If values are invalid
        """
        rejected = [key for key in updates if key not in UPDATABLE_PROFILE_FIELDS]
        if rejected or not updates:
            raise InvalidUpdateError(rejected, UPDATABLE_PROFILE_FIELDS)

        try:
            request = ProfileUpdateRequest.model_validate(updates)
        except ValidationError as e:
            raise ValidationFailedError(_validation_details(e))

        user = UserService.get_user(user_id)
        data: dict[str, Any] = {"updated_at": utc_now_iso()}

        if request.name is not None:
            data["name"] = request.name

        if request.preferences is not None:
            current = UserPreferences.model_validate(user.get("preferences") or {})
            changes = request.preferences.model_dump(exclude_none=True)
            merged = current.model_copy(update=changes)
            data["preferences"] = UserPreferences.model_validate(merged.model_dump()).model_dump(mode="json")

        updated = SupabaseClient.update_user(user_id, data)
        logger.info(f"Updated profile for user {user_id}: {sorted(k for k in data if k != 'updated_at')}")
        return updated or {**user, **data}

    @staticmethod
    def change_password(user_id: str | UUID, request: PasswordUpdateRequest) -> None:
        """
        Replace the password after checking the current one.

        Raises:
            IncorrectPasswordError: If current_password is wrong
        """
        user = UserService.get_user(user_id)
        if not verify_password(request.current_password, user.get("password_hash")):
            raise IncorrectPasswordError("Current password is incorrect")

        SupabaseClient.update_user(user_id, {
            "password_hash": hash_password(request.new_password),
            "updated_at": utc_now_iso(),
        })
        logger.info(f"Password changed for user {user_id}")

    # -------------------------------------------------------------------------
    # Avatar
    # -------------------------------------------------------------------------

    @staticmethod
    def update_avatar(
        user_id: str | UUID,
        content: bytes,
        content_type: str | None,
    ) -> dict[str, Any]:
        """Validate, upload and attach a new avatar; the old one is deleted."""
        StorageService.validate_avatar(content, content_type)
        user = UserService.get_user(user_id)

        path, url = StorageService.upload_avatar(str(user_id), content, content_type or "")
        if user.get("avatar_path"):
            StorageService.delete_file(user["avatar_path"])

        data = {"avatar_url": url, "avatar_path": path, "updated_at": utc_now_iso()}
        updated = SupabaseClient.update_user(user_id, data)
        return updated or {**user, **data}

    @staticmethod
    def remove_avatar(user_id: str | UUID) -> dict[str, Any]:
        user = UserService.get_user(user_id)
        if user.get("avatar_path"):
            StorageService.delete_file(user["avatar_path"])

        data = {"avatar_url": None, "avatar_path": None, "updated_at": utc_now_iso()}
        updated = SupabaseClient.update_user(user_id, data)
        return updated or {**user, **data}

    # -------------------------------------------------------------------------
    # Stats, Export, Deletion
    # -------------------------------------------------------------------------

    @staticmethod
    def get_stats(user_id: str | UUID) -> dict[str, Any]:
        """Stored metrics plus live goal aggregates and message counts."""
        user = UserService.get_user(user_id)
        goals = SupabaseClient.fetch_goals(user_id)

        created_at = parse_datetime(user.get("created_at"))
        account_age = (utc_now() - created_at).days if created_at else 0

        return {
            **UserMetrics.model_validate(user.get("metrics") or {}).model_dump(mode="json"),
            "goals": {
                "total_goals": len(goals),
                "completed_goals": sum(1 for g in goals if g.get("status") == GoalStatus.COMPLETED.value),
                "active_goals": sum(1 for g in goals if g.get("status") == GoalStatus.ACTIVE.value),
                "average_progress": round(mean(float(g.get("progress") or 0) for g in goals), 1) if goals else 0,
            },
            "total_messages": SupabaseClient.count_messages(user_id, message_type="user"),
            "account_age": account_age,
        }

    @staticmethod
    def export_data(user_id: str | UUID) -> dict[str, Any]:
        """Everything stored about the user, minus secrets and embeddings."""
        user = UserService.get_user(user_id)
        export = {
            "user": UserResponse.from_row(user).model_dump(mode="json"),
            "goals": SupabaseClient.fetch_goals(user_id),
            "messages": SupabaseClient.fetch_messages(user_id),
            "export_date": utc_now_iso(),
            "version": EXPORT_VERSION,
        }
        logger.info(f"Exported data for user {user_id}")
        return export

    @staticmethod
    def delete_account(user_id: str | UUID, password: str | None = None) -> None:
        """
        Delete the user together with their goals, messages and avatar.

        Raises:
            IncorrectPasswordError: If a password was given and doesn't match
        """
        user = UserService.get_user(user_id)
        if password is not None and not verify_password(password, user.get("password_hash")):
            raise IncorrectPasswordError("Invalid password")

        if user.get("avatar_path"):
            StorageService.delete_file(user["avatar_path"])

        SupabaseClient.delete_messages(user_id)
        SupabaseClient.delete_goals_for_user(user_id)
        SupabaseClient.delete_user(user_id)
        vector_store.clear_user(str(user_id))
        logger.info(f"Deleted account {user_id}")
