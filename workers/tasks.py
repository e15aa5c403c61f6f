# =============================================================================
# workers/tasks.py - Celery Task Definitions
# =============================================================================
# Defines scheduled background tasks.
#
# Tasks:
# - refresh_user_metrics: Recompute metrics and streaks for every active user
# - send_progress_reminders: Post a weekly-report reminder into each matching
#   user's "reminders" conversation
# - healthcheck: Verify a worker is consuming
# =============================================================================

import logging
from typing import Any

from celery import shared_task

from core.models.goal import GoalStatus
from core.models.message import MessageType
from core.models.user import ReminderFrequency
from core.services.goal_analysis import GoalAnalysisService
from core.services.user_service import UserService
from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import parse_datetime, utc_now

logger = logging.getLogger(__name__)

REMINDER_CONVERSATION_ID = "reminders"


@shared_task(bind=True, name="workers.healthcheck")
def healthcheck(self):
    """
    Simple healthcheck task to verify worker is running.

    Usage:
        from workers.tasks import healthcheck
        result = healthcheck.delay()
        print(result.get(timeout=5))  # Should return "OK"
    """
    return "OK"


# =============================================================================
# Metrics Refresh
# =============================================================================

@shared_task(bind=True, name="workers.tasks.refresh_user_metrics")
def refresh_user_metrics(self) -> dict[str, Any]:
    """
    Recompute cached metrics for every active user.

    Streaks decay when a day passes without activity, so they have to be
    refreshed even for users who did nothing.

    Returns:
        Dict with processed and failed counts
    """
    users = SupabaseClient.fetch_users(status="active")
    processed = 0
    failed = 0

    for user in users:
        try:
            UserService.recalculate_metrics(user["id"])
            processed += 1
        except SupabaseClientError as e:
            failed += 1
            logger.error(f"Metric refresh failed for user {user['id']}: {e}")

    logger.info(f"Refreshed metrics for {processed} users ({failed} failed)")
    return {"processed": processed, "failed": failed}


# =============================================================================
# Progress Reminders
# =============================================================================

@shared_task(bind=True, name="workers.tasks.send_progress_reminders")
def send_progress_reminders(self, frequency: str, now: str | None = None) -> dict[str, Any]:
    """
    Send the weekly report as a system message to users on this cadence.

    Args:
        frequency: "daily", "weekly" or "biweekly"
        now: ISO timestamp override (for tests and backfills)

    Returns:
        Dict with sent and skipped counts
    """
    frequency = ReminderFrequency(frequency).value
    current = parse_datetime(now) or utc_now()

    if frequency == ReminderFrequency.BIWEEKLY.value and current.isocalendar()[1] % 2:
        logger.info("Skipping biweekly reminders on an odd week")
        return {"frequency": frequency, "sent": 0, "skipped": 0}

    sent = 0
    skipped = 0
    for user in SupabaseClient.fetch_users(status="active", reminder_frequency=frequency):
        try:
            goals = SupabaseClient.fetch_goals(user["id"])
            if not any(g.get("status") == GoalStatus.ACTIVE.value for g in goals):
                skipped += 1
                continue

            report = GoalAnalysisService.generate_weekly_report(user["id"], goals, now=current)
            SupabaseClient.insert_message({
                "user_id": str(user["id"]),
                "conversation_id": REMINDER_CONVERSATION_ID,
                "type": MessageType.SYSTEM.value,
                "content": GoalAnalysisService.format_weekly_report(report),
                "metadata": {"kind": "progress_reminder", "frequency": frequency, "report": report},
                "created_at": current.isoformat(),
            })
            sent += 1
        except SupabaseClientError as e:
            skipped += 1
            logger.error(f"Reminder failed for user {user['id']}: {e}")

    logger.info(f"Sent {sent} {frequency} reminders ({skipped} skipped)")
    return {"frequency": frequency, "sent": sent, "skipped": skipped}
