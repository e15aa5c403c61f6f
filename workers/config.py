# =============================================================================
# workers/config.py - Celery Worker Configuration
# =============================================================================
# Queues, limits and the beat schedule for the coaching jobs:
# - refresh-user-metrics: nightly, so streaks decay for idle users
# - *-reminders: one entry per reminder_frequency preference
#
# All times are UTC. Applied via app.config_from_object().
# =============================================================================

from celery.schedules import crontab

from app.config import settings

REMINDER_HOUR_UTC = 8


def _reminder(frequency: str, **schedule) -> dict:
    return {
        "task": "workers.tasks.send_progress_reminders",
        "schedule": crontab(hour=REMINDER_HOUR_UTC, minute=0, **schedule),
        "args": (frequency,),
    }


class CeleryConfig:
    """Celery settings for the metric refresh and reminder workers."""

    broker_url = settings.REDIS_URL
    result_backend = settings.REDIS_URL

    # Task results are only read by operators checking a run
    result_expires = 24 * 3600

    # Ack after completion so a sweep lost to a crashed worker is re-run
    task_acks_late = True
    worker_prefetch_multiplier = 1

    # Sweeps touch every active user
    task_time_limit = 900
    task_soft_time_limit = 840

    task_serializer = "json"
    result_serializer = "json"
    accept_content = ["json"]

    # Reminders go to their own queue so a slow sweep can't delay the refresh
    task_queues = {
        "default": {"exchange": "default", "routing_key": "default"},
        "reminders": {"exchange": "reminders", "routing_key": "reminders"},
    }
    task_default_queue = "default"
    task_routes = {
        "workers.tasks.send_progress_reminders": {"queue": "reminders"},
    }

    task_annotations = {
        "*": {"max_retries": 3, "default_retry_delay": 60},
    }

    beat_schedule = {
        "refresh-user-metrics": {
            "task": "workers.tasks.refresh_user_metrics",
            "schedule": crontab(hour=0, minute=5),
        },
        "daily-reminders": _reminder("daily"),
        "weekly-reminders": _reminder("weekly", day_of_week="monday"),
        # Same Monday slot; the task skips odd ISO weeks
        "biweekly-reminders": _reminder("biweekly", day_of_week="monday"),
    }

    # Task events for monitoring (Flower)
    worker_send_task_events = True
    task_send_sent_event = True

    timezone = "UTC"
    enable_utc = True
