# =============================================================================
# workers/celery_app.py - Celery Application for Scheduled Coaching Jobs
# =============================================================================
# Builds the Celery app that runs the nightly metric refresh and the
# progress reminders, using Redis as broker and result backend.
#
# Worker processes are forked from the parent, so each child drops the
# inherited Supabase client and opens its own on first use.
#
# Usage:
#   # Worker
#   celery -A workers.celery_app worker -Q default,reminders --loglevel=info
#
#   # Scheduler (metric refresh and reminders)
#   celery -A workers.celery_app beat --loglevel=info
# =============================================================================

import logging

from celery import Celery
from celery.signals import beat_init, task_failure, task_postrun, task_prerun, worker_process_init
from dotenv import load_dotenv

load_dotenv()

from app.config import settings  # noqa: E402
from lib.supabase_client import SupabaseClient  # noqa: E402

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def _redacted(url: str) -> str:
    """Broker URL without credentials, for logs."""
    return url.split("@")[-1] if "@" in url else url


def create_celery_app() -> Celery:
    """
    Create the worker app for the life coach jobs.

    Tasks live in workers.tasks; schedule, queues and limits in
    workers.config.CeleryConfig.
    """
    app = Celery(
        "lifecoach_worker",
        broker=settings.REDIS_URL,
        backend=settings.REDIS_URL,
        include=["workers.tasks"],
    )
    app.config_from_object("workers.config:CeleryConfig")

    logger.info(f"Celery app created with broker: {_redacted(settings.REDIS_URL)} ({settings.ENVIRONMENT})")
    return app


celery_app = create_celery_app()


# =============================================================================
# Celery Signals (Lifecycle Hooks)
# =============================================================================

@worker_process_init.connect
def reset_database_client(**kwargs):
    """Forked children must not share the parent's HTTP connections."""
    SupabaseClient._instance = None


@beat_init.connect
def log_schedule(sender=None, **kwargs):
    for name, entry in celery_app.conf.beat_schedule.items():
        logger.info(f"Scheduled {name}: {entry['task']} {entry.get('args', ())} at {entry['schedule']}")


@task_prerun.connect
def task_prerun_handler(sender=None, task_id=None, task=None, args=None, kwargs=None, **extra):
    logger.info(f"Task started: {task.name} [{task_id}] args={args}")


@task_postrun.connect
def task_postrun_handler(sender=None, task_id=None, task=None, retval=None, state=None, **extra):
    """Log the task's counts (processed/sent/skipped) with its final state."""
    logger.info(f"Task completed: {task.name} [{task_id}] - State: {state} - Result: {retval}")


@task_failure.connect
def task_failure_handler(sender=None, task_id=None, exception=None, args=None, **extra):
    logger.error(f"Task failed: {sender.name} [{task_id}] args={args} - Error: {exception}")


if __name__ == "__main__":
    celery_app.start()
