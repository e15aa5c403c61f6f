# =============================================================================
# workers/ - Celery Background Task Workers
# =============================================================================
# This package contains the Celery configuration and scheduled tasks.
#
# Components:
# - celery_app.py: Celery application configuration
# - tasks.py: Task definitions (metric refresh, progress reminders)
# - config.py: Worker settings and beat schedule
#
# Usage:
#   # Start worker and scheduler
#   celery -A workers.celery_app worker --loglevel=info
#   celery -A workers.celery_app beat --loglevel=info
#
#   # Trigger a refresh by hand
#   from workers.tasks import refresh_user_metrics
#   refresh_user_metrics.delay()
# =============================================================================

from .celery_app import celery_app
from . import tasks

__all__ = [
    "celery_app",
    "tasks",
]
