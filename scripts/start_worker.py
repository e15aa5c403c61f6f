#!/usr/bin/env python3
# =============================================================================
# scripts/start_worker.py - Celery Worker Entry Point
# =============================================================================
# Starts a Celery worker for the metric refresh and progress reminders.
#
# Usage:
#   # Worker only (beat runs elsewhere)
#   python scripts/start_worker.py
#
#   # Worker with an embedded beat scheduler (single-instance deployments)
#   python scripts/start_worker.py --beat
#
#   # Or use Celery CLI directly
#   celery -A workers.celery_app worker -Q default,reminders --loglevel=info
#
# Prerequisites:
#   - Redis must be running (REDIS_URL)
#   - Environment variables must be set (.env file)
# =============================================================================

import sys

from workers.celery_app import celery_app


def main():
    """Start the Celery worker."""
    embed_beat = "--beat" in sys.argv[1:]

    print("=" * 60)
    print("AI Life Coach Worker" + (" (with beat)" if embed_beat else ""))
    print("=" * 60)
    print()
    print("Queues: default, reminders")
    print("Press Ctrl+C to stop")
    print()

    argv = [
        "worker",
        "--loglevel=info",
        "--concurrency=2",
        "--queues=default,reminders",
    ]
    if embed_beat:
        argv.append("--beat")

    celery_app.worker_main(argv)


if __name__ == "__main__":
    main()
