"""Celery application for scheduled archive maintenance.

Run a worker with beat:
    celery -A paycrypt.workers.celery_app worker --beat --loglevel=info
"""

from datetime import timedelta

from celery import Celery

from ..config import get_settings

settings = get_settings()

celery_app = Celery(
    "paycrypt",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["paycrypt.workers.archive_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
)

celery_app.conf.beat_schedule = {
    "archive-reclaim": {
        "task": "archive.reclaim",
        "schedule": timedelta(seconds=settings.ARCHIVE_RECLAIM_INTERVAL_SECONDS),
        "options": {
            "expires": 3600,  # Task expires after 1 hour if not picked up
        },
    },
}
