"""
CPA Monitor - Celery Application

Celery configuration and app initialization.
"""

from celery import Celery
from celery.schedules import crontab

from cpa_monitor.core.config import settings


# Create Celery app
celery_app = Celery(
    "cpa_monitor",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "cpa_monitor.tasks.sync_tasks",
    ],
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.default_timezone,
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Result settings
    result_expires=3600,  # 1 hour

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=2,

    # Task routing
    task_routes={
        "cpa_monitor.tasks.sync_tasks.*": {"queue": "sync"},
    },

    # Beat schedule (periodic tasks)
    beat_schedule={
        # Yesterday's Google Ads performance, 6 AM local time
        "daily-google-ads-sync": {
            "task": "cpa_monitor.tasks.sync_tasks.sync_google_ads_daily",
            "schedule": crontab(hour=6, minute=0),
            "options": {"queue": "sync"},
        },
    },
)
