"""
Celery application configuration.

Redis is both broker and result backend. Celery Beat fires the two periodic
triggers: the automation queue once a day and the outreach queue every few
minutes. The same work can be triggered over HTTP by an external cron.
"""

from celery import Celery
from celery.schedules import crontab
from app.core.config import settings

# Create Celery instance
celery_app = Celery(
    "hiring_automation_worker",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL
)

# Configure Celery
celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # Timezone
    timezone="UTC",
    enable_utc=True,

    # Task behavior
    task_track_started=True,
    task_time_limit=300,  # 5 minutes max per tick
    task_soft_time_limit=240,

    # Result backend
    result_expires=3600,

    # Worker behavior
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=50,

    beat_schedule={
        "process-automation-queue": {
            "task": "app.tasks.automation_tasks.process_automation_queue",
            "schedule": crontab(hour=10, minute=0),
        },
        "process-outreach-queue": {
            "task": "app.tasks.automation_tasks.process_outreach_queue",
            "schedule": crontab(minute="*/5"),
        },
    },
)

celery_app.autodiscover_tasks(['app'])
