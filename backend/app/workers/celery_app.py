# backend/app/workers/celery_app.py
from __future__ import annotations

from celery import Celery
from celery.schedules import crontab

from ..config import settings

celery_app = Celery(
    "rentflow",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["app.workers.reminder_tasks"],
)

celery_app.conf.update(
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_reject_on_worker_lost=True,
    task_track_started=True,
    # beat reads crontab fields in this zone
    timezone=settings.reminder_timezone,
    enable_utc=True,
)

celery_app.conf.task_routes = {
    "app.workers.reminder_tasks.*": {"queue": "reminders"},
}

celery_app.conf.beat_schedule = {
    "monthly-rent-reminder": {
        "task": "app.workers.reminder_tasks.send_monthly_reminders_task",
        "schedule": crontab(minute=0, hour=settings.reminder_hour, day_of_month=settings.reminder_day),
    },
}
