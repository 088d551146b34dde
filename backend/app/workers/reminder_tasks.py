# backend/app/workers/reminder_tasks.py
from __future__ import annotations

from dataclasses import asdict

from ..db import session_scope
from ..middleware.request_id import new_request_id, request_id_scope
from ..services.reminders import send_monthly_reminders
from .celery_app import celery_app


@celery_app.task(name="app.workers.reminder_tasks.send_monthly_reminders_task")
def send_monthly_reminders_task() -> dict:
    """
    Beat entry point. Safe to deliver twice: the second delivery finds the
    cycle already claimed and returns skipped=True.
    """
    with session_scope() as db, request_id_scope(new_request_id("celery-")):
        return asdict(send_monthly_reminders(db))
