# backend/app/services/reminders.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.errors import NotFound, WorkflowError
from ..domain.notifications import NotificationKind, reminder_message
from ..models import SchedulerRun
from . import notification_store, tenancy_store
from .authz import property_manager_id
from .runtime_metrics import METRICS
from .storage import storage_guard

log = logging.getLogger(__name__)

JOB_KEY = "monthly_rent_reminder"
MANUAL_JOB_KEY = "monthly_rent_reminder.manual"


@dataclass(frozen=True)
class ReminderRunResult:
    job_key: str
    cycle_key: str
    skipped: bool
    created: int = 0
    failed: int = 0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _local(now: datetime, tz: Optional[str]) -> datetime:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(tz or settings.reminder_timezone))


def next_run_after(
    now: datetime,
    *,
    day: Optional[int] = None,
    hour: Optional[int] = None,
    tz: Optional[str] = None,
) -> datetime:
    """
    First `day` of a month at `hour`:00 local time that is strictly after `now`.

    Naive datetimes are read as UTC. The result is timezone-aware in `tz`.
    """
    d = int(day if day is not None else settings.reminder_day)
    h = int(hour if hour is not None else settings.reminder_hour)
    if not (1 <= d <= 28):
        raise ValueError("day must be between 1 and 28")

    local = _local(now, tz)
    candidate = local.replace(day=d, hour=h, minute=0, second=0, microsecond=0)
    if candidate <= local:
        if local.month == 12:
            candidate = candidate.replace(year=local.year + 1, month=1)
        else:
            candidate = candidate.replace(month=local.month + 1)
    return candidate


def cycle_key(now: datetime, *, tz: Optional[str] = None) -> str:
    return _local(now, tz).strftime("%Y-%m")


def _claim(db: Session, *, job_key: str, key: str, started_at: datetime) -> Optional[SchedulerRun]:
    """Durable marker: only one claim per (job, cycle) ever commits."""
    run = SchedulerRun(job_key=job_key, cycle_key=key, started_at=started_at)
    with storage_guard("scheduler claim"):
        db.add(run)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            return None
        except BaseException:
            db.rollback()
            raise
    return run


def _emit_one(db: Session, floor: tenancy_store.OccupiedFloor) -> None:
    manager_id = property_manager_id(db, property_id=floor.property_id)
    if manager_id is None:
        raise NotFound("property has no manager")

    payment = tenancy_store.latest_payment(db, floor_id=floor.floor_id)
    due_rent = payment.due_rent if payment else 0
    due_electricity = payment.due_electricity_bill if payment else 0

    notification_store.insert(
        db,
        kind=NotificationKind.REMINDER,
        status=None,
        sender_id=manager_id,
        receiver_id=floor.tenant_user_id,
        property_id=floor.property_id,
        floor_id=floor.floor_id,
        message=reminder_message(floor.property_name, floor.floor_name, due_rent, due_electricity),
        actor_user_id=manager_id,
    )
    with storage_guard("reminder commit"):
        db.commit()


def send_monthly_reminders(
    db: Session,
    *,
    now: Optional[datetime] = None,
    force: bool = False,
    tz: Optional[str] = None,
) -> ReminderRunResult:
    """
    One informational reminder per occupied floor.

    The cycle (local year-month of `now`) is claimed first; a second call in the
    same cycle, from this process or any other, is skipped. `force=True` is the
    operator path: it records its own run row and never consumes the cycle.

    Each floor is its own unit of work. A failing floor is rolled back, logged
    and counted; the others still get their reminder.
    """
    now = now or _utcnow()
    if force:
        job_key, key = MANUAL_JOB_KEY, _local(now, tz).strftime("%Y-%m-%dT%H:%M:%S")
    else:
        job_key, key = JOB_KEY, cycle_key(now, tz=tz)

    started_at = now.astimezone(timezone.utc).replace(tzinfo=None) if now.tzinfo else now
    run = _claim(db, job_key=job_key, key=key, started_at=started_at)
    if run is None:
        log.info("reminder cycle already claimed", extra={"cycle_key": key})
        return ReminderRunResult(job_key=job_key, cycle_key=key, skipped=True)

    floors = tenancy_store.occupied_floors(db)
    created = 0
    failed = 0
    for floor in floors:
        try:
            _emit_one(db, floor)
            created += 1
        except (WorkflowError, SQLAlchemyError):
            db.rollback()
            failed += 1
            log.exception(
                "reminder failed",
                extra={"floor_id": floor.floor_id, "property_id": floor.property_id, "cycle_key": key},
            )

    with storage_guard("scheduler run update"):
        run.created_count = created
        run.failed_count = failed
        run.finished_at = datetime.utcnow()
        db.add(run)
        db.commit()

    METRICS.inc("reminders_created_total", created)
    METRICS.inc("reminders_failed_total", failed)
    log.info(
        "monthly reminders sent",
        extra={"cycle_key": key, "status": f"created={created} failed={failed}"},
    )
    return ReminderRunResult(job_key=job_key, cycle_key=key, skipped=False, created=created, failed=failed)
