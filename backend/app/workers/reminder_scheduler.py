# backend/app/workers/reminder_scheduler.py
from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import SessionLocal
from ..domain.errors import WorkflowError
from ..middleware.request_id import new_request_id, request_id_scope
from ..services.reminders import ReminderRunResult, next_run_after, send_monthly_reminders
from ..services.runtime_metrics import METRICS

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReminderScheduler:
    """
    In-process monthly trigger for the rent reminder run.

    Sleeps on an Event so stop() interrupts the wait immediately. The next run
    time is computed only after the current run has finished, and the durable
    cycle marker keeps a second process (or Celery beat) from sending twice.
    """

    def __init__(
        self,
        *,
        session_factory: Callable[[], Session] = SessionLocal,
        clock: Callable[[], datetime] = _utcnow,
        day: Optional[int] = None,
        hour: Optional[int] = None,
        tz: Optional[str] = None,
        max_sleep_seconds: float = 3600.0,
    ):
        self._session_factory = session_factory
        self._clock = clock
        self._day = day
        self._hour = hour
        self._tz = tz
        self._max_sleep = float(max_sleep_seconds)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.last_result: Optional[ReminderRunResult] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def next_run(self, after: datetime) -> datetime:
        return next_run_after(after, day=self._day, hour=self._hour, tz=self._tz)

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self.run_forever, name="reminder-scheduler", daemon=True)
        self._thread.start()
        log.info("reminder scheduler started")

    def stop(self, timeout: float = 10.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        log.info("reminder scheduler stopped")

    def run_once(self, *, now: datetime) -> Optional[ReminderRunResult]:
        db = self._session_factory()
        try:
            with request_id_scope(new_request_id("reminder-")):
                self.last_result = send_monthly_reminders(db, now=now, tz=self._tz)
            aware = now if now.tzinfo else now.replace(tzinfo=timezone.utc)
            METRICS.set_gauge("reminder_last_run_timestamp_seconds", aware.timestamp())
            return self.last_result
        except (WorkflowError, SQLAlchemyError):
            # the loop must survive a bad cycle; the next one is still scheduled
            METRICS.inc("reminder_runs_failed_total")
            log.exception("reminder run failed")
            return None
        finally:
            db.close()

    def run_forever(self) -> None:
        due = self.next_run(self._clock())
        while not self._stop.is_set():
            remaining = (due - self._clock()).total_seconds()
            if remaining > 0:
                # wake periodically so wall-clock jumps are noticed
                if self._stop.wait(timeout=min(remaining, self._max_sleep)):
                    break
                continue
            self.run_once(now=due)
            due = self.next_run(due)
