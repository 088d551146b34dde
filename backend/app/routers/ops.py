# backend/app/routers/ops.py
from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..config import settings
from ..db import get_db
from ..domain.errors import AuthzDenied
from ..schemas import ReminderRunOut
from ..services.reminders import send_monthly_reminders

router = APIRouter(prefix="/ops", tags=["ops"])


@router.post("/reminders/run", response_model=ReminderRunOut)
def run_reminders(force: bool = False, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    """
    Manual reminder run.

    Without `force` this claims the current cycle exactly like the scheduler
    would, so a later scheduled run in the same month is skipped.
    """
    if not settings.ops_manual_reminders_enabled:
        raise AuthzDenied("manual reminder runs are disabled")
    return ReminderRunOut(**asdict(send_monthly_reminders(db, force=force)))
