# backend/app/routers/notifications.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..db import get_db
from ..schemas import MarkReadOut, NotificationActionIn, NotificationOut, ResolveOut
from ..services import workflow_engine

router = APIRouter(prefix="/notifications", tags=["notifications"])

NEXT_CURSOR_HEADER = "X-Next-Before-Id"


@router.get("", response_model=list[NotificationOut])
def list_notifications(
    response: Response,
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    before_id: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    """
    Without `limit` the full list is returned. A full page sets
    X-Next-Before-Id; pass it back as `before_id` for the next one.
    """
    views = workflow_engine.list_notifications(db, user_id=p.user_id, limit=limit, before_id=before_id)
    if limit is not None and len(views) == limit:
        response.headers[NEXT_CURSOR_HEADER] = str(views[-1].notification.id)
    return [NotificationOut.from_view(v) for v in views]


@router.post("/mark-read", response_model=MarkReadOut)
def mark_read(db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return MarkReadOut(updated=workflow_engine.mark_all_read(db, user_id=p.user_id))


@router.post("/action", response_model=ResolveOut)
def resolve(payload: NotificationActionIn, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    res = workflow_engine.resolve_notification(
        db,
        caller_id=p.user_id,
        notification_id=payload.notification_id,
        accept=payload.accept,
    )
    return ResolveOut(
        notification_id=res.notification.id,
        status=res.status_update.status,
        status_update_id=res.status_update.id,
        floor_assigned=res.floor_assigned,
    )


@router.delete("/{notification_id}")
def withdraw(notification_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    workflow_engine.withdraw_notification(db, caller_id=p.user_id, notification_id=notification_id)
    return {"ok": True, "notification_id": notification_id}
