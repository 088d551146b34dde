# backend/app/domain/audit.py
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..middleware.request_id import get_request_id
from ..models import AuditEvent


def _dumps(v: Optional[dict[str, Any]]) -> Optional[str]:
    if v is None:
        return None
    return json.dumps(v, sort_keys=True, default=str)


def _changed_only(
    before: Optional[dict[str, Any]], after: Optional[dict[str, Any]]
) -> tuple[Optional[dict[str, Any]], Optional[dict[str, Any]]]:
    # keys that did not move are noise in a transition record
    if before is None or after is None:
        return before, after
    keys = [k for k in sorted(set(before) | set(after)) if before.get(k) != after.get(k)]
    return {k: before.get(k) for k in keys}, {k: after.get(k) for k in keys}


def audit_write(
    db: Session,
    *,
    actor_user_id: Optional[int],
    action: str,
    entity_type: str,
    entity_id: Any,
    before: Optional[dict[str, Any]] = None,
    after: Optional[dict[str, Any]] = None,
) -> AuditEvent:
    """
    Adds an audit row to the current transaction.

    Never commits: the row lands or disappears together with the transition it
    describes. `action` is "<subject>.<verb>", e.g. "tenant_request.accepted".
    The current HTTP request id is stamped on the row when there is one.
    """
    if "." not in action:
        raise ValueError(f"audit action must look like 'subject.verb', got {action!r}")

    before, after = _changed_only(before, after)
    row = AuditEvent(
        actor_user_id=actor_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        request_id=get_request_id(),
        before_json=_dumps(before),
        after_json=_dumps(after),
        created_at=datetime.utcnow(),
    )
    db.add(row)
    return row


def audit_trail(db: Session, *, entity_type: str, entity_id: Any) -> list[AuditEvent]:
    """Oldest-first history of one entity."""
    return list(
        db.scalars(
            select(AuditEvent)
            .where(AuditEvent.entity_type == entity_type, AuditEvent.entity_id == str(entity_id))
            .order_by(AuditEvent.created_at.asc(), AuditEvent.id.asc())
        ).all()
    )
