# backend/tests/test_withdraw_notification.py
from __future__ import annotations

import pytest
from sqlalchemy import select

from app.domain.errors import AuthzDenied, InvalidState, NotFound
from app.models import AuditEvent, Notification
from app.services.workflow_engine import (
    create_payment_submission,
    create_tenant_request,
    resolve_notification,
    withdraw_notification,
)


def _request(db, world):
    return create_tenant_request(
        db,
        caller_id=world.manager,
        property_id=world.property_id,
        floor_id=world.floor_id,
        tenant_phone=world.tenant_phone,
    )


def _exists(db, notification_id: int) -> bool:
    return db.scalar(select(Notification.id).where(Notification.id == notification_id)) is not None


def test_sender_withdraws_pending_request(db, world):
    req = _request(db, world)

    withdraw_notification(db, caller_id=world.manager, notification_id=req.id)

    assert not _exists(db, req.id)
    audit = db.scalar(select(AuditEvent).where(AuditEvent.action == "tenant_request.withdraw"))
    assert audit is not None and audit.entity_id == str(req.id)

    # the floor can be offered again
    again = _request(db, world)
    assert again.id != req.id


def test_receiver_cannot_withdraw(db, world):
    req = _request(db, world)
    with pytest.raises(AuthzDenied):
        withdraw_notification(db, caller_id=world.tenant, notification_id=req.id)
    assert _exists(db, req.id)


def test_resolved_request_cannot_be_withdrawn(db, world):
    req = _request(db, world)
    resolve_notification(db, caller_id=world.tenant, notification_id=req.id, accept=False)

    with pytest.raises(InvalidState):
        withdraw_notification(db, caller_id=world.manager, notification_id=req.id)
    assert _exists(db, req.id)


def test_missing_notification_is_not_found(db, world):
    with pytest.raises(NotFound):
        withdraw_notification(db, caller_id=world.manager, notification_id=42)


def test_tenant_withdraws_payment_submission(db, world):
    req = _request(db, world)
    resolve_notification(db, caller_id=world.tenant, notification_id=req.id, accept=True)
    sub = create_payment_submission(
        db, caller_id=world.tenant, property_id=world.property_id, floor_id=world.floor_id, amount=500
    )

    with pytest.raises(AuthzDenied):
        withdraw_notification(db, caller_id=world.manager, notification_id=sub.id)

    withdraw_notification(db, caller_id=world.tenant, notification_id=sub.id)
    assert not _exists(db, sub.id)

    # gone for the manager too
    with pytest.raises(NotFound):
        resolve_notification(db, caller_id=world.manager, notification_id=sub.id, accept=True)
