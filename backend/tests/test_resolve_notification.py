# backend/tests/test_resolve_notification.py
from __future__ import annotations

import json
import threading

import pytest
from sqlalchemy import func, select

from app.db import SessionLocal
from app.domain.audit import audit_trail
from app.domain.errors import AuthzDenied, Conflict, InvalidState, NotFound, StorageError
from app.domain.notifications import NotificationKind, NotificationStatus
from app.middleware.request_id import request_id_scope
from app.models import Floor, Notification
from app.services import floor_actions, workflow_engine
from app.services.workflow_engine import (
    create_payment_submission,
    create_tenant_request,
    resolve_notification,
    withdraw_notification,
)


def _request(db, world, phone=None, floor_id=None):
    return create_tenant_request(
        db,
        caller_id=world.manager,
        property_id=world.property_id,
        floor_id=floor_id or world.floor_id,
        tenant_phone=phone or world.tenant_phone,
    )


def _tenant_of(db, floor_id: int):
    return db.scalar(select(Floor.tenant_user_id).where(Floor.id == floor_id))


def _status_of(db, notification_id: int):
    return db.scalar(select(Notification.status).where(Notification.id == notification_id))


def _status_updates_for(db, notification_id: int) -> list[Notification]:
    db.expire_all()
    return list(
        db.scalars(
            select(Notification).where(
                Notification.kind == NotificationKind.STATUS_UPDATE,
                Notification.related_notification_id == notification_id,
            )
        ).all()
    )


def test_accept_assigns_floor_and_reports_back(db, world):
    req = _request(db, world)

    res = resolve_notification(db, caller_id=world.tenant, notification_id=req.id, accept=True)

    assert res.floor_assigned is True
    assert res.notification.status == NotificationStatus.ACCEPTED
    assert _status_of(db, req.id) == NotificationStatus.ACCEPTED
    assert _tenant_of(db, world.floor_id) == world.tenant

    updates = _status_updates_for(db, req.id)
    assert len(updates) == 1
    su = updates[0]
    assert su.id == res.status_update.id
    assert su.status == NotificationStatus.ACCEPTED
    assert su.sender_id == world.tenant
    assert su.receiver_id == world.manager
    assert su.floor_id == world.floor_id
    assert su.message == "Tenant request accepted - Green Villa, Floor 1"


def test_reject_leaves_floor_vacant(db, world):
    req = _request(db, world)

    res = resolve_notification(db, caller_id=world.tenant, notification_id=req.id, accept=False)

    assert res.floor_assigned is False
    assert _status_of(db, req.id) == NotificationStatus.REJECTED
    assert _tenant_of(db, world.floor_id) is None

    updates = _status_updates_for(db, req.id)
    assert len(updates) == 1
    assert updates[0].status == NotificationStatus.REJECTED
    assert updates[0].sender_id == world.tenant
    assert updates[0].receiver_id == world.manager
    assert updates[0].message == "Tenant request rejected - Green Villa, Floor 1"


def test_only_receiver_may_resolve(db, world):
    req = _request(db, world)

    for caller in (world.manager, world.outsider):
        with pytest.raises(AuthzDenied):
            resolve_notification(db, caller_id=caller, notification_id=req.id, accept=True)

    assert _status_of(db, req.id) == NotificationStatus.PENDING
    assert _tenant_of(db, world.floor_id) is None


def test_unknown_notification_is_not_found(db, world):
    with pytest.raises(NotFound):
        resolve_notification(db, caller_id=world.tenant, notification_id=123, accept=True)


def test_resolving_twice_is_invalid_state(db, world):
    req = _request(db, world)
    resolve_notification(db, caller_id=world.tenant, notification_id=req.id, accept=False)

    with pytest.raises(InvalidState):
        resolve_notification(db, caller_id=world.tenant, notification_id=req.id, accept=True)

    assert _tenant_of(db, world.floor_id) is None
    assert len(_status_updates_for(db, req.id)) == 1


def test_status_update_is_not_actionable(db, world):
    req = _request(db, world)
    res = resolve_notification(db, caller_id=world.tenant, notification_id=req.id, accept=True)

    with pytest.raises(InvalidState):
        resolve_notification(db, caller_id=world.manager, notification_id=res.status_update.id, accept=True)


def test_accept_on_occupied_floor_conflicts_and_keeps_request_pending(db, world):
    req = _request(db, world)
    # manager fills the floor directly while the request is still open
    floor_actions.assign_tenant(
        db,
        caller_id=world.manager,
        property_id=world.property_id,
        floor_id=world.floor_id,
        tenant_phone=world.outsider_phone,
    )

    with pytest.raises(Conflict):
        resolve_notification(db, caller_id=world.tenant, notification_id=req.id, accept=True)

    assert _status_of(db, req.id) == NotificationStatus.PENDING
    assert _tenant_of(db, world.floor_id) == world.outsider
    assert _status_updates_for(db, req.id) == []

    # rejecting is still possible
    resolve_notification(db, caller_id=world.tenant, notification_id=req.id, accept=False)
    assert _status_of(db, req.id) == NotificationStatus.REJECTED


def test_accepting_payment_submission_does_not_touch_floor(db, world):
    req = _request(db, world)
    resolve_notification(db, caller_id=world.tenant, notification_id=req.id, accept=True)

    sub = create_payment_submission(
        db, caller_id=world.tenant, property_id=world.property_id, floor_id=world.floor_id, amount=12000
    )
    res = resolve_notification(db, caller_id=world.manager, notification_id=sub.id, accept=True)

    assert res.floor_assigned is False
    assert _tenant_of(db, world.floor_id) == world.tenant
    su = res.status_update
    assert su.status == NotificationStatus.ACCEPTED
    assert su.sender_id == world.manager
    assert su.receiver_id == world.tenant
    assert su.amount == 12000
    assert su.message == "Payment accepted - Green Villa, Floor 1"


def test_concurrent_resolve_has_single_winner(world):
    s = SessionLocal()
    try:
        req_id = _request(s, world).id
    finally:
        s.close()

    barrier = threading.Barrier(2)
    outcomes: list[str] = []
    lock = threading.Lock()

    def attempt(accept: bool) -> None:
        s = SessionLocal()
        try:
            barrier.wait(timeout=10)
            resolve_notification(s, caller_id=world.tenant, notification_id=req_id, accept=accept)
            result = "ok"
        except InvalidState:
            result = "invalid_state"
        finally:
            s.close()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=attempt, args=(True,)), threading.Thread(target=attempt, args=(False,))]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert sorted(outcomes) == ["invalid_state", "ok"]

    s = SessionLocal()
    try:
        final = _status_of(s, req_id)
        assert final in (NotificationStatus.ACCEPTED, NotificationStatus.REJECTED)
        updates = s.scalar(
            select(func.count(Notification.id)).where(Notification.related_notification_id == req_id)
        )
        assert updates == 1
        expected_tenant = world.tenant if final == NotificationStatus.ACCEPTED else None
        assert _tenant_of(s, world.floor_id) == expected_tenant
    finally:
        s.close()


def test_two_requests_on_different_floors_for_same_tenant(db, world):
    r1 = _request(db, world)
    r2 = _request(db, world, floor_id=world.floor2_id)

    resolve_notification(db, caller_id=world.tenant, notification_id=r1.id, accept=True)
    resolve_notification(db, caller_id=world.tenant, notification_id=r2.id, accept=True)

    assert _tenant_of(db, world.floor_id) == world.tenant
    assert _tenant_of(db, world.floor2_id) == world.tenant


def test_audit_trail_records_only_the_status_move(db, world):
    with request_id_scope("req-audit-1"):
        req = _request(db, world)
        resolve_notification(db, caller_id=world.tenant, notification_id=req.id, accept=False)

    trail = audit_trail(db, entity_type="Notification", entity_id=req.id)
    assert [e.action for e in trail] == ["tenant_request.create", "tenant_request.rejected"]
    assert all(e.request_id == "req-audit-1" for e in trail)
    assert json.loads(trail[1].before_json) == {"status": "pending"}
    assert json.loads(trail[1].after_json) == {"status": "rejected"}


def _fail_with(exc):
    def _raise(*args, **kwargs):
        raise exc

    return _raise


@pytest.mark.parametrize("exc", [StorageError("names lookup failed"), KeyboardInterrupt()])
def test_failure_after_status_flip_rolls_everything_back(db, world, monkeypatch, exc):
    req = _request(db, world)
    # runs after the status flip and the floor assignment, before the reply insert
    monkeypatch.setattr(workflow_engine, "must_get_names", _fail_with(exc))

    with pytest.raises(type(exc)):
        resolve_notification(db, caller_id=world.tenant, notification_id=req.id, accept=True)

    assert _status_of(db, req.id) == NotificationStatus.PENDING
    assert _tenant_of(db, world.floor_id) is None
    assert _status_updates_for(db, req.id) == []

    monkeypatch.undo()
    res = resolve_notification(db, caller_id=world.tenant, notification_id=req.id, accept=True)
    assert res.floor_assigned is True


def test_failed_reply_insert_keeps_payment_submission_pending(db, world, monkeypatch):
    floor_actions.assign_tenant(
        db, caller_id=world.manager, property_id=world.property_id, floor_id=world.floor_id,
        tenant_phone=world.tenant_phone,
    )
    sub = create_payment_submission(
        db, caller_id=world.tenant, property_id=world.property_id, floor_id=world.floor_id, amount=12000
    )
    monkeypatch.setattr(workflow_engine.notification_store, "insert", _fail_with(StorageError("insert failed")))

    with pytest.raises(StorageError):
        resolve_notification(db, caller_id=world.manager, notification_id=sub.id, accept=True)

    assert _status_of(db, sub.id) == NotificationStatus.PENDING
    assert _status_updates_for(db, sub.id) == []


def test_failure_during_withdraw_keeps_the_request(db, world, monkeypatch):
    req = _request(db, world)
    # audit runs after the conditional delete
    monkeypatch.setattr(workflow_engine, "audit_write", _fail_with(StorageError("audit failed")))

    with pytest.raises(StorageError):
        withdraw_notification(db, caller_id=world.manager, notification_id=req.id)

    assert _status_of(db, req.id) == NotificationStatus.PENDING


def test_failure_during_create_leaves_no_request(db, world, monkeypatch):
    monkeypatch.setattr(workflow_engine, "audit_write", _fail_with(KeyboardInterrupt()))

    with pytest.raises(KeyboardInterrupt):
        _request(db, world)

    count = db.scalar(select(func.count(Notification.id)).where(Notification.floor_id == world.floor_id))
    assert count == 0
