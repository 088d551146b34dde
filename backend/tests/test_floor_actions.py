# backend/tests/test_floor_actions.py
from __future__ import annotations

import pytest
from sqlalchemy import select

from app.domain.errors import AuthzDenied, Conflict, InvalidState, NotFound, ValidationError
from app.models import Floor, Payment
from app.services import floor_actions


def _tenant_of(db, floor_id: int):
    return db.scalar(select(Floor.tenant_user_id).where(Floor.id == floor_id))


def _assign(db, w, phone=None):
    return floor_actions.assign_tenant(
        db,
        caller_id=w.manager,
        property_id=w.property_id,
        floor_id=w.floor_id,
        tenant_phone=phone or w.tenant_phone,
    )


def test_assign_then_remove(db, world):
    floor = _assign(db, world)
    assert floor.tenant_user_id == world.tenant
    assert _tenant_of(db, world.floor_id) == world.tenant

    floor = floor_actions.remove_tenant(
        db, caller_id=world.manager, property_id=world.property_id, floor_id=world.floor_id
    )
    assert floor.tenant_user_id is None
    assert _tenant_of(db, world.floor_id) is None


def test_assign_requires_vacant_floor(db, world):
    _assign(db, world)
    with pytest.raises(Conflict):
        _assign(db, world, phone=world.outsider_phone)
    assert _tenant_of(db, world.floor_id) == world.tenant


def test_assign_unknown_phone(db, world):
    with pytest.raises(NotFound):
        _assign(db, world, phone="01000000000")


def test_remove_from_vacant_floor_is_invalid_state(db, world):
    with pytest.raises(InvalidState):
        floor_actions.remove_tenant(db, caller_id=world.manager, property_id=world.property_id, floor_id=world.floor_id)


def test_floor_actions_are_manager_only(db, world):
    with pytest.raises(AuthzDenied):
        floor_actions.assign_tenant(
            db,
            caller_id=world.tenant,
            property_id=world.property_id,
            floor_id=world.floor_id,
            tenant_phone=world.tenant_phone,
        )
    _assign(db, world)
    with pytest.raises(AuthzDenied):
        floor_actions.remove_tenant(db, caller_id=world.tenant, property_id=world.property_id, floor_id=world.floor_id)
    with pytest.raises(AuthzDenied):
        floor_actions.record_payment(
            db,
            caller_id=world.tenant,
            property_id=world.property_id,
            floor_id=world.floor_id,
            due_rent=1,
            due_electricity_bill=1,
            received_money=2,
        )


def test_record_payment_full_and_partial(db, world):
    _assign(db, world)

    full = floor_actions.record_payment(
        db,
        caller_id=world.manager,
        property_id=world.property_id,
        floor_id=world.floor_id,
        due_rent=12000,
        due_electricity_bill=800,
        received_money=12800,
    )
    assert full.full_payment is True
    assert full.tenant_user_id == world.tenant

    partial = floor_actions.record_payment(
        db,
        caller_id=world.manager,
        property_id=world.property_id,
        floor_id=world.floor_id,
        due_rent=12000,
        due_electricity_bill=800,
        received_money=10000,
    )
    assert partial.full_payment is False

    rows = db.scalars(select(Payment).where(Payment.floor_id == world.floor_id)).all()
    assert len(rows) == 2


def test_record_payment_on_vacant_floor(db, world):
    with pytest.raises(InvalidState):
        floor_actions.record_payment(
            db,
            caller_id=world.manager,
            property_id=world.property_id,
            floor_id=world.floor_id,
            due_rent=1,
            due_electricity_bill=0,
            received_money=1,
        )


def test_record_payment_rejects_negative(db, world):
    _assign(db, world)
    with pytest.raises(ValidationError):
        floor_actions.record_payment(
            db,
            caller_id=world.manager,
            property_id=world.property_id,
            floor_id=world.floor_id,
            due_rent=-1,
            due_electricity_bill=0,
            received_money=0,
        )
