# backend/app/routers/properties.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..db import get_db
from ..schemas import (
    AssignTenantIn,
    FloorCreate,
    FloorOut,
    ManagerCheckOut,
    NotificationCreatedOut,
    NotificationOut,
    PaymentIn,
    PaymentOut,
    PaymentSubmissionIn,
    PropertyCreate,
    PropertyOut,
    TenantPropertyOut,
    TenantRequestIn,
)
from ..services import floor_actions, properties, workflow_engine
from ..services.authz import is_manager
from ..services.ownership import must_get_property

router = APIRouter(prefix="/properties", tags=["properties"])


# -------------------- Properties --------------------

@router.get("", response_model=list[PropertyOut])
def list_managed(db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return properties.list_managed_properties(db, user_id=p.user_id)


@router.post("", response_model=PropertyOut)
def create_property(payload: PropertyCreate, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return properties.create_property(db, caller_id=p.user_id, name=payload.name, address=payload.address)


@router.get("/tenant", response_model=list[TenantPropertyOut])
def list_tenant_properties(db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return [
        TenantPropertyOut(property=PropertyOut.model_validate(prop), floor=FloorOut.model_validate(floor))
        for prop, floor in properties.list_tenant_properties(db, user_id=p.user_id)
    ]


@router.get("/{property_id}/manager", response_model=ManagerCheckOut)
def manager_check(property_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    must_get_property(db, property_id=property_id)
    return ManagerCheckOut(
        property_id=property_id,
        is_manager=is_manager(db, user_id=p.user_id, property_id=property_id),
    )


# -------------------- Floors --------------------

@router.get("/{property_id}/floors", response_model=list[FloorOut])
def list_floors(property_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return [FloorOut.from_view(v) for v in properties.list_floors(db, caller_id=p.user_id, property_id=property_id)]


@router.post("/{property_id}/floors", response_model=FloorOut)
def add_floor(
    property_id: int,
    payload: FloorCreate,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    return properties.add_floor(db, caller_id=p.user_id, property_id=property_id, name=payload.name, rent=payload.rent)


@router.post("/{property_id}/floors/{floor_id}/request", response_model=NotificationCreatedOut)
def request_tenant(
    property_id: int,
    floor_id: int,
    payload: TenantRequestIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    n = workflow_engine.create_tenant_request(
        db,
        caller_id=p.user_id,
        property_id=property_id,
        floor_id=floor_id,
        tenant_phone=payload.phone_number,
    )
    return NotificationCreatedOut(notification_id=n.id, kind=n.kind, status=n.status)


@router.post("/{property_id}/floors/{floor_id}/tenant", response_model=FloorOut)
def assign_tenant(
    property_id: int,
    floor_id: int,
    payload: AssignTenantIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    return floor_actions.assign_tenant(
        db,
        caller_id=p.user_id,
        property_id=property_id,
        floor_id=floor_id,
        tenant_phone=payload.phone_number,
    )


@router.delete("/{property_id}/floors/{floor_id}/tenant", response_model=FloorOut)
def remove_tenant(property_id: int, floor_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return floor_actions.remove_tenant(db, caller_id=p.user_id, property_id=property_id, floor_id=floor_id)


@router.post("/{property_id}/floors/{floor_id}/payments", response_model=PaymentOut)
def record_payment(
    property_id: int,
    floor_id: int,
    payload: PaymentIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    return floor_actions.record_payment(
        db,
        caller_id=p.user_id,
        property_id=property_id,
        floor_id=floor_id,
        due_rent=payload.due_rent,
        due_electricity_bill=payload.due_electricity_bill,
        received_money=payload.received_money,
    )


@router.post("/{property_id}/floors/{floor_id}/payment-notification", response_model=NotificationCreatedOut)
def submit_payment(
    property_id: int,
    floor_id: int,
    payload: PaymentSubmissionIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    n = workflow_engine.create_payment_submission(
        db,
        caller_id=p.user_id,
        property_id=property_id,
        floor_id=floor_id,
        amount=payload.amount,
    )
    return NotificationCreatedOut(notification_id=n.id, kind=n.kind, status=n.status)


@router.get("/{property_id}/floors/{floor_id}/pending-payments", response_model=list[NotificationOut])
def pending_payments(
    property_id: int,
    floor_id: int,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    views = workflow_engine.list_pending_payment_submissions(
        db, caller_id=p.user_id, property_id=property_id, floor_id=floor_id
    )
    return [NotificationOut.from_view(v) for v in views]
