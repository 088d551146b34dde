# backend/app/services/floor_actions.py
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from ..domain.audit import audit_write
from ..domain.errors import Conflict, InvalidState, NotFound, ValidationError
from ..models import Floor, Payment
from . import tenancy_store
from .runtime_metrics import METRICS
from .ownership import clean_phone, must_get_floor, require_manager, user_id_by_phone
from .storage import storage_guard, transaction

log = logging.getLogger(__name__)

# Manager-only occupancy actions that bypass the consent workflow.


def assign_tenant(
    db: Session,
    *,
    caller_id: int,
    property_id: int,
    floor_id: int,
    tenant_phone: str,
) -> Floor:
    """Direct assignment by the manager; only a vacant floor can be filled."""
    phone = clean_phone(tenant_phone)

    with transaction(db, "tenant assignment"):
        require_manager(db, caller_id=caller_id, property_id=property_id)
        floor = must_get_floor(db, property_id=property_id, floor_id=floor_id, lock=True)

        tenant_id = user_id_by_phone(db, phone=phone)
        if tenant_id is None:
            raise NotFound("user not found with this phone number")

        if not tenancy_store.assign_if_vacant(
            db, floor_id=floor_id, tenant_user_id=tenant_id, actor_user_id=caller_id
        ):
            raise Conflict("floor is already occupied")

        audit_write(
            db,
            actor_user_id=caller_id,
            action="floor.assign_tenant",
            entity_type="Floor",
            entity_id=floor_id,
            before={"tenant_user_id": None},
            after={"tenant_user_id": tenant_id},
        )

    with storage_guard("floor reload"):
        db.refresh(floor)
    METRICS.inc("tenants_assigned_total")
    log.info("tenant assigned", extra={"user_id": caller_id, "property_id": property_id, "floor_id": floor_id})
    return floor


def remove_tenant(db: Session, *, caller_id: int, property_id: int, floor_id: int) -> Floor:
    with transaction(db, "tenant removal"):
        require_manager(db, caller_id=caller_id, property_id=property_id)
        floor = must_get_floor(db, property_id=property_id, floor_id=floor_id, lock=True)
        previous = floor.tenant_user_id

        if not tenancy_store.clear_tenant(db, floor_id=floor_id, actor_user_id=caller_id):
            raise InvalidState("no tenant found in this floor")

        audit_write(
            db,
            actor_user_id=caller_id,
            action="floor.remove_tenant",
            entity_type="Floor",
            entity_id=floor_id,
            before={"tenant_user_id": previous},
            after={"tenant_user_id": None},
        )

    with storage_guard("floor reload"):
        db.refresh(floor)
    METRICS.inc("tenants_removed_total")
    log.info("tenant removed", extra={"user_id": caller_id, "property_id": property_id, "floor_id": floor_id})
    return floor


def record_payment(
    db: Session,
    *,
    caller_id: int,
    property_id: int,
    floor_id: int,
    due_rent: int,
    due_electricity_bill: int,
    received_money: int,
) -> Payment:
    """
    Ledger row for the current occupant.

    full_payment is true only when the received money exactly covers rent plus
    electricity.
    """
    for name, v in (
        ("due_rent", due_rent),
        ("due_electricity_bill", due_electricity_bill),
        ("received_money", received_money),
    ):
        if int(v) < 0:
            raise ValidationError(f"{name} cannot be negative")

    with transaction(db, "payment record"):
        require_manager(db, caller_id=caller_id, property_id=property_id)
        floor = must_get_floor(db, property_id=property_id, floor_id=floor_id)
        if floor.tenant_user_id is None:
            raise InvalidState("no tenant assigned to this floor")

        total_due = int(due_rent) + int(due_electricity_bill)
        row = Payment(
            floor_id=floor_id,
            tenant_user_id=int(floor.tenant_user_id),
            due_rent=int(due_rent),
            due_electricity_bill=int(due_electricity_bill),
            received_money=int(received_money),
            full_payment=(int(received_money) - total_due) == 0,
            created_by=caller_id,
            created_at=datetime.utcnow(),
        )
        with storage_guard("payment insert"):
            db.add(row)
            db.flush()

        audit_write(
            db,
            actor_user_id=caller_id,
            action="payment.create",
            entity_type="Payment",
            entity_id=row.id,
            after={
                "floor_id": floor_id,
                "tenant_user_id": row.tenant_user_id,
                "due_rent": row.due_rent,
                "due_electricity_bill": row.due_electricity_bill,
                "received_money": row.received_money,
                "full_payment": row.full_payment,
            },
        )

    METRICS.inc("payments_recorded_total")
    log.info("payment recorded", extra={"user_id": caller_id, "property_id": property_id, "floor_id": floor_id})
    return row
