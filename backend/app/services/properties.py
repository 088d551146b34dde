# backend/app/services/properties.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..domain.audit import audit_write
from ..domain.errors import AuthzDenied, ValidationError
from ..models import Floor, ManagerAssignment, Property
from . import notification_store
from .authz import is_manager
from .ownership import must_get_property, require_manager
from .runtime_metrics import METRICS
from .storage import storage_guard, transaction

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FloorView:
    floor: Floor
    pending_notification_id: Optional[int] = None

    @property
    def has_pending_request(self) -> bool:
        return self.pending_notification_id is not None


def _clean(value: str, *, field: str, max_len: int) -> str:
    v = (value or "").strip()
    if not v:
        raise ValidationError(f"{field} is required")
    if len(v) > max_len:
        raise ValidationError(f"{field} is too long")
    return v


def create_property(db: Session, *, caller_id: int, name: str, address: str) -> Property:
    """The creator becomes the property's manager in the same transaction."""
    clean_name = _clean(name, field="name", max_len=160)
    clean_address = _clean(address, field="address", max_len=255)

    with transaction(db, "property create"):
        now = datetime.utcnow()
        row = Property(name=clean_name, address=clean_address, created_by=caller_id, created_at=now, updated_at=now)
        with storage_guard("property insert"):
            db.add(row)
            db.flush()
            db.add(ManagerAssignment(user_id=caller_id, property_id=row.id, created_at=now))
            db.flush()
        audit_write(
            db,
            actor_user_id=caller_id,
            action="property.create",
            entity_type="Property",
            entity_id=row.id,
            after={"name": clean_name, "address": clean_address},
        )

    METRICS.inc("properties_created_total")
    log.info("property created", extra={"user_id": caller_id, "property_id": row.id})
    return row


def list_managed_properties(db: Session, *, user_id: int) -> list[Property]:
    with storage_guard("managed properties"):
        return list(
            db.scalars(
                select(Property)
                .join(ManagerAssignment, ManagerAssignment.property_id == Property.id)
                .where(ManagerAssignment.user_id == int(user_id))
                .order_by(Property.created_at.desc(), Property.id.desc())
            ).all()
        )


def list_tenant_properties(db: Session, *, user_id: int) -> list[tuple[Property, Floor]]:
    """(property, floor) pairs for every floor the user currently occupies."""
    with storage_guard("tenant properties"):
        rows = db.execute(
            select(Property, Floor)
            .join(Floor, Floor.property_id == Property.id)
            .where(Floor.tenant_user_id == int(user_id))
            .order_by(Property.id.asc(), Floor.id.asc())
        ).all()
    return [(p, f) for p, f in rows]


def list_floors(db: Session, *, caller_id: int, property_id: int) -> list[FloorView]:
    """
    Visible to the property's managers and to its current tenants. Pending
    state is derived from the notifications table, never stored on the floor.
    """
    must_get_property(db, property_id=property_id)
    with storage_guard("floor listing"):
        floors = list(
            db.scalars(
                select(Floor).where(Floor.property_id == int(property_id)).order_by(Floor.created_at.asc(), Floor.id.asc())
            ).all()
        )
        occupies = db.scalar(
            select(Floor.id).where(Floor.property_id == int(property_id), Floor.tenant_user_id == int(caller_id)).limit(1)
        )
    if occupies is None and not is_manager(db, user_id=caller_id, property_id=property_id):
        raise AuthzDenied("you have no access to this property")

    pending = notification_store.pending_tenant_requests_by_floor(db, property_id=property_id)
    return [FloorView(floor=f, pending_notification_id=pending.get(int(f.id))) for f in floors]


def add_floor(db: Session, *, caller_id: int, property_id: int, name: str, rent: int = 0) -> Floor:
    clean_name = _clean(name, field="name", max_len=120)
    if isinstance(rent, bool) or int(rent) < 0:
        raise ValidationError("rent cannot be negative")

    with transaction(db, "floor create"):
        must_get_property(db, property_id=property_id)
        require_manager(db, caller_id=caller_id, property_id=property_id)
        now = datetime.utcnow()
        row = Floor(
            property_id=int(property_id),
            name=clean_name,
            rent=int(rent),
            tenant_user_id=None,
            created_at=now,
            updated_at=now,
            updated_by=caller_id,
        )
        with storage_guard("floor insert"):
            db.add(row)
            db.flush()
        audit_write(
            db,
            actor_user_id=caller_id,
            action="floor.create",
            entity_type="Floor",
            entity_id=row.id,
            after={"property_id": int(property_id), "name": clean_name, "rent": int(rent)},
        )

    log.info("floor added", extra={"user_id": caller_id, "property_id": property_id, "floor_id": row.id})
    return row
