# backend/app/services/tenancy_store.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..models import Floor, Payment, Property
from .storage import storage_guard

# Floor occupancy. Nothing here commits; callers own the transaction.


@dataclass(frozen=True)
class OccupiedFloor:
    floor_id: int
    floor_name: str
    property_id: int
    property_name: str
    tenant_user_id: int


def get_floor(db: Session, *, property_id: int, floor_id: int, lock: bool = False) -> Optional[Floor]:
    with storage_guard("floor lookup"):
        q = select(Floor).where(Floor.id == int(floor_id), Floor.property_id == int(property_id))
        if lock:
            q = q.with_for_update()
        return db.scalar(q)


def get_property(db: Session, *, property_id: int) -> Optional[Property]:
    with storage_guard("property lookup"):
        return db.get(Property, int(property_id))


def occupant_of(db: Session, *, floor_id: int) -> Optional[int]:
    with storage_guard("occupancy read"):
        return db.scalar(select(Floor.tenant_user_id).where(Floor.id == int(floor_id)))


def assign_if_vacant(db: Session, *, floor_id: int, tenant_user_id: int, actor_user_id: int) -> bool:
    """
    Compare-and-set occupancy: tenant is written only while the floor is vacant.

    Returns False when another transaction filled the floor first.
    """
    with storage_guard("floor assignment"):
        res = db.execute(
            update(Floor)
            .where(Floor.id == int(floor_id), Floor.tenant_user_id.is_(None))
            .values(tenant_user_id=int(tenant_user_id), updated_at=datetime.utcnow(), updated_by=int(actor_user_id))
        )
        return res.rowcount == 1


def clear_tenant(db: Session, *, floor_id: int, actor_user_id: int) -> bool:
    with storage_guard("floor release"):
        res = db.execute(
            update(Floor)
            .where(Floor.id == int(floor_id), Floor.tenant_user_id.is_not(None))
            .values(tenant_user_id=None, updated_at=datetime.utcnow(), updated_by=int(actor_user_id))
        )
        return res.rowcount == 1


def occupied_floors(db: Session) -> list[OccupiedFloor]:
    with storage_guard("occupied floors"):
        rows = db.execute(
            select(Floor.id, Floor.name, Property.id, Property.name, Floor.tenant_user_id)
            .join(Property, Property.id == Floor.property_id)
            .where(Floor.tenant_user_id.is_not(None))
            .order_by(Property.id.asc(), Floor.id.asc())
        ).all()
    return [
        OccupiedFloor(
            floor_id=int(fid),
            floor_name=str(fname),
            property_id=int(pid),
            property_name=str(pname),
            tenant_user_id=int(tid),
        )
        for fid, fname, pid, pname, tid in rows
    ]


def latest_payment(db: Session, *, floor_id: int) -> Optional[Payment]:
    with storage_guard("payment lookup"):
        return db.scalar(
            select(Payment)
            .where(Payment.floor_id == int(floor_id))
            .order_by(Payment.created_at.desc())
            .limit(1)
        )
