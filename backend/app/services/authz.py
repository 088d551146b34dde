# backend/app/services/authz.py
from __future__ import annotations

from typing import Optional

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from ..models import Floor, ManagerAssignment
from .storage import storage_guard


def is_manager(db: Session, *, user_id: int, property_id: int) -> bool:
    with storage_guard("manager check"):
        q = select(
            exists().where(
                ManagerAssignment.user_id == int(user_id),
                ManagerAssignment.property_id == int(property_id),
            )
        )
        return bool(db.scalar(q))


def is_tenant(db: Session, *, user_id: int, property_id: int, floor_id: int) -> bool:
    with storage_guard("tenant check"):
        q = select(
            exists().where(
                Floor.id == int(floor_id),
                Floor.property_id == int(property_id),
                Floor.tenant_user_id == int(user_id),
            )
        )
        return bool(db.scalar(q))


def property_manager_id(db: Session, *, property_id: int) -> Optional[int]:
    """Earliest manager assigned to the property, or None."""
    with storage_guard("manager lookup"):
        return db.scalar(
            select(ManagerAssignment.user_id)
            .where(ManagerAssignment.property_id == int(property_id))
            .order_by(ManagerAssignment.id.asc())
            .limit(1)
        )
