# backend/app/services/ownership.py
from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..domain.errors import AuthzDenied, NotFound, ValidationError
from ..models import AppUser, Floor, Property
from . import tenancy_store
from .authz import is_manager
from .storage import storage_guard


def must_get_property(db: Session, *, property_id: int) -> Property:
    row = tenancy_store.get_property(db, property_id=property_id)
    if row is None:
        raise NotFound("property not found")
    return row


def must_get_floor(db: Session, *, property_id: int, floor_id: int, lock: bool = False) -> Floor:
    row = tenancy_store.get_floor(db, property_id=property_id, floor_id=floor_id, lock=lock)
    if row is None:
        raise NotFound("floor not found")
    return row


def require_manager(db: Session, *, caller_id: int, property_id: int) -> None:
    if not is_manager(db, user_id=caller_id, property_id=property_id):
        raise AuthzDenied("only the property manager can do this")


def must_get_names(db: Session, *, property_id: int, floor_id: int) -> tuple[str, str]:
    with storage_guard("name lookup"):
        row = db.execute(
            select(Property.name, Floor.name)
            .join(Floor, Floor.property_id == Property.id)
            .where(Property.id == int(property_id), Floor.id == int(floor_id))
        ).first()
    if row is None:
        raise NotFound("property/floor not found")
    return str(row[0]), str(row[1])


def clean_phone(phone: Optional[str]) -> str:
    p = (phone or "").strip()
    if not p:
        raise ValidationError("phone number is required")
    if len(p) > 40:
        raise ValidationError("phone number is too long")
    return p


def user_id_by_phone(db: Session, *, phone: str) -> Optional[int]:
    with storage_guard("user lookup"):
        return db.scalar(select(AppUser.id).where(AppUser.phone_number == phone))
