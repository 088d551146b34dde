# backend/app/cli/seed_demo.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db import session_scope
from app.models import AppUser, Floor, ManagerAssignment, Property
from app.services import floor_actions, properties
from app.services.auth_service import register_user


@dataclass(frozen=True)
class SeedResult:
    manager_id: int
    tenant_id: int
    property_id: int
    floor_ids: list[int]
    occupied_floor_id: Optional[int]


def _get_or_create_user(db: Session, phone: str, password: str) -> AppUser:
    row = db.scalar(select(AppUser).where(AppUser.phone_number == phone))
    if row:
        return row
    return register_user(db, phone_number=phone, password=password)


def _get_or_create_property(db: Session, manager_id: int, name: str, address: str) -> Property:
    row = db.scalar(
        select(Property)
        .join(ManagerAssignment, ManagerAssignment.property_id == Property.id)
        .where(ManagerAssignment.user_id == int(manager_id), Property.name == name)
    )
    if row:
        return row
    return properties.create_property(db, caller_id=manager_id, name=name, address=address)


def _get_or_create_floor(db: Session, manager_id: int, property_id: int, name: str, rent: int) -> Floor:
    row = db.scalar(select(Floor).where(Floor.property_id == int(property_id), Floor.name == name))
    if row:
        return row
    return properties.add_floor(db, caller_id=manager_id, property_id=property_id, name=name, rent=rent)


def seed_demo(
    *,
    manager_phone: str = "01700000001",
    tenant_phone: str = "01700000002",
    password: str = "demo-password",
    property_name: str = "Demo House",
    floors: int = 3,
    occupy_first_floor: bool = True,
) -> SeedResult:
    """Idempotent: re-running finds the existing rows instead of duplicating them."""
    with session_scope() as db:
        manager = _get_or_create_user(db, manager_phone, password)
        tenant = _get_or_create_user(db, tenant_phone, password)
        prop = _get_or_create_property(db, manager.id, property_name, "1 Demo Road")

        floor_rows = [
            _get_or_create_floor(db, manager.id, prop.id, f"Floor {i}", 10_000 + 1_000 * i)
            for i in range(1, int(floors) + 1)
        ]

        occupied: Optional[int] = None
        if occupy_first_floor and floor_rows:
            first = floor_rows[0]
            if first.tenant_user_id is None:
                floor_actions.assign_tenant(
                    db,
                    caller_id=manager.id,
                    property_id=prop.id,
                    floor_id=first.id,
                    tenant_phone=tenant.phone_number,
                )
            occupied = first.id

        return SeedResult(
            manager_id=int(manager.id),
            tenant_id=int(tenant.id),
            property_id=int(prop.id),
            floor_ids=[int(f.id) for f in floor_rows],
            occupied_floor_id=occupied,
        )
