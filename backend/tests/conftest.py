# backend/tests/conftest.py
from __future__ import annotations

import os
import tempfile

# must be set before anything imports app.config
_DB_DIR = tempfile.mkdtemp(prefix="rentflow-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_DB_DIR, "test.db")
os.environ["AUTH_MODE"] = "dev"
os.environ["APP_ENV"] = "test"
os.environ["JWT_SECRET"] = "test-secret-for-hs256-signing-0123456789abcdef"
os.environ["RATE_LIMIT_ENABLED"] = "0"
os.environ["REMINDER_SCHEDULER_ENABLED"] = "0"
os.environ["OPS_MANUAL_REMINDERS_ENABLED"] = "1"

from datetime import datetime
from types import SimpleNamespace

import pytest

from app.db import Base, SessionLocal, engine
from app.models import AppUser
from app.services import properties


@pytest.fixture(autouse=True)
def _fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


def _mk_user(db, phone: str) -> int:
    u = AppUser(phone_number=phone, created_at=datetime.utcnow(), updated_at=datetime.utcnow())
    db.add(u)
    db.commit()
    return int(u.id)


@pytest.fixture()
def make_user(db):
    return lambda phone: _mk_user(db, phone)


@pytest.fixture()
def world(db):
    """A manager with one property and two vacant floors, a prospective tenant and an outsider."""
    manager = _mk_user(db, "01711111111")
    tenant = _mk_user(db, "01722222222")
    outsider = _mk_user(db, "01733333333")

    prop = properties.create_property(db, caller_id=manager, name="Green Villa", address="12 Lake Rd")
    f1 = properties.add_floor(db, caller_id=manager, property_id=prop.id, name="Floor 1", rent=12000)
    f2 = properties.add_floor(db, caller_id=manager, property_id=prop.id, name="Floor 2", rent=15000)

    return SimpleNamespace(
        manager=manager,
        tenant=tenant,
        tenant_phone="01722222222",
        outsider=outsider,
        outsider_phone="01733333333",
        property_id=int(prop.id),
        floor_id=int(f1.id),
        floor2_id=int(f2.id),
    )
