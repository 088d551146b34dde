# backend/app/models.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base
from .domain.notifications import NotificationKind, NotificationStatus
from .services.ids import generate_id


def _enum(cls, name: str) -> Enum:
    # store the .value strings, not member names; portable (no native enum types)
    return Enum(
        cls,
        name=name,
        native_enum=False,
        length=30,
        values_callable=lambda e: [m.value for m in e],
        validate_strings=True,
    )


# -----------------------------
# Users
# -----------------------------
class AppUser(Base):
    __tablename__ = "app_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    phone_number: Mapped[str] = mapped_column(String(40), nullable=False, unique=True, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    nid: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


# -----------------------------
# Properties / floors
# -----------------------------
class Property(Base):
    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False, default=generate_id)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    address: Mapped[str] = mapped_column(String(255), nullable=False)

    created_by: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    floors: Mapped[List["Floor"]] = relationship(back_populates="property", cascade="all, delete-orphan")
    managers: Mapped[List["ManagerAssignment"]] = relationship(
        back_populates="property", cascade="all, delete-orphan"
    )


class ManagerAssignment(Base):
    __tablename__ = "manager_assignments"
    __table_args__ = (UniqueConstraint("user_id", "property_id", name="uq_manager_assignments_user_property"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False, index=True)
    property_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    property: Mapped["Property"] = relationship(back_populates="managers")


class Floor(Base):
    __tablename__ = "floors"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False, default=generate_id)
    property_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    rent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # the only occupancy state; pending onboarding lives in notifications
    tenant_user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("app_users.id"), nullable=True, index=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    property: Mapped["Property"] = relationship(back_populates="floors")
    payments: Mapped[List["Payment"]] = relationship(back_populates="floor", cascade="all, delete-orphan")


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False, default=generate_id)
    floor_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("floors.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tenant_user_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False, index=True)

    due_rent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    due_electricity_bill: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    received_money: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    full_payment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_by: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    floor: Mapped["Floor"] = relationship(back_populates="payments")


# -----------------------------
# Notifications (workflow engine state)
# -----------------------------
class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        # one pending tenant request per floor, enforced by the store
        Index(
            "uq_notifications_pending_tenant_request",
            "floor_id",
            unique=True,
            postgresql_where=text("kind = 'tenant_request' AND status = 'pending'"),
            sqlite_where=text("kind = 'tenant_request' AND status = 'pending'"),
        ),
        Index("ix_notifications_receiver_created", "receiver_id", "created_at"),
        Index("ix_notifications_floor_sender_status", "floor_id", "sender_id", "status"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False, default=generate_id)
    kind: Mapped[NotificationKind] = mapped_column(_enum(NotificationKind, "notification_kind"), nullable=False)
    status: Mapped[Optional[NotificationStatus]] = mapped_column(
        _enum(NotificationStatus, "notification_status"), nullable=True
    )

    sender_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False, index=True)
    receiver_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False)

    property_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False
    )
    floor_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("floors.id", ondelete="CASCADE"), nullable=False)

    message: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # status_update -> the request it reports on
    related_notification_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)

    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    property: Mapped["Property"] = relationship()
    floor: Mapped["Floor"] = relationship()


# -----------------------------
# Scheduler marker / audit
# -----------------------------
class SchedulerRun(Base):
    __tablename__ = "scheduler_runs"
    __table_args__ = (UniqueConstraint("job_key", "cycle_key", name="uq_scheduler_runs_job_cycle"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    job_key: Mapped[str] = mapped_column(String(80), nullable=False)
    cycle_key: Mapped[str] = mapped_column(String(20), nullable=False)

    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    actor_user_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=True)

    action: Mapped[str] = mapped_column(String(80), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(80), nullable=False)
    request_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    before_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    after_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
