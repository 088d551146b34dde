# backend/app/schemas.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .domain.notifications import NotificationKind, NotificationStatus, show_actions
from .services.notification_store import NotificationView
from .services.properties import FloorView


# -------------------- Auth --------------------

class RegisterIn(BaseModel):
    phone_number: str = Field(min_length=1, max_length=40)
    password: str = Field(min_length=6, max_length=200)
    email: Optional[str] = None
    nid: Optional[str] = None


class LoginIn(BaseModel):
    phone_number: str
    password: str


class UserOut(BaseModel):
    id: int
    phone_number: str
    email: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class LoginOut(BaseModel):
    ok: bool = True
    user_id: int
    token: str


# -------------------- Properties / Floors --------------------

class PropertyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    address: str = Field(min_length=1, max_length=255)


class PropertyOut(BaseModel):
    id: int
    name: str
    address: str
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class FloorCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    rent: int = Field(default=0, ge=0)


class FloorOut(BaseModel):
    id: int
    property_id: int
    name: str
    rent: int
    tenant_user_id: Optional[int] = None
    # filled by the floor listing only
    has_pending_request: bool = False
    pending_notification_id: Optional[int] = None
    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_view(cls, v: FloorView) -> "FloorOut":
        return cls.model_validate(v.floor).model_copy(
            update={"has_pending_request": v.has_pending_request, "pending_notification_id": v.pending_notification_id}
        )


class TenantPropertyOut(BaseModel):
    property: PropertyOut
    floor: FloorOut


class ManagerCheckOut(BaseModel):
    property_id: int
    is_manager: bool


class AssignTenantIn(BaseModel):
    phone_number: str


# -------------------- Payments --------------------

class PaymentIn(BaseModel):
    due_rent: int = Field(default=0, ge=0)
    due_electricity_bill: int = Field(default=0, ge=0)
    received_money: int = Field(default=0, ge=0)


class PaymentOut(BaseModel):
    id: int
    floor_id: int
    tenant_user_id: int
    due_rent: int
    due_electricity_bill: int
    received_money: int
    full_payment: bool
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


# -------------------- Notifications --------------------

class TenantRequestIn(BaseModel):
    phone_number: str


class PaymentSubmissionIn(BaseModel):
    # strict: "100" or 100.5 must not silently become a valid amount
    amount: int = Field(strict=True)


class NotificationActionIn(BaseModel):
    notification_id: int
    accept: bool


class RefOut(BaseModel):
    id: int
    name: str


class NotificationOut(BaseModel):
    id: int
    kind: NotificationKind
    status: Optional[NotificationStatus] = None
    message: str
    amount: Optional[int] = None
    sender_id: int
    receiver_id: int
    related_notification_id: Optional[int] = None
    property: RefOut
    floor: RefOut
    is_read: bool
    show_actions: bool
    created_at: datetime

    @classmethod
    def from_view(cls, v: NotificationView) -> "NotificationOut":
        n = v.notification
        return cls(
            id=n.id,
            kind=n.kind,
            status=n.status,
            message=n.message,
            amount=n.amount,
            sender_id=n.sender_id,
            receiver_id=n.receiver_id,
            related_notification_id=n.related_notification_id,
            property=RefOut(id=n.property_id, name=v.property_name),
            floor=RefOut(id=n.floor_id, name=v.floor_name),
            is_read=bool(n.is_read),
            show_actions=show_actions(n.kind, n.status),
            created_at=n.created_at,
        )


class NotificationCreatedOut(BaseModel):
    ok: bool = True
    notification_id: int
    kind: NotificationKind
    status: Optional[NotificationStatus] = None


class ResolveOut(BaseModel):
    ok: bool = True
    notification_id: int
    status: NotificationStatus
    status_update_id: int
    floor_assigned: bool


class MarkReadOut(BaseModel):
    ok: bool = True
    updated: int


# -------------------- Ops --------------------

class ReminderRunOut(BaseModel):
    job_key: str
    cycle_key: str
    skipped: bool
    created: int
    failed: int
