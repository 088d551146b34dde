# backend/app/domain/notifications.py
from __future__ import annotations

from enum import Enum


class NotificationKind(str, Enum):
    TENANT_REQUEST = "tenant_request"
    PAYMENT_SUBMISSION = "payment_submission"
    STATUS_UPDATE = "status_update"
    REMINDER = "reminder"


class NotificationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


# kinds a receiver can accept/reject while pending
ACTIONABLE_KINDS = frozenset({NotificationKind.TENANT_REQUEST, NotificationKind.PAYMENT_SUBMISSION})

TERMINAL_STATUSES = frozenset({NotificationStatus.ACCEPTED, NotificationStatus.REJECTED})


def terminal_status(accept: bool) -> NotificationStatus:
    return NotificationStatus.ACCEPTED if accept else NotificationStatus.REJECTED


def show_actions(kind: NotificationKind, status: NotificationStatus | None) -> bool:
    return kind in ACTIONABLE_KINDS and status == NotificationStatus.PENDING


def tenant_request_message(property_name: str, floor_name: str) -> str:
    return f"Tenant request for {property_name} - {floor_name}"


def payment_submission_message(amount: int) -> str:
    return f"Payment amount: {int(amount)}"


def status_update_message(
    kind: NotificationKind,
    status: NotificationStatus,
    property_name: str,
    floor_name: str,
) -> str:
    label = "Payment" if kind == NotificationKind.PAYMENT_SUBMISSION else "Tenant request"
    return f"{label} {status.value} - {property_name}, {floor_name}"


def reminder_message(property_name: str, floor_name: str, due_rent: float, due_electricity: float) -> str:
    return (
        f"Monthly rent reminder for {property_name} - {floor_name}:\n"
        f"Due Rent: {float(due_rent):.2f}\n"
        f"Due Electricity: {float(due_electricity):.2f}"
    )
