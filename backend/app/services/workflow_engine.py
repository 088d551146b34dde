# backend/app/services/workflow_engine.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from ..domain.audit import audit_write
from ..domain.errors import AuthzDenied, Conflict, InvalidState, NotFound, ValidationError
from ..domain.notifications import (
    ACTIONABLE_KINDS,
    NotificationKind,
    NotificationStatus,
    payment_submission_message,
    status_update_message,
    tenant_request_message,
    terminal_status,
)
from ..models import Notification
from . import notification_store, tenancy_store
from .authz import is_tenant, property_manager_id
from .ownership import clean_phone, must_get_floor, must_get_names, require_manager, user_id_by_phone
from .runtime_metrics import METRICS
from .storage import transaction

log = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Notification-driven workflow engine
# -----------------------------------------------------------------------------
# Two consent-based interactions share the notifications table:
#   tenant_request      manager -> prospective tenant; accept assigns the floor
#   payment_submission  tenant  -> manager;            accept is informational
# Resolving either one writes a status_update back to the requester.
#
# Every public function here is one transaction: it either commits all of its
# writes or rolls all of them back. The caller id is always passed in
# explicitly; nothing reads request-scoped state.
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ResolveResult:
    notification: Notification
    status_update: Notification
    floor_assigned: bool


def _snapshot(n: Notification) -> dict:
    return {
        "id": n.id,
        "kind": n.kind.value,
        "status": n.status.value if n.status else None,
        "sender_id": n.sender_id,
        "receiver_id": n.receiver_id,
        "property_id": n.property_id,
        "floor_id": n.floor_id,
        "amount": n.amount,
    }


# -----------------------------------------------------------------------------
# Requests
# -----------------------------------------------------------------------------
def create_tenant_request(
    db: Session,
    *,
    caller_id: int,
    property_id: int,
    floor_id: int,
    tenant_phone: str,
) -> Notification:
    phone = clean_phone(tenant_phone)

    with transaction(db, "tenant request"):
        require_manager(db, caller_id=caller_id, property_id=property_id)
        must_get_floor(db, property_id=property_id, floor_id=floor_id)

        tenant_id = user_id_by_phone(db, phone=phone)
        if tenant_id is None:
            raise NotFound("user not found with this phone number")

        # friendly pre-check; the partial unique index is what actually holds the rule
        if notification_store.pending_tenant_request_exists(db, floor_id=floor_id):
            raise Conflict("a pending request already exists for this floor")

        property_name, floor_name = must_get_names(db, property_id=property_id, floor_id=floor_id)
        row = notification_store.insert(
            db,
            kind=NotificationKind.TENANT_REQUEST,
            status=NotificationStatus.PENDING,
            sender_id=caller_id,
            receiver_id=tenant_id,
            property_id=property_id,
            floor_id=floor_id,
            message=tenant_request_message(property_name, floor_name),
            actor_user_id=caller_id,
        )
        audit_write(
            db,
            actor_user_id=caller_id,
            action="tenant_request.create",
            entity_type="Notification",
            entity_id=row.id,
            after=_snapshot(row),
        )

    METRICS.inc("tenant_requests_created_total")
    log.info(
        "tenant request created",
        extra={"user_id": caller_id, "property_id": property_id, "floor_id": floor_id, "notification_id": row.id},
    )
    return row


def create_payment_submission(
    db: Session,
    *,
    caller_id: int,
    property_id: int,
    floor_id: int,
    amount: int,
) -> Notification:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError("amount must be an integer")
    if amount <= 0:
        raise ValidationError("amount must be positive")

    with transaction(db, "payment submission"):
        if not is_tenant(db, user_id=caller_id, property_id=property_id, floor_id=floor_id):
            raise AuthzDenied("you are not the tenant of this floor")

        manager_id = property_manager_id(db, property_id=property_id)
        if manager_id is None:
            raise NotFound("property has no manager")

        row = notification_store.insert(
            db,
            kind=NotificationKind.PAYMENT_SUBMISSION,
            status=NotificationStatus.PENDING,
            sender_id=caller_id,
            receiver_id=manager_id,
            property_id=property_id,
            floor_id=floor_id,
            message=payment_submission_message(amount),
            amount=amount,
            actor_user_id=caller_id,
        )
        audit_write(
            db,
            actor_user_id=caller_id,
            action="payment_submission.create",
            entity_type="Notification",
            entity_id=row.id,
            after=_snapshot(row),
        )

    METRICS.inc("payment_submissions_created_total")
    log.info(
        "payment submission created",
        extra={"user_id": caller_id, "property_id": property_id, "floor_id": floor_id, "notification_id": row.id},
    )
    return row


# -----------------------------------------------------------------------------
# Resolution / withdrawal
# -----------------------------------------------------------------------------
def resolve_notification(
    db: Session,
    *,
    caller_id: int,
    notification_id: int,
    accept: bool,
) -> ResolveResult:
    status = terminal_status(bool(accept))

    with transaction(db, "notification resolve"):
        n = notification_store.get(db, notification_id=notification_id)
        if n is None:
            raise NotFound("notification not found")
        if n.receiver_id != int(caller_id):
            raise AuthzDenied("only the receiver can resolve this notification")
        if n.kind not in ACTIONABLE_KINDS or n.status != NotificationStatus.PENDING:
            raise InvalidState("notification is not pending")

        before = _snapshot(n)
        kind = n.kind

        floor_assigned = False
        if kind == NotificationKind.TENANT_REQUEST and status == NotificationStatus.ACCEPTED:
            # serialize with other writers of this floor before the status flip
            must_get_floor(db, property_id=n.property_id, floor_id=n.floor_id, lock=True)

        if not notification_store.set_status_if_pending(
            db, notification_id=n.id, status=status, actor_user_id=caller_id
        ):
            raise InvalidState("notification was already resolved")

        if kind == NotificationKind.TENANT_REQUEST and status == NotificationStatus.ACCEPTED:
            if not tenancy_store.assign_if_vacant(
                db, floor_id=n.floor_id, tenant_user_id=n.receiver_id, actor_user_id=caller_id
            ):
                raise Conflict("floor is already occupied")
            floor_assigned = True

        property_name, floor_name = must_get_names(db, property_id=n.property_id, floor_id=n.floor_id)
        reply = notification_store.insert(
            db,
            kind=NotificationKind.STATUS_UPDATE,
            status=status,
            sender_id=n.receiver_id,
            receiver_id=n.sender_id,
            property_id=n.property_id,
            floor_id=n.floor_id,
            message=status_update_message(kind, status, property_name, floor_name),
            amount=n.amount,
            related_notification_id=n.id,
            actor_user_id=caller_id,
        )

        after = dict(before, status=status.value)
        audit_write(
            db,
            actor_user_id=caller_id,
            action=f"{kind.value}.{status.value}",
            entity_type="Notification",
            entity_id=n.id,
            before=before,
            after=after,
        )

    # `n.status` was synchronized by the ORM-enabled UPDATE
    METRICS.inc(f"{kind.value}_{status.value}_total")
    log.info(
        "notification resolved",
        extra={
            "user_id": caller_id,
            "notification_id": n.id,
            "floor_id": n.floor_id,
            "kind": kind.value,
            "status": status.value,
        },
    )
    return ResolveResult(notification=n, status_update=reply, floor_assigned=floor_assigned)


def withdraw_notification(db: Session, *, caller_id: int, notification_id: int) -> None:
    with transaction(db, "notification withdraw"):
        n = notification_store.get(db, notification_id=notification_id)
        if n is None:
            raise NotFound("notification not found")
        if n.sender_id != int(caller_id):
            raise AuthzDenied("you can only withdraw your own notifications")
        if n.status != NotificationStatus.PENDING:
            raise InvalidState("only pending notifications can be withdrawn")

        before = _snapshot(n)
        if not notification_store.delete_if_pending(db, notification_id=n.id, sender_id=caller_id):
            raise InvalidState("notification was resolved before it could be withdrawn")

        audit_write(
            db,
            actor_user_id=caller_id,
            action=f"{before['kind']}.withdraw",
            entity_type="Notification",
            entity_id=before["id"],
            before=before,
            after=None,
        )

    METRICS.inc("notifications_withdrawn_total")
    log.info("notification withdrawn", extra={"user_id": caller_id, "notification_id": notification_id})


# -----------------------------------------------------------------------------
# Reads
# -----------------------------------------------------------------------------
def list_notifications(
    db: Session,
    *,
    user_id: int,
    limit: Optional[int] = None,
    before_id: Optional[int] = None,
) -> list[notification_store.NotificationView]:
    """
    The user's received notifications, newest first. The whole sequence by
    default; pass `limit` and then the last id seen as `before_id` to page.
    """
    if limit is not None and (isinstance(limit, bool) or int(limit) < 1):
        raise ValidationError("limit must be a positive integer")
    return notification_store.list_for_receiver(db, receiver_id=user_id, limit=limit, before_id=before_id)


def mark_all_read(db: Session, *, user_id: int) -> int:
    with transaction(db, "mark read"):
        n = notification_store.mark_all_read(db, receiver_id=user_id)
    log.info("notifications marked read", extra={"user_id": user_id})
    return n


def list_pending_payment_submissions(
    db: Session,
    *,
    caller_id: int,
    property_id: int,
    floor_id: int,
) -> list[notification_store.NotificationView]:
    if not is_tenant(db, user_id=caller_id, property_id=property_id, floor_id=floor_id):
        raise AuthzDenied("you are not the tenant of this floor")
    return notification_store.list_pending_payment_submissions(db, floor_id=floor_id, sender_id=caller_id)
