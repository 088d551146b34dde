# backend/app/services/notification_store.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, delete, exists, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..domain.errors import Conflict, NotFound, StorageError
from ..domain.notifications import NotificationKind, NotificationStatus
from ..models import Floor, Notification, Property
from .storage import storage_guard

# Persistence for notification rows. Nothing here commits; the workflow engine
# decides where the transaction ends.


PENDING_REQUEST_INDEX = "uq_notifications_pending_tenant_request"


def _is_pending_request_violation(e: IntegrityError) -> bool:
    # postgres names the index; sqlite only names the indexed column
    msg = str(e.orig)
    return PENDING_REQUEST_INDEX in msg or "notifications.floor_id" in msg


@dataclass(frozen=True)
class NotificationView:
    notification: Notification
    property_name: str
    floor_name: str


def insert(
    db: Session,
    *,
    kind: NotificationKind,
    status: Optional[NotificationStatus],
    sender_id: int,
    receiver_id: int,
    property_id: int,
    floor_id: int,
    message: str,
    amount: Optional[int] = None,
    related_notification_id: Optional[int] = None,
    actor_user_id: Optional[int] = None,
) -> Notification:
    now = datetime.utcnow()
    row = Notification(
        kind=kind,
        status=status,
        sender_id=int(sender_id),
        receiver_id=int(receiver_id),
        property_id=int(property_id),
        floor_id=int(floor_id),
        message=message,
        amount=amount,
        related_notification_id=related_notification_id,
        is_read=False,
        created_at=now,
        updated_at=now,
        updated_by=actor_user_id,
    )
    with storage_guard("notification insert"):
        db.add(row)
        try:
            # flush now so a uniqueness violation surfaces here, not at commit
            db.flush()
        except IntegrityError as e:
            if _is_pending_request_violation(e):
                raise Conflict("a pending request already exists for this floor") from e
            raise StorageError(f"notification insert rejected: {type(e.orig).__name__}") from e
    return row


def get(db: Session, *, notification_id: int) -> Optional[Notification]:
    with storage_guard("notification lookup"):
        return db.get(Notification, int(notification_id))


def pending_tenant_request_exists(db: Session, *, floor_id: int) -> bool:
    with storage_guard("pending request check"):
        q = select(
            exists().where(
                Notification.floor_id == int(floor_id),
                Notification.kind == NotificationKind.TENANT_REQUEST,
                Notification.status == NotificationStatus.PENDING,
            )
        )
        return bool(db.scalar(q))


def set_status_if_pending(
    db: Session,
    *,
    notification_id: int,
    status: NotificationStatus,
    actor_user_id: int,
) -> bool:
    """
    Conditional transition pending -> status.

    Of two concurrent resolvers only one sees rowcount == 1.
    """
    with storage_guard("notification status update"):
        res = db.execute(
            update(Notification)
            .where(Notification.id == int(notification_id), Notification.status == NotificationStatus.PENDING)
            .values(status=status, updated_at=datetime.utcnow(), updated_by=int(actor_user_id))
        )
        return res.rowcount == 1


def delete_if_pending(db: Session, *, notification_id: int, sender_id: int) -> bool:
    with storage_guard("notification delete"):
        res = db.execute(
            delete(Notification).where(
                Notification.id == int(notification_id),
                Notification.sender_id == int(sender_id),
                Notification.status == NotificationStatus.PENDING,
            )
        )
        return res.rowcount == 1


def _views(rows) -> list[NotificationView]:
    return [NotificationView(notification=n, property_name=str(pn), floor_name=str(fn)) for n, pn, fn in rows]


def list_for_receiver(
    db: Session,
    *,
    receiver_id: int,
    limit: Optional[int] = None,
    before_id: Optional[int] = None,
) -> list[NotificationView]:
    """
    Newest first, ordered by (created_at, id). Without `limit` every row is
    returned. `before_id` is a keyset cursor: the id of the last row of the
    previous page, which must belong to the same receiver.
    """
    q = (
        select(Notification, Property.name, Floor.name)
        .join(Property, Property.id == Notification.property_id)
        .join(Floor, Floor.id == Notification.floor_id)
        .where(Notification.receiver_id == int(receiver_id))
    )
    with storage_guard("notification listing"):
        if before_id is not None:
            anchor = db.execute(
                select(Notification.created_at, Notification.id).where(
                    Notification.id == int(before_id), Notification.receiver_id == int(receiver_id)
                )
            ).first()
            if anchor is None:
                raise NotFound("cursor notification not found")
            q = q.where(
                or_(
                    Notification.created_at < anchor.created_at,
                    and_(Notification.created_at == anchor.created_at, Notification.id < anchor.id),
                )
            )
        q = q.order_by(Notification.created_at.desc(), Notification.id.desc())
        if limit is not None:
            q = q.limit(int(limit))
        rows = db.execute(q).all()
    return _views(rows)


def list_pending_payment_submissions(db: Session, *, floor_id: int, sender_id: int) -> list[NotificationView]:
    with storage_guard("pending payment listing"):
        rows = db.execute(
            select(Notification, Property.name, Floor.name)
            .join(Property, Property.id == Notification.property_id)
            .join(Floor, Floor.id == Notification.floor_id)
            .where(
                Notification.floor_id == int(floor_id),
                Notification.sender_id == int(sender_id),
                Notification.kind == NotificationKind.PAYMENT_SUBMISSION,
                Notification.status == NotificationStatus.PENDING,
            )
            .order_by(Notification.created_at.desc(), Notification.id.desc())
        ).all()
    return _views(rows)


def mark_all_read(db: Session, *, receiver_id: int) -> int:
    with storage_guard("mark read"):
        res = db.execute(
            update(Notification)
            .where(Notification.receiver_id == int(receiver_id), Notification.is_read.is_(False))
            .values(is_read=True, updated_at=datetime.utcnow(), updated_by=int(receiver_id))
        )
        return int(res.rowcount or 0)


def pending_tenant_requests_by_floor(db: Session, *, property_id: int) -> dict[int, int]:
    """floor_id -> id of its pending tenant request (at most one per floor)."""
    with storage_guard("pending request listing"):
        rows = db.execute(
            select(Notification.floor_id, func.max(Notification.id))
            .where(
                Notification.property_id == int(property_id),
                Notification.kind == NotificationKind.TENANT_REQUEST,
                Notification.status == NotificationStatus.PENDING,
            )
            .group_by(Notification.floor_id)
        ).all()
    return {int(floor_id): int(nid) for floor_id, nid in rows}
