# taskup/notification/notification_router.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from sqlalchemy import func

from taskup.auth.auth_router import get_current_user
from taskup.database import get_db
from taskup.errors import NotFoundError
from taskup.models.notification import Notification
from taskup.models.user import User
from taskup.schemas.notification_schema import MarkedRead, NotificationRead, NotificationType, UnreadCount

router = APIRouter(prefix="/notifications", tags=["notifications"])


# Notifications belong to the user, not the active organization; the
# organization_id filter is optional.
def _own(db: Session, user: User, organization_id: int | None = None):
    q = db.query(Notification).filter(Notification.user_id == user.id)
    if organization_id is not None:
        q = q.filter(Notification.organization_id == organization_id)
    return q


def _get_own_notification(db: Session, notification_id: int, user: User) -> Notification:
    n = db.get(Notification, notification_id)
    if not n or n.user_id != user.id:
        raise NotFoundError("Notification not found")
    return n


@router.get("/", response_model=list[NotificationRead])
def list_notifications(
    limit: int = Query(default=30, ge=1, le=200),
    unread_only: bool = False,
    type: NotificationType | None = None,
    organization_id: int | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    q = _own(db, user, organization_id)
    if unread_only:
        q = q.filter(Notification.is_read == False)  # noqa: E712
    if type is not None:
        q = q.filter(Notification.type == type)
    return q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()


@router.get("/unread_count", response_model=UnreadCount)
def unread_count(
    organization_id: int | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    count = (
        _own(db, user, organization_id)
        .filter(Notification.is_read == False)  # noqa: E712
        .with_entities(func.count(Notification.id))
        .scalar()
    )
    return UnreadCount(unread=int(count or 0))


@router.post("/{notification_id}/read", response_model=NotificationRead)
def mark_read(
    notification_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    n = _get_own_notification(db, notification_id, user)
    if not n.is_read:
        n.is_read = True
        db.commit()
        db.refresh(n)
    return n


@router.post("/read_all", response_model=MarkedRead)
def mark_all_read(
    organization_id: int | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    updated = (
        _own(db, user, organization_id)
        .filter(Notification.is_read == False)  # noqa: E712
        .update({"is_read": True}, synchronize_session=False)
    )
    db.commit()
    return MarkedRead(updated=updated)


@router.delete("/{notification_id}", status_code=204)
def delete_notification(
    notification_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    db.delete(_get_own_notification(db, notification_id, user))
    db.commit()
