from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional
from sqlalchemy.orm import Session

from taskup.models.notification import Notification


def create_notification(
    db: Session,
    *,
    user_id: int,
    title: str,
    message: str | None = None,
    type: str = "info",
    organization_id: Optional[int] = None,
    task_id: Optional[int] = None,
    goal_id: Optional[int] = None,
) -> Notification:
    """Queue an in-app notification; the caller's commit persists it."""
    n = Notification(
        user_id=user_id,
        organization_id=organization_id,
        task_id=task_id,
        goal_id=goal_id,
        type=type,
        title=title,
        message=message,
        is_read=False,
    )
    db.add(n)
    return n


def notify_deadline_updated(
    db: Session,
    *,
    user_ids: Iterable[int],
    organization_id: int,
    task_id: int,
    task_title: str,
    new_due_date: Optional[datetime],
    old_due_date: Optional[datetime],
) -> list[Notification]:
    new_text = new_due_date.date().isoformat() if new_due_date else "none"
    old_text = old_due_date.date().isoformat() if old_due_date else "none"
    return [
        create_notification(
            db,
            user_id=user_id,
            organization_id=organization_id,
            task_id=task_id,
            type="warning",
            title="Deadline updated",
            message=f'Due date of "{task_title}" changed from {old_text} to {new_text}.',
        )
        for user_id in user_ids
    ]


def notify_points_awarded(
    db: Session,
    *,
    user_id: int,
    organization_id: int,
    points: int,
    goal_id: Optional[int] = None,
    task_id: Optional[int] = None,
    reason: str,
) -> Notification:
    return create_notification(
        db,
        user_id=user_id,
        organization_id=organization_id,
        task_id=task_id,
        goal_id=goal_id,
        type="success",
        title=f"You earned {points} points",
        message=reason,
    )
