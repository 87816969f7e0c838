"""Point transaction ledger.

Every change to a user's points goes through :func:`record_transaction`,
which appends an immutable ``PointTransaction`` and moves the user's running
total. Nothing here commits: callers commit once per operation so all of an
operation's rows land together.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel
from sqlalchemy.orm import Session

from taskup.models.points import (
    PointTransaction,
    UserPoints,
    TASK_COMPLETED,
    TASK_PROPERTY_CHANGED,
    TASK_UNCOMPLETED,
)
from taskup.models.task import Task
from taskup.points.calculator import round_half_up
from taskup.schemas.points_schema import (
    TaskCompletedMetadata,
    TaskPropertyChangedMetadata,
    TaskUncompletedMetadata,
    dump_metadata,
)

logger = logging.getLogger("taskup.points")


@dataclass(frozen=True)
class TransactionResult:
    transaction_id: int
    user_id: int
    previous_total: int
    new_total: int
    points_change: int


def get_or_create_user_points(db: Session, user_id: int, organization_id: int) -> UserPoints:
    user_points = (
        db.query(UserPoints)
        .filter(UserPoints.user_id == user_id, UserPoints.organization_id == organization_id)
        .with_for_update()
        .first()
    )
    if user_points:
        return user_points

    user_points = UserPoints(user_id=user_id, organization_id=organization_id, total_points=0)
    db.add(user_points)
    db.flush()
    return user_points


def record_transaction(
    db: Session,
    *,
    user_id: int,
    organization_id: int,
    task_id: Optional[int],
    transaction_type: str,
    points_change: int,
    metadata: Optional[BaseModel] = None,
) -> TransactionResult:
    user_points = get_or_create_user_points(db, user_id, organization_id)

    previous_total = user_points.total_points
    new_total = previous_total + points_change

    transaction = PointTransaction(
        user_id=user_id,
        organization_id=organization_id,
        task_id=task_id,
        transaction_type=transaction_type,
        points_change=points_change,
        previous_total=previous_total,
        new_total=new_total,
        metadata_json=dump_metadata(metadata),
    )
    db.add(transaction)

    user_points.total_points = new_total
    db.flush()

    logger.info(
        "points_transaction_recorded",
        extra={
            "user_id": user_id,
            "organization_id": organization_id,
            "task_id": task_id,
            "transaction_type": transaction_type,
            "points_change": points_change,
            "new_total": new_total,
        },
    )
    return TransactionResult(
        transaction_id=transaction.id,
        user_id=user_id,
        previous_total=previous_total,
        new_total=new_total,
        points_change=points_change,
    )


def split_points(total_points: int, assignee_count: int) -> int:
    if assignee_count <= 0:
        return 0
    return round_half_up(total_points / assignee_count)


# -------------------------
# Task-level operations
# -------------------------

def award_points_to_assignees(
    db: Session,
    task: Task,
    organization_id: int,
    total_points: int,
) -> list[TransactionResult]:
    assignees = list(task.assignees)
    if not assignees:
        logger.warning("points_award_skipped_no_assignees", extra={"task_id": task.id})
        return []

    per_assignee = split_points(total_points, len(assignees))
    metadata = TaskCompletedMetadata(
        task_title=task.title,
        total_task_points=total_points,
        assignee_count=len(assignees),
        points_per_assignee=per_assignee,
        due_date=task.due_date,
    )

    return [
        record_transaction(
            db,
            user_id=user.id,
            organization_id=organization_id,
            task_id=task.id,
            transaction_type=TASK_COMPLETED,
            points_change=per_assignee,
            metadata=metadata,
        )
        for user in assignees
    ]


def deduct_points_from_assignees(
    db: Session,
    task: Task,
    organization_id: int,
    total_points: int,
    new_status: Optional[str] = None,
) -> list[TransactionResult]:
    assignees = list(task.assignees)
    if not assignees:
        logger.warning("points_deduction_skipped_no_assignees", extra={"task_id": task.id})
        return []

    # same split as the award so the two cancel out
    per_assignee = split_points(total_points, len(assignees))
    metadata = TaskUncompletedMetadata(
        task_title=task.title,
        total_task_points=total_points,
        assignee_count=len(assignees),
        points_per_assignee=per_assignee,
        new_status=new_status,
    )

    return [
        record_transaction(
            db,
            user_id=user.id,
            organization_id=organization_id,
            task_id=task.id,
            transaction_type=TASK_UNCOMPLETED,
            points_change=-per_assignee,
            metadata=metadata,
        )
        for user in assignees
    ]


def adjust_points_for_property_change(
    db: Session,
    task: Task,
    organization_id: int,
    old_points: int,
    new_points: int,
    *,
    property_name: str,
    old_value: Optional[str] = None,
    new_value: Optional[str] = None,
) -> list[TransactionResult]:
    """Apply only the per-assignee difference between two task scores."""
    if old_points == new_points:
        return []

    assignees = list(task.assignees)
    if not assignees:
        logger.warning("points_adjustment_skipped_no_assignees", extra={"task_id": task.id})
        return []

    old_per_assignee = split_points(old_points, len(assignees))
    new_per_assignee = split_points(new_points, len(assignees))
    delta = new_per_assignee - old_per_assignee
    if delta == 0:
        return []

    metadata = TaskPropertyChangedMetadata(
        task_title=task.title,
        property_name=property_name,
        old_value=old_value,
        new_value=new_value,
        old_total_points=old_points,
        new_total_points=new_points,
        assignee_count=len(assignees),
        old_points_per_assignee=old_per_assignee,
        new_points_per_assignee=new_per_assignee,
        delta_per_assignee=delta,
    )

    return [
        record_transaction(
            db,
            user_id=user.id,
            organization_id=organization_id,
            task_id=task.id,
            transaction_type=TASK_PROPERTY_CHANGED,
            points_change=delta,
            metadata=metadata,
        )
        for user in assignees
    ]
