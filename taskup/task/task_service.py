"""Task lifecycle: keeps task scores and the points ledger in step.

Entering ``done`` scores the task and awards the score to its assignees.
Leaving ``done`` takes the awarded score back and resets the task to its
base score. Editing priority, difficulty or due date of a done task
re-scores it and books only the per-assignee difference.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from taskup.auth.auth_router import RequestContext
from taskup.errors import InvalidRequestError, NotFoundError
from taskup.models.goal import goal_tasks
from taskup.models.notification import Notification
from taskup.models.organization import Member
from taskup.models.points import PointTransaction
from taskup.models.task import Task
from taskup.models.user import User
from taskup.notification.notification_service import notify_deadline_updated, notify_points_awarded
from taskup.points import ledger
from taskup.points.calculator import (
    base_score,
    compute_score,
    due_date_multiplier,
    points_explanation,
)
from taskup.schemas.task_schema import PointsPreview, TaskCreate, TaskUpdate

logger = logging.getLogger("taskup.task")

SCORED_PROPERTIES = ("priority", "difficulty", "due_date")


def get_task(db: Session, ctx: RequestContext, task_id: int) -> Task:
    task = db.get(Task, task_id)
    if not task or task.organization_id != ctx.organization_id:
        raise NotFoundError("Task not found")
    return task


def list_tasks(db: Session, ctx: RequestContext, status: Optional[str] = None) -> list[Task]:
    q = db.query(Task).filter(Task.organization_id == ctx.organization_id)
    if status is not None:
        q = q.filter(Task.status == status)
    return q.order_by(Task.due_date.is_(None), Task.due_date, Task.id).all()


def load_members(db: Session, ctx: RequestContext, user_ids: list[int]) -> list[User]:
    """Users of the active organization, in the order given; unknown ids are rejected."""
    unique_ids = list(dict.fromkeys(user_ids))
    if not unique_ids:
        return []

    users = (
        db.query(User)
        .join(Member, Member.user_id == User.id)
        .filter(Member.organization_id == ctx.organization_id, User.id.in_(unique_ids))
        .all()
    )
    by_id = {user.id: user for user in users}
    missing = [user_id for user_id in unique_ids if user_id not in by_id]
    if missing:
        raise InvalidRequestError(f"Users are not members of this organization: {missing}")
    return [by_id[user_id] for user_id in unique_ids]


# -------------------------
# Status transitions
# -------------------------

def _complete(db: Session, ctx: RequestContext, task: Task) -> None:
    task.completed_at = datetime.utcnow()
    task.score = compute_score(
        task.priority,
        task.difficulty,
        task.due_date,
        len(task.assignees),
        "done",
        completion_date=task.completed_at,
    )
    task.status = "done"

    results = ledger.award_points_to_assignees(db, task, ctx.organization_id, task.score)
    for result in results:
        if result.points_change == 0:
            continue
        notify_points_awarded(
            db,
            user_id=result.user_id,
            organization_id=ctx.organization_id,
            task_id=task.id,
            points=result.points_change,
            reason=f'Task "{task.title}" was completed.',
        )

    logger.info(
        "task_completed",
        extra={"task_id": task.id, "score": task.score, "assignees": len(results)},
    )


def _reopen(db: Session, ctx: RequestContext, task: Task, status: str) -> None:
    awarded = task.score
    ledger.deduct_points_from_assignees(db, task, ctx.organization_id, awarded, new_status=status)

    task.status = status
    task.score = base_score(task.priority, task.difficulty)
    task.completed_at = None

    logger.info("task_reopened", extra={"task_id": task.id, "deducted": awarded, "status": status})


def _apply_status(db: Session, ctx: RequestContext, task: Task, status: str) -> None:
    if status == task.status:
        return
    if status == "done":
        _complete(db, ctx, task)
    elif task.status == "done":
        _reopen(db, ctx, task, status)
    else:
        task.status = status


def change_status(db: Session, ctx: RequestContext, task_id: int, status: str) -> Task:
    task = get_task(db, ctx, task_id)
    _apply_status(db, ctx, task, status)
    db.commit()
    db.refresh(task)
    return task


# -------------------------
# CRUD
# -------------------------

def create_task(db: Session, ctx: RequestContext, data: TaskCreate) -> Task:
    assignees = load_members(db, ctx, data.assignee_ids)

    task = Task(
        title=data.title,
        description=data.description,
        status="todo" if data.status == "done" else data.status,
        priority=data.priority,
        difficulty=data.difficulty,
        due_date=data.due_date,
        score=base_score(data.priority, data.difficulty),
        organization_id=ctx.organization_id,
        created_by_id=ctx.user_id,
    )
    task.assignees = assignees
    db.add(task)
    db.flush()

    if data.status == "done":
        _complete(db, ctx, task)

    db.commit()
    db.refresh(task)
    logger.info("task_created", extra={"task_id": task.id, "organization_id": ctx.organization_id})
    return task


def _rescore_done_task(db: Session, ctx: RequestContext, task: Task, prop: str, old_value) -> None:
    old_score = task.score
    new_score = compute_score(
        task.priority,
        task.difficulty,
        task.due_date,
        len(task.assignees),
        "done",
        completion_date=task.completed_at,
    )
    task.score = new_score

    ledger.adjust_points_for_property_change(
        db,
        task,
        ctx.organization_id,
        old_score,
        new_score,
        property_name=prop,
        old_value=_as_text(old_value),
        new_value=_as_text(getattr(task, prop)),
    )


def _as_text(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def update_task(db: Session, ctx: RequestContext, task_id: int, data: TaskUpdate) -> Task:
    task = get_task(db, ctx, task_id)
    changes = data.model_dump(exclude_unset=True)

    new_status = changes.pop("status", None)
    if new_status is not None and task.status == "done" and new_status != "done":
        # take points back from the people who got them, before edits
        _apply_status(db, ctx, task, new_status)

    if "title" in changes and changes["title"] is not None:
        task.title = changes["title"]
    if "description" in changes:
        task.description = changes["description"]

    old_due_date = task.due_date
    for prop in SCORED_PROPERTIES:
        if prop not in changes:
            continue
        value = changes[prop]
        if value is None and prop != "due_date":
            continue
        old_value = getattr(task, prop)
        if value == old_value:
            continue

        setattr(task, prop, value)
        if task.status == "done":
            _rescore_done_task(db, ctx, task, prop, old_value)
        elif prop == "difficulty":
            task.score = base_score(task.priority, task.difficulty)

    if "assignee_ids" in changes and changes["assignee_ids"] is not None:
        # Reassigning a done task books nothing. A later reopen deducts the
        # stored score split over whoever is assigned then, so a newcomer can
        # go negative and the original assignees keep their points.
        task.assignees = load_members(db, ctx, changes["assignee_ids"])

    if "due_date" in changes and task.due_date != old_due_date:
        notify_deadline_updated(
            db,
            user_ids=task.assignee_ids,
            organization_id=ctx.organization_id,
            task_id=task.id,
            task_title=task.title,
            new_due_date=task.due_date,
            old_due_date=old_due_date,
        )

    if new_status is not None:
        _apply_status(db, ctx, task, new_status)

    db.commit()
    db.refresh(task)
    return task


def delete_task(db: Session, ctx: RequestContext, task_id: int) -> None:
    task = get_task(db, ctx, task_id)

    # ledger rows outlive the task
    db.query(PointTransaction).filter(PointTransaction.task_id == task.id).update(
        {"task_id": None}, synchronize_session=False
    )
    db.query(Notification).filter(Notification.task_id == task.id).update(
        {"task_id": None}, synchronize_session=False
    )
    db.execute(goal_tasks.delete().where(goal_tasks.c.task_id == task.id))

    db.delete(task)
    db.commit()
    logger.info("task_deleted", extra={"task_id": task_id, "organization_id": ctx.organization_id})


def preview_points(db: Session, ctx: RequestContext, task_id: int) -> PointsPreview:
    task = get_task(db, ctx, task_id)

    completion = task.completed_at if task.status == "done" else datetime.utcnow()
    base = base_score(task.priority, task.difficulty)
    projected = compute_score(
        task.priority,
        task.difficulty,
        task.due_date,
        len(task.assignees),
        "done",
        completion_date=completion,
    )

    return PointsPreview(
        task_id=task.id,
        base_score=base,
        multiplier=round(due_date_multiplier(task.due_date, completion), 4),
        projected_score=projected,
        assignee_count=len(task.assignees),
        points_per_assignee=ledger.split_points(projected, len(task.assignees)),
        explanation=points_explanation(base, task.due_date, completion),
    )
