import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from taskup.auth.auth_router import RequestContext
from taskup.errors import ConflictError, ForbiddenError, InvalidRequestError, NotFoundError
from taskup.models.goal import Goal
from taskup.models.notification import Notification
from taskup.models.points import PointTransaction, TASK_COMPLETED, TASK_UNCOMPLETED
from taskup.models.task import Task
from taskup.notification.notification_service import notify_points_awarded
from taskup.points import ledger
from taskup.points.calculator import round_half_up
from taskup.schemas.goal_schema import GoalCreate, GoalUpdate
from taskup.schemas.points_schema import (
    GoalCompletedMetadata,
    GoalRevertedMetadata,
    load_metadata,
)
from taskup.task.task_service import load_members

logger = logging.getLogger("taskup.goal")


@dataclass
class GoalCompletion:
    goal: Goal
    points_distributed: dict[int, int]


@dataclass
class GoalReversal:
    goal: Goal
    transactions_reverted: int


def get_goal(db: Session, ctx: RequestContext, goal_id: int) -> Goal:
    goal = db.get(Goal, goal_id)
    if not goal or goal.organization_id != ctx.organization_id:
        raise NotFoundError("Goal not found")
    return goal


def _require_reward_manager(ctx: RequestContext, goal: Goal) -> None:
    # org managers and the goal creator only
    if not ctx.is_manager and goal.creator_id != ctx.user_id:
        raise ForbiddenError("Only the goal creator or an organization admin can do this")


def list_goals(db: Session, ctx: RequestContext, status: str | None = None) -> list[Goal]:
    q = db.query(Goal).filter(Goal.organization_id == ctx.organization_id)
    if status is not None:
        q = q.filter(Goal.status == status)
    return q.order_by(Goal.created_at.desc(), Goal.id.desc()).all()


def _load_tasks(db: Session, ctx: RequestContext, task_ids: list[int]) -> list[Task]:
    unique_ids = list(dict.fromkeys(task_ids))
    if not unique_ids:
        return []
    tasks = (
        db.query(Task)
        .filter(Task.organization_id == ctx.organization_id, Task.id.in_(unique_ids))
        .all()
    )
    found = {task.id for task in tasks}
    missing = [task_id for task_id in unique_ids if task_id not in found]
    if missing:
        raise InvalidRequestError(f"Tasks not found in this organization: {missing}")
    return tasks


def create_goal(db: Session, ctx: RequestContext, data: GoalCreate) -> Goal:
    goal = Goal(
        organization_id=ctx.organization_id,
        creator_id=ctx.user_id,
        name=data.name,
        description=data.description,
        points=data.points,
        due_date=data.due_date,
        status="active",
    )
    goal.assignees = load_members(db, ctx, data.assignee_ids)
    goal.tasks = _load_tasks(db, ctx, data.task_ids)

    db.add(goal)
    db.commit()
    db.refresh(goal)
    logger.info("goal_created", extra={"goal_id": goal.id, "organization_id": ctx.organization_id})
    return goal


def update_goal(db: Session, ctx: RequestContext, goal_id: int, data: GoalUpdate) -> Goal:
    goal = get_goal(db, ctx, goal_id)
    changes = data.model_dump(exclude_unset=True)

    if goal.status == "completed" and changes.keys() & {"points", "assignee_ids", "task_ids", "status"}:
        raise ConflictError("Revert the goal completion before changing its reward, members or status")

    for field in ("name", "description", "points", "due_date", "status"):
        if field in changes and (changes[field] is not None or field in ("description", "due_date")):
            setattr(goal, field, changes[field])

    if changes.get("assignee_ids") is not None:
        goal.assignees = load_members(db, ctx, changes["assignee_ids"])
    if changes.get("task_ids") is not None:
        goal.tasks = _load_tasks(db, ctx, changes["task_ids"])

    db.commit()
    db.refresh(goal)
    return goal


def delete_goal(db: Session, ctx: RequestContext, goal_id: int) -> None:
    goal = get_goal(db, ctx, goal_id)
    db.query(Notification).filter(Notification.goal_id == goal.id).update(
        {"goal_id": None}, synchronize_session=False
    )
    db.delete(goal)
    db.commit()


def distribute_goal_points(goal: Goal) -> dict[int, int]:
    """Share a goal's reward between its assignees by task participation.

    Each linked task that has at least one goal assignee among its own
    assignees gets an equal slice of the reward; the slice is split evenly
    between those assignees. Users outside the goal get nothing.
    """
    goal_assignee_ids = goal.assignee_ids
    goal_members = set(goal_assignee_ids)

    contributors = []
    for task in goal.tasks:
        relevant = [user_id for user_id in task.assignee_ids if user_id in goal_members]
        if relevant:
            contributors.append(relevant)

    accrued = defaultdict(float)
    if contributors:
        per_task = goal.points / len(contributors)
        for relevant in contributors:
            share = per_task / len(relevant)
            for user_id in relevant:
                accrued[user_id] += share

    return {user_id: round_half_up(accrued[user_id]) for user_id in goal_assignee_ids}


def complete_goal(db: Session, ctx: RequestContext, goal_id: int) -> GoalCompletion:
    goal = get_goal(db, ctx, goal_id)
    _require_reward_manager(ctx, goal)

    if goal.status == "completed":
        raise ConflictError("Goal is already completed")
    if not all(task.status == "done" for task in goal.tasks):
        raise ConflictError("Not all tasks in this goal are completed")
    if not goal.assignees:
        raise ConflictError("Goal has no assignees")

    distribution = distribute_goal_points(goal)
    metadata = GoalCompletedMetadata(goal_id=goal.id, goal_name=goal.name)

    for user_id, points in distribution.items():
        if points == 0:
            continue
        ledger.record_transaction(
            db,
            user_id=user_id,
            organization_id=ctx.organization_id,
            task_id=None,
            transaction_type=TASK_COMPLETED,
            points_change=points,
            metadata=metadata,
        )
        notify_points_awarded(
            db,
            user_id=user_id,
            organization_id=ctx.organization_id,
            goal_id=goal.id,
            points=points,
            reason=f'Goal "{goal.name}" was completed.',
        )

    goal.status = "completed"
    goal.completed_at = datetime.utcnow()
    db.commit()
    db.refresh(goal)

    logger.info(
        "goal_completed",
        extra={"goal_id": goal.id, "points": goal.points, "distribution": distribution},
    )
    return GoalCompletion(goal=goal, points_distributed=distribution)


def _goal_completion_transactions(db: Session, ctx: RequestContext, goal_id: int) -> list[PointTransaction]:
    """Completion rows of this goal that have not been reversed yet.

    Goal rows carry no foreign key to the goal, so this scans the
    organization's transactions and filters on their metadata.
    """
    rows = (
        db.query(PointTransaction)
        .filter(
            PointTransaction.organization_id == ctx.organization_id,
            PointTransaction.transaction_type.in_((TASK_COMPLETED, TASK_UNCOMPLETED)),
            PointTransaction.task_id.is_(None),
        )
        .order_by(PointTransaction.id)
        .all()
    )

    completions = []
    reverted_ids = set()
    for row in rows:
        metadata = load_metadata(row.metadata_json)
        if isinstance(metadata, GoalCompletedMetadata) and metadata.goal_id == goal_id:
            completions.append(row)
        elif isinstance(metadata, GoalRevertedMetadata) and metadata.goal_id == goal_id:
            reverted_ids.add(metadata.reverts_transaction_id)

    return [row for row in completions if row.id not in reverted_ids]


def revert_goal_completion(db: Session, ctx: RequestContext, goal_id: int) -> GoalReversal:
    goal = get_goal(db, ctx, goal_id)
    _require_reward_manager(ctx, goal)

    if goal.status != "completed":
        raise ConflictError("Goal is not completed")

    transactions = _goal_completion_transactions(db, ctx, goal.id)
    for transaction in transactions:
        ledger.record_transaction(
            db,
            user_id=transaction.user_id,
            organization_id=ctx.organization_id,
            task_id=None,
            transaction_type=TASK_UNCOMPLETED,
            points_change=-transaction.points_change,
            metadata=GoalRevertedMetadata(
                goal_id=goal.id,
                goal_name=goal.name,
                reverts_transaction_id=transaction.id,
            ),
        )

    goal.status = "active"
    goal.completed_at = None
    db.commit()
    db.refresh(goal)

    logger.info(
        "goal_completion_reverted",
        extra={"goal_id": goal.id, "transactions_reverted": len(transactions)},
    )
    return GoalReversal(goal=goal, transactions_reverted=len(transactions))
