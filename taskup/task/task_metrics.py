"""Task statistics for the caller and weekly dashboard metrics for the organization.

Weekly figures use the same calendar weeks as the points summary and are
keyed on ``completed_at``, which only moves when a task enters ``done``.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from taskup.auth.auth_router import RequestContext
from taskup.models.task import Task, task_assignees
from taskup.points.calculator import days_late, round_half_up
from taskup.points.points_service import percent_trend, points_summary, week_bounds
from taskup.schemas.task_schema import (
    ActiveTasksMetric,
    CompletedTasksMetric,
    DashboardMetrics,
    OnTimeCompletionMetric,
    TaskStats,
)

ACTIVE_STATUSES = ("in_progress", "review")
TRACKED_STATUSES = ("backlog", "todo", "in_progress", "review", "done")


def task_stats(db: Session, ctx: RequestContext) -> TaskStats:
    """Counts and score sums over the tasks assigned to the caller."""
    rows = (
        db.query(Task.status, Task.score)
        .join(task_assignees, task_assignees.c.task_id == Task.id)
        .filter(
            Task.organization_id == ctx.organization_id,
            task_assignees.c.user_id == ctx.user_id,
        )
        .all()
    )

    done_scores = [score or 0 for status, score in rows if status == "done"]
    return TaskStats(
        total=len(rows),
        completed=len(done_scores),
        total_points=sum(score or 0 for _, score in rows),
        earned_points=sum(done_scores),
    )


def _completed_between(db: Session, organization_id: int, start: datetime, end: Optional[datetime] = None):
    q = db.query(Task).filter(
        Task.organization_id == organization_id,
        Task.status == "done",
        Task.completed_at >= start,
    )
    if end is not None:
        q = q.filter(Task.completed_at < end)
    return q


def _on_time_rate(tasks: list[Task]) -> tuple[int, int]:
    # tasks without a due date are never on time
    on_time = sum(
        1 for task in tasks
        if task.due_date is not None and days_late(task.due_date, task.completed_at) <= 0
    )
    rate = round_half_up(on_time / len(tasks) * 100) if tasks else 0
    return on_time, rate


def completed_tasks_metric(
    db: Session, organization_id: int, now: Optional[datetime] = None
) -> CompletedTasksMetric:
    current_week, last_week = week_bounds(now)

    current = _completed_between(db, organization_id, current_week).count()
    previous = _completed_between(db, organization_id, last_week, current_week).count()
    total = (
        db.query(func.count(Task.id))
        .filter(Task.organization_id == organization_id, Task.status.in_(TRACKED_STATUSES))
        .scalar()
    )

    return CompletedTasksMetric(
        value=current,
        total=int(total or 0),
        trend=round(percent_trend(current, previous), 2),
    )


def on_time_completion_metric(
    db: Session, organization_id: int, now: Optional[datetime] = None
) -> OnTimeCompletionMetric:
    current_week, last_week = week_bounds(now)

    current_tasks = _completed_between(db, organization_id, current_week).all()
    previous_tasks = _completed_between(db, organization_id, last_week, current_week).all()

    on_time, rate = _on_time_rate(current_tasks)
    _, previous_rate = _on_time_rate(previous_tasks)

    return OnTimeCompletionMetric(
        value=rate,
        completed=len(current_tasks),
        on_time=on_time,
        trend=round(percent_trend(rate, previous_rate), 2),
    )


def active_tasks_metric(
    db: Session, organization_id: int, now: Optional[datetime] = None
) -> ActiveTasksMetric:
    _, last_week = week_bounds(now)

    q = db.query(func.count(Task.id)).filter(
        Task.organization_id == organization_id,
        Task.status.in_(ACTIVE_STATUSES),
    )
    current = int(q.scalar() or 0)
    # no status history: approximate last week by active tasks that already existed then
    previous = int(q.filter(Task.created_at < last_week).scalar() or 0)

    return ActiveTasksMetric(value=current, trend=round(percent_trend(current, previous), 2))


def dashboard_metrics(db: Session, ctx: RequestContext, now: Optional[datetime] = None) -> DashboardMetrics:
    return DashboardMetrics(
        completed=completed_tasks_metric(db, ctx.organization_id, now),
        on_time=on_time_completion_metric(db, ctx.organization_id, now),
        active=active_tasks_metric(db, ctx.organization_id, now),
        points=points_summary(db, ctx.user_id, ctx.organization_id, now),
    )
