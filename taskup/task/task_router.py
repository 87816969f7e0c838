from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from taskup.auth.auth_router import RequestContext, get_request_context
from taskup.database import get_db
from taskup.schemas.task_schema import (
    DashboardMetrics,
    PointsPreview,
    TaskCreate,
    TaskRead,
    TaskStats,
    TaskStatus,
    TaskStatusUpdate,
    TaskUpdate,
)
from taskup.task import task_metrics, task_service


# ==========================
#  ROUTER
# ==========================
router = APIRouter(
    prefix="/tasks",
    tags=["tasks"],
)


@router.post("/", response_model=TaskRead, status_code=201)
def create_task(
    data: TaskCreate,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return task_service.create_task(db, ctx, data)


@router.get("/", response_model=list[TaskRead])
def get_all_tasks(
    status: Optional[TaskStatus] = None,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return task_service.list_tasks(db, ctx, status)


@router.get("/stats", response_model=TaskStats)
def my_task_stats(
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return task_metrics.task_stats(db, ctx)


@router.get("/metrics", response_model=DashboardMetrics)
def dashboard_metrics(
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """Weekly dashboard figures, current calendar week against the last."""
    return task_metrics.dashboard_metrics(db, ctx)


@router.get("/{task_id}", response_model=TaskRead)
def get_task(
    task_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return task_service.get_task(db, ctx, task_id)


@router.patch("/{task_id}", response_model=TaskRead)
def update_task(
    task_id: int,
    data: TaskUpdate,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return task_service.update_task(db, ctx, task_id, data)


@router.delete("/{task_id}", status_code=204)
def delete_task(
    task_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    task_service.delete_task(db, ctx, task_id)
    return


@router.patch("/{task_id}/status", response_model=TaskRead)
def update_status(
    task_id: int,
    data: TaskStatusUpdate,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return task_service.change_status(db, ctx, task_id, data.status)


@router.get("/{task_id}/points-preview", response_model=PointsPreview)
def points_preview(
    task_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """Score the task would get (and how it splits) if completed now."""
    return task_service.preview_points(db, ctx, task_id)
