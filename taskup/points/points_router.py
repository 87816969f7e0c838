# taskup/points/points_router.py

from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from taskup.auth.auth_router import RequestContext, get_request_context
from taskup.database import get_db
from taskup.points import points_service
from taskup.schemas.points_schema import (
    LeaderboardEntry,
    PointsSummary,
    PointTransactionRead,
    UserPointsRead,
)
from taskup.schemas.task_schema import to_naive_utc

router = APIRouter(prefix="/points", tags=["points"])


@router.get("/me", response_model=UserPointsRead)
def my_points(
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return UserPointsRead(
        user_id=ctx.user_id,
        organization_id=ctx.organization_id,
        total_points=points_service.total_points(db, ctx.user_id, ctx.organization_id),
    )


@router.get("/summary", response_model=PointsSummary)
def points_summary(
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return points_service.points_summary(db, ctx.user_id, ctx.organization_id)


@router.get("/history", response_model=list[PointTransactionRead])
def point_history(
    transaction_type: Optional[Literal["task_completed", "task_uncompleted", "task_property_changed"]] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = Query(default=50, ge=1, le=500),
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    rows = points_service.point_history(
        db,
        ctx.user_id,
        ctx.organization_id,
        transaction_type=transaction_type,
        start=to_naive_utc(start),
        end=to_naive_utc(end),
        limit=limit,
    )
    return [PointTransactionRead.from_row(row) for row in rows]


@router.get("/leaderboard", response_model=list[LeaderboardEntry])
def leaderboard(
    period: Literal["week", "month", "year", "all"] = "all",
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return points_service.leaderboard(db, ctx.organization_id, period)
