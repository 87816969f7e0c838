# taskup/goal/goal_router.py

from typing import Literal, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from taskup.auth.auth_router import RequestContext, get_request_context
from taskup.database import get_db
from taskup.goal import goal_service
from taskup.schemas.goal_schema import (
    GoalCompletionResult,
    GoalCreate,
    GoalRead,
    GoalRevertResult,
    GoalUpdate,
)

router = APIRouter(
    prefix="/goals",
    tags=["goals"],
)


@router.post("/", response_model=GoalRead, status_code=201)
def create_goal(
    data: GoalCreate,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return goal_service.create_goal(db, ctx, data)


@router.get("/", response_model=list[GoalRead])
def get_all_goals(
    status: Optional[Literal["active", "paused", "completed", "archived"]] = None,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return goal_service.list_goals(db, ctx, status)


@router.get("/{goal_id}", response_model=GoalRead)
def get_goal(
    goal_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return goal_service.get_goal(db, ctx, goal_id)


@router.patch("/{goal_id}", response_model=GoalRead)
def update_goal(
    goal_id: int,
    data: GoalUpdate,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return goal_service.update_goal(db, ctx, goal_id, data)


@router.delete("/{goal_id}", status_code=204)
def delete_goal(
    goal_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    goal_service.delete_goal(db, ctx, goal_id)
    return


@router.post("/{goal_id}/complete", response_model=GoalCompletionResult)
def complete_goal(
    goal_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    result = goal_service.complete_goal(db, ctx, goal_id)
    return GoalCompletionResult(
        success=True,
        goal=GoalRead.model_validate(result.goal),
        points_distributed=result.points_distributed,
    )


@router.post("/{goal_id}/revert", response_model=GoalRevertResult)
def revert_goal_completion(
    goal_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    result = goal_service.revert_goal_completion(db, ctx, goal_id)
    return GoalRevertResult(
        success=True,
        goal=GoalRead.model_validate(result.goal),
        transactions_reverted=result.transactions_reverted,
    )
