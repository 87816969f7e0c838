# taskup/schemas/goal_schema.py

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Dict, List, Literal, Optional
from datetime import datetime

from taskup.schemas.task_schema import to_naive_utc


# --------- Base schema (common fields) ---------
class GoalBase(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    points: int = Field(default=0, ge=0)
    due_date: Optional[datetime] = None

    @field_validator("due_date")
    @classmethod
    def normalize_due_date(cls, value):
        return to_naive_utc(value)


# --------- For creating a goal (POST) ---------
class GoalCreate(GoalBase):
    assignee_ids: List[int] = []
    task_ids: List[int] = []


# --------- For updating a goal (PATCH) ---------
# "completed" is only reachable through /complete
class GoalUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    points: Optional[int] = Field(default=None, ge=0)
    due_date: Optional[datetime] = None
    status: Optional[Literal["active", "paused", "archived"]] = None
    assignee_ids: Optional[List[int]] = None
    task_ids: Optional[List[int]] = None

    @field_validator("due_date")
    @classmethod
    def normalize_due_date(cls, value):
        return to_naive_utc(value)


# --------- For reading a goal (GET responses) ---------
class GoalRead(GoalBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    organization_id: int
    creator_id: Optional[int] = None
    status: str
    completed_at: Optional[datetime] = None
    assignee_ids: List[int] = []
    task_ids: List[int] = []
    created_at: datetime
    updated_at: Optional[datetime] = None


class GoalCompletionResult(BaseModel):
    success: bool
    goal: GoalRead
    points_distributed: Dict[int, int]


class GoalRevertResult(BaseModel):
    success: bool
    goal: GoalRead
    transactions_reverted: int
