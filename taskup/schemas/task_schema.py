# taskup/schemas/task_schema.py

from pydantic import BaseModel, ConfigDict, field_validator
from typing import List, Literal, Optional
from datetime import datetime, timezone

from taskup.schemas.points_schema import PointsSummary

TaskStatus = Literal["backlog", "todo", "in_progress", "review", "done", "archived", "canceled"]
TaskPriority = Literal["low", "medium", "high", "urgent"]
TaskDifficulty = Literal["easy", "medium", "hard"]


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # columns store naive UTC
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# --------- Base schema (common fields) ----------
class TaskBase(BaseModel):
    title: str
    description: Optional[str] = None
    priority: TaskPriority = "medium"
    difficulty: TaskDifficulty = "medium"


# --------- For CREATE ----------
class TaskCreate(TaskBase):
    status: TaskStatus = "todo"
    due_date: Optional[datetime] = None
    assignee_ids: List[int] = []

    @field_validator("due_date")
    @classmethod
    def normalize_due_date(cls, value):
        return to_naive_utc(value)


# --------- For UPDATE (PATCH) ----------
# fields left out are untouched; "due_date": null clears the due date
class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    difficulty: Optional[TaskDifficulty] = None
    due_date: Optional[datetime] = None
    assignee_ids: Optional[List[int]] = None

    @field_validator("due_date")
    @classmethod
    def normalize_due_date(cls, value):
        return to_naive_utc(value)


class TaskStatusUpdate(BaseModel):
    status: TaskStatus


# --------- For READ (responses) ----------
class TaskRead(TaskBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    status: TaskStatus
    score: int
    organization_id: int
    assignee_ids: List[int] = []
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class PointsPreview(BaseModel):
    task_id: int
    base_score: int
    multiplier: float
    projected_score: int
    assignee_count: int
    points_per_assignee: int
    explanation: str


# --------- Stats & dashboard metrics ----------
class TaskStats(BaseModel):
    total: int
    completed: int
    total_points: int
    earned_points: int


class CompletedTasksMetric(BaseModel):
    value: int
    total: int
    trend: float


class OnTimeCompletionMetric(BaseModel):
    value: int  # percent of this week's completions that were on time
    completed: int
    on_time: int
    trend: float


class ActiveTasksMetric(BaseModel):
    value: int
    trend: float


class DashboardMetrics(BaseModel):
    completed: CompletedTasksMetric
    on_time: OnTimeCompletionMetric
    active: ActiveTasksMetric
    points: PointsSummary
