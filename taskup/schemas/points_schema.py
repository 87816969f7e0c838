# taskup/schemas/points_schema.py
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError


# --------- Transaction metadata (tagged by "kind") ---------
class TaskCompletedMetadata(BaseModel):
    kind: Literal["task_completed"] = "task_completed"
    task_title: str
    total_task_points: int
    assignee_count: int
    points_per_assignee: int
    due_date: Optional[datetime] = None


class TaskUncompletedMetadata(BaseModel):
    kind: Literal["task_uncompleted"] = "task_uncompleted"
    task_title: str
    total_task_points: int
    assignee_count: int
    points_per_assignee: int
    new_status: Optional[str] = None


class TaskPropertyChangedMetadata(BaseModel):
    kind: Literal["task_property_changed"] = "task_property_changed"
    task_title: str
    property_name: Literal["priority", "difficulty", "due_date"]
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    old_total_points: int
    new_total_points: int
    assignee_count: int
    old_points_per_assignee: int
    new_points_per_assignee: int
    delta_per_assignee: int


class GoalCompletedMetadata(BaseModel):
    kind: Literal["goal_completed"] = "goal_completed"
    goal_id: int
    goal_name: str


class GoalRevertedMetadata(BaseModel):
    kind: Literal["goal_reverted"] = "goal_reverted"
    goal_id: int
    goal_name: str
    reverts_transaction_id: int


TransactionMetadata = Annotated[
    Union[
        TaskCompletedMetadata,
        TaskUncompletedMetadata,
        TaskPropertyChangedMetadata,
        GoalCompletedMetadata,
        GoalRevertedMetadata,
    ],
    Field(discriminator="kind"),
]

_metadata_adapter = TypeAdapter(TransactionMetadata)


def dump_metadata(metadata: Optional[BaseModel]) -> Optional[str]:
    if metadata is None:
        return None
    return metadata.model_dump_json()


def load_metadata(raw: Optional[str]):
    """Parse a stored metadata blob; returns None for empty or malformed JSON."""
    if not raw:
        return None
    try:
        return _metadata_adapter.validate_json(raw)
    except ValidationError:
        return None


# --------- Responses ---------
class PointTransactionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    organization_id: int
    task_id: Optional[int] = None
    transaction_type: str
    points_change: int
    previous_total: int
    new_total: int
    metadata: Optional[TransactionMetadata] = None
    created_at: datetime

    @classmethod
    def from_row(cls, row) -> "PointTransactionRead":
        return cls(
            id=row.id,
            user_id=row.user_id,
            organization_id=row.organization_id,
            task_id=row.task_id,
            transaction_type=row.transaction_type,
            points_change=row.points_change,
            previous_total=row.previous_total,
            new_total=row.new_total,
            metadata=load_metadata(row.metadata_json),
            created_at=row.created_at,
        )


class UserPointsRead(BaseModel):
    user_id: int
    organization_id: int
    total_points: int


class PointsSummary(BaseModel):
    total_points: int
    user_points: int
    previous_user_points: int
    team_points: int
    trend: float


class LeaderboardEntry(BaseModel):
    user_id: int
    name: str
    email: str
    total_points: int
