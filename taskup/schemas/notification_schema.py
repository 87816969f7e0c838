# taskup/schemas/notification_schema.py
from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict

NotificationType = Literal["info", "success", "warning", "error"]


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    organization_id: int | None = None
    task_id: int | None = None
    goal_id: int | None = None
    type: NotificationType
    title: str
    message: str | None = None
    is_read: bool
    created_at: datetime


class UnreadCount(BaseModel):
    unread: int


class MarkedRead(BaseModel):
    updated: int
