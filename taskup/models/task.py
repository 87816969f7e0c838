# taskup/models/task.py

from __future__ import annotations

from datetime import datetime
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Table
from sqlalchemy.orm import relationship
from taskup.database import Base

TASK_STATUSES = ("backlog", "todo", "in_progress", "review", "done", "archived", "canceled")
TASK_PRIORITIES = ("low", "medium", "high", "urgent")
TASK_DIFFICULTIES = ("easy", "medium", "hard")


task_assignees = Table(
    "task_assignees",
    Base.metadata,
    Column("task_id", Integer, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)

    title = Column(String, nullable=False)
    description = Column(String, nullable=True)
    status = Column(String, default="todo", nullable=False)

    priority = Column(String, default="medium", nullable=False)
    difficulty = Column(String, default="medium", nullable=False)

    # base score while open, awarded score once done
    score = Column(Integer, default=0, nullable=False)

    due_date = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    organization_id = Column(
        Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    assignees = relationship("User", secondary=task_assignees, order_by="User.id")

    @property
    def assignee_ids(self) -> list[int]:
        return [user.id for user in self.assignees]
