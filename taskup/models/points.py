# taskup/models/points.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from taskup.database import Base

TASK_COMPLETED = "task_completed"
TASK_UNCOMPLETED = "task_uncompleted"
TASK_PROPERTY_CHANGED = "task_property_changed"

TRANSACTION_TYPES = (TASK_COMPLETED, TASK_UNCOMPLETED, TASK_PROPERTY_CHANGED)


class UserPoints(Base):
    __tablename__ = "user_points"
    __table_args__ = (UniqueConstraint("user_id", "organization_id", name="uq_user_points_user_org"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    organization_id = Column(
        Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    total_points = Column(Integer, default=0, nullable=False)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class PointTransaction(Base):
    """Append-only ledger row. Never updated; corrections are new rows."""

    __tablename__ = "point_transactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    organization_id = Column(
        Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # kept when the task is deleted so history survives
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True, index=True)

    transaction_type = Column(String, nullable=False, index=True)
    points_change = Column(Integer, nullable=False)
    previous_total = Column(Integer, nullable=False)
    new_total = Column(Integer, nullable=False)

    # JSON, see taskup.schemas.points_schema.TransactionMetadata
    metadata_json = Column("metadata", Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
