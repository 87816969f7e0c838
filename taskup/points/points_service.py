"""Read side of the points ledger: balances, history and the leaderboard."""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from taskup.models.organization import Member
from taskup.models.points import PointTransaction, UserPoints
from taskup.models.user import User
from taskup.schemas.points_schema import LeaderboardEntry, PointsSummary


def period_start(period: str, now: Optional[datetime] = None) -> Optional[datetime]:
    now = now or datetime.utcnow()
    if period == "week":
        return (now - timedelta(days=7)).replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "month":
        return datetime(now.year, now.month, 1)
    if period == "year":
        return datetime(now.year, 1, 1)
    return None


def week_bounds(now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """Monday 00:00 of the current week and of the week before."""
    now = now or datetime.utcnow()
    current = (now - timedelta(days=now.weekday())).replace(hour=0, minute=0, second=0, microsecond=0)
    return current, current - timedelta(days=7)


def percent_trend(current: float, previous: float) -> float:
    """Percent change against last period; 100 when starting from nothing."""
    if previous > 0:
        return (current - previous) / previous * 100
    return 100.0 if current > 0 else 0.0


def total_points(db: Session, user_id: int, organization_id: int) -> int:
    row = (
        db.query(UserPoints)
        .filter(UserPoints.user_id == user_id, UserPoints.organization_id == organization_id)
        .first()
    )
    return row.total_points if row else 0


def _earned_between(
    db: Session,
    organization_id: int,
    start: datetime,
    end: Optional[datetime] = None,
    user_id: Optional[int] = None,
) -> int:
    q = db.query(func.coalesce(func.sum(PointTransaction.points_change), 0)).filter(
        PointTransaction.organization_id == organization_id,
        PointTransaction.created_at >= start,
    )
    if end is not None:
        q = q.filter(PointTransaction.created_at < end)
    if user_id is not None:
        q = q.filter(PointTransaction.user_id == user_id)
    return int(q.scalar() or 0)


def points_summary(
    db: Session,
    user_id: int,
    organization_id: int,
    now: Optional[datetime] = None,
) -> PointsSummary:
    current_week, last_week = week_bounds(now)

    user_points = _earned_between(db, organization_id, current_week, user_id=user_id)
    previous = _earned_between(db, organization_id, last_week, current_week, user_id=user_id)
    team_points = _earned_between(db, organization_id, current_week)

    trend = percent_trend(user_points, previous)

    return PointsSummary(
        total_points=total_points(db, user_id, organization_id),
        user_points=user_points,
        previous_user_points=previous,
        team_points=team_points,
        trend=round(trend, 2),
    )


def point_history(
    db: Session,
    user_id: int,
    organization_id: int,
    transaction_type: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = 50,
) -> list[PointTransaction]:
    q = db.query(PointTransaction).filter(
        PointTransaction.user_id == user_id,
        PointTransaction.organization_id == organization_id,
    )
    if transaction_type is not None:
        q = q.filter(PointTransaction.transaction_type == transaction_type)
    if start is not None:
        q = q.filter(PointTransaction.created_at >= start)
    if end is not None:
        q = q.filter(PointTransaction.created_at < end)
    return q.order_by(PointTransaction.created_at.desc(), PointTransaction.id.desc()).limit(limit).all()


def leaderboard(
    db: Session,
    organization_id: int,
    period: str = "all",
    now: Optional[datetime] = None,
) -> list[LeaderboardEntry]:
    members = (
        db.query(User)
        .join(Member, Member.user_id == User.id)
        .filter(Member.organization_id == organization_id)
        .all()
    )

    start = period_start(period, now)
    if start is None:
        rows = db.query(UserPoints.user_id, UserPoints.total_points).filter(
            UserPoints.organization_id == organization_id
        )
    else:
        rows = (
            db.query(PointTransaction.user_id, func.sum(PointTransaction.points_change))
            .filter(
                PointTransaction.organization_id == organization_id,
                PointTransaction.created_at >= start,
            )
            .group_by(PointTransaction.user_id)
        )
    points_by_user = {user_id: int(points or 0) for user_id, points in rows.all()}

    entries = [
        LeaderboardEntry(
            user_id=user.id,
            name=user.display_name,
            email=user.email,
            total_points=points_by_user.get(user.id, 0),
        )
        for user in members
    ]
    entries.sort(key=lambda entry: (-entry.total_points, entry.name.lower()))
    return entries
