"""Task scoring.

A completed task is worth ``base_score(priority, difficulty)`` scaled by a
logistic due-date multiplier::

    multiplier = 0.5 + 1.5 / (1 + e^(0.3 * days_late))

``days_late`` is counted in whole calendar days (negative when early), so the
curve is 1.25 on the due day, tends to 2.0 for very early completion and to
0.5 for very late completion.
"""

import logging
import math
from datetime import date, datetime
from typing import Optional, Union

logger = logging.getLogger("taskup.points")

BASE_POINTS = 10
DIFFICULTY_WEIGHTS = {"easy": 1, "medium": 2, "hard": 3}
DEFAULT_DIFFICULTY_WEIGHT = DIFFICULTY_WEIGHTS["medium"]

MIN_MULTIPLIER = 0.5
MULTIPLIER_RANGE = 1.5
STEEPNESS = 0.3

DateLike = Union[date, datetime, str, None]


def round_half_up(value: float) -> int:
    """Round .5 away from the floor, the same way for awards and reversals."""
    return int(math.floor(value + 0.5))


def _to_date(value: DateLike) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text).date()
    raise TypeError(f"unsupported date value: {value!r}")


def days_late(due_date: DateLike, completion_date: DateLike = None) -> int:
    """Whole days between the due day and the completion day (negative = early)."""
    due = _to_date(due_date)
    completion = _to_date(completion_date) or date.today()
    return (completion - due).days


def due_date_multiplier(due_date: DateLike, completion_date: DateLike = None) -> float:
    if due_date is None:
        return 1.0

    try:
        late = days_late(due_date, completion_date)
    except (TypeError, ValueError):
        logger.warning(
            "points_multiplier_fallback",
            extra={"due_date": repr(due_date), "completion_date": repr(completion_date)},
        )
        return 1.0

    try:
        multiplier = MIN_MULTIPLIER + MULTIPLIER_RANGE / (1 + math.exp(STEEPNESS * late))
    except OverflowError:
        # thousands of days late
        return MIN_MULTIPLIER

    if math.isnan(multiplier):
        return 1.0
    return multiplier


def points_with_timing_bonus(
    base_score: int,
    due_date: DateLike,
    completion_date: DateLike = None,
) -> int:
    multiplier = due_date_multiplier(due_date, completion_date)
    return max(0, round_half_up(base_score * multiplier))


def points_explanation(
    base_score: int,
    due_date: DateLike,
    completion_date: DateLike = None,
) -> str:
    if due_date is None:
        return f"No due date set. Full points awarded: {base_score} pts"

    multiplier = due_date_multiplier(due_date, completion_date)
    points = points_with_timing_bonus(base_score, due_date, completion_date)

    try:
        late = days_late(due_date, completion_date)
    except (TypeError, ValueError):
        return f"Due date could not be read. Full points awarded: {base_score} pts"

    if late > 0:
        timing = f"Completed {late} day{'s' if late != 1 else ''} late."
    elif late < 0:
        timing = f"Completed {-late} day{'s' if late != -1 else ''} before the due date."
    else:
        timing = "Completed on the due date."

    return f"{timing} Multiplier: {multiplier:.2f}x. Points awarded: {points} pts"


def base_score(priority: Optional[str], difficulty: Optional[str]) -> int:
    """Base policy score. Only difficulty weights it; priority is informational."""
    return BASE_POINTS * DIFFICULTY_WEIGHTS.get(difficulty, DEFAULT_DIFFICULTY_WEIGHT)


def compute_score(
    priority: Optional[str],
    difficulty: Optional[str],
    due_date: DateLike,
    assignee_count: int,
    status: str,
    stored_score: Optional[int] = None,
    completion_date: DateLike = None,
) -> int:
    """Score a task should carry for ``status``.

    Open tasks keep their stored base score. Done tasks get the base policy
    score with the due-date multiplier applied at ``completion_date`` (today
    by default). The result is the task total; splitting it between
    ``assignee_count`` people is the ledger's job.
    """
    if status != "done":
        if stored_score is not None:
            return stored_score
        return base_score(priority, difficulty)

    score = points_with_timing_bonus(base_score(priority, difficulty), due_date, completion_date)

    logger.debug(
        "points_computed",
        extra={
            "priority": priority,
            "difficulty": difficulty,
            "assignee_count": assignee_count,
            "score": score,
        },
    )
    return score
