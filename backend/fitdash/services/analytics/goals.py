"""
Goal projection - countdown and prediction context for open race goals.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from fitdash.services.analytics.predictions import RacePrediction

# race_type values -> prediction target names
RACE_TYPE_TARGETS = {
    "5k": "5K",
    "10k": "10K",
    "half_marathon": "Half-Marathon",
    "marathon": "Marathon",
}


@dataclass
class GoalInput:
    """Goal fields the projection needs."""
    id: Optional[str]
    name: str
    target_date: datetime
    tier: str = "intermediate"
    race_type: Optional[str] = None
    target_distance: Optional[float] = None
    target_time: Optional[str] = None
    completed: bool = False


@dataclass
class GoalProjection:
    goal_id: Optional[str]
    name: str
    tier: str
    race_type: Optional[str]
    target_date: datetime
    target_time: Optional[str]
    days_until: int
    label: str
    predicted_time: Optional[str] = None
    prediction_source: Optional[str] = None


def days_until(target: datetime, now: datetime) -> int:
    """Whole days to the target, rounded up."""
    return math.ceil((target - now) / timedelta(days=1))


def days_label(days: int) -> str:
    if days < 0:
        return "past"
    if days == 0:
        return "today"
    if days == 1:
        return "tomorrow"
    return f"{days} days"


def project_goals(
    goals: Sequence[GoalInput],
    predictions: Optional[Dict[str, RacePrediction]] = None,
    now: Optional[datetime] = None,
) -> List[GoalProjection]:
    """
    Project open goals, soonest first.

    Args:
        goals: Goals to project; completed ones are skipped
        predictions: Race predictions matched on race_type when given
        now: Reference time, defaults to the current UTC time

    Returns:
        One GoalProjection per open goal
    """
    now = now or datetime.utcnow()
    predictions = predictions or {}
    projections = []

    for goal in sorted(goals, key=lambda g: g.target_date):
        if goal.completed:
            continue

        days = days_until(goal.target_date, now)
        prediction = predictions.get(RACE_TYPE_TARGETS.get((goal.race_type or "").lower(), ""))

        projections.append(GoalProjection(
            goal_id=goal.id,
            name=goal.name,
            tier=goal.tier,
            race_type=goal.race_type,
            target_date=goal.target_date,
            target_time=goal.target_time,
            days_until=days,
            label=days_label(days),
            predicted_time=prediction.formatted_time if prediction else None,
            prediction_source=prediction.source if prediction else None,
        ))

    return projections
