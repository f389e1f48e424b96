"""
Race Goals API endpoints.
"""
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from fitdash.core.database import get_db
from fitdash.core.logging import get_logger
from fitdash.services.store import GoalStore

logger = get_logger(__name__)
router = APIRouter()

# request field -> model column
_FIELD_MAP = {
    "name": "name",
    "tier": "tier",
    "raceType": "race_type",
    "distance": "distance",
    "targetDate": "target_date",
    "targetTime": "target_time",
    "notes": "notes",
    "completed": "completed",
    "actualTime": "actual_time",
}


# ========================================
# Request/Response Schemas
# ========================================

class CreateGoalRequest(BaseModel):
    """Request to create a race goal."""
    name: str = Field(..., description="Race name")
    tier: str = Field("intermediate", pattern="^(primary|intermediate)$")
    raceType: Optional[str] = Field(None, description="marathon, half_marathon, 10k, 5k, trail, other")
    distance: Optional[float] = Field(None, ge=0, description="Meters")
    targetDate: datetime
    targetTime: Optional[str] = Field(None, description="Target time as H:MM:SS")
    notes: Optional[str] = None
    completed: bool = False
    actualTime: Optional[str] = None


class UpdateGoalRequest(BaseModel):
    """Partial goal update."""
    name: Optional[str] = None
    tier: Optional[str] = Field(None, pattern="^(primary|intermediate)$")
    raceType: Optional[str] = None
    distance: Optional[float] = Field(None, ge=0)
    targetDate: Optional[datetime] = None
    targetTime: Optional[str] = None
    notes: Optional[str] = None
    completed: Optional[bool] = None
    actualTime: Optional[str] = None


def _to_columns(values: dict) -> dict:
    columns = {_FIELD_MAP[key]: value for key, value in values.items()}
    target = columns.get("target_date")
    if target is not None and target.tzinfo is not None:
        columns["target_date"] = target.astimezone(timezone.utc).replace(tzinfo=None)
    return columns


# ========================================
# API Endpoints
# ========================================

@router.get("")
async def list_goals(
    db: AsyncSession = Depends(get_db),
):
    """
    Get all goals ordered by target date.
    """
    goals = await GoalStore(db).list()
    return [goal.to_dict() for goal in goals]


@router.post("")
async def create_goal(
    request: CreateGoalRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Create a race goal.
    """
    goal = await GoalStore(db).create(**_to_columns(request.model_dump()))
    return {"success": True, "goal": goal.to_dict()}


@router.put("/{goal_id}")
async def update_goal(
    goal_id: str,
    request: UpdateGoalRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Update the provided fields of a goal.
    """
    values = _to_columns(request.model_dump(exclude_unset=True))
    goal = await GoalStore(db).update(goal_id, **values)
    return {"success": True, "goal": goal.to_dict()}


@router.delete("/{goal_id}")
async def delete_goal(
    goal_id: str,
    db: AsyncSession = Depends(get_db),
):
    """
    Delete a goal.
    """
    await GoalStore(db).delete(goal_id)
    return {"success": True}
