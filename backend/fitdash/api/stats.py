"""
Statistics API endpoints.
"""
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fitdash.core.database import get_db
from fitdash.services.analytics.goals import project_goals
from fitdash.services.analytics.periods import resolve_period
from fitdash.services.analytics.predictions import (
    PR_DISTANCES,
    predict_race_times,
    scan_personal_records,
)
from fitdash.services.analytics.stats import create_detailed_summary, offline_status
from fitdash.services.store import ActivityStore, GoalStore, goal_input

router = APIRouter()


async def _predictions(db: AsyncSession):
    activities = await ActivityStore(db).find_by_best_effort_names(PR_DISTANCES)
    records = scan_personal_records(activities)
    return records, predict_race_times(records)


@router.get("")
async def get_summary(
    period: Optional[str] = Query(None, description="1w, 1m, 3m, 6m, 1y, 3y or all"),
    db: AsyncSession = Depends(get_db),
):
    """
    Category rollups, weekly rates and trend for a period.
    """
    window = resolve_period(period)
    activities = await ActivityStore(db).list_since(window.start)
    summary = create_detailed_summary(activities, window=window)

    return summary.to_dict()


@router.get("/fitness-status")
async def fitness_status(
    period: Optional[str] = Query("1w"),
    db: AsyncSession = Depends(get_db),
):
    """
    Plain-text status plus the summary it was built from.
    """
    window = resolve_period(period)
    activities = await ActivityStore(db).list_since(window.start)

    if not activities:
        return {"status": "No data for this period", "hasData": False}

    summary = create_detailed_summary(activities, window=window)
    return {
        "status": offline_status(summary),
        "stats": summary.to_dict(),
        "hasData": True,
    }


@router.get("/predictions")
async def get_predictions(
    db: AsyncSession = Depends(get_db),
):
    """
    Personal records and race-time predictions.
    """
    records, predictions = await _predictions(db)

    return {
        "personalRecords": {name: asdict(record) for name, record in records.items()},
        "predictions": {
            name: {**asdict(prediction), "formatted": prediction.formatted_time}
            for name, prediction in predictions.items()
        },
    }


@router.get("/goals")
async def get_goal_projection(
    db: AsyncSession = Depends(get_db),
):
    """
    Countdown and predicted time for every open goal.
    """
    goals = await GoalStore(db).list(include_completed=False)
    _, predictions = await _predictions(db)

    projections = project_goals([goal_input(g) for g in goals], predictions)
    return [asdict(p) for p in projections]
