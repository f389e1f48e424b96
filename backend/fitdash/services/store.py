"""
Stores - Database operations for activities, goals and accounts.

ActivityStore speaks CanonicalActivity in and out; ORM rows never leave
this module for activities. Reads meant for display skip the point
series; anything that will be written back must be loaded with points.
"""
import uuid
from dataclasses import asdict, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import Select, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import defer

from fitdash.core.exceptions import NotFoundError
from fitdash.core.logging import get_logger
from fitdash.models.account import AthleteAccount
from fitdash.models.activity import Activity
from fitdash.models.goal import Goal
from fitdash.services.analytics.goals import GoalInput
from fitdash.services.ingest.canonical import (
    ActivityCategory,
    BestEffort,
    CanonicalActivity,
    Lap,
    Point,
    Provenance,
    RunningSubType,
    Split,
    WorkoutAnalysis,
    WorkoutType,
)
from fitdash.services.merge import match_window

logger = get_logger(__name__)

_ENUM_FIELDS = {
    "category": ActivityCategory,
    "source": Provenance,
    "running_sub_type": RunningSubType,
    "workout_type": WorkoutType,
}

_LIST_FIELDS = {
    "laps": Lap,
    "splits": Split,
    "best_efforts": BestEffort,
    "points": Point,
}

_DATETIME_KEYS = ("start_time", "timestamp")


def _parse_uuid(value: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        logger.warning("Invalid id format", id=value)
        return None


def _to_json(value: Any) -> Any:
    """Dataclass trees to JSON-compatible values; datetimes become ISO strings."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _to_json(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_json(v) for v in value]
    return value


def _from_json(cls: type, data: Dict[str, Any]) -> Any:
    known = {f.name for f in fields(cls)}
    values = {k: v for k, v in data.items() if k in known}
    for key in _DATETIME_KEYS:
        if isinstance(values.get(key), str):
            values[key] = datetime.fromisoformat(values[key])
    return cls(**values)


def _full_load(query: Select) -> Select:
    """Reload rows already in the session so earlier deferred loads get their points."""
    return query.execution_options(populate_existing=True)


def activity_to_canonical(row: Activity, include_points: bool = True) -> CanonicalActivity:
    """Convert an ORM row into a CanonicalActivity."""
    values: Dict[str, Any] = {}

    for f in fields(CanonicalActivity):
        if f.name == "id":
            values["id"] = str(row.id)
        elif f.name == "points" and not include_points:
            values["points"] = []
        elif f.name in _LIST_FIELDS:
            values[f.name] = [_from_json(_LIST_FIELDS[f.name], item) for item in getattr(row, f.name) or []]
        elif f.name == "workout_analysis":
            values[f.name] = _from_json(WorkoutAnalysis, row.workout_analysis) if row.workout_analysis else None
        elif f.name in _ENUM_FIELDS:
            raw = getattr(row, f.name)
            values[f.name] = _ENUM_FIELDS[f.name](raw) if raw is not None else None
        else:
            values[f.name] = getattr(row, f.name)

    return CanonicalActivity(**values)


def apply_canonical(row: Activity, activity: CanonicalActivity) -> Activity:
    """Copy every canonical field onto an ORM row."""
    for f in fields(CanonicalActivity):
        if f.name == "id":
            continue
        value = getattr(activity, f.name)
        if f.name in _LIST_FIELDS:
            value = [_to_json(asdict(item)) for item in value]
        elif f.name == "workout_analysis":
            value = asdict(value) if value is not None else None
        elif f.name == "gear":
            value = _to_json(value)
        elif isinstance(value, Enum):
            value = value.value
        # Plain columns (datetimes included) are bound as-is
        setattr(row, f.name, value)

    row.lap_count = activity.lap_count
    row.has_points = activity.has_points
    return row


class ActivityStore:
    """
    Persistence collaborator for canonical activities.

    Provides upsert-by-external-id, find-by-time-range, find-by-best-effort
    name and bulk delete, plus the listing and detail-backlog queries used
    by the API and the sync runs.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_row(self, activity_id: str) -> Optional[Activity]:
        activity_uuid = _parse_uuid(activity_id)
        if activity_uuid is None:
            return None
        result = await self.db.execute(
            _full_load(select(Activity).where(Activity.id == activity_uuid))
        )
        return result.scalar_one_or_none()

    async def get(self, activity_id: str) -> Optional[CanonicalActivity]:
        """Get an activity by internal id."""
        row = await self._get_row(activity_id)
        return activity_to_canonical(row) if row else None

    async def get_row(self, activity_id: str) -> Activity:
        """
        Get the ORM row for API responses.

        Raises:
            NotFoundError: If no activity has that id
        """
        row = await self._get_row(activity_id)
        if row is None:
            raise NotFoundError(f"Activity not found: {activity_id}")
        return row

    async def get_by_external_id(self, external_id: int) -> Optional[CanonicalActivity]:
        result = await self.db.execute(
            _full_load(select(Activity).where(Activity.external_id == external_id))
        )
        row = result.scalar_one_or_none()
        return activity_to_canonical(row) if row else None

    async def save(self, activity: CanonicalActivity) -> CanonicalActivity:
        """
        Insert a new activity or update the row named by activity.id.

        Returns:
            The stored activity with its id set
        """
        row = await self._get_row(activity.id) if activity.id else None
        created = row is None

        if created:
            row = Activity()
            self.db.add(row)

        apply_canonical(row, activity)
        await self.db.flush()

        logger.debug(
            "Activity saved",
            activity_id=str(row.id),
            external_id=row.external_id,
            source=row.source,
            created=created,
        )

        activity.id = str(row.id)
        return activity

    async def upsert_by_external_id(
        self,
        activity: CanonicalActivity
    ) -> Tuple[CanonicalActivity, bool]:
        """
        Insert when the external id is unknown, update in place otherwise.

        Returns:
            (stored activity, created flag)
        """
        if activity.external_id is None:
            raise ValueError("upsert_by_external_id requires an external id")

        result = await self.db.execute(
            select(Activity.id).where(Activity.external_id == activity.external_id)
        )
        existing_id = result.scalar_one_or_none()

        activity.id = str(existing_id) if existing_id else None
        stored = await self.save(activity)
        return stored, existing_id is None

    async def find_by_time_range(
        self,
        start: datetime,
        end: datetime,
        source: Optional[Provenance] = None
    ) -> List[CanonicalActivity]:
        """Activities starting within [start, end], optionally of one provenance."""
        query = select(Activity).where(
            Activity.start_time >= start,
            Activity.start_time <= end,
        )
        if source is not None:
            query = query.where(Activity.source == source.value)

        result = await self.db.execute(_full_load(query.order_by(Activity.start_time)))
        return [activity_to_canonical(row) for row in result.scalars().all()]

    async def find_merge_candidates(
        self,
        start: datetime,
        source: Provenance
    ) -> List[CanonicalActivity]:
        """Records of the given provenance inside the merge tolerance window."""
        window_start, window_end = match_window(start)
        return await self.find_by_time_range(window_start, window_end, source)

    async def find_by_best_effort_names(self, names: Iterable[str]) -> List[CanonicalActivity]:
        """
        Activities carrying a best effort with one of the given names.

        Matching on the JSON sub-documents happens here rather than in SQL
        so it behaves the same on every backend.
        """
        wanted = {name.lower() for name in names}
        result = await self.db.execute(
            select(Activity)
            .where(Activity.category == ActivityCategory.RUNNING.value)
            .options(defer(Activity.points))
        )

        matches = []
        for row in result.scalars().all():
            if any(str(e.get("name", "")).lower() in wanted for e in row.best_efforts or []):
                matches.append(activity_to_canonical(row, include_points=False))
        return matches

    async def list_activities(
        self,
        category: Optional[str] = None,
        since: Optional[datetime] = None,
        page: int = 1,
        limit: int = 50
    ) -> Tuple[List[Activity], int]:
        """
        Page through activities newest first, without point series.

        Returns:
            (rows for the page, total matching rows)
        """
        conditions = []
        if category and category != "all":
            conditions.append(Activity.category == category)
        if since is not None:
            conditions.append(Activity.start_time >= since)

        total = await self.db.scalar(
            select(func.count()).select_from(Activity).where(*conditions)
        )
        result = await self.db.execute(
            select(Activity)
            .where(*conditions)
            .options(defer(Activity.points))
            .order_by(Activity.start_time.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def list_since(self, since: Optional[datetime] = None) -> List[CanonicalActivity]:
        """All activities from `since` on (everything when None), newest first."""
        query = select(Activity).options(defer(Activity.points))
        if since is not None:
            query = query.where(Activity.start_time >= since)

        result = await self.db.execute(query.order_by(Activity.start_time.desc()))
        return [activity_to_canonical(row, include_points=False) for row in result.scalars().all()]

    async def count_missing_details(self) -> int:
        """Polled activities whose rich detail has not been fetched yet."""
        total = await self.db.scalar(
            select(func.count()).select_from(Activity).where(
                Activity.external_id.is_not(None),
                Activity.has_detailed_data.is_(False),
                Activity.detail_unavailable.is_(False),
            )
        )
        return total or 0

    async def next_missing_details(self, limit: int) -> List[CanonicalActivity]:
        """Newest activities still lacking rich detail, loaded in full."""
        result = await self.db.execute(_full_load(
            select(Activity)
            .where(
                Activity.external_id.is_not(None),
                Activity.has_detailed_data.is_(False),
                Activity.detail_unavailable.is_(False),
            )
            .order_by(Activity.start_time.desc())
            .limit(limit)
        ))
        return [activity_to_canonical(row) for row in result.scalars().all()]

    async def mark_detail_unavailable(self, external_id: int) -> None:
        """Drop an activity from the detail backlog for good."""
        await self.db.execute(
            update(Activity)
            .where(Activity.external_id == external_id)
            .values(detail_unavailable=True)
        )
        await self.db.flush()

    async def delete_all(self) -> int:
        """Bulk clear. Returns the number of deleted activities."""
        result = await self.db.execute(delete(Activity))
        await self.db.flush()
        logger.info("Activities cleared", deleted=result.rowcount)
        return result.rowcount


class GoalStore:
    """CRUD for race goals."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list(self, include_completed: bool = True) -> List[Goal]:
        query = select(Goal).order_by(Goal.target_date)
        if not include_completed:
            query = query.where(Goal.completed.is_(False))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get(self, goal_id: str) -> Goal:
        """
        Raises:
            NotFoundError: If no goal has that id
        """
        goal_uuid = _parse_uuid(goal_id)
        goal = await self.db.get(Goal, goal_uuid) if goal_uuid else None
        if goal is None:
            raise NotFoundError(f"Goal not found: {goal_id}")
        return goal

    async def create(self, **values: Any) -> Goal:
        goal = Goal(**values)
        self.db.add(goal)
        await self.db.flush()
        await self.db.refresh(goal)
        logger.info("Goal created", goal_id=str(goal.id))
        return goal

    async def update(self, goal_id: str, **values: Any) -> Goal:
        goal = await self.get(goal_id)
        for key, value in values.items():
            setattr(goal, key, value)
        goal.updated_at = datetime.utcnow()
        await self.db.flush()
        await self.db.refresh(goal)
        return goal

    async def delete(self, goal_id: str) -> None:
        goal = await self.get(goal_id)
        await self.db.delete(goal)
        await self.db.flush()
        logger.info("Goal deleted", goal_id=goal_id)


def goal_input(goal: Goal) -> GoalInput:
    """Projection input for a stored goal."""
    return GoalInput(
        id=str(goal.id),
        name=goal.name,
        target_date=goal.target_date,
        tier=goal.tier,
        race_type=goal.race_type,
        target_distance=goal.distance,
        target_time=goal.target_time,
        completed=goal.completed,
    )


class AccountStore:
    """Access to the connected athlete account."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_primary(self) -> Optional[AthleteAccount]:
        """The single connected account, oldest first when several exist."""
        result = await self.db.execute(
            select(AthleteAccount).order_by(AthleteAccount.created_at).limit(1)
        )
        return result.scalar_one_or_none()

    async def save(self, account: AthleteAccount) -> AthleteAccount:
        self.db.add(account)
        await self.db.flush()
        return account
