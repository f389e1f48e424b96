"""
Aggregation engine - category rollups, weekly rates and trend detection.

Summaries are recomputed on every query and never persisted.
"""
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Sequence

from fitdash.core.logging import get_logger
from fitdash.services.analytics.periods import PeriodWindow, resolve_period, weeks_for
from fitdash.services.ingest.canonical import ActivityCategory, CanonicalActivity

logger = get_logger(__name__)

# Trend detection needs at least this many activities
TREND_MIN_ACTIVITIES = 10
TREND_THRESHOLD = 0.10

INSUFFICIENT_DATA = "insufficient_data"
IMPROVING = "improving"
DECLINING = "declining"
STABLE = "stable"


@dataclass
class CategoryStats:
    """Rollup of one category. avg_hr and avg_pace ignore unknown values."""
    count: int = 0
    total_distance: float = 0.0      # meters
    total_duration: float = 0.0      # seconds
    total_calories: float = 0.0
    avg_hr: int = 0
    avg_pace: float = 0.0            # min/km
    max_distance: float = 0.0


@dataclass
class WeeklyRate:
    sessions: float = 0.0
    distance_km: float = 0.0


@dataclass
class Totals:
    count: int = 0
    duration: float = 0.0
    calories: float = 0.0


@dataclass
class DetailedSummary:
    """Per-window summary consumed by the dashboard and the coaching text."""
    period: str
    period_label: str
    weeks: int
    totals: Totals
    categories: Dict[str, CategoryStats]
    weekly: Dict[str, WeeklyRate]
    trend: str

    def category(self, category: ActivityCategory) -> CategoryStats:
        return self.categories.get(category.value, CategoryStats())

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def calculate_category_stats(activities: Sequence[CanonicalActivity]) -> CategoryStats:
    """
    Compute count, sums and selective averages for one partition.

    Heart rate and pace are averaged only over activities where the value
    is positive. An empty input yields an all-zero result.
    """
    if not activities:
        return CategoryStats()

    with_hr = [a.average_hr for a in activities if a.average_hr and a.average_hr > 0]
    with_pace = [a.average_pace for a in activities if a.average_pace and a.average_pace > 0]

    return CategoryStats(
        count=len(activities),
        total_distance=sum(a.distance or 0 for a in activities),
        total_duration=sum(a.moving_time or 0 for a in activities),
        total_calories=sum(a.calories or 0 for a in activities),
        avg_hr=round(sum(with_hr) / len(with_hr)) if with_hr else 0,
        avg_pace=round(sum(with_pace) / len(with_pace), 2) if with_pace else 0.0,
        max_distance=max((a.distance or 0 for a in activities), default=0.0),
    )


def partition_by_category(
    activities: Sequence[CanonicalActivity]
) -> Dict[ActivityCategory, List[CanonicalActivity]]:
    partitions: Dict[ActivityCategory, List[CanonicalActivity]] = {c: [] for c in ActivityCategory}
    for activity in activities:
        partitions[activity.category].append(activity)
    return partitions


def calculate_totals(activities: Sequence[CanonicalActivity]) -> Totals:
    return Totals(
        count=len(activities),
        duration=sum(a.moving_time or 0 for a in activities),
        calories=sum(a.calories or 0 for a in activities),
    )


def calculate_trend(activities: Sequence[CanonicalActivity]) -> str:
    """
    Split-half trend on running distance.

    Args:
        activities: Activities sorted newest first

    Returns:
        improving, declining, stable or insufficient_data
    """
    if len(activities) < TREND_MIN_ACTIVITIES:
        return INSUFFICIENT_DATA

    midpoint = len(activities) // 2
    recent = [a for a in activities[:midpoint] if a.category == ActivityCategory.RUNNING]
    older = [a for a in activities[midpoint:] if a.category == ActivityCategory.RUNNING]

    if not recent or not older:
        return INSUFFICIENT_DATA

    recent_avg = sum(a.distance or 0 for a in recent) / len(recent)
    older_avg = sum(a.distance or 0 for a in older) / len(older)

    if recent_avg > older_avg * (1 + TREND_THRESHOLD):
        return IMPROVING
    if recent_avg < older_avg * (1 - TREND_THRESHOLD):
        return DECLINING
    return STABLE


def create_detailed_summary(
    activities: Sequence[CanonicalActivity],
    period: Optional[str] = None,
    window: Optional[PeriodWindow] = None,
) -> DetailedSummary:
    """
    Build the summary for a window.

    Args:
        activities: Activities already filtered to the window
        period: Period code, used when no resolved window is passed
        window: Pre-resolved window (takes precedence over period)

    Returns:
        DetailedSummary with category rollups, weekly rates and trend

    Raises:
        InvalidPeriodError: If the period code is unknown
    """
    window = window or resolve_period(period)
    ordered = sorted(activities, key=lambda a: a.start_time, reverse=True)
    weeks = weeks_for(window, [a.start_time for a in ordered])

    categories: Dict[str, CategoryStats] = {}
    weekly: Dict[str, WeeklyRate] = {}
    for category, members in partition_by_category(ordered).items():
        stats = calculate_category_stats(members)
        categories[category.value] = stats
        weekly[category.value] = WeeklyRate(
            sessions=stats.count / weeks,
            distance_km=stats.total_distance / 1000 / weeks,
        )

    summary = DetailedSummary(
        period=window.code,
        period_label=window.label,
        weeks=weeks,
        totals=calculate_totals(ordered),
        categories=categories,
        weekly=weekly,
        trend=calculate_trend(ordered),
    )

    logger.debug(
        "Built detailed summary",
        period=window.code,
        activities=len(ordered),
        weeks=weeks,
        trend=summary.trend,
    )

    return summary


def offline_status(summary: DetailedSummary) -> str:
    """Plain-text status used when no coaching model is available."""
    running = summary.category(ActivityCategory.RUNNING)
    strength = summary.category(ActivityCategory.STRENGTH)
    weekly_km = summary.weekly.get(ActivityCategory.RUNNING.value, WeeklyRate()).distance_km

    return (
        f"Running: {running.count} sessions, {running.total_distance / 1000:.1f} km\n"
        f"Strength: {strength.count} sessions\n"
        f"Average: {weekly_km:.1f} km/week"
    )
