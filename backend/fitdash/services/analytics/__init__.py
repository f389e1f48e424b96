"""
Analytics module - Derived statistics over stored activities.

This module provides:
- Monday-aligned period windows
- Category rollups, weekly rates and trend detection
- Riegel race-time predictions with personal-record overrides
- Goal countdown projection
"""
from fitdash.services.analytics.goals import GoalInput, GoalProjection, project_goals
from fitdash.services.analytics.periods import PeriodWindow, resolve_period
from fitdash.services.analytics.predictions import (
    PR_DISTANCES,
    RacePrediction,
    predict_race_times,
    riegel,
    scan_personal_records,
)
from fitdash.services.analytics.stats import (
    CategoryStats,
    DetailedSummary,
    calculate_category_stats,
    calculate_trend,
    create_detailed_summary,
    offline_status,
)

__all__ = [
    # Periods
    "PeriodWindow",
    "resolve_period",
    # Stats
    "CategoryStats",
    "DetailedSummary",
    "calculate_category_stats",
    "calculate_trend",
    "create_detailed_summary",
    "offline_status",
    # Predictions
    "PR_DISTANCES",
    "RacePrediction",
    "predict_race_times",
    "riegel",
    "scan_personal_records",
    # Goals
    "GoalInput",
    "GoalProjection",
    "project_goals",
]
