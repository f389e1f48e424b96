"""
Tests for period windowing and the aggregation engine.
"""
from datetime import datetime, timedelta

import pytest

from factories import make_activity
from fitdash.core.exceptions import InvalidPeriodError
from fitdash.services.analytics.periods import resolve_period, weeks_spanned
from fitdash.services.analytics.stats import (
    DECLINING,
    IMPROVING,
    INSUFFICIENT_DATA,
    STABLE,
    CategoryStats,
    calculate_category_stats,
    calculate_trend,
    create_detailed_summary,
    offline_status,
)
from fitdash.services.ingest.canonical import ActivityCategory

# A Wednesday afternoon
NOW = datetime(2024, 5, 8, 15, 30)


def runs_newest_first(distances, start=NOW):
    """One run per day going back in time, newest first."""
    return [
        make_activity(start_time=start - timedelta(days=i), distance=d)
        for i, d in enumerate(distances)
    ]


class TestResolvePeriod:
    """Monday-aligned windows."""

    def test_this_week_starts_on_monday(self):
        window = resolve_period("1w", now=NOW)

        assert window.start == datetime(2024, 5, 6, 0, 0)
        assert window.weeks == 1

    def test_month_goes_back_four_weeks_then_aligns(self):
        window = resolve_period("1m", now=NOW)

        assert window.start == datetime(2024, 4, 8, 0, 0)
        assert window.start.weekday() == 0
        assert window.weeks == 4

    @pytest.mark.parametrize("code,weeks", [
        ("3m", 12), ("6m", 26), ("1y", 52), ("3y", 156),
    ])
    def test_fixed_week_counts(self, code, weeks):
        window = resolve_period(code, now=NOW)

        assert window.weeks == weeks
        assert window.start.weekday() == 0

    def test_all_time_is_open_ended(self):
        window = resolve_period("all", now=NOW)

        assert window.is_open_ended
        assert window.weeks is None

    def test_missing_code_means_all_time(self):
        assert resolve_period(None).code == "all"

    def test_unknown_code(self):
        with pytest.raises(InvalidPeriodError):
            resolve_period("2w")

    def test_unknown_code_is_a_value_error(self):
        with pytest.raises(ValueError):
            resolve_period("forever")


class TestWeeksSpanned:

    def test_rounds_up(self):
        assert weeks_spanned([NOW, NOW - timedelta(days=20)]) == 3

    def test_minimum_one_week(self):
        assert weeks_spanned([NOW]) == 1
        assert weeks_spanned([]) == 1


class TestCategoryStats:
    """Selective averages use only activities that measured the value."""

    def test_denominator_is_measured_subset(self):
        activities = [
            make_activity(average_hr=150.0, average_pace=5.0),
            make_activity(average_hr=None, average_pace=None),
            make_activity(average_hr=0.0, average_pace=6.0),
            make_activity(average_hr=140.0, average_pace=0.0),
        ]

        stats = calculate_category_stats(activities)

        assert stats.count == 4
        assert stats.avg_hr == 145
        assert stats.avg_pace == 5.5

    def test_no_measured_values_is_zero(self):
        stats = calculate_category_stats([make_activity(), make_activity()])

        assert stats.avg_hr == 0
        assert stats.avg_pace == 0.0

    def test_empty_partition_is_all_zero(self):
        assert calculate_category_stats([]) == CategoryStats()

    def test_sums_and_max(self):
        activities = [
            make_activity(distance=5000.0, moving_time=1500.0, calories=300.0),
            make_activity(distance=12000.0, moving_time=3600.0, calories=800.0),
        ]

        stats = calculate_category_stats(activities)

        assert stats.total_distance == 17000.0
        assert stats.total_duration == 5100.0
        assert stats.total_calories == 1100.0
        assert stats.max_distance == 12000.0

    def test_heart_rate_rounded_to_whole_beats(self):
        activities = [make_activity(average_hr=h) for h in (150.0, 141.0, 140.0)]

        assert calculate_category_stats(activities).avg_hr == 144


class TestTrend:
    """Split-half comparison of running distance."""

    def test_fewer_than_ten_is_insufficient(self):
        assert calculate_trend(runs_newest_first([20000.0] * 4 + [1000.0] * 5)) == INSUFFICIENT_DATA

    def test_improving(self):
        assert calculate_trend(runs_newest_first([10000.0] * 5 + [5000.0] * 5)) == IMPROVING

    def test_declining(self):
        assert calculate_trend(runs_newest_first([5000.0] * 5 + [10000.0] * 5)) == DECLINING

    def test_stable_within_ten_percent(self):
        assert calculate_trend(runs_newest_first([10500.0] * 5 + [10000.0] * 5)) == STABLE

    def test_half_without_runs_is_insufficient(self):
        rides = [
            make_activity(
                activity_type="cycling",
                category=ActivityCategory.CYCLING,
                start_time=NOW - timedelta(days=i),
            )
            for i in range(5)
        ]
        activities = rides + runs_newest_first([5000.0] * 5, start=NOW - timedelta(days=5))

        assert calculate_trend(activities) == INSUFFICIENT_DATA


class TestDetailedSummary:

    def test_weekly_rates_use_period_weeks(self):
        window = resolve_period("1m", now=NOW)
        activities = runs_newest_first([10000.0] * 8)

        summary = create_detailed_summary(activities, window=window)

        running = summary.category(ActivityCategory.RUNNING)
        assert summary.weeks == 4
        assert running.count == 8
        assert summary.weekly["running"].sessions == 2.0
        assert summary.weekly["running"].distance_km == 20.0

    def test_all_time_weeks_come_from_data(self):
        activities = [
            make_activity(start_time=NOW),
            make_activity(start_time=NOW - timedelta(days=20)),
        ]

        summary = create_detailed_summary(activities, period="all")

        assert summary.weeks == 3

    def test_every_category_present(self):
        summary = create_detailed_summary([], period="all")

        assert set(summary.categories) == {c.value for c in ActivityCategory}
        assert summary.totals.count == 0
        assert summary.trend == INSUFFICIENT_DATA

    def test_input_order_does_not_matter(self):
        """Trend sees activities newest first whatever the input order."""
        activities = runs_newest_first([10000.0] * 5 + [5000.0] * 5)

        summary = create_detailed_summary(list(reversed(activities)), period="all")

        assert summary.trend == IMPROVING

    def test_to_dict_is_plain_data(self):
        summary = create_detailed_summary(runs_newest_first([5000.0]), period="all")

        data = summary.to_dict()

        assert data["categories"]["running"]["count"] == 1
        assert data["totals"]["count"] == 1

    def test_offline_status(self):
        window = resolve_period("1w", now=NOW)
        activities = runs_newest_first([10000.0, 5000.0]) + [
            make_activity(activity_type="strength_training", category=ActivityCategory.STRENGTH),
        ]

        summary = create_detailed_summary(activities, window=window)

        assert offline_status(summary) == (
            "Running: 2 sessions, 15.0 km\n"
            "Strength: 1 sessions\n"
            "Average: 15.0 km/week"
        )
