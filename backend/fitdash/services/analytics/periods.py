"""
Period windowing - calendar-aware date ranges for stats queries.

All windows start on a Monday at 00:00 (ISO week start). Times are naive UTC.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Sequence

from fitdash.core.exceptions import InvalidPeriodError

ALL_TIME = "all"

# period code -> (days back before Monday alignment, weeks, label)
PERIODS = {
    "1w": (0, 1, "this week"),
    "1m": (28, 4, "last month"),
    "3m": (84, 12, "last 3 months"),
    "6m": (182, 26, "last 6 months"),
    "1y": (364, 52, "last year"),
    "3y": (3 * 365, 156, "last 3 years"),
    ALL_TIME: (None, None, "all time"),
}


@dataclass
class PeriodWindow:
    """Resolved stats window. `start` is None for the open-ended window."""
    code: str
    label: str
    start: Optional[datetime]
    weeks: Optional[int]

    @property
    def is_open_ended(self) -> bool:
        return self.start is None


def week_start(moment: datetime) -> datetime:
    """Monday 00:00 of the ISO week containing `moment`."""
    monday = moment - timedelta(days=moment.weekday())
    return monday.replace(hour=0, minute=0, second=0, microsecond=0)


def resolve_period(code: Optional[str], now: Optional[datetime] = None) -> PeriodWindow:
    """
    Resolve a period code into a window.

    Args:
        code: One of 1w, 1m, 3m, 6m, 1y, 3y, all (None means all)
        now: Reference time, defaults to the current UTC time

    Returns:
        PeriodWindow with Monday-aligned start

    Raises:
        InvalidPeriodError: If the code is unknown
    """
    code = code or ALL_TIME
    if code not in PERIODS:
        raise InvalidPeriodError(f"Unknown period: {code}")

    days_back, weeks, label = PERIODS[code]
    if days_back is None:
        return PeriodWindow(code=code, label=label, start=None, weeks=None)

    now = now or datetime.utcnow()
    start = week_start(now - timedelta(days=days_back))
    return PeriodWindow(code=code, label=label, start=start, weeks=weeks)


def weeks_spanned(start_times: Sequence[datetime]) -> int:
    """Weeks between the earliest and latest timestamp, rounded up, at least 1."""
    if not start_times:
        return 1
    span = max(start_times) - min(start_times)
    return max(1, math.ceil(span / timedelta(days=7)))


def weeks_for(window: PeriodWindow, start_times: Sequence[datetime]) -> int:
    """Week count used for weekly rates; derived from the data when open-ended."""
    if window.weeks is not None:
        return window.weeks
    return weeks_spanned(start_times)
