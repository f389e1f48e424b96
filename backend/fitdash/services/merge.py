"""
Source Merge Engine - Reconciles file uploads with polled API records.

Two records whose start times lie within MERGE_TOLERANCE of each other
describe the same real-world event. Sensor-heavy fields come from the file
side, metadata-only fields from the API side.
"""
import copy
from dataclasses import fields
from datetime import datetime, timedelta
from typing import Any, List, Optional, Tuple

from fitdash.core.logging import get_logger
from fitdash.services.ingest.canonical import CanonicalActivity, Provenance

logger = get_logger(__name__)

MERGE_TOLERANCE = timedelta(minutes=2)

# Taken from the API side whenever it has a value
API_METADATA_FIELDS = (
    "name",
    "description",
    "timezone",
    "gear",
    "map_polyline",
    "summary_polyline",
    "best_efforts",
    "splits",
    "perceived_exertion",
    "suffer_score",
)

# Never filled across sources
_PROTECTED_FIELDS = frozenset({
    "id",
    "external_id",
    "source",
    "activity_type",
    "category",
    "is_indoor",
    "file_name",
    "laps",
    "points",
    "workout_type",
    "workout_analysis",
    "has_detailed_data",
}) | frozenset(API_METADATA_FIELDS)


def is_unknown(value: Any) -> bool:
    """
    Zero, empty and None all mean the field was never measured.

    Flags are always known: False is a measurement, not a gap.
    """
    if isinstance(value, bool):
        return False
    return value is None or value == 0 or value == "" or value == [] or value == {}


def within_tolerance(
    a: datetime,
    b: datetime,
    tolerance: timedelta = MERGE_TOLERANCE
) -> bool:
    return abs(a - b) <= tolerance


def match_window(start: datetime, tolerance: timedelta = MERGE_TOLERANCE) -> Tuple[datetime, datetime]:
    """Inclusive [start - tolerance, start + tolerance] lookup window."""
    return start - tolerance, start + tolerance


def unique_match(
    candidates: List[CanonicalActivity],
    start: datetime
) -> Optional[CanonicalActivity]:
    """
    The single candidate describing the same event, if there is exactly one.

    Ambiguous matches return None so the caller falls back to a plain upsert.
    """
    matches = [c for c in candidates if within_tolerance(c.start_time, start)]

    if len(matches) > 1:
        logger.warning(
            "Ambiguous merge match, falling back to upsert",
            start_time=start.isoformat(),
            candidates=len(matches),
        )
        return None

    return matches[0] if matches else None


def fill_missing(target: CanonicalActivity, donor: CanonicalActivity) -> CanonicalActivity:
    """Copy of target with unknown scalar fields filled from donor."""
    result = copy.deepcopy(target)

    for f in fields(CanonicalActivity):
        if f.name in _PROTECTED_FIELDS:
            continue
        if is_unknown(getattr(result, f.name)):
            donor_value = getattr(donor, f.name)
            if not is_unknown(donor_value):
                setattr(result, f.name, copy.deepcopy(donor_value))

    return result


def merge_activities(
    file_side: CanonicalActivity,
    api_side: CanonicalActivity
) -> CanonicalActivity:
    """
    Merge a file-upload record with a polled API record of the same event.

    Precedence:
    - Points, running dynamics and multi-lap data from the file side
    - Name, description, gear, map, best efforts, splits and effort scores
      from the API side
    - API laps only when the file has at most one lap and the API has more
    - Any other field the file side lacks is filled from the API side

    The operation is idempotent: merging the result with the same API
    record again yields an equal record.

    Args:
        file_side: Record carrying sensor data (file upload or earlier merge)
        api_side: Record from the polled API

    Returns:
        New merged CanonicalActivity with MERGED provenance
    """
    merged = fill_missing(file_side, api_side)

    merged.id = file_side.id or api_side.id
    merged.external_id = api_side.external_id

    for name in API_METADATA_FIELDS:
        value = getattr(api_side, name)
        if not is_unknown(value):
            setattr(merged, name, copy.deepcopy(value))

    use_api_laps = len(file_side.laps) <= 1 and len(api_side.laps) > 1
    if use_api_laps:
        merged.laps = copy.deepcopy(api_side.laps)

    merged.source = Provenance.MERGED
    merged.has_detailed_data = api_side.has_detailed_data

    logger.debug(
        "Merged activity sources",
        external_id=merged.external_id,
        laps_from="api" if use_api_laps else "file",
        points_count=len(merged.points),
    )

    return merged


def overlay(base: CanonicalActivity, update: CanonicalActivity) -> CanonicalActivity:
    """
    Refresh a stored record from the same source.

    Values from `update` win; fields it leaves unknown keep the stored
    value, so a summary never erases previously fetched detail.
    """
    result = copy.deepcopy(update)

    for f in fields(CanonicalActivity):
        if f.name in ("id", "source", "has_detailed_data", "workout_type", "workout_analysis"):
            continue
        if is_unknown(getattr(result, f.name)):
            base_value = getattr(base, f.name)
            if not is_unknown(base_value):
                setattr(result, f.name, copy.deepcopy(base_value))

    result.id = base.id
    result.has_detailed_data = base.has_detailed_data or update.has_detailed_data
    return result
