"""
Unit & vocabulary normalization.

Pure functions converting source-specific units into the canonical unit
set. Unknown or unparseable values come back as None rather than raising;
aggregation treats None and zero as "unknown".
"""
from typing import Optional, Sequence, Tuple

from fitdash.services.ingest.canonical import ActivityCategory

# Elevations below this are taken to be kilometers (file-source heuristic)
ELEVATION_KM_THRESHOLD = 10.0

# Lap distances below this are taken to be kilometers (file-source heuristic)
LAP_DISTANCE_KM_THRESHOLD = 50.0

# Ordered keyword table, first match wins
CATEGORY_KEYWORDS: Sequence[Tuple[Tuple[str, ...], ActivityCategory]] = (
    (("run", "treadmill"), ActivityCategory.RUNNING),
    (("cycling", "ride"), ActivityCategory.CYCLING),
    (("strength", "weight"), ActivityCategory.STRENGTH),
    (("swim",), ActivityCategory.SWIMMING),
    (("walk", "hike"), ActivityCategory.WALKING),
)


def _positive(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


def cadence_to_spm(per_leg: Optional[float]) -> Optional[float]:
    """Per-leg cadence (both sources report it) to full-body steps per minute."""
    value = _positive(per_leg)
    return value * 2 if value is not None else None


def km_to_meters(km: Optional[float]) -> float:
    """File-source distance (km) to meters."""
    value = _positive(km)
    return value * 1000 if value is not None else 0.0


def ms_to_kmh(speed_ms: Optional[float]) -> Optional[float]:
    """API-source speed (m/s) to km/h."""
    value = _positive(speed_ms)
    return value * 3.6 if value is not None else None


def pace_from_kmh(speed_kmh: Optional[float]) -> Optional[float]:
    """Minutes per km from a km/h speed."""
    value = _positive(speed_kmh)
    return 60 / value if value is not None else None


def pace_from_ms(speed_ms: Optional[float]) -> Optional[float]:
    """Minutes per km from a m/s speed (about 16.666 / speed)."""
    value = _positive(speed_ms)
    return 60 / (value * 3.6) if value is not None else None


def canonicalize_elevation(value: Optional[float]) -> Optional[float]:
    """
    Elevation to meters.

    Values under 10 are assumed to be kilometers and scaled by 1000;
    values of 10 and above are assumed to already be meters. This is a
    heuristic, not a format guarantee.
    """
    if value is None:
        return None
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    if value < ELEVATION_KM_THRESHOLD:
        return value * 1000
    return value


def canonicalize_lap_distance(value: Optional[float]) -> float:
    """Lap distance to meters, values under 50 are taken to be kilometers."""
    distance = _positive(value)
    if distance is None:
        return 0.0
    if distance < LAP_DISTANCE_KM_THRESHOLD:
        return distance * 1000
    return distance


def map_category(raw_type: Optional[str]) -> ActivityCategory:
    """Map a free-text activity type to the canonical category."""
    if not raw_type:
        return ActivityCategory.OTHER

    raw_lower = raw_type.lower()
    for keywords, category in CATEGORY_KEYWORDS:
        if any(keyword in raw_lower for keyword in keywords):
            return category

    return ActivityCategory.OTHER
