"""
Race-time predictions.

Personal records are scanned from stored best efforts; the missing target
distances are extrapolated with the Riegel model, T2 = T1 * (D2 / D1) ** 1.06.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, Optional

from fitdash.core.logging import get_logger
from fitdash.services.ingest.canonical import CanonicalActivity

logger = get_logger(__name__)

RIEGEL_EXPONENT = 1.06

PR_SOURCE = "PR"

# Prediction targets in ascending distance (meters)
TARGET_DISTANCES: Dict[str, float] = {
    "5K": 5000.0,
    "10K": 10000.0,
    "Half-Marathon": 21097.5,
    "Marathon": 42195.0,
}

# Best-effort names scanned for personal records
PR_DISTANCES = ("5K", "10K", "Half-Marathon")


@dataclass
class PersonalRecord:
    distance_name: str
    distance: float
    elapsed_time: float
    activity_id: Optional[str] = None
    achieved_at: Optional[datetime] = None


@dataclass
class RacePrediction:
    distance_name: str
    distance: float
    time: float
    source: str

    @property
    def is_personal_record(self) -> bool:
        return self.source == PR_SOURCE

    @property
    def formatted_time(self) -> str:
        return format_duration(self.time)


def riegel(known_time: float, known_distance: float, target_distance: float,
           exponent: float = RIEGEL_EXPONENT) -> float:
    """Predicted time over target_distance given known_time over known_distance."""
    if known_time <= 0 or known_distance <= 0 or target_distance <= 0:
        raise ValueError("Riegel prediction needs positive times and distances")
    return known_time * (target_distance / known_distance) ** exponent


def format_duration(seconds: float) -> str:
    """Seconds as H:MM:SS."""
    total = int(round(seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours}:{minutes:02d}:{secs:02d}"


def scan_personal_records(activities: Iterable[CanonicalActivity]) -> Dict[str, PersonalRecord]:
    """
    Fastest best effort per canonical distance across all activities.

    Names are matched case-insensitively; efforts with no positive time
    are ignored.
    """
    wanted = {name.lower(): name for name in PR_DISTANCES}
    records: Dict[str, PersonalRecord] = {}

    for activity in activities:
        for effort in activity.best_efforts:
            name = wanted.get(effort.name.strip().lower())
            if name is None or effort.elapsed_time <= 0:
                continue

            current = records.get(name)
            if current is None or effort.elapsed_time < current.elapsed_time:
                records[name] = PersonalRecord(
                    distance_name=name,
                    distance=TARGET_DISTANCES[name],
                    elapsed_time=effort.elapsed_time,
                    activity_id=activity.id,
                    achieved_at=activity.start_time,
                )

    return records


def predict_race_times(records: Dict[str, PersonalRecord]) -> Dict[str, RacePrediction]:
    """
    Fill the four target distances from personal records.

    A real record always wins for its own distance. Among extrapolations
    for the same target, a new value only replaces an existing one when it
    is smaller.

    Args:
        records: Personal records keyed by distance name

    Returns:
        Predictions keyed by target distance name, in target order
    """
    predictions: Dict[str, RacePrediction] = {}

    for source_name in PR_DISTANCES:
        record = records.get(source_name)
        if record is None:
            continue

        for target_name, target_distance in TARGET_DISTANCES.items():
            if target_name == source_name:
                continue

            predicted = riegel(record.elapsed_time, record.distance, target_distance)
            existing = predictions.get(target_name)
            if existing is None or predicted < existing.time:
                predictions[target_name] = RacePrediction(
                    distance_name=target_name,
                    distance=target_distance,
                    time=predicted,
                    source=f"derived from {source_name} PR",
                )

    for name, record in records.items():
        predictions[name] = RacePrediction(
            distance_name=name,
            distance=record.distance,
            time=record.elapsed_time,
            source=PR_SOURCE,
        )

    logger.debug(
        "Predicted race times",
        records=sorted(records),
        predictions=len(predictions),
    )

    return {name: predictions[name] for name in TARGET_DISTANCES if name in predictions}
