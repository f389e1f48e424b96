"""
Canonical activity representation.

Every source record (file upload or polled API) is converted into a
CanonicalActivity at the ingestion boundary. Units are fixed:

- distances and elevations in meters
- speeds in km/h, pace in minutes per km
- cadence in full-body steps per minute
- durations in seconds, timestamps as naive UTC datetimes

A zero or None numeric field means "unknown", never "measured zero".
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ActivityCategory(str, Enum):
    """Unified activity taxonomy."""
    RUNNING = "running"
    CYCLING = "cycling"
    STRENGTH = "strength"
    SWIMMING = "swimming"
    WALKING = "walking"
    OTHER = "other"


class RunningSubType(str, Enum):
    """Where a run happened."""
    OUTDOOR = "outdoor"
    TREADMILL = "treadmill"
    TRAIL = "trail"
    VIRTUAL = "virtual"


class WorkoutType(str, Enum):
    """Training purpose of a running session."""
    INTERVALS = "intervals"
    TEMPO = "tempo"
    LONG_RUN = "long_run"
    EASY = "easy"
    RECOVERY = "recovery"
    RACE = "race"
    FARTLEK = "fartlek"
    GENERAL = "general"


class Provenance(str, Enum):
    """Which ingestion source(s) contributed to an activity."""
    FILE_UPLOAD = "file_upload"
    POLLED_API = "polled_api"
    MERGED = "merged_both"


@dataclass
class Lap:
    """Per-lap summary."""
    index: int
    start_time: Optional[datetime] = None
    total_time: float = 0.0          # seconds
    distance: float = 0.0            # meters
    avg_speed: Optional[float] = None    # km/h
    max_speed: Optional[float] = None
    avg_hr: Optional[float] = None
    max_hr: Optional[float] = None
    avg_cadence: Optional[float] = None  # spm
    max_cadence: Optional[float] = None
    calories: Optional[float] = None
    avg_power: Optional[float] = None
    elevation_gain: Optional[float] = None
    elevation_loss: Optional[float] = None
    avg_vertical_oscillation: Optional[float] = None
    avg_stance_time: Optional[float] = None
    avg_vertical_ratio: Optional[float] = None
    avg_step_length: Optional[float] = None
    intensity: Optional[str] = None
    pace_zone: Optional[int] = None

    @property
    def pace(self) -> Optional[float]:
        """Minutes per km, None when distance or time is unknown."""
        if self.distance <= 0 or self.total_time <= 0:
            return None
        return (self.total_time / 60) / (self.distance / 1000)


@dataclass
class Split:
    """Fixed-distance split summary."""
    split: int
    distance: float = 0.0
    elapsed_time: float = 0.0
    moving_time: float = 0.0
    avg_speed: Optional[float] = None    # km/h
    avg_hr: Optional[float] = None
    elevation_diff: Optional[float] = None
    pace_zone: Optional[int] = None


@dataclass
class BestEffort:
    """Named-distance best fragment inside one activity."""
    name: str
    distance: float = 0.0
    elapsed_time: float = 0.0
    moving_time: float = 0.0
    pr_rank: Optional[int] = None


@dataclass
class Point:
    """One time-series sample."""
    timestamp: Optional[datetime] = None
    elapsed_time: Optional[float] = None
    distance: Optional[float] = None     # meters
    speed: Optional[float] = None        # km/h
    heart_rate: Optional[float] = None
    cadence: Optional[float] = None      # spm
    temperature: Optional[float] = None
    power: Optional[float] = None
    vertical_oscillation: Optional[float] = None
    vertical_ratio: Optional[float] = None
    step_length: Optional[float] = None
    altitude: Optional[float] = None     # meters
    lat: Optional[float] = None
    lng: Optional[float] = None


@dataclass
class WorkoutAnalysis:
    """Lap-variance analysis reported next to the workout type."""
    type: str = "unknown"
    confidence: int = 0
    fastest_lap_pace: Optional[float] = None
    slowest_lap_pace: Optional[float] = None
    pace_variation: Optional[float] = None
    avg_fast_pace: Optional[float] = None
    avg_slow_pace: Optional[float] = None


@dataclass
class CanonicalActivity:
    """
    Strict canonical activity.

    Field names match the columns of the Activity model one-to-one so the
    store can map between them generically.
    """
    activity_type: str
    start_time: datetime
    moving_time: float
    category: ActivityCategory = ActivityCategory.OTHER
    source: Provenance = Provenance.FILE_UPLOAD

    id: Optional[str] = None
    external_id: Optional[int] = None

    running_sub_type: Optional[RunningSubType] = None
    workout_type: Optional[WorkoutType] = None
    is_indoor: bool = False

    name: Optional[str] = None
    description: Optional[str] = None
    timezone: Optional[str] = None
    file_name: Optional[str] = None

    elapsed_time: Optional[float] = None

    distance: float = 0.0
    elevation_gain: Optional[float] = None
    elevation_loss: Optional[float] = None
    elev_high: Optional[float] = None
    elev_low: Optional[float] = None

    average_speed: Optional[float] = None
    max_speed: Optional[float] = None
    average_pace: Optional[float] = None

    average_hr: Optional[float] = None
    max_hr: Optional[float] = None

    avg_cadence: Optional[float] = None
    max_cadence: Optional[float] = None

    avg_power: Optional[float] = None
    max_power: Optional[float] = None
    normalized_power: Optional[float] = None

    # Running dynamics (device-measured)
    avg_vertical_oscillation: Optional[float] = None
    avg_stance_time: Optional[float] = None
    avg_vertical_ratio: Optional[float] = None
    avg_step_length: Optional[float] = None

    avg_temperature: Optional[float] = None
    max_temperature: Optional[float] = None

    calories: float = 0.0
    training_effect: Optional[float] = None
    anaerobic_effect: Optional[float] = None
    suffer_score: Optional[float] = None
    perceived_exertion: Optional[float] = None

    has_gps: bool = False
    start_lat: Optional[float] = None
    start_lng: Optional[float] = None
    map_polyline: Optional[str] = None
    summary_polyline: Optional[str] = None

    gear: Optional[Dict[str, Any]] = None
    device_name: Optional[str] = None

    laps: List[Lap] = field(default_factory=list)
    splits: List[Split] = field(default_factory=list)
    best_efforts: List[BestEffort] = field(default_factory=list)
    points: List[Point] = field(default_factory=list)

    workout_analysis: Optional[WorkoutAnalysis] = None

    has_detailed_data: bool = False

    @property
    def lap_count(self) -> int:
        return len(self.laps)

    @property
    def has_points(self) -> bool:
        return len(self.points) > 0
