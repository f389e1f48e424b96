"""
Source records - typed intermediate records per ingestion source.

FileRecord holds what the file decoders produce, in the file-source unit
system (distances and elevations in km, speeds in km/h, per-leg cadence).
ApiRecord wraps a Strava activity payload as received (meters, m/s,
per-leg cadence). Both are converted immediately into a CanonicalActivity
by the adapters; nothing downstream sees them.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union


@dataclass
class FileSession:
    """Session-level summary of a decoded file."""
    sport: str = "unknown"
    sub_sport: Optional[str] = None
    name: Optional[str] = None
    start_time: Optional[datetime] = None
    total_timer_time: float = 0.0
    total_elapsed_time: Optional[float] = None
    total_distance: float = 0.0          # km
    total_calories: float = 0.0
    avg_heart_rate: Optional[float] = None
    max_heart_rate: Optional[float] = None
    avg_speed: Optional[float] = None    # km/h
    max_speed: Optional[float] = None
    total_ascent: Optional[float] = None     # km
    total_descent: Optional[float] = None
    avg_cadence: Optional[float] = None      # per leg
    max_cadence: Optional[float] = None
    avg_power: Optional[float] = None
    max_power: Optional[float] = None
    normalized_power: Optional[float] = None
    avg_vertical_oscillation: Optional[float] = None
    avg_stance_time: Optional[float] = None
    avg_vertical_ratio: Optional[float] = None
    avg_step_length: Optional[float] = None
    avg_temperature: Optional[float] = None
    max_temperature: Optional[float] = None
    total_training_effect: Optional[float] = None
    total_anaerobic_training_effect: Optional[float] = None
    start_position_lat: Optional[float] = None   # degrees
    start_position_long: Optional[float] = None
    device_name: Optional[str] = None


@dataclass
class FileLap:
    """Lap as decoded from a file."""
    start_time: Optional[datetime] = None
    total_timer_time: float = 0.0
    total_distance: float = 0.0          # km
    avg_speed: Optional[float] = None    # km/h
    max_speed: Optional[float] = None
    avg_heart_rate: Optional[float] = None
    max_heart_rate: Optional[float] = None
    avg_cadence: Optional[float] = None  # per leg
    max_cadence: Optional[float] = None
    total_calories: Optional[float] = None
    avg_power: Optional[float] = None
    total_ascent: Optional[float] = None     # km
    total_descent: Optional[float] = None
    avg_vertical_oscillation: Optional[float] = None
    avg_stance_time: Optional[float] = None
    avg_vertical_ratio: Optional[float] = None
    avg_step_length: Optional[float] = None
    intensity: Optional[str] = None


@dataclass
class FilePoint:
    """Time-series sample as decoded from a file."""
    timestamp: Optional[datetime] = None
    elapsed_time: Optional[float] = None
    distance: Optional[float] = None     # km
    speed: Optional[float] = None        # km/h
    heart_rate: Optional[float] = None
    cadence: Optional[float] = None      # per leg
    temperature: Optional[float] = None
    power: Optional[float] = None
    vertical_oscillation: Optional[float] = None
    vertical_ratio: Optional[float] = None
    step_length: Optional[float] = None
    altitude: Optional[float] = None     # km
    lat: Optional[float] = None
    lng: Optional[float] = None


@dataclass
class FileRecord:
    """Decoded upload: one session plus flat laps and points."""
    session: FileSession
    laps: List[FileLap] = field(default_factory=list)
    points: List[FilePoint] = field(default_factory=list)
    file_format: str = "fit"
    file_name: Optional[str] = None


@dataclass
class ApiRecord:
    """Polled API payload, summary or rich detail."""
    payload: Dict[str, Any]
    detailed: bool = False


SourceRecord = Union[FileRecord, ApiRecord]
