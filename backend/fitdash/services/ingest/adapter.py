"""
Data Source Adapters - Normalize source records into CanonicalActivity.

Supported sources:
- Uploaded FIT/GPX files (FileRecord, km / km/h / per-leg cadence)
- Strava API (ApiRecord, m / m/s / per-leg cadence)

All optionality is resolved here; downstream code only sees the strict
canonical type.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from fitdash.core.exceptions import DecodeError
from fitdash.core.logging import get_logger
from fitdash.services.ingest.canonical import (
    ActivityCategory,
    BestEffort,
    CanonicalActivity,
    Lap,
    Point,
    Provenance,
    RunningSubType,
    Split,
)
from fitdash.services.ingest.fit_decoder import has_gps, is_indoor
from fitdash.services.ingest.gpx_decoder import parse_timestamp
from fitdash.services.ingest.records import (
    ApiRecord,
    FileLap,
    FilePoint,
    FileRecord,
    SourceRecord,
)
from fitdash.services.ingest.units import (
    cadence_to_spm,
    canonicalize_elevation,
    canonicalize_lap_distance,
    km_to_meters,
    map_category,
    ms_to_kmh,
    pace_from_kmh,
    pace_from_ms,
)

logger = get_logger(__name__)


def _positive(value: Any) -> Optional[float]:
    """Positive float or None; zero and garbage both mean unknown."""
    if value is None:
        return None
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


def _pace_from_distance(moving_time: float, distance_m: float) -> Optional[float]:
    """Minutes per km from totals, used when no speed was recorded."""
    if moving_time <= 0 or distance_m <= 0:
        return None
    return (moving_time / 60) / (distance_m / 1000)


class RawDataAdapter(ABC):
    """Abstract base class for source adapters."""

    # Registry key used by get_adapter
    source_name: str = "unknown"

    @abstractmethod
    def normalize(self, record: SourceRecord) -> CanonicalActivity:
        """
        Normalize a source record to the canonical format.

        Args:
            record: Record produced by a decoder or the API client

        Returns:
            CanonicalActivity with canonical units
        """
        pass

    @staticmethod
    def _durations(moving: Any, elapsed: Any) -> Tuple[float, Optional[float]]:
        """Non-negative moving time, elapsed time never below moving time."""
        moving_time = max(0.0, float(moving or 0))
        if elapsed is None:
            return moving_time, None
        return moving_time, max(float(elapsed), moving_time)


class FileAdapter(RawDataAdapter):
    """
    Adapter for decoded FIT/GPX uploads.

    File records provide sensor-rich data:
    - Per-second samples (points)
    - Device laps and running dynamics
    - No free-text metadata beyond a track name
    """

    source_name = "file"

    SUB_SPORT_MAP = {
        "treadmill": RunningSubType.TREADMILL,
        "trail": RunningSubType.TRAIL,
        "virtual_activity": RunningSubType.VIRTUAL,
    }

    def normalize(self, record: FileRecord) -> CanonicalActivity:
        """Normalize a decoded file."""
        session = record.session

        if session.start_time is None:
            raise DecodeError("Activity file has no start time")

        activity_type = self._raw_type(session.sport, session.sub_sport)
        category = map_category(activity_type)
        moving_time, elapsed_time = self._durations(
            session.total_timer_time, session.total_elapsed_time
        )
        distance = km_to_meters(session.total_distance)

        average_speed = _positive(session.avg_speed)
        average_pace = pace_from_kmh(average_speed) or _pace_from_distance(moving_time, distance)

        points = [self._point(p) for p in record.points]
        altitudes = [p.altitude for p in points if p.altitude is not None]

        activity = CanonicalActivity(
            activity_type=activity_type,
            category=category,
            source=Provenance.FILE_UPLOAD,
            running_sub_type=self._sub_type(category, session.sub_sport),
            is_indoor=is_indoor(session),
            name=session.name,
            file_name=record.file_name,
            start_time=session.start_time,
            moving_time=moving_time,
            elapsed_time=elapsed_time,
            distance=distance,
            elevation_gain=canonicalize_elevation(session.total_ascent),
            elevation_loss=canonicalize_elevation(session.total_descent),
            elev_high=max(altitudes) if altitudes else None,
            elev_low=min(altitudes) if altitudes else None,
            average_speed=average_speed,
            max_speed=_positive(session.max_speed),
            average_pace=average_pace,
            average_hr=_positive(session.avg_heart_rate),
            max_hr=_positive(session.max_heart_rate),
            avg_cadence=cadence_to_spm(session.avg_cadence),
            max_cadence=cadence_to_spm(session.max_cadence),
            avg_power=_positive(session.avg_power),
            max_power=_positive(session.max_power),
            normalized_power=_positive(session.normalized_power),
            avg_vertical_oscillation=_positive(session.avg_vertical_oscillation),
            avg_stance_time=_positive(session.avg_stance_time),
            avg_vertical_ratio=_positive(session.avg_vertical_ratio),
            avg_step_length=_positive(session.avg_step_length),
            avg_temperature=session.avg_temperature,
            max_temperature=session.max_temperature,
            calories=_positive(session.total_calories) or 0.0,
            training_effect=_positive(session.total_training_effect),
            anaerobic_effect=_positive(session.total_anaerobic_training_effect),
            has_gps=has_gps(session),
            start_lat=session.start_position_lat,
            start_lng=session.start_position_long,
            device_name=session.device_name,
            laps=[self._lap(i, lap) for i, lap in enumerate(record.laps)],
            points=points,
            has_detailed_data=len(points) > 0,
        )

        logger.debug(
            "Normalized file activity",
            file_format=record.file_format,
            category=category.value,
            distance=round(distance, 1),
            laps_count=activity.lap_count,
        )

        return activity

    @staticmethod
    def _raw_type(sport: Optional[str], sub_sport: Optional[str]) -> str:
        """FIT stores strength sessions as sport=training, sub_sport=strength_training."""
        if sub_sport and "strength" in sub_sport.lower():
            return sub_sport
        return sport or "unknown"

    def _sub_type(
        self,
        category: ActivityCategory,
        sub_sport: Optional[str]
    ) -> Optional[RunningSubType]:
        if category != ActivityCategory.RUNNING:
            return None
        return self.SUB_SPORT_MAP.get((sub_sport or "").lower(), RunningSubType.OUTDOOR)

    @staticmethod
    def _lap(index: int, lap: FileLap) -> Lap:
        return Lap(
            index=index,
            start_time=lap.start_time,
            total_time=max(0.0, float(lap.total_timer_time or 0)),
            distance=canonicalize_lap_distance(lap.total_distance),
            avg_speed=_positive(lap.avg_speed),
            max_speed=_positive(lap.max_speed),
            avg_hr=_positive(lap.avg_heart_rate),
            max_hr=_positive(lap.max_heart_rate),
            avg_cadence=cadence_to_spm(lap.avg_cadence),
            max_cadence=cadence_to_spm(lap.max_cadence),
            calories=_positive(lap.total_calories),
            avg_power=_positive(lap.avg_power),
            elevation_gain=canonicalize_elevation(lap.total_ascent),
            elevation_loss=canonicalize_elevation(lap.total_descent),
            avg_vertical_oscillation=_positive(lap.avg_vertical_oscillation),
            avg_stance_time=_positive(lap.avg_stance_time),
            avg_vertical_ratio=_positive(lap.avg_vertical_ratio),
            avg_step_length=_positive(lap.avg_step_length),
            intensity=lap.intensity,
        )

    @staticmethod
    def _point(point: FilePoint) -> Point:
        return Point(
            timestamp=point.timestamp,
            elapsed_time=point.elapsed_time,
            distance=point.distance * 1000 if point.distance is not None else None,
            speed=point.speed,
            heart_rate=_positive(point.heart_rate),
            cadence=cadence_to_spm(point.cadence),
            temperature=point.temperature,
            power=point.power,
            vertical_oscillation=point.vertical_oscillation,
            vertical_ratio=point.vertical_ratio,
            step_length=point.step_length,
            altitude=canonicalize_elevation(point.altitude),
            lat=point.lat,
            lng=point.lng,
        )


class StravaAdapter(RawDataAdapter):
    """
    Adapter for Strava API data.

    Strava provides:
    - Activity summary (list endpoint)
    - Laps, metric splits and best efforts (detail endpoint)
    - Free-text name/description, gear and map polylines
    """

    source_name = "strava"

    SPORT_TYPE_MAP = {
        "trailrun": RunningSubType.TRAIL,
        "virtualrun": RunningSubType.VIRTUAL,
        "treadmill": RunningSubType.TREADMILL,
    }

    def normalize(self, record: ApiRecord) -> CanonicalActivity:
        """Normalize a Strava activity payload."""
        raw = record.payload

        start_time = parse_timestamp(raw.get("start_date"))
        if start_time is None:
            raise DecodeError(f"Strava activity {raw.get('id')} has no start_date")

        activity_type = raw.get("sport_type") or raw.get("type") or "unknown"
        category = map_category(activity_type)
        moving_time, elapsed_time = self._durations(
            raw.get("moving_time"), raw.get("elapsed_time")
        )
        is_trainer = bool(raw.get("trainer"))
        start_latlng = raw.get("start_latlng") or []
        map_data = raw.get("map") or {}

        activity = CanonicalActivity(
            external_id=int(raw["id"]),
            activity_type=activity_type,
            category=category,
            source=Provenance.POLLED_API,
            running_sub_type=self._sub_type(category, activity_type, is_trainer),
            is_indoor=is_trainer,
            name=raw.get("name"),
            description=raw.get("description"),
            timezone=raw.get("timezone"),
            start_time=start_time,
            moving_time=moving_time,
            elapsed_time=elapsed_time,
            distance=_positive(raw.get("distance")) or 0.0,
            elevation_gain=raw.get("total_elevation_gain"),
            elev_high=raw.get("elev_high"),
            elev_low=raw.get("elev_low"),
            average_speed=ms_to_kmh(raw.get("average_speed")),
            max_speed=ms_to_kmh(raw.get("max_speed")),
            average_pace=pace_from_ms(raw.get("average_speed")),
            average_hr=_positive(raw.get("average_heartrate")),
            max_hr=_positive(raw.get("max_heartrate")),
            avg_cadence=cadence_to_spm(raw.get("average_cadence")),
            avg_power=_positive(raw.get("average_watts")),
            max_power=_positive(raw.get("max_watts")),
            normalized_power=_positive(raw.get("weighted_average_watts")),
            avg_temperature=raw.get("average_temp"),
            calories=_positive(raw.get("calories")) or 0.0,
            suffer_score=_positive(raw.get("suffer_score")),
            perceived_exertion=_positive(raw.get("perceived_exertion")),
            has_gps=not is_trainer and len(start_latlng) == 2,
            start_lat=start_latlng[0] if len(start_latlng) == 2 else None,
            start_lng=start_latlng[1] if len(start_latlng) == 2 else None,
            map_polyline=map_data.get("polyline"),
            summary_polyline=map_data.get("summary_polyline"),
            gear=self._gear(raw.get("gear")),
            device_name=raw.get("device_name"),
            laps=self._laps(raw.get("laps") or []),
            splits=self._splits(raw.get("splits_metric") or []),
            best_efforts=self._best_efforts(raw.get("best_efforts") or []),
            has_detailed_data=record.detailed,
        )

        logger.debug(
            "Normalized Strava activity",
            external_id=activity.external_id,
            category=category.value,
            detailed=record.detailed,
            laps_count=activity.lap_count,
        )

        return activity

    def _sub_type(
        self,
        category: ActivityCategory,
        sport_type: str,
        is_trainer: bool
    ) -> Optional[RunningSubType]:
        if category != ActivityCategory.RUNNING:
            return None
        if is_trainer:
            return RunningSubType.TREADMILL
        return self.SPORT_TYPE_MAP.get(sport_type.lower(), RunningSubType.OUTDOOR)

    @staticmethod
    def _gear(gear: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if not gear:
            return None
        return {
            "id": gear.get("id"),
            "name": gear.get("name"),
            "nickname": gear.get("nickname"),
            "distance": gear.get("distance"),
        }

    @staticmethod
    def _laps(raw_laps: List[Dict[str, Any]]) -> List[Lap]:
        laps = []
        for idx, lap in enumerate(raw_laps):
            laps.append(Lap(
                index=idx,
                start_time=parse_timestamp(lap.get("start_date")),
                total_time=float(lap.get("moving_time") or lap.get("elapsed_time") or 0),
                distance=_positive(lap.get("distance")) or 0.0,
                avg_speed=ms_to_kmh(lap.get("average_speed")),
                max_speed=ms_to_kmh(lap.get("max_speed")),
                avg_hr=_positive(lap.get("average_heartrate")),
                max_hr=_positive(lap.get("max_heartrate")),
                avg_cadence=cadence_to_spm(lap.get("average_cadence")),
                avg_power=_positive(lap.get("average_watts")),
                elevation_gain=lap.get("total_elevation_gain"),
                pace_zone=lap.get("pace_zone"),
            ))
        return laps

    @staticmethod
    def _splits(raw_splits: List[Dict[str, Any]]) -> List[Split]:
        return [
            Split(
                split=int(split.get("split", idx + 1)),
                distance=float(split.get("distance") or 0),
                elapsed_time=float(split.get("elapsed_time") or 0),
                moving_time=float(split.get("moving_time") or 0),
                avg_speed=ms_to_kmh(split.get("average_speed")),
                avg_hr=_positive(split.get("average_heartrate")),
                elevation_diff=split.get("elevation_difference"),
                pace_zone=split.get("pace_zone"),
            )
            for idx, split in enumerate(raw_splits)
        ]

    @staticmethod
    def _best_efforts(raw_efforts: List[Dict[str, Any]]) -> List[BestEffort]:
        return [
            BestEffort(
                name=str(effort.get("name", "")),
                distance=float(effort.get("distance") or 0),
                elapsed_time=float(effort.get("elapsed_time") or 0),
                moving_time=float(effort.get("moving_time") or 0),
                pr_rank=effort.get("pr_rank"),
            )
            for effort in raw_efforts
        ]


# Adapter registry
_ADAPTERS = {
    adapter.source_name: adapter
    for adapter in (FileAdapter, StravaAdapter)
}


def get_adapter(source: str) -> RawDataAdapter:
    """
    Get the adapter for a data source.

    Args:
        source: Data source name (file, strava)

    Returns:
        Adapter instance

    Raises:
        ValueError: If source is not supported
    """
    adapter_class = _ADAPTERS.get(source.lower())

    if not adapter_class:
        raise ValueError(f"Unknown data source: {source}")

    return adapter_class()


def normalize_record(record: SourceRecord) -> CanonicalActivity:
    """Normalize any source record with the matching adapter."""
    if isinstance(record, FileRecord):
        return FileAdapter().normalize(record)
    if isinstance(record, ApiRecord):
        return StravaAdapter().normalize(record)
    raise TypeError(f"Unsupported source record: {type(record).__name__}")
