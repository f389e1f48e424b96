"""
FIT decoder - binary activity files into FileRecords.

fitparse yields SI units (meters, m/s) and semicircle positions. The
decoder converts them into the file-source unit system (km, km/h,
degrees) so every FileRecord speaks the same units regardless of format.
"""
import struct
from pathlib import Path
from typing import Any, BinaryIO, List, Optional, Union

from fitparse import FitFile, FitParseError

from fitdash.core.exceptions import DecodeError
from fitdash.core.logging import get_logger
from fitdash.services.ingest.records import FileLap, FilePoint, FileRecord, FileSession

logger = get_logger(__name__)

SEMICIRCLE_TO_DEGREES = 180.0 / 2 ** 31

# Sub-sport tags that mark a session as indoor
INDOOR_SUB_SPORTS = frozenset({"treadmill", "indoor_cycling"})


class FitDecoder:
    """
    Decoder for FIT activity files.

    Usage:
        decoder = FitDecoder()
        record = decoder.decode("/tmp/upload.fit")
    """

    def decode(self, source: Union[str, Path, bytes, BinaryIO]) -> FileRecord:
        """
        Decode a FIT file.

        Args:
            source: Path, raw bytes or binary file object

        Returns:
            FileRecord with session summary, flat laps and flat points

        Raises:
            DecodeError: If the input is not a readable FIT file
        """
        try:
            fit = FitFile(str(source) if isinstance(source, Path) else source)
            messages = list(fit.get_messages())
        except (FitParseError, EOFError, ValueError, struct.error, OSError) as e:
            raise DecodeError(f"Invalid FIT file: {e}") from e

        sessions = []
        laps: List[FileLap] = []
        points: List[FilePoint] = []
        device_name: Optional[str] = None

        # Messages arrive in file order, laps and records stay flat
        for message in messages:
            if message.name == "session":
                sessions.append(message)
            elif message.name == "lap":
                laps.append(self._build_lap(message))
            elif message.name == "record":
                points.append(self._build_point(message))
            elif message.name == "file_id" and device_name is None:
                device_name = self._device_name(message)

        if not sessions and not points:
            raise DecodeError("FIT file has neither session nor record messages")

        session = self._build_session(sessions[0] if sessions else None, points)
        session.device_name = device_name

        logger.debug(
            "Decoded FIT file",
            sport=session.sport,
            sub_sport=session.sub_sport,
            laps_count=len(laps),
            points_count=len(points),
        )

        return FileRecord(session=session, laps=laps, points=points, file_format="fit")

    # ========================================
    # Message builders
    # ========================================

    def _build_session(self, message: Any, points: List[FilePoint]) -> FileSession:
        """Session summary, preferring enhanced fields over legacy ones."""
        if message is None:
            # Record-only file, derive what we can from the samples
            first = points[0]
            return FileSession(start_time=first.timestamp)

        value = message.get_value

        return FileSession(
            sport=str(value("sport") or "unknown"),
            sub_sport=self._str_or_none(value("sub_sport")),
            start_time=value("start_time"),
            total_timer_time=value("total_timer_time") or 0.0,
            total_elapsed_time=value("total_elapsed_time"),
            total_distance=self._length(value("total_distance")) or 0.0,
            total_calories=value("total_calories") or 0.0,
            avg_heart_rate=value("avg_heart_rate"),
            max_heart_rate=value("max_heart_rate"),
            avg_speed=self._speed(self._enhanced(message, "avg_speed")),
            max_speed=self._speed(self._enhanced(message, "max_speed")),
            total_ascent=self._length(value("total_ascent")),
            total_descent=self._length(value("total_descent")),
            avg_cadence=value("avg_cadence"),
            max_cadence=value("max_cadence"),
            avg_power=value("avg_power"),
            max_power=value("max_power"),
            normalized_power=value("normalized_power"),
            avg_vertical_oscillation=value("avg_vertical_oscillation"),
            avg_stance_time=value("avg_stance_time"),
            avg_vertical_ratio=value("avg_vertical_ratio"),
            avg_step_length=value("avg_step_length"),
            avg_temperature=value("avg_temperature"),
            max_temperature=value("max_temperature"),
            total_training_effect=value("total_training_effect"),
            total_anaerobic_training_effect=value("total_anaerobic_training_effect"),
            start_position_lat=self._degrees(value("start_position_lat")),
            start_position_long=self._degrees(value("start_position_long")),
        )

    def _build_lap(self, message: Any) -> FileLap:
        value = message.get_value

        return FileLap(
            start_time=value("start_time"),
            total_timer_time=value("total_timer_time") or 0.0,
            total_distance=self._length(value("total_distance")) or 0.0,
            avg_speed=self._speed(self._enhanced(message, "avg_speed")),
            max_speed=self._speed(self._enhanced(message, "max_speed")),
            avg_heart_rate=value("avg_heart_rate"),
            max_heart_rate=value("max_heart_rate"),
            avg_cadence=value("avg_cadence"),
            max_cadence=value("max_cadence"),
            total_calories=value("total_calories"),
            avg_power=value("avg_power"),
            total_ascent=self._length(value("total_ascent")),
            total_descent=self._length(value("total_descent")),
            avg_vertical_oscillation=value("avg_vertical_oscillation"),
            avg_stance_time=value("avg_stance_time"),
            avg_vertical_ratio=value("avg_vertical_ratio"),
            avg_step_length=value("avg_step_length"),
            intensity=self._str_or_none(value("intensity")),
        )

    def _build_point(self, message: Any) -> FilePoint:
        value = message.get_value

        return FilePoint(
            timestamp=value("timestamp"),
            elapsed_time=value("elapsed_time"),
            distance=self._length(value("distance")),
            speed=self._speed(self._enhanced(message, "speed")),
            heart_rate=value("heart_rate"),
            cadence=value("cadence"),
            temperature=value("temperature"),
            power=value("power"),
            vertical_oscillation=value("vertical_oscillation"),
            vertical_ratio=value("vertical_ratio"),
            step_length=value("step_length"),
            altitude=self._length(self._enhanced(message, "altitude")),
            lat=self._degrees(value("position_lat")),
            lng=self._degrees(value("position_long")),
        )

    def _device_name(self, message: Any) -> Optional[str]:
        manufacturer = message.get_value("manufacturer")
        product = message.get_value("product_name") or message.get_value("garmin_product")
        parts = [str(p) for p in (manufacturer, product) if p is not None]
        return " ".join(parts) or None

    # ========================================
    # Field helpers
    # ========================================

    @staticmethod
    def _enhanced(message: Any, field_name: str) -> Optional[float]:
        """Enhanced (higher precision) variant when present, legacy otherwise."""
        enhanced = message.get_value(f"enhanced_{field_name}")
        if enhanced is not None:
            return enhanced
        return message.get_value(field_name)

    @staticmethod
    def _length(meters: Optional[float]) -> Optional[float]:
        """Meters to km."""
        return meters / 1000 if meters is not None else None

    @staticmethod
    def _speed(speed_ms: Optional[float]) -> Optional[float]:
        """m/s to km/h."""
        return speed_ms * 3.6 if speed_ms is not None else None

    @staticmethod
    def _degrees(semicircles: Optional[int]) -> Optional[float]:
        if semicircles is None:
            return None
        return semicircles * SEMICIRCLE_TO_DEGREES

    @staticmethod
    def _str_or_none(value: Any) -> Optional[str]:
        return str(value) if value is not None else None


def is_indoor(session: FileSession) -> bool:
    """Whether the session's sub-sport is a known indoor marker."""
    return (session.sub_sport or "").lower() in INDOOR_SUB_SPORTS


def has_gps(session: FileSession) -> bool:
    """GPS only counts outdoors and when a start position was recorded."""
    return not is_indoor(session) and session.start_position_lat is not None


def decode_fit_file(path: Union[str, Path]) -> FileRecord:
    """
    Decode an uploaded FIT file and remove it from temporary storage.

    The file is removed whether decoding succeeds or fails.
    """
    try:
        return FitDecoder().decode(Path(path))
    finally:
        Path(path).unlink(missing_ok=True)
