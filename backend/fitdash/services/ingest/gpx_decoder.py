"""
GPX decoder - route-log XML into FileRecords.

GPX carries no summary fields, so distance, duration, heart-rate and
elevation aggregates are integrated from the track points. Output uses
the file-source unit system (km) like the FIT decoder.

Namespaces differ between GPX 1.0, 1.1 and the Garmin/Strava extension
schemas, so elements are matched on their local name only.
"""
import math
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Union
from xml.etree import ElementTree as ET

from fitdash.core.exceptions import DecodeError
from fitdash.core.logging import get_logger
from fitdash.services.ingest.records import FilePoint, FileRecord, FileSession

logger = get_logger(__name__)

EARTH_RADIUS_M = 6371000


def haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag


def _children(element: ET.Element, name: str) -> Iterator[ET.Element]:
    return (child for child in element if _local(child.tag) == name)


def _child(element: ET.Element, name: str) -> Optional[ET.Element]:
    return next(_children(element, name), None)


def _child_text(element: ET.Element, name: str) -> Optional[str]:
    child = _child(element, name)
    if child is None or child.text is None:
        return None
    return child.text.strip() or None


# fromisoformat on 3.10 only takes 3 or 6 fractional digits
_FRACTION = re.compile(r"\.(\d+)(?=[+-]\d\d:\d\d$|$)")

def _float(text: Optional[str]) -> Optional[float]:
    if text is None:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def parse_timestamp(text: Optional[str]) -> Optional[datetime]:
    """ISO 8601 timestamp to naive UTC, None when unparseable."""
    if not text:
        return None
    text = text.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: "." + m.group(1).ljust(6, "0")[:6], text)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class GpxDecoder:
    """
    Decoder for GPX track logs.

    Usage:
        decoder = GpxDecoder()
        record = decoder.decode("/tmp/upload.gpx")
    """

    default_sport = "running"

    def decode(self, source: Union[str, Path]) -> FileRecord:
        """
        Decode a GPX document.

        Args:
            source: Path to the GPX file

        Returns:
            FileRecord with computed session summary and flat points

        Raises:
            DecodeError: If the XML is malformed or carries no timestamp
        """
        try:
            root = ET.parse(str(source)).getroot()
        except (ET.ParseError, OSError) as e:
            raise DecodeError(f"Invalid GPX file: {e}") from e

        return self.decode_tree(root)

    def decode_string(self, content: str) -> FileRecord:
        """Decode a GPX document held in memory."""
        try:
            root = ET.fromstring(content)
        except ET.ParseError as e:
            raise DecodeError(f"Invalid GPX document: {e}") from e

        return self.decode_tree(root)

    def decode_tree(self, root: ET.Element) -> FileRecord:
        """Decode an already parsed GPX root element."""
        tracks = list(_children(root, "trk"))

        if not tracks:
            return self._metadata_only(root)

        track = tracks[0]
        points = self._extract_points(tracks)

        distance_m = self.calculate_distance(points)
        first_fix = next((p for p in points if p.lat is not None and p.lng is not None), None)
        session = FileSession(
            sport=_child_text(track, "type") or self.default_sport,
            name=_child_text(track, "name"),
            start_time=points[0].timestamp if points else self._metadata_time(root),
            total_timer_time=self.calculate_duration(points),
            total_distance=distance_m / 1000,
            avg_heart_rate=self.calculate_avg_hr(points),
            max_heart_rate=self.calculate_max_hr(points),
            total_ascent=self.calculate_elevation_gain(points) / 1000,
            start_position_lat=first_fix.lat if first_fix else None,
            start_position_long=first_fix.lng if first_fix else None,
        )

        if session.start_time is None:
            raise DecodeError("GPX track has no timestamps")

        # Points carry km like every other file-source record
        cumulative = 0.0
        previous = None
        for point in points:
            if previous is not None:
                cumulative += self._segment_distance(previous, point)
            point.distance = cumulative / 1000
            if point.altitude is not None:
                point.altitude = point.altitude / 1000
            previous = point

        logger.debug(
            "Decoded GPX file",
            points_count=len(points),
            distance_m=round(distance_m, 1),
            duration=session.total_timer_time,
        )

        return FileRecord(session=session, points=points, file_format="gpx")

    # ========================================
    # Extraction
    # ========================================

    def _metadata_only(self, root: ET.Element) -> FileRecord:
        """Minimal zero-valued record for documents without a track."""
        start_time = self._metadata_time(root)
        if start_time is None:
            raise DecodeError("GPX document has no track and no metadata time")

        return FileRecord(
            session=FileSession(sport="unknown", start_time=start_time),
            file_format="gpx",
        )

    @staticmethod
    def _metadata_time(root: ET.Element) -> Optional[datetime]:
        metadata = _child(root, "metadata")
        if metadata is None:
            return None
        return parse_timestamp(_child_text(metadata, "time"))

    def _extract_points(self, tracks: Iterable[ET.Element]) -> List[FilePoint]:
        """Points from every segment of every track, in document order."""
        points = []
        for track in tracks:
            for segment in _children(track, "trkseg"):
                for trkpt in _children(segment, "trkpt"):
                    points.append(self._build_point(trkpt))
        return points

    def _build_point(self, trkpt: ET.Element) -> FilePoint:
        point = FilePoint(
            timestamp=parse_timestamp(_child_text(trkpt, "time")),
            lat=_float(trkpt.get("lat")),
            lng=_float(trkpt.get("lon")),
            altitude=_float(_child_text(trkpt, "ele")),
        )

        extensions = _child(trkpt, "extensions")
        if extensions is not None:
            for element in extensions.iter():
                name = _local(element.tag).lower()
                if name == "hr":
                    point.heart_rate = _float(element.text)
                elif name == "cad":
                    point.cadence = _float(element.text)
                elif name in ("atemp", "temp"):
                    point.temperature = _float(element.text)
                elif name == "power":
                    point.power = _float(element.text)

        return point

    # ========================================
    # Aggregates
    # ========================================

    @staticmethod
    def _segment_distance(a: FilePoint, b: FilePoint) -> float:
        if None in (a.lat, a.lng, b.lat, b.lng):
            return 0.0
        return haversine(a.lat, a.lng, b.lat, b.lng)

    def calculate_distance(self, points: List[FilePoint]) -> float:
        """Sum of great-circle distances between consecutive points, meters."""
        return sum(
            self._segment_distance(points[i - 1], points[i])
            for i in range(1, len(points))
        )

    @staticmethod
    def calculate_duration(points: List[FilePoint]) -> float:
        """Seconds between first and last point, zero under two points."""
        if len(points) < 2:
            return 0.0
        start = points[0].timestamp
        end = points[-1].timestamp
        if start is None or end is None:
            return 0.0
        return (end - start).total_seconds()

    @staticmethod
    def calculate_avg_hr(points: List[FilePoint]) -> Optional[float]:
        """Mean over points that carry heart rate only."""
        values = [p.heart_rate for p in points if p.heart_rate]
        if not values:
            return None
        return sum(values) / len(values)

    @staticmethod
    def calculate_max_hr(points: List[FilePoint]) -> Optional[float]:
        values = [p.heart_rate for p in points if p.heart_rate]
        return max(values) if values else None

    @staticmethod
    def calculate_elevation_gain(points: List[FilePoint]) -> float:
        """Sum of positive elevation deltas, meters. Descents do not subtract."""
        gain = 0.0
        for i in range(1, len(points)):
            previous, current = points[i - 1].altitude, points[i].altitude
            if previous is None or current is None:
                continue
            if current > previous:
                gain += current - previous
        return gain


def decode_gpx_file(path: Union[str, Path]) -> FileRecord:
    """
    Decode an uploaded GPX file and remove it from temporary storage.

    The file is removed whether decoding succeeds or fails.
    """
    try:
        return GpxDecoder().decode(Path(path))
    finally:
        Path(path).unlink(missing_ok=True)
