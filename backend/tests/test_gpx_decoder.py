"""
Tests for the GPX decoder and upload dispatch.
"""
from datetime import datetime

import pytest

from factories import gpx_document
from fitdash.core.exceptions import DecodeError, UnsupportedFormatError
from fitdash.services.ingest.adapter import normalize_record
from fitdash.services.ingest.canonical import ActivityCategory
from fitdash.services.ingest.gpx_decoder import GpxDecoder, haversine, parse_timestamp
from fitdash.services.ingest.records import FilePoint
from fitdash.services.ingest.uploads import decode_upload


class TestHaversine:

    def test_one_degree_of_latitude(self):
        assert haversine(0.0, 0.0, 1.0, 0.0) == pytest.approx(111195, rel=1e-3)

    def test_same_point_is_zero(self):
        assert haversine(40.0, -3.7, 40.0, -3.7) == 0.0


class TestParseTimestamp:

    def test_zulu_becomes_naive_utc(self):
        assert parse_timestamp("2024-05-06T12:00:00Z") == datetime(2024, 5, 6, 12, 0)

    def test_offset_is_converted_to_utc(self):
        assert parse_timestamp("2024-05-06T14:00:00+02:00") == datetime(2024, 5, 6, 12, 0)

    def test_short_fractions_are_padded(self):
        assert parse_timestamp("2024-05-06T12:00:00.5Z") == datetime(2024, 5, 6, 12, 0, 0, 500000)
        assert parse_timestamp("2024-05-06T12:00:00.25+00:00") == datetime(2024, 5, 6, 12, 0, 0, 250000)

    def test_long_fraction_is_truncated_to_microseconds(self):
        assert parse_timestamp("2024-05-06T12:00:00.1234567Z") == datetime(2024, 5, 6, 12, 0, 0, 123456)

    def test_garbage_is_none(self):
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp(None) is None


class TestGpxDecoder:
    """Aggregates integrated from track points."""

    def test_three_points_one_minute_apart(self):
        """Duration 120 s and about 1000 m of haversine distance."""
        record = GpxDecoder().decode_string(gpx_document())

        assert len(record.points) == 3
        assert record.session.total_timer_time == 120
        assert record.session.total_distance * 1000 == pytest.approx(1000, rel=0.01)
        assert record.session.start_time == datetime(2024, 5, 6, 12, 0)
        assert record.session.name == "Lunch Run"

    def test_heart_rate_only_over_points_that_carry_it(self):
        """The point without heart rate is excluded, not counted as zero."""
        record = GpxDecoder().decode_string(gpx_document())

        assert record.session.avg_heart_rate == 145
        assert record.session.max_heart_rate == 150

    def test_no_heart_rate_at_all(self):
        record = GpxDecoder().decode_string(gpx_document(with_heart_rate=False))

        assert record.session.avg_heart_rate is None
        assert record.session.max_heart_rate is None

    def test_elevation_gain_ignores_descents(self):
        points = [FilePoint(altitude=a) for a in (100.0, 110.0, 105.0, 120.0)]

        assert GpxDecoder.calculate_elevation_gain(points) == 25.0

    def test_duration_needs_two_points(self):
        assert GpxDecoder.calculate_duration([FilePoint(timestamp=datetime(2024, 5, 6))]) == 0.0
        assert GpxDecoder.calculate_duration([]) == 0.0

    def test_multiple_segments_are_flattened_in_order(self):
        document = (
            '<gpx xmlns="http://www.topografix.com/GPX/1/1"><trk>'
            '<trkseg><trkpt lat="40.0" lon="-3.7"><time>2024-05-06T12:00:00Z</time></trkpt></trkseg>'
            '<trkseg><trkpt lat="40.001" lon="-3.7"><time>2024-05-06T12:00:30Z</time></trkpt>'
            '<trkpt lat="40.002" lon="-3.7"><time>2024-05-06T12:01:00Z</time></trkpt></trkseg>'
            '</trk></gpx>'
        )

        record = GpxDecoder().decode_string(document)

        assert [p.lat for p in record.points] == [40.0, 40.001, 40.002]
        assert record.session.total_timer_time == 60

    def test_document_without_track_yields_metadata_record(self):
        document = (
            '<gpx xmlns="http://www.topografix.com/GPX/1/1">'
            '<metadata><time>2024-05-06T07:00:00Z</time></metadata>'
            '</gpx>'
        )

        record = GpxDecoder().decode_string(document)

        assert record.points == []
        assert record.session.start_time == datetime(2024, 5, 6, 7, 0)
        assert record.session.total_distance == 0.0
        assert record.session.total_timer_time == 0.0

    def test_malformed_xml_is_a_decode_error(self):
        with pytest.raises(DecodeError):
            GpxDecoder().decode_string("<gpx><trk><trkseg>")


class TestGpxNormalization:
    """Decoded GPX through the file adapter."""

    def test_canonical_activity(self):
        activity = normalize_record(GpxDecoder().decode_string(gpx_document()))

        assert activity.category == ActivityCategory.RUNNING
        assert activity.distance == pytest.approx(1000, rel=0.01)
        assert activity.moving_time == 120
        assert activity.elevation_gain == pytest.approx(5.0)
        assert activity.points[0].altitude == pytest.approx(600.0)
        assert activity.points[-1].distance == pytest.approx(activity.distance)
        assert activity.has_gps is True
        assert activity.has_detailed_data is True


class TestDecodeUpload:
    """Extension-based dispatch and temp file cleanup."""

    def test_gpx_upload(self, tmp_path):
        path = tmp_path / "tmp123.gpx"
        path.write_text(gpx_document())

        record = decode_upload(path, "Lunch_Run.GPX")

        assert record.file_format == "gpx"
        assert record.file_name == "Lunch_Run.GPX"
        assert not path.exists()

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "tmp123.tcx"
        path.write_text("<TrainingCenterDatabase/>")

        with pytest.raises(UnsupportedFormatError):
            decode_upload(path, "run.tcx")

        assert not path.exists()

    def test_malformed_gpx_is_removed(self, tmp_path):
        path = tmp_path / "tmp123.gpx"
        path.write_text("<gpx><trk>")

        with pytest.raises(DecodeError):
            decode_upload(path, "broken.gpx")

        assert not path.exists()
