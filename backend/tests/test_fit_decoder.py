"""
Tests for the FIT decoder and the file adapter.

Most tests patch fitparse out; messages are mocks answering get_value() the
way fitparse does (SI units, semicircle positions). TestRealFitFile feeds
fitparse actual FIT bytes.
"""
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
from fitparse import FitParseError

from factories import fit_document
from fitdash.core.exceptions import DecodeError
from fitdash.services.ingest.adapter import FileAdapter, normalize_record
from fitdash.services.ingest.canonical import ActivityCategory, Provenance, RunningSubType
from fitdash.services.ingest.fit_decoder import FitDecoder, decode_fit_file
from fitdash.services.ingest.records import FileRecord, FileSession

FIT_FILE = "fitdash.services.ingest.fit_decoder.FitFile"

START = datetime(2024, 5, 6, 7, 0, 0)

# 40.4168 degrees in semicircles
MADRID_LAT = int(40.4168 * 2 ** 31 / 180)


def fit_message(name, **values):
    message = MagicMock()
    message.name = name
    message.get_value.side_effect = lambda key: values.get(key)
    return message


def session_message(**overrides):
    values = {
        "sport": "running",
        "sub_sport": "generic",
        "start_time": START,
        "total_timer_time": 3000.0,
        "total_elapsed_time": 3100.0,
        "total_distance": 10000.0,
        "total_calories": 650,
        "avg_heart_rate": 148,
        "max_heart_rate": 172,
        "enhanced_avg_speed": 3.3333,
        "avg_speed": 3.3,
        "enhanced_max_speed": 4.5,
        "total_ascent": 85,
        "avg_cadence": 86,
        "start_position_lat": MADRID_LAT,
        "start_position_long": -44189000,
    }
    values.update(overrides)
    return fit_message("session", **values)


def lap_message(distance_m, timer_s):
    return fit_message(
        "lap",
        start_time=START,
        total_distance=distance_m,
        total_timer_time=timer_s,
        avg_cadence=85,
    )


def record_message(offset_s, distance_m, altitude_m, heart_rate=150):
    return fit_message(
        "record",
        timestamp=datetime(2024, 5, 6, 7, 0, offset_s),
        distance=distance_m,
        enhanced_speed=3.0,
        heart_rate=heart_rate,
        cadence=84,
        enhanced_altitude=altitude_m,
        position_lat=MADRID_LAT,
        position_long=-44189000,
    )


def decode(messages):
    with patch(FIT_FILE) as fit_file:
        fit_file.return_value.get_messages.return_value = messages
        return FitDecoder().decode(b"fit-bytes")


class TestFitDecoder:
    """Decoding session, lap and record messages."""

    def test_session_uses_file_units(self):
        """Meters become km, m/s becomes km/h."""
        record = decode([session_message()])

        assert record.session.total_distance == pytest.approx(10.0)
        assert record.session.avg_speed == pytest.approx(12.0, rel=1e-3)
        assert record.session.start_position_lat == pytest.approx(40.4168, abs=1e-4)

    def test_enhanced_fields_preferred(self):
        """enhanced_avg_speed wins over avg_speed when both are present."""
        record = decode([session_message(enhanced_avg_speed=3.5, avg_speed=3.0)])

        assert record.session.avg_speed == pytest.approx(3.5 * 3.6)

    def test_legacy_field_used_without_enhanced(self):
        record = decode([session_message(enhanced_avg_speed=None, avg_speed=3.0)])

        assert record.session.avg_speed == pytest.approx(10.8)

    def test_laps_and_points_stay_flat_and_ordered(self):
        messages = [
            fit_message("file_id", manufacturer="garmin", product_name="Forerunner 965"),
            record_message(0, 0.0, 650.0),
            lap_message(1000.0, 300.0),
            record_message(1, 3.0, 650.5),
            lap_message(1000.0, 290.0),
            record_message(2, 6.0, 651.0),
            session_message(),
        ]

        record = decode(messages)

        assert len(record.laps) == 2
        assert [p.timestamp.second for p in record.points] == [0, 1, 2]
        assert record.session.device_name == "garmin Forerunner 965"

    def test_fitparse_error_becomes_decode_error(self):
        with patch(FIT_FILE, side_effect=FitParseError("bad header")):
            with pytest.raises(DecodeError):
                FitDecoder().decode(b"garbage")

    def test_file_without_session_or_records_fails(self):
        with pytest.raises(DecodeError):
            decode([fit_message("file_id", manufacturer="garmin")])

    def test_record_only_file_takes_start_from_first_point(self):
        record = decode([record_message(0, 0.0, 650.0), record_message(1, 3.0, 650.0)])

        assert record.session.start_time == datetime(2024, 5, 6, 7, 0, 0)
        assert len(record.points) == 2


class TestDecodeFitFile:
    """Temporary upload cleanup."""

    def test_file_removed_after_success(self, tmp_path):
        path = tmp_path / "upload.fit"
        path.write_bytes(b"fit-bytes")

        with patch(FIT_FILE) as fit_file:
            fit_file.return_value.get_messages.return_value = [session_message()]
            record = decode_fit_file(path)

        assert record.session.sport == "running"
        assert not path.exists()

    def test_file_removed_after_failure(self, tmp_path):
        path = tmp_path / "broken.fit"
        path.write_bytes(b"not a fit file")

        with patch(FIT_FILE, side_effect=FitParseError("bad header")):
            with pytest.raises(DecodeError):
                decode_fit_file(path)

        assert not path.exists()


class TestRealFitFile:
    """Bytes on disk through fitparse, nothing patched."""

    def test_session_laps_and_records(self):
        record = FitDecoder().decode(fit_document([1000.0, 1000.0]))

        assert record.session.sport == "running"
        assert record.session.start_time == START
        assert record.session.total_distance == pytest.approx(2.0)
        assert record.session.total_timer_time == pytest.approx(600.0)
        assert [lap.total_distance for lap in record.laps] == [pytest.approx(1.0)] * 2
        assert [p.timestamp for p in record.points] == [
            START,
            datetime(2024, 5, 6, 7, 5, 0),
            datetime(2024, 5, 6, 7, 10, 0),
        ]
        assert record.points[-1].heart_rate == 150

    def test_uploaded_treadmill_file_normalizes(self, tmp_path):
        path = tmp_path / "treadmill.fit"
        path.write_bytes(fit_document([1000.0, 1000.0, 1000.0], sub_sport=1))

        activity = normalize_record(decode_fit_file(path))

        assert activity.distance == pytest.approx(3000.0)
        assert activity.moving_time == pytest.approx(900.0)
        assert activity.average_pace == pytest.approx(5.0)
        assert activity.running_sub_type == RunningSubType.TREADMILL
        assert activity.points[-1].distance == pytest.approx(3000.0)
        assert len(activity.laps) == 3
        assert not path.exists()

    def test_corrupted_checksum_is_a_decode_error(self):
        data = bytearray(fit_document())
        data[-1] ^= 0xFF

        with pytest.raises(DecodeError):
            FitDecoder().decode(bytes(data))


class TestFileAdapter:
    """Decoded file to canonical activity."""

    def test_ten_km_session_normalizes_to_meters(self):
        """A session distance of 10 (km) is stored as 10000 m."""
        record = FileRecord(session=FileSession(
            sport="running",
            start_time=START,
            total_timer_time=3000.0,
            total_distance=10,
        ))

        activity = FileAdapter().normalize(record)

        assert activity.distance == 10000
        assert activity.category == ActivityCategory.RUNNING
        assert activity.source == Provenance.FILE_UPLOAD
        assert activity.average_pace == pytest.approx(5.0)

    def test_decoded_session_end_to_end(self):
        messages = [
            lap_message(5000.0, 1500.0),
            record_message(0, 0.0, 650.0),
            lap_message(5000.0, 1500.0),
            record_message(1, 3.0, 652.0),
            session_message(),
        ]

        activity = normalize_record(decode(messages))

        assert activity.distance == pytest.approx(10000.0)
        assert activity.avg_cadence == 172
        assert activity.elevation_gain == pytest.approx(85.0)
        assert [lap.distance for lap in activity.laps] == [pytest.approx(5000.0)] * 2
        assert activity.laps[0].avg_cadence == 170
        assert activity.points[1].distance == pytest.approx(3.0)
        assert activity.points[1].cadence == 168
        assert activity.elev_high == pytest.approx(652.0)
        assert activity.elev_low == pytest.approx(650.0)
        assert activity.has_gps is True
        assert activity.has_detailed_data is True
        assert activity.running_sub_type == RunningSubType.OUTDOOR

    def test_treadmill_is_indoor_without_gps(self):
        """Indoor sessions never claim GPS, even with a start position."""
        record = decode([session_message(sub_sport="treadmill")])

        activity = normalize_record(record)

        assert activity.is_indoor is True
        assert activity.has_gps is False
        assert activity.running_sub_type == RunningSubType.TREADMILL

    def test_strength_sub_sport_maps_to_strength(self):
        record = decode([session_message(sport="training", sub_sport="strength_training")])

        activity = normalize_record(record)

        assert activity.category == ActivityCategory.STRENGTH
        assert activity.running_sub_type is None

    def test_elapsed_time_never_below_moving_time(self):
        record = FileRecord(session=FileSession(
            sport="running",
            start_time=START,
            total_timer_time=1800.0,
            total_elapsed_time=1700.0,
        ))

        activity = FileAdapter().normalize(record)

        assert activity.elapsed_time == 1800.0

    def test_missing_start_time_is_a_decode_error(self):
        with pytest.raises(DecodeError):
            FileAdapter().normalize(FileRecord(session=FileSession(sport="running")))
