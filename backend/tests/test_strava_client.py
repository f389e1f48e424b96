"""
Tests for the Strava API client, credentials and the Strava adapter.

Upstream calls go through httpx.MockTransport; no network access.
"""
import json
from datetime import datetime

import httpx
import pytest

from factories import strava_payload
from fitdash.core.exceptions import DecodeError, RateLimitedError, TokenExpiredError, UpstreamError
from fitdash.models.account import AthleteAccount
from fitdash.services.external.credentials import AccountCredentialProvider
from fitdash.services.external.strava import StravaService
from fitdash.services.ingest.adapter import FileAdapter, StravaAdapter, get_adapter, normalize_record
from fitdash.services.ingest.canonical import ActivityCategory, Provenance, RunningSubType
from fitdash.services.ingest.records import ApiRecord

BASE_URL = "https://strava.test/api/v3"


def make_service(handler):
    return StravaService(base_url=BASE_URL, transport=httpx.MockTransport(handler))


class TestStravaService:
    """HTTP status handling and request shape."""

    async def test_list_activities_request(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json=[strava_payload(1), strava_payload(2)])

        activities = await make_service(handler).list_activities(
            "token-abc", after=1700000000, page=2, per_page=100
        )

        assert len(activities) == 2
        assert seen["path"] == "/api/v3/athlete/activities"
        assert seen["params"] == {"page": "2", "per_page": "100", "after": "1700000000"}
        assert seen["auth"] == "Bearer token-abc"

    async def test_activity_detail_requests_all_efforts(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, content=json.dumps(strava_payload(42)))

        detail = await make_service(handler).get_activity_detail("token-abc", 42)

        assert detail["id"] == 42
        assert seen["path"] == "/api/v3/activities/42"
        assert seen["params"] == {"include_all_efforts": "true"}

    async def test_429_is_rate_limited(self):
        service = make_service(lambda request: httpx.Response(429, text="Rate Limit Exceeded"))

        with pytest.raises(RateLimitedError) as exc_info:
            await service.list_activities("token-abc")

        assert exc_info.value.status_code == 429

    async def test_401_asks_for_refresh(self):
        service = make_service(lambda request: httpx.Response(401, text="Authorization Error"))

        with pytest.raises(TokenExpiredError):
            await service.get_activity_detail("token-abc", 1)

    async def test_server_error_is_upstream_error(self):
        service = make_service(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(UpstreamError) as exc_info:
            await service.list_activities("token-abc")

        assert not isinstance(exc_info.value, RateLimitedError)
        assert exc_info.value.status_code == 500
        assert exc_info.value.body == "boom"


class TestAccountCredentialProvider:

    def test_valid_token(self):
        account = AthleteAccount(strava_athlete_id=1, access_token="tok", token_expires_at=2000)

        assert AccountCredentialProvider(account, clock=lambda: 1000).get_token() == "tok"

    def test_expired_token(self):
        account = AthleteAccount(strava_athlete_id=1, access_token="tok", token_expires_at=2000)

        with pytest.raises(TokenExpiredError):
            AccountCredentialProvider(account, clock=lambda: 2000).get_token()

    def test_missing_token(self):
        account = AthleteAccount(strava_athlete_id=1, access_token=None)

        with pytest.raises(TokenExpiredError):
            AccountCredentialProvider(account).get_token()


class TestStravaAdapter:
    """Strava payloads to canonical activities."""

    def test_summary_units(self):
        activity = normalize_record(ApiRecord(payload=strava_payload(7)))

        assert activity.external_id == 7
        assert activity.source == Provenance.POLLED_API
        assert activity.category == ActivityCategory.RUNNING
        assert activity.running_sub_type == RunningSubType.OUTDOOR
        assert activity.start_time == datetime(2024, 5, 6, 7, 0)
        assert activity.distance == 5000.0
        assert activity.average_speed == pytest.approx(2.78 * 3.6)
        assert activity.average_pace == pytest.approx(16.6667 / 2.78, rel=1e-4)
        assert activity.avg_cadence == 168.0
        assert activity.has_gps is True
        assert activity.summary_polyline == "a~l~Fjk~uOwHJy@P"
        assert activity.has_detailed_data is False

    def test_trainer_run_is_treadmill(self):
        payload = strava_payload(8, trainer=True, start_latlng=[])

        activity = StravaAdapter().normalize(ApiRecord(payload=payload))

        assert activity.running_sub_type == RunningSubType.TREADMILL
        assert activity.is_indoor is True
        assert activity.has_gps is False

    def test_sport_type_preferred_over_type(self):
        payload = strava_payload(9, type="Run", sport_type="TrailRun")

        activity = StravaAdapter().normalize(ApiRecord(payload=payload))

        assert activity.activity_type == "TrailRun"
        assert activity.running_sub_type == RunningSubType.TRAIL

    def test_detail_sub_structures(self):
        payload = strava_payload(
            10,
            laps=[
                {"start_date": "2024-05-06T07:00:00Z", "moving_time": 300, "distance": 1000.0,
                 "average_speed": 3.33, "average_cadence": 85},
                {"start_date": "2024-05-06T07:05:00Z", "moving_time": 310, "distance": 1000.0,
                 "average_speed": 3.22, "average_cadence": 84},
            ],
            splits_metric=[{"split": 1, "distance": 1000.0, "elapsed_time": 300, "moving_time": 300}],
            best_efforts=[{"name": "5K", "distance": 5000.0, "elapsed_time": 1495, "moving_time": 1495, "pr_rank": 1}],
            gear={"id": "g1", "name": "Pegasus 40", "resource_state": 2},
        )

        activity = StravaAdapter().normalize(ApiRecord(payload=payload, detailed=True))

        assert activity.lap_count == 2
        assert activity.laps[0].avg_cadence == 170
        assert activity.laps[1].start_time == datetime(2024, 5, 6, 7, 5)
        assert activity.splits[0].moving_time == 300.0
        assert activity.best_efforts[0].name == "5K"
        assert activity.best_efforts[0].pr_rank == 1
        assert activity.gear["name"] == "Pegasus 40"
        assert activity.has_detailed_data is True

    def test_missing_start_date_rejected(self):
        payload = strava_payload(11)
        del payload["start_date"]

        with pytest.raises(DecodeError):
            StravaAdapter().normalize(ApiRecord(payload=payload))


class TestAdapterRegistry:

    def test_known_sources(self):
        assert isinstance(get_adapter("Strava"), StravaAdapter)
        assert isinstance(get_adapter("file"), FileAdapter)

    def test_unknown_source(self):
        with pytest.raises(ValueError):
            get_adapter("garmin-connect")

    def test_unknown_record_type(self):
        with pytest.raises(TypeError):
            normalize_record({"id": 1})
