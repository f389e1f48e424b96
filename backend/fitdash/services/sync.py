"""
Sync Service - Ingestion runs for polled summaries, rich detail and uploads.

Runs are sequential: one activity at a time, fixed delays between upstream
calls, and a commit after each unit of work so an interrupted run keeps
what it already stored.
"""
import asyncio
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from fitdash.core.config import settings
from fitdash.core.exceptions import DecodeError, RateLimitedError, UpstreamError
from fitdash.core.logging import SyncRunLogger, get_logger
from fitdash.models.account import AthleteAccount
from fitdash.services.classifier import WorkoutClassifier
from fitdash.services.external.credentials import AccountCredentialProvider, CredentialProvider
from fitdash.services.external.strava import StravaService, StravaServiceInterface
from fitdash.services.ingest.adapter import normalize_record
from fitdash.services.ingest.canonical import CanonicalActivity, Provenance
from fitdash.services.ingest.records import ApiRecord
from fitdash.services.ingest.uploads import decode_upload
from fitdash.services.merge import match_window, merge_activities, overlay, unique_match
from fitdash.services.store import ActivityStore

logger = get_logger(__name__)
run_logger = SyncRunLogger(logger)

SECONDS_PER_DAY = 86400

# Detail responses that will not change on retry
PERMANENT_DETAIL_STATUSES = frozenset({403, 404, 410})

INSERTED = "inserted"
UPDATED = "updated"
MERGED = "merged"
REPLACED = "replaced"
SKIPPED = "skipped"


@dataclass
class SyncResult:
    """Outcome of a summary sync run."""
    processed: int = 0
    inserted: int = 0
    updated: int = 0
    merged: int = 0
    skipped: int = 0
    pages: int = 0
    rate_limited: bool = False
    remaining: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DetailResult:
    """Outcome of a detail enrichment run."""
    processed: int = 0
    enriched: int = 0
    failed: int = 0
    rate_limited: bool = False
    remaining: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class UploadResult:
    activity: CanonicalActivity
    outcome: str


class SyncService:
    """
    Orchestrates ingestion into the activity store.

    Usage:
        service = SyncService(db)
        result = await service.sync_activities(account, full_sync=False)
        details = await service.fetch_details(account)
    """

    def __init__(
        self,
        db: AsyncSession,
        strava: Optional[StravaServiceInterface] = None,
        classifier: Optional[WorkoutClassifier] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.db = db
        self.store = ActivityStore(db)
        self.strava = strava or StravaService()
        self.classifier = classifier or WorkoutClassifier()
        self._sleep = sleep

    # ========================================
    # Summary sync
    # ========================================

    async def sync_activities(
        self,
        account: AthleteAccount,
        full_sync: bool = False,
        credentials: Optional[CredentialProvider] = None,
    ) -> SyncResult:
        """
        Pull activity summaries page by page and store them.

        Stops on the first empty page or on a rate limit; a rate limit ends
        the run with partial progress instead of failing it.

        Args:
            account: Athlete whose activities are synced
            full_sync: Use the long history window
            credentials: Token source, defaults to the account's stored token

        Returns:
            SyncResult with counts and the remaining detail backlog

        Raises:
            TokenExpiredError: If the token needs a refresh
            UpstreamError: On a non-429 upstream failure
        """
        token = (credentials or AccountCredentialProvider(account)).get_token()
        days_back = settings.FULL_SYNC_DAYS_BACK if full_sync else settings.SYNC_DAYS_BACK
        after = int(time.time()) - days_back * SECONDS_PER_DAY
        result = SyncResult()

        with run_logger.track_run("sync", account_id=str(account.id)) as run:
            page = 1
            while True:
                try:
                    batch = await self.strava.list_activities(
                        token,
                        after=after,
                        page=page,
                        per_page=settings.STRAVA_PAGE_SIZE,
                    )
                except RateLimitedError:
                    result.rate_limited = True
                    run.stop("rate_limited")
                    break

                if not batch:
                    break

                result.pages += 1
                for payload in batch:
                    result.processed += 1
                    try:
                        outcome = await self.ingest_api_record(ApiRecord(payload=payload))
                    except DecodeError as e:
                        outcome = SKIPPED
                        logger.warning(
                            "Skipping malformed summary",
                            external_id=payload.get("id"),
                            error=str(e),
                        )
                    run.item(outcome, external_id=payload.get("id"))
                    setattr(result, outcome, getattr(result, outcome) + 1)

                await self.db.commit()
                page += 1
                await self._sleep(settings.STRAVA_PAGE_DELAY_SECONDS)

            result.remaining = await self.store.count_missing_details()

        return result

    async def ingest_api_record(self, record: ApiRecord) -> str:
        """
        Store one polled record.

        Returns:
            "inserted", "updated" or "merged"
        """
        incoming = normalize_record(record)

        existing = await self.store.get_by_external_id(incoming.external_id)
        if existing is not None:
            if existing.source == Provenance.MERGED:
                incoming.has_detailed_data = incoming.has_detailed_data or existing.has_detailed_data
                activity = merge_activities(existing, incoming)
            else:
                activity = overlay(existing, incoming)
            await self.store.save(self.classifier.apply(activity))
            return UPDATED

        candidates = await self.store.find_merge_candidates(
            incoming.start_time, Provenance.FILE_UPLOAD
        )
        match = unique_match(candidates, incoming.start_time)
        if match is not None:
            merged = merge_activities(match, incoming)
            await self.store.save(self.classifier.apply(merged))
            return MERGED

        await self.store.upsert_by_external_id(self.classifier.apply(incoming))
        return INSERTED

    # ========================================
    # Detail enrichment
    # ========================================

    async def fetch_details(
        self,
        account: AthleteAccount,
        budget: Optional[int] = None,
        credentials: Optional[CredentialProvider] = None,
    ) -> DetailResult:
        """
        Fetch rich detail for activities that still lack it, newest first.

        At most `budget` detail calls are made. The run is resumable: the
        rich-detail flag marks what is already done. A failed detail is
        skipped so the items behind it still advance; a 403/404/410 also
        takes the activity out of the backlog.

        Args:
            account: Athlete whose activities are enriched
            budget: Maximum detail calls, defaults to settings.DETAIL_FETCH_BUDGET
            credentials: Token source, defaults to the account's stored token

        Returns:
            DetailResult with processed/enriched counts and remaining backlog
        """
        token = (credentials or AccountCredentialProvider(account)).get_token()
        budget = budget if budget is not None else settings.DETAIL_FETCH_BUDGET
        result = DetailResult()

        with run_logger.track_run("fetch_details", account_id=str(account.id)) as run:
            pending = await self.store.next_missing_details(budget)

            for index, activity in enumerate(pending):
                if index:
                    await self._sleep(settings.DETAIL_FETCH_DELAY_SECONDS)

                try:
                    payload = await self.strava.get_activity_detail(token, activity.external_id)
                except RateLimitedError:
                    result.rate_limited = True
                    run.stop("rate_limited")
                    break
                except UpstreamError as e:
                    result.processed += 1
                    result.failed += 1
                    permanent = e.status_code in PERMANENT_DETAIL_STATUSES
                    if permanent:
                        await self.store.mark_detail_unavailable(activity.external_id)
                        await self.db.commit()
                    run.item(
                        "failed",
                        external_id=activity.external_id,
                        status=e.status_code,
                        permanent=permanent,
                    )
                    continue

                result.processed += 1
                try:
                    detail = normalize_record(ApiRecord(payload=payload, detailed=True))
                except DecodeError as e:
                    result.failed += 1
                    logger.warning(
                        "Skipping malformed detail",
                        external_id=activity.external_id,
                        error=str(e),
                    )
                    continue

                if activity.source == Provenance.MERGED:
                    enriched = merge_activities(activity, detail)
                else:
                    enriched = overlay(activity, detail)
                enriched.has_detailed_data = True

                await self.store.save(self.classifier.apply(enriched))
                await self.db.commit()

                result.enriched += 1
                run.item("enriched", external_id=activity.external_id)

            result.remaining = await self.store.count_missing_details()

        return result

    # ========================================
    # File upload
    # ========================================

    async def ingest_upload(
        self,
        path: Union[str, Path],
        original_name: str
    ) -> UploadResult:
        """
        Decode, normalize, classify and store an uploaded activity file.

        A polled record of the same event (within the merge window) absorbs
        the file; an earlier upload of the same event is replaced in place.

        Raises:
            UnsupportedFormatError: If the extension has no decoder
            DecodeError: If the file is malformed
        """
        with run_logger.track_run("upload") as run:
            # fitparse and ElementTree block; keep them off the event loop
            record = await asyncio.to_thread(decode_upload, path, original_name)
            incoming = normalize_record(record)

            window_start, window_end = match_window(incoming.start_time)
            nearby = await self.store.find_by_time_range(window_start, window_end)

            polled = [a for a in nearby if a.source in (Provenance.POLLED_API, Provenance.MERGED)]
            match = unique_match(polled, incoming.start_time)
            if match is not None:
                activity = merge_activities(incoming, match)
                activity.id = match.id
                outcome = MERGED
            else:
                uploads = [a for a in nearby if a.source == Provenance.FILE_UPLOAD]
                previous = unique_match(uploads, incoming.start_time)
                incoming.id = previous.id if previous else None
                activity = incoming
                outcome = REPLACED if previous else INSERTED

            stored = await self.store.save(self.classifier.apply(activity))
            run.item(outcome, file_name=original_name)

        logger.info(
            "Upload ingested",
            file_name=original_name,
            activity_id=stored.id,
            outcome=outcome,
        )

        return UploadResult(activity=stored, outcome=outcome)
