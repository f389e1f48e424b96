"""
Strava Service - Integration with the Strava API.

Only the read side the ingestion runs need: paginated activity summaries
and per-activity rich detail. Token exchange and refresh belong to the
credential collaborator.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from fitdash.core.config import settings
from fitdash.core.exceptions import RateLimitedError, TokenExpiredError, UpstreamError
from fitdash.core.logging import get_logger

logger = get_logger(__name__)


class StravaServiceInterface(ABC):
    """Abstract interface for Strava integration."""

    @abstractmethod
    async def list_activities(
        self,
        access_token: str,
        after: Optional[int] = None,
        page: int = 1,
        per_page: int = 30
    ) -> List[Dict[str, Any]]:
        """Get one page of athlete activity summaries."""
        pass

    @abstractmethod
    async def get_activity_detail(
        self,
        access_token: str,
        activity_id: int
    ) -> Dict[str, Any]:
        """Get detailed activity data including laps, splits and best efforts."""
        pass


class StravaService(StravaServiceInterface):
    """
    httpx implementation of the Strava read API.

    Usage:
        strava = StravaService()
        page = await strava.list_activities(token, after=1700000000, page=1)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the Strava service.

        Args:
            base_url: API root, defaults to settings.STRAVA_API_URL
            timeout: Request timeout in seconds
            transport: Custom httpx transport (used by tests)
        """
        self.base_url = (base_url or settings.STRAVA_API_URL).rstrip("/")
        self.timeout = timeout or settings.STRAVA_HTTP_TIMEOUT
        self.transport = transport

    async def _get(
        self,
        path: str,
        access_token: str,
        params: Optional[Dict[str, Any]] = None
    ) -> Any:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
        ) as client:
            response = await client.get(
                path,
                params=params,
                headers={"Authorization": f"Bearer {access_token}"},
            )

        if response.status_code == 429:
            logger.warning("Strava rate limit reached", path=path)
            raise RateLimitedError(response.text)

        if response.status_code == 401:
            logger.warning("Strava rejected the access token", path=path)
            raise TokenExpiredError("Strava access token expired or revoked")

        if response.status_code >= 400:
            logger.error(
                "Strava API error",
                path=path,
                status=response.status_code,
                body=response.text[:500],
            )
            raise UpstreamError(response.status_code, response.text)

        return response.json()

    async def list_activities(
        self,
        access_token: str,
        after: Optional[int] = None,
        page: int = 1,
        per_page: int = 30
    ) -> List[Dict[str, Any]]:
        """
        Get one page of athlete activity summaries.

        Args:
            access_token: Strava bearer token
            after: Epoch seconds; only activities starting later are returned
            page: 1-based page number
            per_page: Page size (Strava caps it at 200)

        Returns:
            List of activity summaries, empty past the last page

        Raises:
            RateLimitedError: On HTTP 429
            TokenExpiredError: On HTTP 401
            UpstreamError: On any other non-2xx status
        """
        params: Dict[str, Any] = {"page": page, "per_page": per_page}
        if after is not None:
            params["after"] = after

        activities = await self._get("/athlete/activities", access_token, params)

        logger.debug("Fetched Strava activity page", page=page, count=len(activities))

        return activities

    async def get_activity_detail(
        self,
        access_token: str,
        activity_id: int
    ) -> Dict[str, Any]:
        """
        Get detailed activity data.

        Args:
            access_token: Strava bearer token
            activity_id: Strava activity ID

        Returns:
            Detailed activity payload with all best efforts

        Raises:
            RateLimitedError: On HTTP 429
            TokenExpiredError: On HTTP 401
            UpstreamError: On any other non-2xx status
        """
        return await self._get(
            f"/activities/{activity_id}",
            access_token,
            {"include_all_efforts": "true"},
        )
