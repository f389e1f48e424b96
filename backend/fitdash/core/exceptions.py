"""
Error taxonomy for the ingestion pipeline.

Decode errors fail a single file, upstream errors fail a batch, and rate
limits end a batch early without being raised out of the sync service.
"""
from typing import Optional


class FitdashError(Exception):
    """Base class for all application errors."""


class DecodeError(FitdashError):
    """Malformed binary or XML activity input."""


class UnsupportedFormatError(DecodeError):
    """Uploaded file has an extension no decoder handles."""


class UpstreamError(FitdashError):
    """Upstream API answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str = "", message: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message or f"Upstream request failed: {status_code} - {body[:200]}")


class RateLimitedError(UpstreamError):
    """Upstream API answered 429."""

    def __init__(self, body: str = ""):
        super().__init__(429, body, "Upstream rate limit reached")


class TokenExpiredError(FitdashError):
    """Bearer credential looks expired; the credential collaborator must refresh it."""


class InvalidPeriodError(FitdashError, ValueError):
    """Unknown stats period code."""


class NotFoundError(FitdashError):
    """Requested entity does not exist."""
