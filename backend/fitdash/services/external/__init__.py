"""
External Services - Integration with external platforms.

Services:
- StravaService: Strava activity summaries and rich detail
- AccountCredentialProvider: Bearer token from the stored athlete account
"""
from fitdash.services.external.credentials import AccountCredentialProvider, CredentialProvider
from fitdash.services.external.strava import StravaService, StravaServiceInterface

__all__ = [
    "AccountCredentialProvider",
    "CredentialProvider",
    "StravaService",
    "StravaServiceInterface",
]
