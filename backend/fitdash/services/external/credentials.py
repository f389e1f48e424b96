"""
Credential providers - bearer tokens for upstream calls.

Refreshing an expired token is the OAuth collaborator's job; providers here
only hand out the current token or signal that it needs a refresh.
"""
import time
from abc import ABC, abstractmethod
from typing import Optional

from fitdash.core.exceptions import TokenExpiredError
from fitdash.models.account import AthleteAccount


class CredentialProvider(ABC):
    """Abstract source of a valid bearer token."""

    @abstractmethod
    def get_token(self) -> str:
        """
        Current bearer token.

        Raises:
            TokenExpiredError: If the token must be refreshed first
        """
        pass


class AccountCredentialProvider(CredentialProvider):
    """Token stored on an AthleteAccount, checked against its expiry epoch."""

    def __init__(self, account: AthleteAccount, clock=time.time):
        self.account = account
        self.clock = clock

    def get_token(self) -> str:
        token: Optional[str] = self.account.access_token
        if not token:
            raise TokenExpiredError("Account has no access token")

        expires_at = self.account.token_expires_at
        if expires_at is not None and expires_at <= self.clock():
            raise TokenExpiredError("Access token expired, refresh required")

        return token
