# src/gmail_connector/oauth_client.py

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional, List

from google.auth.transport.requests import Request
from google.oauth2.credentials    import Credentials
from google_auth_oauthlib.flow    import Flow
from googleapiclient.discovery     import build

from .config import GmailConfig, GMAIL_SCOPES
from .errors import AuthRequired
from .models import Token, token_is_expired

LOG = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"


class OAuthClient(ABC):
    """
    What the token manager needs from an OAuth provider: the two token
    exchanges, an expiry check, a profile lookup, and a slot holding the
    token the other calls should use.
    """
    token: Optional[Token] = None

    def set_token(self, token: Optional[Token]) -> None:
        self.token = token

    def is_expired(self, token: Optional[Token]) -> bool:
        return token_is_expired(token)

    @abstractmethod
    def exchange_code(self, code: str) -> Token:
        ...

    @abstractmethod
    def exchange_refresh_token(self, refresh_token: str) -> Token:
        ...

    @abstractmethod
    def fetch_profile(self) -> dict:
        """Gmail profile of the current token's mailbox (has `emailAddress`)."""

    @abstractmethod
    def build_service(self):
        ...


class GoogleOAuthClient(OAuthClient):
    """OAuthClient backed by google-auth, google-auth-oauthlib and the Gmail API."""

    def __init__(self, config: GmailConfig, scopes: Optional[List[str]] = None):
        self.config = config
        self.scopes = scopes or list(GMAIL_SCOPES)
        self.token  = None

    def _flow(self, state: Optional[str] = None) -> Flow:
        return Flow.from_client_config(
            self.config.client_config(),
            scopes=self.scopes,
            redirect_uri=self.config.redirect_uri,
            state=state or self.config.state,
            autogenerate_code_verifier=False,
        )

    def authorization_url(self, state: Optional[str] = None) -> str:
        """Consent-screen URL the user has to visit to hand us a code."""
        url, _ = self._flow(state).authorization_url(
            access_type=self.config.access_type,
            prompt=self.config.approval_prompt,
            include_granted_scopes="true",
        )
        return url

    def exchange_code(self, code: str) -> Token:
        flow = self._flow()
        flow.fetch_token(code=code)
        LOG.debug("Authorization code exchanged")
        return Token.from_credentials(flow.credentials)

    def exchange_refresh_token(self, refresh_token: str) -> Token:
        creds = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=TOKEN_URI,
            client_id=self.config.client_id,
            client_secret=self.config.client_secret,
            scopes=self.scopes,
        )
        creds.refresh(Request())
        LOG.debug("Refresh token exchanged")
        return Token.from_credentials(creds)

    def credentials(self) -> Credentials:
        """The held token as google-auth Credentials."""
        if self.token is None or not self.token.has_access_token:
            raise AuthRequired("No access token set on the OAuth client")

        expiry = None
        if self.token.expires_at is not None:
            # google-auth compares against naive UTC datetimes
            expiry = datetime.fromtimestamp(self.token.expires_at, timezone.utc).replace(tzinfo=None)

        return Credentials(
            token=self.token.access_token,
            refresh_token=self.token.refresh_token,
            token_uri=TOKEN_URI,
            client_id=self.config.client_id,
            client_secret=self.config.client_secret,
            scopes=self.scopes,
            expiry=expiry,
        )

    def build_service(self):
        return build("gmail", "v1", credentials=self.credentials(), cache_discovery=False)

    def fetch_profile(self) -> dict:
        return self.build_service().users().getProfile(userId="me").execute()
