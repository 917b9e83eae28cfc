# src/gmail_connector/manager.py

import logging
import threading
from typing import Optional, Dict

from .errors       import GmailAuthError, InvalidArgument, AuthRequired, RefreshUnavailable, ExchangeFailed
from .models       import Token
from .oauth_client import OAuthClient
from .storage      import TokenStore

LOG = logging.getLogger(__name__)

# One lock per bound account, shared by every manager in the process
_ACCOUNT_LOCKS: Dict[str, threading.RLock] = {}
_REGISTRY_LOCK = threading.Lock()


def _lock_for(account: Optional[str]) -> threading.RLock:
    with _REGISTRY_LOCK:
        return _ACCOUNT_LOCKS.setdefault(account or "", threading.RLock())


class TokenLifecycleManager:
    """
    Keeps one Gmail account's OAuth token usable.

    The store is the source of truth on first use; every successful
    exchange is written back to it before being returned. Network traffic
    only happens when the cached token is expired (refresh) or when a new
    authorization code has to be exchanged.
    """

    def __init__(self, client: OAuthClient, store: TokenStore, user: Optional[str] = None):
        self.client = client
        self.store  = store
        self.user   = user
        self._token: Optional[Token] = None
        if user:
            store.bind(user)

    @classmethod
    def connect(cls, config, user: Optional[str] = None, store: Optional[TokenStore] = None):
        """
        Wire up a manager for `config` with the Google client and, unless
        given, the JSON file store. A bound account that already has a
        stored token is refreshed right away if needed.
        """
        from .oauth_client import GoogleOAuthClient
        from .storage      import token_store_for

        if store is None:
            store = token_store_for(config, user)
        manager = cls(GoogleOAuthClient(config), store, user)
        if user and manager.has_stored_token():
            manager.ensure_fresh()
        return manager

    def set_user(self, user: Optional[str]) -> "TokenLifecycleManager":
        self.user = user
        self.store.bind(user)
        return self

    # ─── Inspection ──────────────────────────────────────────────────────────

    def has_stored_token(self) -> bool:
        token = self.store.get()
        return token is not None and token.has_access_token

    def current_token(self) -> Optional[Token]:
        if self._token is None:
            stored = self.store.get()
            if stored is not None:
                self._cache(stored)
        return self._token

    def is_expired(self) -> bool:
        token = self.current_token()
        if token is None:
            return True
        return self.client.is_expired(token)

    # ─── Transitions ─────────────────────────────────────────────────────────

    def ensure_fresh(self) -> Token:
        """
        Return a usable token, refreshing it first if it has expired.
        Raises AuthRequired when there is nothing to refresh with.
        """
        if not self.is_expired():
            return self._token

        with _lock_for(self.user):
            # another caller may have refreshed while we waited
            self._rehydrate()
            if not self.is_expired():
                return self._token

            token = self._token
            if token is None or not token.refresh_token:
                raise AuthRequired("Token expired and no refresh token is available; re-authorize")

            return self.refresh(token.refresh_token)

    def refresh(self, refresh_token: Optional[str] = None) -> Token:
        """Exchange a refresh token (default: the cached one) and persist the result."""
        previous = self.current_token()
        if refresh_token is None and previous is not None:
            refresh_token = previous.refresh_token
        if not refresh_token:
            raise RefreshUnavailable("No refresh token to exchange")

        with _lock_for(self.user):
            LOG.info("Refreshing access token for %s", self.user or "<unbound account>")
            try:
                token = self.client.exchange_refresh_token(refresh_token)
            except GmailAuthError:
                raise
            except Exception as e:
                raise ExchangeFailed(f"Refresh token exchange failed: {e}", cause=e) from e

            if not token.refresh_token:
                token.refresh_token = refresh_token
            token.merged_with(previous)
            if self.user is None and token.email:
                # keep the account the stored token was issued for
                self.set_user(token.email)
            self.add_token(token)
            return token

    def exchange_authorization_code(self, code: Optional[str]) -> Token:
        """
        Trade a one-time authorization code for a token. While a fresh
        token is held the code is not spent and the held token is returned.
        """
        with _lock_for(self.user):
            if self.is_expired():
                # another manager may have authorized or revoked meanwhile
                self._rehydrate()
            if not self.is_expired():
                LOG.debug("Fresh token already held; authorization code not exchanged")
                return self._token

            if not code:
                raise InvalidArgument("Authorization code is required")

            try:
                token = self.client.exchange_code(code)
            except GmailAuthError:
                raise
            except Exception as e:
                raise ExchangeFailed(f"Authorization code exchange failed: {e}", cause=e) from e

            self.client.set_token(token)
            address = self._profile_address()
            if address:
                self.set_user(address)
                token.email = address

            self.add_token(token)
            LOG.info("Authorized Gmail account %s", self.user or "<unknown>")
            return token

    def persist(self, token: Token) -> None:
        """Write `token` to the store under the bound account. Leaves the cache alone."""
        token.email = self.user
        self.store.save(token)

    def add_token(self, token: Token) -> None:
        self._cache(token)
        self.persist(token)

    def revoke(self) -> None:
        """Forget the token locally. Nothing is sent to Google."""
        with _lock_for(self.user):
            self.store.delete()
            self._token = None
            self.client.set_token(None)
            LOG.info("Deleted stored token for %s", self.user or "<unbound account>")

    # ─── Gmail handle ────────────────────────────────────────────────────────

    def service(self):
        """An authenticated Gmail API resource."""
        self.ensure_fresh()
        return self.client.build_service()

    def profile(self) -> dict:
        self.ensure_fresh()
        return self.client.fetch_profile()

    # ─── Internals ───────────────────────────────────────────────────────────

    def _cache(self, token: Token) -> None:
        self._token = token
        self.client.set_token(token)

    def _rehydrate(self) -> None:
        stored = self.store.get()
        if stored is not None:
            self._cache(stored)
        else:
            # record deleted elsewhere; do not resurrect it from the cache
            self._token = None
            self.client.set_token(None)

    def _profile_address(self) -> Optional[str]:
        try:
            profile = self.client.fetch_profile() or {}
        except Exception as e:
            LOG.warning("Could not read Gmail profile, keeping account %s: %s", self.user, e)
            return None
        return profile.get("emailAddress")
