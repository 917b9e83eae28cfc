# src/tests/conftest.py

import time
import threading

import pytest

from gmail_connector.models       import Token
from gmail_connector.oauth_client import OAuthClient
from gmail_connector.storage      import JsonFileTokenStore


def fresh_token(access="ACCESS", refresh="R1", email=None, ttl=3600):
    return Token(access_token=access, expires_at=time.time() + ttl, refresh_token=refresh, email=email)


def expired_token(access="OLD", refresh="R1", email=None):
    return Token(access_token=access, expires_at=time.time() - 60, refresh_token=refresh, email=email)


class FakeOAuthClient(OAuthClient):
    """
    Stands in for Google: counts exchanges and returns canned tokens.
    Set `profile` to a dict, or `profile_error` to make fetch_profile fail.
    """
    def __init__(self):
        self.token          = None
        self.code_calls     = []
        self.refresh_calls  = []
        self.profile        = {"emailAddress": "a@x.com"}
        self.profile_error  = None
        self.exchange_error = None
        self.refresh_error  = None
        self.refresh_result = None
        self.refresh_delay  = 0.0
        self._calls_lock    = threading.Lock()

    @property
    def network_calls(self):
        return len(self.code_calls) + len(self.refresh_calls)

    def exchange_code(self, code):
        self.code_calls.append(code)
        if self.exchange_error:
            raise self.exchange_error
        return fresh_token(access=f"ACCESS-{code}", refresh=f"R-{code}")

    def exchange_refresh_token(self, refresh_token):
        with self._calls_lock:
            self.refresh_calls.append(refresh_token)
        if self.refresh_delay:
            time.sleep(self.refresh_delay)
        if self.refresh_error:
            raise self.refresh_error
        if self.refresh_result is not None:
            return self.refresh_result
        return fresh_token(access="NEW-ACCESS", refresh=None)

    def fetch_profile(self):
        if self.profile_error:
            raise self.profile_error
        return self.profile

    def build_service(self):
        return ("gmail-service", self.token)


@pytest.fixture
def client():
    return FakeOAuthClient()


@pytest.fixture
def store(tmp_path):
    return JsonFileTokenStore(tmp_path / "tokens")
