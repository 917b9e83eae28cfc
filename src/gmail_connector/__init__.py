"""Gmail OAuth2 token lifecycle management."""

from .errors import GmailAuthError, InvalidArgument, AuthRequired, RefreshUnavailable, ExchangeFailed
from .models import Token, token_is_expired
from .config import GmailConfig
from .storage import TokenStore, JsonFileTokenStore, SqlTokenStore
from .oauth_client import OAuthClient, GoogleOAuthClient
from .manager import TokenLifecycleManager

__all__ = [
    'GmailAuthError', 'InvalidArgument', 'AuthRequired', 'RefreshUnavailable', 'ExchangeFailed',
    'Token', 'token_is_expired', 'GmailConfig',
    'TokenStore', 'JsonFileTokenStore', 'SqlTokenStore',
    'OAuthClient', 'GoogleOAuthClient', 'TokenLifecycleManager',
]
