# src/gmail_connector/errors.py


class GmailAuthError(Exception):
    """Base class for every failure raised by the token manager."""


class InvalidArgument(GmailAuthError, ValueError):
    """Caller input was malformed, e.g. an empty authorization code."""


class AuthRequired(GmailAuthError):
    """
    No usable token and no refresh path. The caller has to run the
    interactive consent flow again and come back with a fresh code.
    """


class RefreshUnavailable(GmailAuthError):
    """A refresh was attempted without a refresh token."""


class ExchangeFailed(GmailAuthError):
    """
    The provider (or the transport underneath it) rejected a code or
    refresh-token exchange. The original exception is kept on `.cause`.
    """

    def __init__(self, message: str, cause: Exception = None):
        super().__init__(message)
        self.cause = cause
