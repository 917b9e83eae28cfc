# src/gmail_connector/models.py

import time
import datetime
from datetime import timezone
from typing import Optional, Dict, Any

from sqlalchemy import Column, Integer, String, Text, Float, DateTime
from sqlalchemy.orm import declarative_base

# Tokens are treated as expired this many seconds before their real expiry
EXPIRY_SKEW_SECONDS = 30


class Token:
    """
    One OAuth credential set for a Gmail account.

    `expires_at` is absolute (epoch seconds). Provider responses that only
    carry `created` + `expires_in` are normalised on the way in.
    """
    def __init__(
        self,
        access_token:  str,
        token_type:    str = "Bearer",
        expires_at:    Optional[float] = None,
        refresh_token: Optional[str] = None,
        email:         Optional[str] = None,
        scope:         Optional[str] = None,
        id_token:      Optional[str] = None,
    ):
        self.access_token  = access_token or ""
        self.token_type    = token_type or "Bearer"
        self.expires_at    = expires_at
        self.refresh_token = refresh_token or None
        self.email         = email
        self.scope         = scope
        self.id_token      = id_token

    @property
    def has_access_token(self) -> bool:
        return bool(self.access_token)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], now: Optional[float] = None) -> "Token":
        """
        Build a Token from a stored record or a raw token-endpoint response.
        """
        expires_at = data.get("expires_at")
        if expires_at is None and data.get("expires_in") is not None:
            issued = data.get("created")
            if issued is None:
                issued = time.time() if now is None else now
            expires_at = float(issued) + float(data["expires_in"])

        return cls(
            access_token  = data.get("access_token") or data.get("token") or "",
            token_type    = data.get("token_type", "Bearer"),
            expires_at    = float(expires_at) if expires_at is not None else None,
            refresh_token = data.get("refresh_token"),
            email         = data.get("email"),
            scope         = data.get("scope"),
            id_token      = data.get("id_token"),
        )

    @classmethod
    def from_credentials(cls, creds, email: Optional[str] = None) -> "Token":
        """Convert a google.oauth2.credentials.Credentials into a Token."""
        expires_at = None
        if creds.expiry is not None:
            # google-auth keeps expiry as a naive UTC datetime
            expires_at = creds.expiry.replace(tzinfo=timezone.utc).timestamp()

        scopes = getattr(creds, "scopes", None)
        return cls(
            access_token  = creds.token,
            expires_at    = expires_at,
            refresh_token = creds.refresh_token,
            email         = email,
            scope         = " ".join(scopes) if scopes else None,
            id_token      = getattr(creds, "id_token", None),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token":  self.access_token,
            "token_type":    self.token_type,
            "expires_at":    self.expires_at,
            "refresh_token": self.refresh_token,
            "email":         self.email,
            "scope":         self.scope,
            "id_token":      self.id_token,
        }

    def merged_with(self, previous: Optional["Token"]) -> "Token":
        """
        Fill in what a refresh response leaves out (refresh token, account)
        from the token it replaces.
        """
        if previous is not None:
            if not self.refresh_token:
                self.refresh_token = previous.refresh_token
            if not self.email:
                self.email = previous.email
            if not self.scope:
                self.scope = previous.scope
        return self

    def __repr__(self):
        return (
            f"Token(email={self.email!r}, expires_at={self.expires_at!r}, "
            f"has_refresh_token={bool(self.refresh_token)})"
        )


def token_is_expired(token: Optional[Token], now: Optional[float] = None) -> bool:
    """
    True unless the token has an access token and a known expiry that is
    more than EXPIRY_SKEW_SECONDS away. Missing expiry counts as expired.
    """
    if token is None or not token.has_access_token:
        return True
    if token.expires_at is None:
        return True

    now = time.time() if now is None else now
    return token.expires_at - EXPIRY_SKEW_SECONDS <= now


Base = declarative_base()

class GmailToken(Base):
    __tablename__ = "gmail_tokens"
    id            = Column(Integer, primary_key=True)
    email         = Column(String, unique=True)
    access_token  = Column(Text, nullable=False)
    token_type    = Column(String, default="Bearer")
    refresh_token = Column(Text)
    expires_at    = Column(Float)
    scope         = Column(Text)
    id_token      = Column(Text)
    created_at    = Column(DateTime, default=datetime.datetime.utcnow)
    updated_at    = Column(
        DateTime,
        default=datetime.datetime.utcnow,
        onupdate=datetime.datetime.utcnow
    )

    def to_token(self) -> Token:
        return Token(
            access_token  = self.access_token,
            token_type    = self.token_type,
            expires_at    = self.expires_at,
            refresh_token = self.refresh_token,
            email         = self.email,
            scope         = self.scope,
            id_token      = self.id_token,
        )
