# src/gmail_connector/storage.py

import os
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Any

from sqlalchemy import select, delete

from .models import Token, GmailToken

LOG = logging.getLogger(__name__)

UNBOUND_TOKEN_FILE = "token.json"


class TokenStore(ABC):
    """
    Durable home of one account's token. Keyed implicitly by the account
    the store is bound to.
    """

    @abstractmethod
    def load(self) -> Optional[Token]:
        ...

    @abstractmethod
    def save(self, token: Token) -> None:
        """Insert or replace the record."""

    @abstractmethod
    def delete(self) -> None:
        ...

    def get(self, key: Optional[str] = None) -> Any:
        """
        The stored Token, or a single field of it when `key` is given
        (e.g. get("refresh_token")). None when nothing is stored.
        """
        token = self.load()
        if token is None or key is None:
            return token
        return token.to_dict().get(key)

    def bind(self, account: Optional[str]) -> None:
        """Re-key the store once the account address becomes known."""


class JsonFileTokenStore(TokenStore):
    """
    One JSON file per account under `directory` (`<account>.json`, or
    token.json while the account is still unknown).
    """
    def __init__(self, directory, account: Optional[str] = None):
        self.directory = Path(directory)
        self.account   = account

    @property
    def path(self) -> Path:
        name = f"{self.account}.json" if self.account else UNBOUND_TOKEN_FILE
        return self.directory / name

    def bind(self, account: Optional[str]) -> None:
        self.account = account

    def load(self) -> Optional[Token]:
        path = self.path
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return Token.from_dict(data)
        except (OSError, ValueError, TypeError, AttributeError) as e:
            LOG.warning("Ignoring unreadable token file %s: %s", path, e)
            return None

    def save(self, token: Token) -> None:
        path = self.path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(token.to_dict(), indent=2), encoding="utf-8")
        try:
            os.chmod(path, 0o600)
        except OSError:
            LOG.debug("Could not restrict permissions on %s", path)
        LOG.debug("Saved token to %s", path)

    def delete(self) -> None:
        path = self.path
        if path.exists():
            path.unlink()
            LOG.debug("Deleted token file %s", path)


class SqlTokenStore(TokenStore):
    """
    Token rows in the `gmail_tokens` table, one per email. An unbound
    store adopts the email of the first token saved through it.
    """
    def __init__(self, account: Optional[str] = None, session_factory=None):
        if session_factory is None:
            from .db import SessionLocal
            session_factory = SessionLocal
        self.account         = account
        self.session_factory = session_factory

    def bind(self, account: Optional[str]) -> None:
        self.account = account

    def _where(self):
        if self.account is None:
            return GmailToken.email.is_(None)
        return GmailToken.email == self.account

    def load(self) -> Optional[Token]:
        session = self.session_factory()
        try:
            row = session.scalar(select(GmailToken).where(self._where()))
            return row.to_token() if row else None
        finally:
            session.close()

    def save(self, token: Token) -> None:
        if self.account is None and token.email:
            self.account = token.email

        details = token.to_dict()
        details["email"] = self.account

        session = self.session_factory()
        try:
            existing = session.scalar(select(GmailToken).where(self._where()))
            if existing:
                for k, v in details.items():
                    setattr(existing, k, v)
            else:
                session.add(GmailToken(**details))
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def delete(self) -> None:
        session = self.session_factory()
        try:
            session.execute(delete(GmailToken).where(self._where()))
            session.commit()
        finally:
            session.close()


def token_store_for(config, account: Optional[str] = None) -> TokenStore:
    """Default store: JSON files under config.token_dir."""
    return JsonFileTokenStore(config.token_dir, account)
