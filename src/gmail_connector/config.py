# src/gmail_connector/config.py

import os
from dataclasses import dataclass
from typing import Optional, Mapping

from dotenv import load_dotenv

DEFAULT_ACCESS_TYPE     = "offline"
DEFAULT_APPROVAL_PROMPT = "select_account consent"
DEFAULT_TOKEN_DIR       = "tokens"

# Full mailbox access, as requested by the ingestion pipeline
GMAIL_SCOPES = ["https://mail.google.com/"]


@dataclass
class GmailConfig:
    """OAuth client settings, passed through unchanged to the Google client."""
    client_id:       str
    client_secret:   str
    redirect_uri:    str
    access_type:     str = DEFAULT_ACCESS_TYPE
    approval_prompt: str = DEFAULT_APPROVAL_PROMPT
    state:           Optional[str] = None
    token_dir:       str = DEFAULT_TOKEN_DIR

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "GmailConfig":
        """
        Read GMAIL_* settings from the environment (after loading .env).
        Pass `environ` to read from a plain mapping instead.
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        missing = [
            name for name in ("GMAIL_CLIENT_ID", "GMAIL_CLIENT_SECRET", "GMAIL_REDIRECT_URL")
            if not environ.get(name)
        ]
        if missing:
            raise RuntimeError(f"Please set {', '.join(missing)} in your environment")

        return cls(
            client_id       = environ["GMAIL_CLIENT_ID"],
            client_secret   = environ["GMAIL_CLIENT_SECRET"],
            redirect_uri    = environ["GMAIL_REDIRECT_URL"],
            access_type     = environ.get("GMAIL_ACCESS_TYPE") or DEFAULT_ACCESS_TYPE,
            approval_prompt = environ.get("GMAIL_APPROVAL_PROMPT") or DEFAULT_APPROVAL_PROMPT,
            state           = environ.get("GMAIL_STATE") or None,
            token_dir       = environ.get("GMAIL_TOKEN_DIR") or DEFAULT_TOKEN_DIR,
        )

    def client_config(self) -> dict:
        """The `web` client-secrets structure google_auth_oauthlib expects."""
        return {
            "web": {
                "client_id":     self.client_id,
                "client_secret": self.client_secret,
                "auth_uri":      "https://accounts.google.com/o/oauth2/auth",
                "token_uri":     "https://oauth2.googleapis.com/token",
                "redirect_uris": [self.redirect_uri],
            }
        }
