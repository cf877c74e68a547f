"""One-time Gmail OAuth bootstrap with an on-disk token cache."""

import logging
import os
from typing import Optional
from urllib.parse import urlparse

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from src.config import settings
from src.constants import GMAIL_SCOPES

logger = logging.getLogger(__name__)

OAUTH_TIMEOUT_SECONDS = 5 * 60
DEFAULT_LOOPBACK_PORT = 3000


def _client_config(client_id: str, client_secret: str, redirect_uri: str) -> dict:
    return {
        "installed": {
            "client_id": client_id,
            "client_secret": client_secret,
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
            "redirect_uris": [redirect_uri],
        }
    }


def load_gmail_credentials(
    token_path: Optional[str] = None,
    client_id: Optional[str] = None,
    client_secret: Optional[str] = None,
    redirect_uri: Optional[str] = None,
) -> Credentials:
    """Return Gmail credentials, running the loopback consent flow if needed.

    Blocking: call it from an executor when inside the event loop.
    """
    token_path = token_path or settings.gmail_token_path
    client_id = client_id or settings.gmail_client_id
    client_secret = client_secret or settings.gmail_client_secret
    redirect_uri = redirect_uri or settings.gmail_redirect_uri

    creds = None
    if os.path.exists(token_path):
        creds = Credentials.from_authorized_user_file(token_path, GMAIL_SCOPES)
        logger.info(f"🔑 Loaded Gmail token from {token_path}")

    if creds and creds.valid:
        return creds

    if creds and creds.expired and creds.refresh_token:
        logger.info("Refreshing expired Gmail token")
        creds.refresh(Request())
    else:
        settings.validate_required(
            "gmail_client_id", "gmail_client_secret", context="Gmail authorization"
        )
        port = urlparse(redirect_uri).port or DEFAULT_LOOPBACK_PORT
        logger.info(f"🌐 Starting Gmail authorization flow on port {port}")
        flow = InstalledAppFlow.from_client_config(
            _client_config(client_id, client_secret, redirect_uri), GMAIL_SCOPES
        )
        creds = flow.run_local_server(
            port=port,
            access_type="offline",
            timeout_seconds=OAUTH_TIMEOUT_SECONDS,
        )

    with open(token_path, "w") as token_file:
        token_file.write(creds.to_json())
    logger.info(f"💾 Gmail token saved to {token_path}")
    return creds
