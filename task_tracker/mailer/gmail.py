"""Minimal Gmail API sender used for reminder emails.

Credentials come from an OAuth refresh token per named account:
    <NAME>_GMAIL_CLIENT_ID
    <NAME>_GMAIL_CLIENT_SECRET
    <NAME>_GMAIL_REFRESH_TOKEN
    <NAME>_GMAIL_ADDRESS
"""
from __future__ import annotations

import base64
import logging
import os
from dataclasses import dataclass
from email.message import EmailMessage

import requests

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
SEND_URL = "https://gmail.googleapis.com/gmail/v1/users/me/messages/send"
REQUEST_TIMEOUT = 15

_ENV_SUFFIXES = {
    "client_id": "CLIENT_ID",
    "client_secret": "CLIENT_SECRET",
    "refresh_token": "REFRESH_TOKEN",
    "from_address": "ADDRESS",
}


class GmailError(RuntimeError):
    """Raised when a Gmail token exchange or send fails."""


@dataclass(slots=True, frozen=True)
class GmailAccountConfig:
    name: str
    client_id: str
    client_secret: str
    refresh_token: str
    from_address: str


def load_account_from_env(name: str) -> GmailAccountConfig:
    """Read ``<NAME>_GMAIL_*`` variables for the given account name.

    Raises:
        GmailError: listing every variable that is missing.
    """
    prefix = f"{name.upper()}_GMAIL_"
    values = {field: os.getenv(prefix + suffix, "").strip() for field, suffix in _ENV_SUFFIXES.items()}
    missing = [prefix + _ENV_SUFFIXES[field] for field, value in values.items() if not value]
    if missing:
        raise GmailError(f"Gmail account '{name}' is not configured; missing {', '.join(missing)}")
    return GmailAccountConfig(name=name, **values)


def send_email(
    account: GmailAccountConfig,
    *,
    to_address: str,
    subject: str,
    body: str,
) -> str:
    """Send a plain-text message and return the Gmail message id."""
    if not to_address:
        raise GmailError("Cannot send email without a recipient.")

    message = EmailMessage()
    message["From"] = account.from_address
    message["To"] = to_address
    message["Subject"] = subject
    message.set_content(body)
    raw = base64.urlsafe_b64encode(message.as_bytes()).decode("ascii")

    token = _access_token(account)
    data = _post(
        SEND_URL,
        "send",
        json={"raw": raw},
        headers={"Authorization": f"Bearer {token}"},
    )
    logger.debug(f"Gmail accepted message {data.get('id')} from {account.name}")
    return data.get("id", "")


def _access_token(account: GmailAccountConfig) -> str:
    data = _post(
        TOKEN_URL,
        "token refresh",
        data={
            "client_id": account.client_id,
            "client_secret": account.client_secret,
            "refresh_token": account.refresh_token,
            "grant_type": "refresh_token",
        },
    )
    token = data.get("access_token")
    if not token:
        raise GmailError("Gmail token response did not include an access_token.")
    return str(token)


def _post(url: str, action: str, **kwargs) -> dict:
    try:
        resp = requests.post(url, timeout=REQUEST_TIMEOUT, **kwargs)
    except requests.RequestException as exc:
        raise GmailError(f"Gmail {action} network error: {exc}") from exc
    if resp.status_code >= 400:
        raise GmailError(f"Gmail {action} failed ({resp.status_code}): {resp.text[:300]}")
    try:
        return resp.json()
    except ValueError as exc:
        raise GmailError(f"Gmail {action} returned invalid JSON") from exc
