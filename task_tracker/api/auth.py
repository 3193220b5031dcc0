"""Request authentication for the REST and GraphQL APIs.

Callers present a Google ID token as ``Authorization: Bearer <token>``. The
token's ``sub`` claim becomes the owner id for every task operation.
"""
from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import Header, HTTPException, status
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from ..sync.engine import Identity

logger = logging.getLogger(__name__)

DEV_BYPASS_ENV = "TT_DEV_AUTH_BYPASS"
CLIENT_ID_ENV = "GOOGLE_OAUTH_CLIENT_ID"
ALLOWED_AUDIENCE_ENV = "GOOGLE_OAUTH_AUDIENCE"


class AuthError(HTTPException):
    def __init__(self, detail: str, code: int = status.HTTP_401_UNAUTHORIZED) -> None:
        super().__init__(status_code=code, detail=detail)


@lru_cache
def _audiences() -> List[str]:
    raw = os.getenv(ALLOWED_AUDIENCE_ENV) or os.getenv(CLIENT_ID_ENV) or ""
    return [aud.strip() for aud in raw.split(",") if aud.strip()]


def _verify_google_token(token: str) -> Dict[str, Any]:
    """Return the token's claims if it is valid for any configured audience."""
    audiences = _audiences()
    if not audiences:
        raise AuthError("Server missing GOOGLE_OAUTH_CLIENT_ID or audience config.")

    transport = google_requests.Request()
    failures = []
    for audience in audiences:
        try:
            return id_token.verify_oauth2_token(token, transport, audience)
        except ValueError as exc:
            failures.append(str(exc))
    logger.info(f"Rejected ID token: {failures[-1]}")
    raise AuthError(f"Invalid token: {failures[-1]}")


def _dev_identity(email: Optional[str], user_id: Optional[str]) -> Identity:
    if not email:
        raise AuthError("Auth bypass enabled but X-User-Email header missing (dev only).")
    return Identity(user_id=user_id or email, email=email)


def resolve_identity(
    authorization: Optional[str],
    dev_user: Optional[str] = None,
    dev_user_id: Optional[str] = None,
) -> Identity:
    """Turn request credentials into the caller's identity.

    With TT_DEV_AUTH_BYPASS=1 the X-User-Email header (and optional X-User-Id,
    defaulting to the email) is trusted instead of a token.

    Raises:
        AuthError: when the caller cannot be authenticated.
    """
    if os.getenv(DEV_BYPASS_ENV) == "1":
        return _dev_identity(dev_user, dev_user_id)

    scheme, _, token = (authorization or "").partition(" ")
    if scheme != "Bearer" or not token.strip():
        raise AuthError("Missing Bearer token.")

    claims = _verify_google_token(token.strip())
    user_id, email = claims.get("sub"), claims.get("email")
    if not user_id or not email:
        raise AuthError("Token missing sub or email claim.")
    return Identity(user_id=user_id, email=email)


def get_current_user(
    authorization: str | None = Header(default=None, alias="Authorization"),
    dev_user: str | None = Header(default=None, alias="X-User-Email"),
    dev_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> Identity:
    """Return the authenticated caller or reject the request with 401."""

    return resolve_identity(authorization, dev_user, dev_user_id)


def get_optional_user(
    authorization: str | None = Header(default=None, alias="Authorization"),
    dev_user: str | None = Header(default=None, alias="X-User-Email"),
    dev_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> Identity | None:
    """Return the authenticated caller, or None for anonymous requests."""

    try:
        return resolve_identity(authorization, dev_user, dev_user_id)
    except AuthError:
        return None
