"""
HS256 signed tokens.

Two token types share the session secret:

- ``session``: handed to the browser as a cookie (or bearer token). It only
  names a server-side session row; validity and expiry live in the database,
  so a logout takes effect immediately.
- ``federation_state``: short-lived anti-CSRF state for the federated login
  round trip.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from cwhub.config import get_settings

_ALGORITHM = "HS256"


def create_session_token(user_id: str, session_id: str, issued_at: datetime | None = None) -> str:
    """Sign a token binding a session id to its user."""
    settings = get_settings()
    payload: dict[str, Any] = {
        "sub": user_id,
        "sid": session_id,
        "iat": issued_at or datetime.now(timezone.utc),
        "iss": settings.session_issuer,
        "type": "session",
    }
    return jwt.encode(payload, settings.session_secret, algorithm=_ALGORITHM)


def create_state_token() -> str:
    """Sign a one-off state value for the federated authorize redirect."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "nonce": secrets.token_hex(16),
        "iat": now,
        "exp": now + timedelta(seconds=settings.federation_state_ttl_seconds),
        "iss": settings.session_issuer,
        "type": "federation_state",
    }
    return jwt.encode(payload, settings.session_secret, algorithm=_ALGORITHM)


def verify_token(token: str, expected_type: str = "session") -> dict[str, Any]:
    """
    Verify and decode a signed token.

    Raises:
        jwt.InvalidTokenError: If the signature, issuer, expiry or type is wrong.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.session_secret,
            algorithms=[_ALGORITHM],
            issuer=settings.session_issuer,
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if payload.get("type") != expected_type:
        msg = f"Expected token type '{expected_type}', got '{payload.get('type')}'"
        raise jwt.InvalidTokenError(msg)

    return payload
