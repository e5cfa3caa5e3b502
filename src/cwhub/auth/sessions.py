"""
Login sessions.

A session row is created on every successful login or registration and lives
for a fixed TTL from creation; activity does not extend it. Logout revokes
the row, which invalidates the cookie immediately.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import jwt
import structlog
from sqlalchemy import delete, or_, select, update

from cwhub.auth.tokens import create_session_token, verify_token
from cwhub.config import get_settings
from cwhub.db.models import AuthSession

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


@dataclass(frozen=True)
class Caller:
    """Who is making the request. Passed explicitly into every operation."""

    user_id: str | None = None
    session_id: str | None = None

    @classmethod
    def anonymous(cls) -> Caller:
        return cls()

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


def _as_utc(value: datetime) -> datetime:
    """Some drivers (SQLite) hand back naive datetimes; they are stored as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def create_session(
    db: AsyncSession,
    user_id: str,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
    now: datetime | None = None,
) -> str:
    """Open a session for the user and return its signed token."""
    settings = get_settings()
    now = now or datetime.now(timezone.utc)
    session = AuthSession(
        user_id=user_id,
        created_at=now,
        expires_at=now + timedelta(seconds=settings.session_ttl_seconds),
        ip_address=ip_address,
        user_agent=user_agent[:512] if user_agent else None,
    )
    db.add(session)
    await db.commit()
    logger.info("session_created", user_id=user_id, session_id=session.id)
    return create_session_token(user_id, session.id, issued_at=now)


async def authenticate(db: AsyncSession, token: str | None, now: datetime | None = None) -> Caller:
    """
    Resolve a session token to a Caller.

    Anything short of a correctly signed token naming a live, unrevoked,
    unexpired session bound to the same user yields an anonymous caller.
    """
    if not token:
        return Caller.anonymous()
    try:
        payload = verify_token(token, expected_type="session")
    except jwt.InvalidTokenError:
        return Caller.anonymous()

    session_id = payload.get("sid")
    user_id = payload.get("sub")
    if not session_id or not user_id:
        return Caller.anonymous()

    result = await db.execute(select(AuthSession).where(AuthSession.id == session_id))
    session = result.scalar_one_or_none()
    if session is None or session.user_id != user_id or session.revoked_at is not None:
        return Caller.anonymous()

    now = now or datetime.now(timezone.utc)
    if now >= _as_utc(session.expires_at):
        return Caller.anonymous()

    return Caller(user_id=session.user_id, session_id=session.id)


async def revoke_session(db: AsyncSession, session_id: str) -> bool:
    """Revoke a session. Returns True if a live session was revoked."""
    result = await db.execute(
        update(AuthSession)
        .where(AuthSession.id == session_id)
        .where(AuthSession.revoked_at.is_(None))
        .values(revoked_at=datetime.now(timezone.utc))
    )
    await db.commit()
    revoked = bool(result.rowcount)
    if revoked:
        logger.info("session_revoked", session_id=session_id)
    return revoked


async def purge_expired_sessions(db: AsyncSession, now: datetime | None = None) -> int:
    """Delete expired or revoked sessions. Returns the number of rows removed."""
    now = now or datetime.now(timezone.utc)
    result = await db.execute(
        delete(AuthSession).where(or_(AuthSession.expires_at <= now, AuthSession.revoked_at.is_not(None)))
    )
    await db.commit()
    return result.rowcount  # type: ignore[return-value]
