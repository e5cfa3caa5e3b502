"""
Credential store.

Creates local and federated accounts and verifies local passwords. Unique
keys (username, email, federated subject) are enforced by the database; the
lookups before insert only give friendlier errors, the constraint decides any
race.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from cwhub.auth.password import (
    PasswordStrengthError,
    check_needs_rehash,
    hash_password,
    unusable_password_hash,
    validate_password_strength,
    verify_password,
)
from cwhub.db.models import User
from cwhub.errors import Conflict, Invalid, Unauthenticated

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

_USERNAME_RE = re.compile(r"^[\w.\-]{3,64}$")

# ---------------------------------------------------------------------------
# User queries
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: str) -> User | None:
    """Fetch a user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    """Fetch a user by exact username."""
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Fetch a user by email (case-insensitive)."""
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    return result.scalar_one_or_none()


async def get_user_by_subject(db: AsyncSession, subject: str) -> User | None:
    """Fetch a user by federated subject id."""
    result = await db.execute(select(User).where(User.federated_subject == subject))
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Local accounts
# ---------------------------------------------------------------------------


async def register_local(
    db: AsyncSession,
    username: str,
    password: str,
    email: str | None = None,
) -> User:
    """
    Register a new local account and commit it.

    Raises:
        Invalid: If the username or password is malformed.
        Conflict: If the username or email is already taken, including when a
            concurrent registration wins the race to insert.
    """
    username = username.strip()
    if not _USERNAME_RE.match(username):
        msg = "Username must be 3-64 letters, digits, '.', '-' or '_'"
        raise Invalid(msg)
    try:
        validate_password_strength(password)
    except PasswordStrengthError as e:
        raise Invalid(str(e)) from e

    email = email.lower().strip() if email else None

    if await get_user_by_username(db, username) is not None:
        msg = "Username already exists"
        raise Conflict(msg)
    if email is not None and await get_user_by_email(db, email) is not None:
        msg = "Email already registered"
        raise Conflict(msg)

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        is_premium=False,
        last_login=datetime.now(timezone.utc),
        login_count=1,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        logger.info("registration_conflict", username=username)
        msg = "Username or email already exists"
        raise Conflict(msg) from e

    logger.info("user_created", user_id=user.id, username=username, method="local")
    return user


async def verify_local(db: AsyncSession, username: str, password: str) -> User:
    """
    Check a username/password pair.

    Raises:
        Unauthenticated: Unknown username or wrong password. The message is
            identical for both so callers cannot probe for usernames.
    """
    user = await get_user_by_username(db, username.strip())
    if user is None:
        msg = "Invalid username or password"
        raise Unauthenticated(msg)

    if not verify_password(password, user.password_hash):
        logger.info("login_failed", user_id=user.id)
        msg = "Invalid username or password"
        raise Unauthenticated(msg)

    user.last_login = datetime.now(timezone.utc)
    user.login_count = (user.login_count or 0) + 1

    if check_needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        logger.info("password_rehashed", user_id=user.id)

    await db.commit()
    return user


# ---------------------------------------------------------------------------
# Federated accounts
# ---------------------------------------------------------------------------


async def _available_username(db: AsyncSession, display_name: str) -> str:
    """Derive a free username from a provider display name."""
    base = re.sub(r"[^\w.\-]", "", display_name.strip())[:56] or "user"
    if len(base) < 3:
        base = f"{base}_user"
    candidate = base
    suffix = 1
    while await get_user_by_username(db, candidate) is not None:
        suffix += 1
        candidate = f"{base}{suffix}"
    return candidate


async def resolve_federated(
    db: AsyncSession,
    subject: str,
    display_name: str,
) -> tuple[User, bool]:
    """
    Get the account bound to a federated subject, creating it on first login.

    Returns:
        Tuple of (user, created).

    A concurrent first login for the same subject loses on the unique
    constraint; the loser rolls back and returns the winner's row.
    """
    if not subject:
        msg = "Missing federated subject"
        raise Invalid(msg)

    user = await get_user_by_subject(db, subject)
    if user is not None:
        user.last_login = datetime.now(timezone.utc)
        user.login_count = (user.login_count or 0) + 1
        await db.commit()
        return user, False

    user = User(
        username=await _available_username(db, display_name),
        password_hash=unusable_password_hash(),
        federated_subject=subject,
        is_premium=False,
        last_login=datetime.now(timezone.utc),
        login_count=1,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        existing = await get_user_by_subject(db, subject)
        if existing is None:
            # Lost a username race rather than a subject race.
            msg = "Could not allocate a username, try again"
            raise Conflict(msg) from None
        return existing, False

    logger.info("federated_user_created", user_id=user.id, username=user.username)
    return user, True
