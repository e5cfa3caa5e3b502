"""
Entitlement upgrade: the only code path that sets User.is_premium.

The update is conditional on the flag still being false, so repeated or
concurrent grants flip it at most once and write at most one audit row.
Nothing here commits; the caller owns the transaction.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select, update

from cwhub.db.models import EntitlementGrant, User

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


async def grant_premium(db: AsyncSession, user_id: str, payment_id: str | None = None) -> bool:
    """
    Raise the user's tier to premium.

    Returns True if this call flipped the flag, False if the user was already
    premium (or does not exist). Never raises for an already-premium user.
    """
    result = await db.execute(
        update(User)
        .where(User.id == user_id)
        .where(User.is_premium == False)  # noqa: E712
        .values(is_premium=True)
    )
    if not result.rowcount:
        return False

    db.add(EntitlementGrant(user_id=user_id, payment_id=payment_id, granted_at=datetime.now(timezone.utc)))
    await db.flush()
    logger.info("premium_granted", user_id=user_id, payment_id=payment_id)
    return True


async def count_grants(db: AsyncSession, user_id: str) -> int:
    """Number of times the user's flag was actually flipped (audit trail length)."""
    result = await db.execute(
        select(func.count()).select_from(EntitlementGrant).where(EntitlementGrant.user_id == user_id)
    )
    return int(result.scalar_one())
