"""FastAPI authentication dependencies."""

from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cwhub.auth.credentials import get_user_by_id
from cwhub.auth.sessions import Caller
from cwhub.database import get_session
from cwhub.db.models import User
from cwhub.errors import Unauthenticated


def get_caller(request: Request) -> Caller:
    """The Caller resolved by the session gate for this request."""
    return getattr(request.state, "caller", None) or Caller.anonymous()


async def require_user(
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_session),
) -> User:
    """
    Load the signed-in user.

    The gate already rejects anonymous callers on private routes; this guards
    against a user row disappearing between the gate and the handler.
    """
    if not caller.is_authenticated or caller.user_id is None:
        raise Unauthenticated
    user = await get_user_by_id(db, caller.user_id)
    if user is None:
        msg = "User not found"
        raise Unauthenticated(msg)
    return user
