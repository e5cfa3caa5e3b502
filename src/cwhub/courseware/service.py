"""Courseware catalogue queries."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func, or_, select

from cwhub.db.models import Courseware
from cwhub.errors import NotFound

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession


async def get_courseware(db: AsyncSession, courseware_id: str) -> Courseware:
    """Fetch a courseware by ID. Raises NotFound."""
    result = await db.execute(select(Courseware).where(Courseware.id == courseware_id))
    courseware = result.scalar_one_or_none()
    if courseware is None:
        msg = "Courseware not found"
        raise NotFound(msg)
    return courseware


async def list_coursewares(db: AsyncSession, category: str | None = None) -> Sequence[Courseware]:
    """All coursewares, newest first, optionally limited to one category."""
    stmt = select(Courseware).order_by(Courseware.created_at.desc(), Courseware.title)
    if category:
        stmt = stmt.where(Courseware.category == category)
    result = await db.execute(stmt)
    return result.scalars().all()


async def search_coursewares(db: AsyncSession, keyword: str) -> Sequence[Courseware]:
    """Case-insensitive substring search over title and description."""
    pattern = f"%{keyword.strip().lower()}%"
    stmt = (
        select(Courseware)
        .where(
            or_(
                func.lower(Courseware.title).like(pattern),
                func.lower(Courseware.description).like(pattern),
            )
        )
        .order_by(Courseware.created_at.desc(), Courseware.title)
    )
    result = await db.execute(stmt)
    return result.scalars().all()


async def list_categories(db: AsyncSession) -> list[str]:
    """Distinct non-empty categories, alphabetically."""
    result = await db.execute(
        select(Courseware.category).where(Courseware.category.is_not(None)).distinct().order_by(Courseware.category)
    )
    return [c for c in result.scalars().all() if c]
