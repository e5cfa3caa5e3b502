"""Courseware router: /api/courseware/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from cwhub.auth.dependencies import require_user
from cwhub.auth.gate import enforce_session_gate
from cwhub.courseware.policy import AccessDecision, can_view
from cwhub.courseware.schemas import ContentResponse, CoursewareListResponse, CoursewareResponse
from cwhub.courseware.service import get_courseware, list_categories, list_coursewares, search_coursewares
from cwhub.database import get_session
from cwhub.db.models import Courseware, User
from cwhub.errors import PaymentRequired

logger = structlog.get_logger()

router = APIRouter(prefix="/api/courseware", tags=["Courseware"], dependencies=[Depends(enforce_session_gate)])


def courseware_response(courseware: Courseware) -> CoursewareResponse:
    """Build a CoursewareResponse from a Courseware model."""
    return CoursewareResponse(
        id=courseware.id,
        title=courseware.title,
        description=courseware.description,
        thumbnail=courseware.thumbnail,
        category=courseware.category,
        is_free=courseware.is_free,
        price=courseware.price,
        created_at=courseware.created_at,
    )


@router.get("", response_model=CoursewareListResponse, name="api_courseware_list")
async def list_all(
    category: str | None = Query(None, max_length=64),
    _user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
) -> CoursewareListResponse:
    """List coursewares, optionally filtered by category."""
    items = await list_coursewares(db, category)
    return CoursewareListResponse(coursewares=[courseware_response(c) for c in items])


@router.get("/search", response_model=CoursewareListResponse, name="api_courseware_search")
async def search(
    q: str | None = Query(None, max_length=128),
    category: str | None = Query(None, max_length=64),
    _user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
) -> CoursewareListResponse:
    """Keyword search; without a keyword behaves like the category listing."""
    items = await search_coursewares(db, q) if q else await list_coursewares(db, category)
    return CoursewareListResponse(coursewares=[courseware_response(c) for c in items])


@router.get("/categories", name="api_courseware_categories")
async def categories(
    _user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, list[str]]:
    """Distinct categories for the catalogue filter."""
    return {"categories": await list_categories(db)}


@router.get("/{courseware_id}", response_model=CoursewareResponse, name="api_courseware_detail")
async def detail(
    courseware_id: str,
    _user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
) -> CoursewareResponse:
    """Metadata is visible to every signed-in user."""
    return courseware_response(await get_courseware(db, courseware_id))


@router.get("/{courseware_id}/content", response_model=ContentResponse, name="api_courseware_content")
async def content(
    courseware_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
) -> ContentResponse:
    """Content body locator, or 402 when the user needs premium."""
    courseware = await get_courseware(db, courseware_id)
    if can_view(user, courseware) is AccessDecision.PAYMENT_REQUIRED:
        logger.info("content_payment_required", user_id=user.id, courseware_id=courseware.id)
        msg = "Premium access required to view this courseware"
        raise PaymentRequired(msg)
    return ContentResponse(courseware_id=courseware.id, content_locator=courseware.content_path)
