"""Response schemas for courseware endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class CoursewareResponse(BaseModel):
    """Courseware metadata. Visible to every signed-in user."""

    id: str
    title: str
    description: str | None = None
    thumbnail: str | None = None
    category: str | None = None
    is_free: bool
    price: Decimal
    created_at: datetime | None = None


class CoursewareListResponse(BaseModel):
    coursewares: list[CoursewareResponse]


class ContentResponse(BaseModel):
    """A granted content body: where the renderer should load it from."""

    courseware_id: str
    content_locator: str
