"""
Page routes.

These return view models ({"view": ..., "context": ...}) for the external
template renderer instead of HTML. Because they are page-shaped, the session
gate redirects anonymous visitors to /login rather than answering 401.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from cwhub.auth.dependencies import get_caller, require_user
from cwhub.auth.gate import enforce_session_gate
from cwhub.auth.router import user_response
from cwhub.auth.sessions import Caller
from cwhub.config import get_settings
from cwhub.courseware.policy import AccessDecision, can_view
from cwhub.courseware.router import courseware_response
from cwhub.courseware.service import get_courseware, list_categories, list_coursewares
from cwhub.database import get_session
from cwhub.db.models import User

router = APIRouter(tags=["Pages"], dependencies=[Depends(enforce_session_gate)])


def view(name: str, title: str, **context: Any) -> dict[str, Any]:  # noqa: ANN401
    """Structured page data for the renderer."""
    return {"view": name, "context": {"title": title, **context}}


@router.get("/", name="home_page")
async def home(
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    coursewares = await list_coursewares(db)
    return view(
        "index",
        "Courseware Hub",
        user=user_response(user).model_dump(mode="json"),
        coursewares=[courseware_response(c).model_dump(mode="json") for c in coursewares],
        categories=await list_categories(db),
    )


@router.get("/login", name="login_page", response_model=None)
async def login_page(caller: Caller = Depends(get_caller)) -> dict[str, Any] | RedirectResponse:
    if caller.is_authenticated:
        return RedirectResponse("/", status_code=303)
    return view("login", "Sign in")


@router.get("/register", name="register_page", response_model=None)
async def register_page(caller: Caller = Depends(get_caller)) -> dict[str, Any] | RedirectResponse:
    if caller.is_authenticated:
        return RedirectResponse("/", status_code=303)
    return view("register", "Create an account")


@router.get("/courseware/{courseware_id}", name="courseware_page")
async def courseware_page(
    courseware_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Detail view, or the payment-required view for gated content."""
    courseware = await get_courseware(db, courseware_id)
    context = {
        "user": user_response(user).model_dump(mode="json"),
        "courseware": courseware_response(courseware).model_dump(mode="json"),
    }
    if can_view(user, courseware) is AccessDecision.PAYMENT_REQUIRED:
        return view("payment-required", "Premium required", **context)
    return view("courseware-detail", courseware.title, content_locator=courseware.content_path, **context)


@router.get("/upgrade", name="upgrade_page")
async def upgrade_page(user: User = Depends(require_user)) -> dict[str, Any]:
    return view(
        "upgrade",
        "Upgrade to premium",
        user=user_response(user).model_dump(mode="json"),
        amount=str(get_settings().default_upgrade_amount),
    )


@router.get("/payment/success", name="payment_success_page")
async def payment_success_page(user: User = Depends(require_user)) -> dict[str, Any]:
    return view("payment-success", "Payment complete", user=user_response(user).model_dump(mode="json"))
