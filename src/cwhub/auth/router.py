"""Authentication router: all /api/auth/* endpoints."""

from __future__ import annotations

import jwt
import structlog
from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from cwhub.auth.credentials import register_local, resolve_federated, verify_local
from cwhub.auth.dependencies import get_caller, require_user
from cwhub.auth.federation import MockIdentityProvider, get_identity_provider
from cwhub.auth.gate import enforce_session_gate
from cwhub.auth.schemas import (
    FederatedAuthorizeResponse,
    LoginRequest,
    RegisterRequest,
    SessionResponse,
    UserResponse,
)
from cwhub.auth.sessions import Caller, create_session, revoke_session
from cwhub.auth.tokens import create_state_token, verify_token
from cwhub.config import get_settings
from cwhub.database import get_session
from cwhub.db.models import User

logger = structlog.get_logger()

router = APIRouter(prefix="/api/auth", tags=["Authentication"], dependencies=[Depends(enforce_session_gate)])


def user_response(user: User) -> UserResponse:
    """Build a UserResponse from a User model."""
    return UserResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        is_premium=user.is_premium,
        auth_method=user.auth_method,
        created_at=user.created_at,
        last_login=user.last_login,
        login_count=user.login_count,
    )


def _set_session_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.session_ttl_seconds,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite=settings.session_cookie_samesite,  # type: ignore[arg-type]
    )


async def _open_session(db: AsyncSession, user: User, request: Request, response: Response) -> SessionResponse:
    """Create a session for the user, set the cookie and build the response body."""
    settings = get_settings()
    token = await create_session(
        db,
        user.id,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    _set_session_cookie(response, token)
    return SessionResponse(
        session_token=token,
        expires_in=settings.session_ttl_seconds,
        user=user_response(user),
    )


# ---------------------------------------------------------------------------
# Local auth
# ---------------------------------------------------------------------------


@router.post("/register", response_model=SessionResponse, name="api_register")
async def register(
    body: RegisterRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_session),
) -> SessionResponse:
    """Register with username + password (email optional) and sign in."""
    user = await register_local(db, body.username, body.password, email=body.email)
    return await _open_session(db, user, request, response)


@router.post("/login", response_model=SessionResponse, name="api_login")
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_session),
) -> SessionResponse:
    """Login with username + password."""
    user = await verify_local(db, body.username, body.password)
    return await _open_session(db, user, request, response)


@router.post("/logout", name="api_logout")
async def logout(
    response: Response,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Revoke the current session immediately and clear the cookie."""
    if caller.session_id is not None:
        await revoke_session(db, caller.session_id)
    response.delete_cookie(get_settings().session_cookie_name)
    return {"status": "logged_out"}


@router.get("/me", response_model=UserResponse, name="api_me")
async def me(user: User = Depends(require_user)) -> UserResponse:
    """Current user info."""
    return user_response(user)


# ---------------------------------------------------------------------------
# Federated auth
# ---------------------------------------------------------------------------


@router.get("/federated/authorize", response_model=FederatedAuthorizeResponse, name="api_federated_authorize")
async def federated_authorize(
    provider: MockIdentityProvider = Depends(get_identity_provider),
) -> FederatedAuthorizeResponse:
    """Start a federated login: returns the provider URL carrying a signed state."""
    state = create_state_token()
    return FederatedAuthorizeResponse(authorize_url=provider.authorize_url(state), state=state)


@router.get("/federated/callback", name="api_federated_callback")
async def federated_callback(
    request: Request,
    code: str = Query(..., min_length=1),
    state: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_session),
    provider: MockIdentityProvider = Depends(get_identity_provider),
) -> Response:
    """Provider redirect target: resolve the identity, sign in, go home."""
    try:
        verify_token(state, expected_type="federation_state")
    except jwt.InvalidTokenError:
        logger.info("federated_state_rejected")
        return RedirectResponse("/login?error=federated_login_failed", status_code=303)

    identity = await provider.exchange_code(code)
    user, _created = await resolve_federated(db, identity.subject, identity.display_name)

    redirect = RedirectResponse("/", status_code=303)
    await _open_session(db, user, request, redirect)
    return redirect
