"""
Session gate: per-request authentication and the public route allowlist.

Two halves:

- ``SessionGateMiddleware`` resolves the session token (cookie or bearer) to
  a Caller before routing and stores it on ``request.state.caller``.
- ``enforce_session_gate`` is a dependency on every router. It runs after
  routing, so it classifies the request by the matched route's registered
  name (a RouteId), never by raw path strings.

A denied request raises Unauthenticated; the error handler answers 401 JSON
on API routes and a redirect to the login page on page routes.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse, RedirectResponse, Response
from starlette.routing import Match

from cwhub.auth.sessions import Caller, authenticate
from cwhub.config import get_settings
from cwhub.database import get_session_factory
from cwhub.errors import Unauthenticated

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = structlog.get_logger()

LOGIN_PATH = "/login"
STATIC_PREFIX = "/public/"


class RouteId(str, Enum):
    """Every route the application serves, by registered route name."""

    # Pages
    HOME_PAGE = "home_page"
    LOGIN_PAGE = "login_page"
    REGISTER_PAGE = "register_page"
    COURSEWARE_PAGE = "courseware_page"
    UPGRADE_PAGE = "upgrade_page"
    PAYMENT_SUCCESS_PAGE = "payment_success_page"

    # Auth API
    API_LOGIN = "api_login"
    API_REGISTER = "api_register"
    API_FEDERATED_AUTHORIZE = "api_federated_authorize"
    API_FEDERATED_CALLBACK = "api_federated_callback"
    API_LOGOUT = "api_logout"
    API_ME = "api_me"

    # Courseware API
    API_COURSEWARE_LIST = "api_courseware_list"
    API_COURSEWARE_SEARCH = "api_courseware_search"
    API_COURSEWARE_CATEGORIES = "api_courseware_categories"
    API_COURSEWARE_DETAIL = "api_courseware_detail"
    API_COURSEWARE_CONTENT = "api_courseware_content"

    # Payment API
    API_PAYMENT_CREATE = "api_payment_create"
    API_PAYMENT_CALLBACK = "api_payment_callback"
    API_PAYMENT_SIMULATE = "api_payment_simulate"
    API_PAYMENT_STATUS = "api_payment_status"
    API_PAYMENT_HISTORY = "api_payment_history"

    # Operations
    HEALTH = "health"
    READY = "ready"
    VERSION = "version"
    STATIC = "static"


PUBLIC_ROUTES: frozenset[RouteId] = frozenset(
    {
        RouteId.LOGIN_PAGE,
        RouteId.REGISTER_PAGE,
        RouteId.API_LOGIN,
        RouteId.API_REGISTER,
        RouteId.API_FEDERATED_AUTHORIZE,
        RouteId.API_FEDERATED_CALLBACK,
        # Authorised by provider signature instead of a session.
        RouteId.API_PAYMENT_CALLBACK,
        RouteId.HEALTH,
        RouteId.READY,
        RouteId.VERSION,
        RouteId.STATIC,
    }
)

PAGE_ROUTES: frozenset[RouteId] = frozenset(
    {
        RouteId.HOME_PAGE,
        RouteId.LOGIN_PAGE,
        RouteId.REGISTER_PAGE,
        RouteId.COURSEWARE_PAGE,
        RouteId.UPGRADE_PAGE,
        RouteId.PAYMENT_SUCCESS_PAGE,
    }
)


def route_id_of(route: Any) -> RouteId | None:  # noqa: ANN401
    """RouteId for a route, or None when the route is missing or not classified."""
    name = getattr(route, "name", None)
    try:
        return RouteId(name)
    except ValueError:
        return None


def is_public_route(route_id: RouteId | None) -> bool:
    """Unclassified routes are never public."""
    return route_id is not None and route_id in PUBLIC_ROUTES


def iter_routes(routes: Iterable[Any]) -> Iterator[Any]:
    """Leaf routes, descending into anything that carries its own ``routes``."""
    for route in routes:
        children = getattr(route, "routes", None)
        if children is not None and not getattr(route, "name", None):
            yield from iter_routes(children)
        else:
            yield route


def is_public_path(routes: Iterable[Any], path: str, method: str) -> bool:
    """Whether a request for path/method may pass without a session.

    ``routes`` are the routes of one or more APIRouters (full paths), e.g.
    ``iter_routes(router.routes for router in ROUTERS)``.
    """
    if path.startswith(STATIC_PREFIX):
        return True
    scope = {"type": "http", "path": path, "method": method.upper(), "root_path": ""}
    for route in iter_routes(routes):
        match, _ = route.matches(scope)
        if match == Match.FULL:
            return is_public_route(route_id_of(route))
    return False


def extract_token(request: Request) -> str | None:
    """Session token from the cookie, or from an `Authorization: Bearer` header."""
    settings = get_settings()
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        return token
    auth = request.headers.get("authorization", "")
    scheme, _, credentials = auth.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


def unauthenticated_response(route_id: RouteId | None, message: str | None = None) -> Response:
    """Redirect page routes to the login page; everything else gets a 401 body."""
    if route_id is not None and route_id in PAGE_ROUTES:
        return RedirectResponse(LOGIN_PATH, status_code=303)
    exc = Unauthenticated(message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


class SessionGateMiddleware(BaseHTTPMiddleware):
    """Resolve the Caller for every request before it is routed."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Attach request.state.caller; access decisions happen in enforce_session_gate."""
        caller = Caller.anonymous()
        token = None if request.url.path.startswith(STATIC_PREFIX) else extract_token(request)
        if token:
            async with get_session_factory()() as db:
                caller = await authenticate(db, token)
        request.state.caller = caller
        return await call_next(request)


def enforce_session_gate(request: Request) -> Caller:
    """
    Router dependency: allow public routes, require a session everywhere else.

    Reads the route FastAPI matched for this request, so nested or prefixed
    routers classify the same way as top-level ones.
    """
    caller: Caller = getattr(request.state, "caller", None) or Caller.anonymous()
    route_id = route_id_of(request.scope.get("route"))
    if caller.is_authenticated or is_public_route(route_id):
        return caller

    logger.info(
        "gate_denied",
        path=request.url.path,
        method=request.method,
        route=route_id.value if route_id else None,
    )
    raise Unauthenticated
