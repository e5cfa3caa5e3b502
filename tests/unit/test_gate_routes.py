"""Tests for route classification in the session gate."""

from __future__ import annotations

import pytest
from fastapi.routing import APIRoute
from httpx import AsyncClient

from cwhub.auth.gate import (
    PAGE_ROUTES,
    PUBLIC_ROUTES,
    RouteId,
    is_public_path,
    is_public_route,
    iter_routes,
    route_id_of,
    unauthenticated_response,
)
from cwhub.main import ROUTERS

# One anonymous request per served route.
ROUTE_REQUESTS = [
    (RouteId.HOME_PAGE, "GET", "/"),
    (RouteId.LOGIN_PAGE, "GET", "/login"),
    (RouteId.REGISTER_PAGE, "GET", "/register"),
    (RouteId.COURSEWARE_PAGE, "GET", "/courseware/abc"),
    (RouteId.UPGRADE_PAGE, "GET", "/upgrade"),
    (RouteId.PAYMENT_SUCCESS_PAGE, "GET", "/payment/success"),
    (RouteId.API_LOGIN, "POST", "/api/auth/login"),
    (RouteId.API_REGISTER, "POST", "/api/auth/register"),
    (RouteId.API_FEDERATED_AUTHORIZE, "GET", "/api/auth/federated/authorize"),
    (RouteId.API_FEDERATED_CALLBACK, "GET", "/api/auth/federated/callback"),
    (RouteId.API_LOGOUT, "POST", "/api/auth/logout"),
    (RouteId.API_ME, "GET", "/api/auth/me"),
    (RouteId.API_COURSEWARE_LIST, "GET", "/api/courseware"),
    (RouteId.API_COURSEWARE_SEARCH, "GET", "/api/courseware/search"),
    (RouteId.API_COURSEWARE_CATEGORIES, "GET", "/api/courseware/categories"),
    (RouteId.API_COURSEWARE_DETAIL, "GET", "/api/courseware/abc"),
    (RouteId.API_COURSEWARE_CONTENT, "GET", "/api/courseware/abc/content"),
    (RouteId.API_PAYMENT_CREATE, "POST", "/api/payment/create"),
    (RouteId.API_PAYMENT_CALLBACK, "POST", "/api/payment/callback"),
    (RouteId.API_PAYMENT_SIMULATE, "POST", "/api/payment/simulate-success"),
    (RouteId.API_PAYMENT_STATUS, "GET", "/api/payment/status/p-1"),
    (RouteId.API_PAYMENT_HISTORY, "GET", "/api/payment/history"),
    (RouteId.HEALTH, "GET", "/health"),
    (RouteId.READY, "GET", "/ready"),
    (RouteId.VERSION, "GET", "/version"),
]


@pytest.fixture
def routes():
    return list(iter_routes(route for router in ROUTERS for route in router.routes))


class TestRouteClassification:
    def test_every_api_route_is_classified(self, routes):
        """A route added without a RouteId would silently be private; catch it here."""
        unclassified = [r.path for r in routes if isinstance(r, APIRoute) and route_id_of(r) is None]
        assert unclassified == []

    def test_every_route_id_is_served(self, routes):
        served = {route_id_of(r) for r in routes if isinstance(r, APIRoute)}
        assert set(RouteId) - served == {RouteId.STATIC}

    def test_request_table_covers_every_served_route(self):
        assert {route_id for route_id, _, _ in ROUTE_REQUESTS} == set(RouteId) - {RouteId.STATIC}

    def test_route_id_of_missing_route(self):
        assert route_id_of(None) is None


class TestGateOnMountedApp:
    """Anonymous requests against the assembled application."""

    @pytest.mark.parametrize(("route_id", "method", "path"), ROUTE_REQUESTS, ids=lambda v: str(v))
    async def test_anonymous_request(self, client: AsyncClient, route_id, method, path):
        kwargs = {"json": {}} if method == "POST" else {}
        response = await client.request(method, path, **kwargs)

        if route_id in PUBLIC_ROUTES:
            assert response.status_code != 401
            assert response.headers.get("location") != "/login"
        elif route_id in PAGE_ROUTES:
            assert response.status_code == 303
            assert response.headers["location"] == "/login"
        else:
            assert response.status_code == 401
            assert response.json()["code"] == "unauthenticated"

    async def test_public_routes_answer_anonymously(self, client: AsyncClient):
        assert (await client.get("/health")).status_code == 200
        assert (await client.get("/version")).status_code == 200
        assert (await client.get("/login")).status_code == 200
        assert (await client.get("/api/auth/federated/authorize")).status_code == 200

    async def test_signed_in_caller_passes(self, client: AsyncClient, registered_user):
        response = await client.get("/api/auth/me", headers=registered_user["headers"])
        assert response.status_code == 200


class TestPublicRoutes:
    def test_public_and_page_sets(self):
        assert RouteId.API_PAYMENT_CALLBACK in PUBLIC_ROUTES
        assert RouteId.API_PAYMENT_SIMULATE not in PUBLIC_ROUTES
        assert RouteId.API_COURSEWARE_CONTENT not in PUBLIC_ROUTES
        assert RouteId.HOME_PAGE in PAGE_ROUTES
        assert RouteId.API_ME not in PAGE_ROUTES

    def test_unclassified_is_never_public(self):
        assert is_public_route(None) is False

    @pytest.mark.parametrize(
        ("path", "method", "public"),
        [
            ("/login", "GET", True),
            ("/register", "GET", True),
            ("/api/auth/register", "POST", True),
            ("/api/auth/federated/callback", "GET", True),
            ("/health", "GET", True),
            ("/version", "GET", True),
            ("/public/images/thumbnail1.jpg", "GET", True),
            ("/", "GET", False),
            ("/api/auth/me", "GET", False),
            ("/api/auth/logout", "POST", False),
            ("/api/auth/login", "GET", False),
            ("/api/payment/create", "POST", False),
            ("/api/payment/simulate-success", "POST", False),
            ("/api/courseware/abc/content", "GET", False),
            ("/nope", "GET", False),
        ],
    )
    def test_is_public_path(self, routes, path, method, public):
        assert is_public_path(routes, path, method) is public


class TestDeniedResponse:
    def test_page_route_redirects(self):
        response = unauthenticated_response(RouteId.UPGRADE_PAGE)
        assert response.status_code == 303
        assert response.headers["location"] == "/login"

    def test_api_route_gets_401(self):
        response = unauthenticated_response(RouteId.API_ME)
        assert response.status_code == 401

    def test_unclassified_gets_401(self):
        assert unauthenticated_response(None).status_code == 401
