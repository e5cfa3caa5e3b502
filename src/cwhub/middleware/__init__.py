"""Middleware registration."""

from fastapi import FastAPI

from cwhub.auth.gate import SessionGateMiddleware
from cwhub.config import Settings
from cwhub.middleware.cors import setup_cors
from cwhub.middleware.error_handler import setup_error_handlers
from cwhub.middleware.logging import setup_logging
from cwhub.middleware.rate_limit import RateLimitMiddleware
from cwhub.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware in the correct order.

    Starlette executes middleware in reverse-add order (last added = outermost).
    Resulting order: CORS -> request id -> rate limit -> session gate -> routes.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(SessionGateMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)  # added last -> outermost -> wraps 401/429 responses
