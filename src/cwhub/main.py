"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from cwhub.auth.router import router as auth_router
from cwhub.auth.sessions import purge_expired_sessions
from cwhub.config import get_settings
from cwhub.courseware.router import router as courseware_router
from cwhub.courseware.seed import seed_demo_data
from cwhub.database import close_db, get_session_factory, init_db
from cwhub.health.router import router as health_router
from cwhub.middleware import setup_middleware
from cwhub.pages.router import router as pages_router
from cwhub.payments.router import router as payments_router
from cwhub.redis_client import close_redis, init_redis

log = logging.getLogger(__name__)

ROUTERS = (health_router, auth_router, courseware_router, payments_router, pages_router)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    try:
        async with get_session_factory()() as db:
            await purge_expired_sessions(db)
            if settings.seed_demo_data:
                await seed_demo_data(db)
    except SQLAlchemyError:
        log.warning("Startup housekeeping failed (tables may not exist yet)", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Courseware Hub API",
        description="Courseware catalogue with session-gated access and premium upgrades",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    for router in ROUTERS:
        app.include_router(router)

    return app


app = create_app()
