"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Iterator
from decimal import Decimal
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from cwhub.config import get_settings
from cwhub.database import close_db, get_engine, get_session_factory, init_db
from cwhub.db.base import Base
from cwhub.db.models import Courseware
from cwhub.main import create_app

TEST_PROVIDER_SECRET = "test-provider-secret-0123456789"


@pytest.fixture(autouse=True)
def _test_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Point every test at its own SQLite file and known secrets."""
    monkeypatch.setenv("CWH_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'cwhub-test.db'}")
    monkeypatch.setenv("CWH_SESSION_SECRET", "test-session-secret-0123456789")
    monkeypatch.setenv("CWH_PAYMENT_PROVIDER_SECRET", TEST_PROVIDER_SECRET)
    monkeypatch.setenv("CWH_LOG_FORMAT", "console")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[None, None]:
    """Initialise the engine and create all tables (Redis stays uninitialised)."""
    await init_db(get_settings().database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_db()


@pytest_asyncio.fixture
async def client(database: None) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client against a fresh app."""
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def db_session(database: None) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for service-level tests and assertions."""
    async with get_session_factory()() as session:
        yield session


@pytest_asyncio.fixture
async def coursewares(db_session: AsyncSession) -> dict[str, Courseware]:
    """One free and one paid courseware (R1 / R2)."""
    free = Courseware(
        title="Algebra Basics",
        description="Linear equations with worked examples",
        category="Mathematics",
        content_path="/coursewares/course1.html",
        is_free=True,
        price=Decimal("0"),
    )
    paid = Courseware(
        title="Advanced Grammar",
        description="Clauses, moods and style",
        category="Language",
        content_path="/coursewares/course11.html",
        is_free=False,
        price=Decimal("20.00"),
    )
    db_session.add_all([free, paid])
    await db_session.commit()
    return {"free": free, "paid": paid}


async def register_user(client: AsyncClient, username: str = "student", password: str = "s3cret-pass") -> dict:
    """Register via the API and return credentials plus bearer headers.

    The cookie jar is cleared so each caller is identified only by the headers
    passed explicitly.
    """
    response = await client.post("/api/auth/register", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    data = response.json()
    client.cookies.clear()
    return {
        "username": username,
        "password": password,
        "user_id": data["user"]["id"],
        "session_token": data["session_token"],
        "headers": {"Authorization": f"Bearer {data['session_token']}"},
    }


@pytest.fixture
def register(client: AsyncClient):
    """Factory fixture: `await register("name", "password")`."""

    async def _register(username: str, password: str = "s3cret-pass") -> dict:
        return await register_user(client, username, password)

    return _register


@pytest_asyncio.fixture
async def registered_user(register) -> dict:
    """A signed-in free user."""
    return await register("student")


@pytest_asyncio.fixture
async def other_user(register) -> dict:
    """A second signed-in free user."""
    return await register("classmate", "other-pass")
