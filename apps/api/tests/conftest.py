"""
Shared fixtures: an HTTP client against the ASGI app with the database and
the signed-in user overridden.
"""

from unittest.mock import AsyncMock
from uuid import uuid4

import httpx
import pytest
import pytest_asyncio

from app.core.auth import CurrentUser, get_current_user, get_optional_user
from app.core.database import get_db
from app.core.rate_limit import reset_memory_store
from app.main import app


@pytest.fixture(autouse=True)
def _clear_rate_limits():
    reset_memory_store()
    yield
    reset_memory_store()


@pytest.fixture
def current_user():
    return CurrentUser(id=uuid4(), email="alice@school.test", name="Alice")


@pytest.fixture
def api_db():
    """The session handed to route handlers."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    return db


@pytest_asyncio.fixture
async def client(api_db, current_user):
    """Client signed in as current_user."""

    async def override_db():
        yield api_db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_current_user] = lambda: current_user
    app.dependency_overrides[get_optional_user] = lambda: current_user

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def anonymous_client(api_db):
    """Client without an Authorization header."""

    async def override_db():
        yield api_db

    app.dependency_overrides[get_db] = override_db

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
