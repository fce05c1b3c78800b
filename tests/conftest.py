import uuid
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from merchforge.api.dependencies import get_current_user_id
from merchforge.database import get_db
from merchforge.main import app

FAKE_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def mock_session():
    """AsyncSession stand-in whose execute results each test scripts itself."""
    session = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


@pytest.fixture
def signed_in(mock_session):
    """Route requests to *mock_session* as FAKE_USER_ID; undone after the test."""

    async def _override_get_db():
        yield mock_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_current_user_id] = lambda: FAKE_USER_ID
    try:
        yield mock_session
    finally:
        app.dependency_overrides.clear()
