"""Shared fixtures: an HTTP client wired to an in-memory schedule store."""

import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient

load_dotenv()

# Settings require a URL at import time; unit and route tests never connect.
os.environ.setdefault("DATABASE_URL", "postgresql+asyncpg://localhost/umpires_test")

from tests.unit.fake_store import InMemoryScheduleStore  # noqa: E402


@pytest.fixture
def schedule_store() -> InMemoryScheduleStore:
    """Empty in-memory store shared by the app and the test body."""
    return InMemoryScheduleStore()


@pytest_asyncio.fixture()
async def api_client(
    schedule_store: InMemoryScheduleStore,
) -> AsyncGenerator[AsyncClient, None]:
    """Provide an HTTP client with the application wired to the in-memory store."""
    from app.main import app
    from app.utils.db_async import get_schedule_store

    async def _get_store_override() -> InMemoryScheduleStore:
        return schedule_store

    app.dependency_overrides[get_schedule_store] = _get_store_override
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.pop(get_schedule_store, None)


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Ensure HTTPX uses asyncio backend during tests."""
    return "asyncio"
