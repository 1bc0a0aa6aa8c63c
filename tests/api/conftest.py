"""API test fixtures: httpx.AsyncClient wired to the app with dependency overrides.

The database dependency is overridden with the per-test in-memory session
from the root conftest, and the push transport with an in-memory sender.
"""

from __future__ import annotations

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from clinic.api.deps import get_push_sender
from clinic.common.database import get_db
from clinic.main import app
from tests.fakes import FakePushSender


@pytest_asyncio.fixture
async def client(db: AsyncSession, sender: FakePushSender) -> AsyncClient:
    """Provide an httpx.AsyncClient wired to the test FastAPI app."""
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_push_sender] = lambda: sender

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
