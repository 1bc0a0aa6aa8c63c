"""E2E fixtures: device-side components talking to the real app.

The subscription manager's sync client and the settings provider use an
httpx.AsyncClient over ASGITransport, so every request runs the real
routers, middleware stack and database writes. Only the push transport is
replaced (FakePushSender).
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
async def app_client(db: AsyncSession, sender: FakePushSender) -> AsyncClient:
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_push_sender] = lambda: sender

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
