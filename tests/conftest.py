"""Root test configuration: shared fixtures for all test modules.

IMPORTANT: Environment variables are set BEFORE any clinic imports
so that config.py can load Settings without a .env file.
"""

from __future__ import annotations

import base64
import os

# Set required env vars before importing anything from clinic
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

_TEST_KEY = ec.generate_private_key(ec.SECP256R1())
_TEST_PUBLIC_KEY = (
    base64.urlsafe_b64encode(
        _TEST_KEY.public_key().public_bytes(
            serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint
        )
    )
    .decode()
    .rstrip("=")
)
_TEST_PRIVATE_KEY = (
    base64.urlsafe_b64encode(_TEST_KEY.private_numbers().private_value.to_bytes(32, "big"))
    .decode()
    .rstrip("=")
)

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")  # In-memory SQLite
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("VAPID_PUBLIC_KEY", _TEST_PUBLIC_KEY)
os.environ.setdefault("VAPID_PRIVATE_KEY", _TEST_PRIVATE_KEY)
os.environ.setdefault("VAPID_SUBJECT", "mailto:test@clinic.example")

# Now safe to import clinic modules
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from clinic.common.config import Settings, get_settings
from clinic.common.models import Base
from clinic.push.store import SubscriptionStore
from tests.fakes import FakePushSender

# ─── Clear cached settings so test env vars are used ───
get_settings.cache_clear()


# ─── Test Database ───


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test.

    Stores commit on every write, so each test gets its own engine instead
    of relying on rollback isolation. StaticPool keeps the single in-memory
    connection alive across sessions.
    """
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest_asyncio.fixture
async def db(engine):
    """Provide a database session bound to the per-test engine."""
    session_factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def store(db) -> SubscriptionStore:
    return SubscriptionStore(db)


# ─── Test Settings ───


@pytest.fixture
def test_settings() -> Settings:
    """Settings with a full (throwaway) VAPID identity."""
    return get_settings()


@pytest.fixture
def unconfigured_settings() -> Settings:
    """Settings with no VAPID identity at all."""
    return get_settings().model_copy(
        update={"vapid_public_key": None, "vapid_private_key": None, "vapid_subject": None}
    )


@pytest.fixture
def vapid_public_key() -> str:
    return _TEST_PUBLIC_KEY


# ─── Transport ───


@pytest.fixture
def sender() -> FakePushSender:
    """In-memory push transport; configure per-endpoint failures via ``fail``."""
    return FakePushSender()
