"""FastAPI dependencies for the push and settings routers.

Tests override ``get_push_sender`` (fake transport) and, where needed,
``get_dispatcher`` through ``app.dependency_overrides``.
"""

from __future__ import annotations

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from clinic.common.config import get_settings
from clinic.common.database import get_db
from clinic.push.dispatcher import NotificationDispatcher, PushSender, WebPushSender
from clinic.push.store import SubscriptionStore
from clinic.settings.store import GlobalSettingsStore


async def get_subscription_store(db: AsyncSession = Depends(get_db)) -> SubscriptionStore:
    return SubscriptionStore(db)


async def get_push_sender() -> PushSender:
    return WebPushSender(get_settings())


async def get_dispatcher(
    store: SubscriptionStore = Depends(get_subscription_store),
    sender: PushSender = Depends(get_push_sender),
) -> NotificationDispatcher:
    """Dispatcher bound to the request's session and the configured transport."""
    return NotificationDispatcher(store, sender=sender, settings=get_settings())


async def get_settings_store(db: AsyncSession = Depends(get_db)) -> GlobalSettingsStore:
    return GlobalSettingsStore(db)
