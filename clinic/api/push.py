"""Push subscription and dispatch endpoints.

POST /api/push/subscribe     store (upsert) a device subscription
POST /api/push/unsubscribe   delete a subscription by endpoint
POST /api/push/send          fan an appointment event out to every endpoint
GET  /api/push/vapid-public-key
"""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Depends

from clinic.api.deps import get_dispatcher, get_subscription_store
from clinic.common.config import get_settings
from clinic.common.exceptions import (
    InvalidSubscriptionError,
    MissingEndpointError,
    MissingVapidPublicKeyError,
)
from clinic.common.logging import get_logger, short_endpoint
from clinic.common.schemas import (
    NotificationEvent,
    OkResponse,
    PublicKeyResponse,
    SendResponse,
    SubscribeRequest,
    UnsubscribeRequest,
)
from clinic.push.dispatcher import NotificationDispatcher
from clinic.push.store import SubscriptionStore

logger = get_logger("API")

router = APIRouter()


@router.post("/subscribe", response_model=OkResponse)
async def subscribe_push(
    body: SubscribeRequest,
    store: SubscriptionStore = Depends(get_subscription_store),
) -> OkResponse:
    """Upsert the browser's subscription keyed on its endpoint.

    Raises:
        InvalidSubscriptionError: No subscription object or no endpoint (400).
        StoreError: The upsert failed (500).
    """
    subscription = body.subscription
    if subscription is None or not subscription.endpoint:
        raise InvalidSubscriptionError("Subscription endpoint is required")

    await store.upsert(
        endpoint=subscription.endpoint,
        p256dh=subscription.keys.p256dh,
        auth=subscription.keys.auth,
        owner_user_id=body.user_id,
        platform=body.platform,
        user_agent=body.user_agent,
        updated_at=datetime.now(UTC),
    )
    logger.info(
        "Push subscription stored",
        extra={
            "data": {
                "endpoint": short_endpoint(subscription.endpoint),
                "user_id": body.user_id,
                "platform": body.platform,
            }
        },
    )
    return OkResponse()


@router.post("/unsubscribe", response_model=OkResponse)
async def unsubscribe_push(
    body: UnsubscribeRequest,
    store: SubscriptionStore = Depends(get_subscription_store),
) -> OkResponse:
    """Delete the subscription for an endpoint (no-op if it is not stored)."""
    if not body.endpoint:
        raise MissingEndpointError("Endpoint is required")

    await store.delete_by_endpoint(body.endpoint)
    return OkResponse()


@router.post("/send", response_model=SendResponse)
async def send_push(
    event: NotificationEvent,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> SendResponse:
    """Render the event and deliver it to every stored endpoint.

    ``sent`` is the number of endpoints attempted.

    Raises:
        MissingVapidKeysError: Signing identity not configured (500).
        StoreError: Endpoint listing or pruning failed (500).
    """
    result = await dispatcher.dispatch(event)
    return SendResponse(sent=result.sent)


@router.get("/vapid-public-key", response_model=PublicKeyResponse)
async def get_vapid_public_key() -> PublicKeyResponse:
    """Expose the application server key clients subscribe with."""
    public_key = get_settings().vapid_public_key
    if not public_key:
        raise MissingVapidPublicKeyError("VAPID public key is not configured")
    return PublicKeyResponse(public_key=public_key)
