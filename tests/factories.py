"""Test data factories for request bodies and wired-up devices.

Usage:
    from tests.factories import make_device, subscription_body

    body = subscription_body("https://push.example/1", user_id=42)
    platform, manager = make_device(client, vapid_public_key, "https://push.example/1")
"""

from __future__ import annotations

from httpx import AsyncClient

from clinic.push.client import ClientSubscriptionManager, StoreSyncClient
from tests.fakes import FakePlatform, FakePushManager


def subscription_body(
    endpoint: str = "https://fcm.googleapis.com/fcm/send/test-endpoint-123",
    user_id: str | int | None = "u-1",
    **overrides,
) -> dict:
    """A subscribe request as the web client sends it."""
    body = {
        "subscription": {
            "endpoint": endpoint,
            "expirationTime": None,
            "keys": {"p256dh": "test-p256dh-key", "auth": "test-auth-key"},
        },
        "userId": user_id,
        "platform": "MacIntel",
        "userAgent": "Mozilla/5.0 (Macintosh) Test",
    }
    body.update(overrides)
    return body


def make_device(
    client: AsyncClient, vapid_public_key: str, endpoint: str
) -> tuple[FakePlatform, ClientSubscriptionManager]:
    """A device whose next platform subscription gets ``endpoint``.

    Its store sync goes through ``client``.
    """
    platform = FakePlatform()
    platform.next_push_managers = [FakePushManager(endpoint=endpoint)]
    manager = ClientSubscriptionManager(platform, StoreSyncClient(client=client), vapid_public_key)
    return platform, manager
