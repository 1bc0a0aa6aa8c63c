"""Web push for clinic appointment notifications.

Server side, events become notifications delivered to every stored
endpoint; device side, the browser's subscription is created, synced and
rendered through injected platform capabilities.

Public API:
    - codec: base64url application key decoding
    - store: endpoint-keyed subscription persistence
    - dispatcher: template rendering, fan-out and pruning of dead endpoints
    - client: device subscribe/unsubscribe flow with store sync
    - worker: push and notification-click handling in the worker context
    - nudge: when to prompt a signed-in user to opt in
    - vapid: signing key generation and normalization
"""

from __future__ import annotations

from clinic.push.client import ClientSubscriptionManager, PushResult, StoreSyncClient, SyncResult
from clinic.push.codec import decode_application_key
from clinic.push.dispatcher import DispatchResult, NotificationDispatcher, WebPushSender
from clinic.push.nudge import NudgeController, NudgeOutcome, NudgeState
from clinic.push.store import SubscriptionStore
from clinic.push.templates import render_payload
from clinic.push.vapid import generate_vapid_keys, normalize_private_key
from clinic.push.worker import DeliveryWorker

__all__ = [
    "ClientSubscriptionManager",
    "DeliveryWorker",
    "DispatchResult",
    "NotificationDispatcher",
    "NudgeController",
    "NudgeOutcome",
    "NudgeState",
    "PushResult",
    "StoreSyncClient",
    "SubscriptionStore",
    "SyncResult",
    "WebPushSender",
    "decode_application_key",
    "generate_vapid_keys",
    "normalize_private_key",
    "render_payload",
]
