"""In-memory stand-ins for the device platform and the push transport.

Usage:
    from tests.fakes import FakePlatform, FakePushSender

    platform = FakePlatform(permission_on_request="granted")
    sender = FakePushSender()
    sender.fail("https://push.example/gone", status_code=410)
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

from clinic.common.exceptions import PlatformError, PushDeliveryError
from clinic.common.schemas import SubscriptionRecord

# ─── Push Transport ───


class FakePushSender:
    """Records deliveries; endpoints registered via ``fail`` raise instead."""

    def __init__(self) -> None:
        self.delivered: dict[str, list[dict]] = {}
        self.attempted: list[str] = []
        self._failures: dict[str, PushDeliveryError | Exception] = {}

    def fail(self, endpoint: str, status_code: int | None = None, exc: Exception | None = None) -> None:
        self._failures[endpoint] = exc or PushDeliveryError(
            "simulated failure", status_code=status_code
        )

    async def send(self, subscription: SubscriptionRecord, payload: str) -> None:
        self.attempted.append(subscription.endpoint)
        failure = self._failures.get(subscription.endpoint)
        if failure is not None:
            raise failure
        self.delivered.setdefault(subscription.endpoint, []).append(json.loads(payload))


# ─── Device Platform ───


class FakeSubscription:
    def __init__(self, manager: FakePushManager, endpoint: str) -> None:
        self._manager = manager
        self.endpoint = endpoint
        self.unsubscribed = False
        self.unsubscribe_error: Exception | None = None

    def to_json(self) -> dict:
        return {
            "endpoint": self.endpoint,
            "expirationTime": None,
            "keys": {
                "p256dh": "BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA_0QTpQtUbVlUls0",
                "auth": "tBHItJI5svbpez7KI4CCXg",
            },
        }

    async def unsubscribe(self) -> bool:
        if self.unsubscribe_error is not None:
            raise self.unsubscribe_error
        self.unsubscribed = True
        if self._manager.subscription is self:
            self._manager.subscription = None
        return True


class FakePushManager:
    """Push manager with optional hangs or errors on subscribe."""

    def __init__(self, endpoint: str = "https://push.example/ep-1") -> None:
        self.endpoint = endpoint
        self.subscription: FakeSubscription | None = None
        self.subscribe_calls: list[dict[str, Any]] = []
        self.hang = False
        self.error: Exception | None = None

    async def get_subscription(self) -> FakeSubscription | None:
        return self.subscription

    async def subscribe(self, *, user_visible_only: bool, application_server_key: bytes) -> FakeSubscription:
        self.subscribe_calls.append(
            {"user_visible_only": user_visible_only, "application_server_key": application_server_key}
        )
        if self.hang:
            await asyncio.sleep(60)
        if self.error is not None:
            raise self.error
        self.subscription = FakeSubscription(self, self.endpoint)
        return self.subscription


class FakeRegistration:
    def __init__(self, scope: str = "/", push_manager: FakePushManager | None = None) -> None:
        self.scope = scope
        self.push_manager = push_manager or FakePushManager()
        self.unregistered = False
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    async def unregister(self) -> bool:
        self.unregistered = True
        return True


class FakePlatform:
    """Configurable device: capabilities, permission and worker registry.

    ``next_push_managers`` supplies the push manager for each newly
    registered worker, so tests can make the first one hang and the one
    created on re-registration succeed. ``errors`` maps a method name
    (``request_notification_permission``, ``get_registration``,
    ``wait_for_controller``) to the exception that call raises.
    """

    def __init__(
        self,
        *,
        origin: str = "https://clinic.example",
        worker_support: bool = True,
        push_manager: bool = True,
        notifications: bool = True,
        permission: str = "default",
        permission_on_request: str = "granted",
        controller: bool = True,
    ) -> None:
        self.origin = origin
        self.platform = "Linux x86_64"
        self.user_agent = "Mozilla/5.0 (X11; Linux x86_64) Test"
        self._worker_support = worker_support
        self._push_manager = push_manager
        self._notifications = notifications
        self.permission = permission
        self.permission_on_request = permission_on_request
        self.controller = controller
        self.controller_arrives = False
        self.registrations: dict[str, FakeRegistration] = {}
        self.next_push_managers: list[FakePushManager] = []
        self.register_error: Exception | None = None
        self.register_calls = 0
        self.activation_hangs = False
        self.errors: dict[str, Exception] = {}

    def _raise_configured(self, method: str) -> None:
        if method in self.errors:
            raise self.errors[method]

    @property
    def has_worker_support(self) -> bool:
        return self._worker_support

    @property
    def has_push_manager(self) -> bool:
        return self._push_manager

    @property
    def has_notifications(self) -> bool:
        return self._notifications

    @property
    def notification_permission(self) -> str:
        return self.permission

    @property
    def has_controller(self) -> bool:
        return self.controller

    async def request_notification_permission(self) -> str:
        self._raise_configured("request_notification_permission")
        if self.permission == "default":
            self.permission = self.permission_on_request
        return self.permission

    async def get_registration(self, scope: str) -> FakeRegistration | None:
        self._raise_configured("get_registration")
        registration = self.registrations.get(scope)
        return None if registration is None or registration.unregistered else registration

    async def get_registrations(self) -> list[FakeRegistration]:
        return [r for r in self.registrations.values() if not r.unregistered]

    async def register_worker(self, script_url: str, scope: str) -> FakeRegistration:
        self.register_calls += 1
        if self.register_error is not None:
            raise self.register_error
        manager = self.next_push_managers.pop(0) if self.next_push_managers else FakePushManager()
        registration = FakeRegistration(scope, manager)
        self.registrations[scope] = registration
        return registration

    async def wait_until_active(self, registration: FakeRegistration) -> FakeRegistration:
        if self.activation_hangs:
            await asyncio.sleep(60)
        return registration

    async def wait_for_controller(self) -> bool:
        self._raise_configured("wait_for_controller")
        if self.controller_arrives:
            self.controller = True
            return True
        await asyncio.sleep(60)
        return False

    def install(self, registration: FakeRegistration) -> FakeRegistration:
        self.registrations[registration.scope] = registration
        return registration


class FailingUnregisterRegistration(FakeRegistration):
    async def unregister(self) -> bool:
        raise PlatformError("unregister failed")


# ─── Worker Context ───


class FakeNotification:
    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self.data = data or {}
        self.closed = False

    def close(self) -> None:
        self.closed = True


class FakeWindowClient:
    def __init__(self, url: str = "https://clinic.example/", can_navigate: bool = True) -> None:
        self.url = url
        self._can_navigate = can_navigate
        self.navigated_to: list[str] = []
        self.focused = False

    @property
    def can_navigate(self) -> bool:
        return self._can_navigate

    async def navigate(self, url: str) -> FakeWindowClient:
        self.navigated_to.append(url)
        self.url = url
        return self

    async def focus(self) -> FakeWindowClient:
        self.focused = True
        return self


class FakeWorkerScope:
    def __init__(self, clients: list[FakeWindowClient] | None = None) -> None:
        self.clients = clients or []
        self.shown: list[tuple[str, dict[str, Any]]] = []
        self.opened: list[str] = []
        self.skip_waiting_calls = 0
        self.match_args: dict[str, Any] = {}

    async def show_notification(self, title: str, options: dict[str, Any]) -> None:
        self.shown.append((title, options))

    async def match_clients(self, *, type: str = "window", include_uncontrolled: bool = True) -> list[FakeWindowClient]:
        self.match_args = {"type": type, "include_uncontrolled": include_uncontrolled}
        return list(self.clients)

    async def open_window(self, url: str) -> FakeWindowClient:
        self.opened.append(url)
        return FakeWindowClient(url)

    async def skip_waiting(self) -> None:
        self.skip_waiting_calls += 1


# ─── Device Storage ───


class FakeStorage:
    def __init__(self) -> None:
        self.items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value
