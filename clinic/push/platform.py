"""Device capability interfaces used by the client-side push components.

The subscription manager, delivery worker and nudge controller drive the
device through these protocols instead of touching browser globals. An
adapter implements them for a concrete runtime; tests use in-memory fakes.
Adapters raise ``PlatformError`` when a platform call fails.
"""

from __future__ import annotations

from typing import Any, Protocol

from clinic.common.schemas import PermissionState


class PlatformSubscription(Protocol):
    """A live platform push subscription."""

    endpoint: str

    def to_json(self) -> dict:
        """``{"endpoint": ..., "expirationTime": ..., "keys": {"p256dh", "auth"}}``."""
        ...

    async def unsubscribe(self) -> bool: ...


class PushManager(Protocol):
    async def get_subscription(self) -> PlatformSubscription | None: ...

    async def subscribe(
        self,
        *,
        user_visible_only: bool,
        application_server_key: bytes,
    ) -> PlatformSubscription: ...


class WorkerRegistration(Protocol):
    """A registered background worker."""

    scope: str
    push_manager: PushManager

    @property
    def active(self) -> bool: ...

    async def unregister(self) -> bool: ...


class DevicePlatform(Protocol):
    """Capabilities of the device's foreground execution context."""

    origin: str
    platform: str
    user_agent: str

    @property
    def has_worker_support(self) -> bool: ...

    @property
    def has_push_manager(self) -> bool: ...

    @property
    def has_notifications(self) -> bool: ...

    @property
    def notification_permission(self) -> PermissionState: ...

    @property
    def has_controller(self) -> bool: ...

    async def request_notification_permission(self) -> PermissionState: ...

    async def get_registration(self, scope: str) -> WorkerRegistration | None: ...

    async def get_registrations(self) -> list[WorkerRegistration]: ...

    async def register_worker(self, script_url: str, scope: str) -> WorkerRegistration: ...

    async def wait_until_active(self, registration: WorkerRegistration) -> WorkerRegistration: ...

    async def wait_for_controller(self) -> bool: ...


# ─── Worker Context ───


class RenderedNotification(Protocol):
    """An OS notification the worker displayed."""

    data: dict[str, Any]

    def close(self) -> None: ...


class WindowClient(Protocol):
    """An open application view."""

    url: str

    @property
    def can_navigate(self) -> bool: ...

    async def navigate(self, url: str) -> Any: ...

    async def focus(self) -> Any: ...


class WorkerScope(Protocol):
    """Capabilities of the background worker context."""

    async def show_notification(self, title: str, options: dict[str, Any]) -> None: ...

    async def match_clients(
        self, *, type: str = "window", include_uncontrolled: bool = True
    ) -> list[WindowClient]: ...

    async def open_window(self, url: str) -> WindowClient | None: ...

    async def skip_waiting(self) -> None: ...


# ─── Device Storage ───


class DeviceStorage(Protocol):
    """Device-local string key/value storage (never synced to the server)."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...
