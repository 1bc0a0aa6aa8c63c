"""Client Subscription Manager: the device side of push registration.

Drives a device through: capability probe -> permission prompt -> worker
registration -> platform subscription -> sync to the subscription store.
Every outcome is a ``PushResult``; failures carry one reason from the
closed ``FailureReason`` set so callers can show a specific message.

Store sync is best-effort: a failed sync does not fail ``subscribe()`` or
``unsubscribe()``, but the ``SyncResult`` travels back in ``PushResult.sync``.
``reconcile()`` re-sends the live subscription so a missed sync heals on
the next call.

Usage:
    sync = StoreSyncClient(base_url="https://clinic.example")
    manager = ClientSubscriptionManager(platform, sync, application_key=VAPID_PUBLIC_KEY)
    result = await manager.subscribe(user_id="u1")
    if not result.ok:
        show(result.message)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Literal
from urllib.parse import urlparse

import httpx

from clinic.common.exceptions import PlatformError
from clinic.common.logging import get_logger, short_endpoint
from clinic.common.metrics import PUSH_SUBSCRIPTION_SYNC_TOTAL
from clinic.common.schemas import FailureReason, PermissionState
from clinic.push.codec import decode_application_key
from clinic.push.platform import DevicePlatform, PlatformSubscription, WorkerRegistration

logger = get_logger("CLIENT")

WORKER_SCRIPT_PATH = "/sw.js"
WORKER_SCOPE = "/"

_LOOPBACK_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})

FAILURE_MESSAGES: dict[str, str] = {
    "unsupported": "Este dispositivo não suporta notificações push.",
    "denied": "Permissão de notificações bloqueada no navegador.",
    "default": "Permissão de notificações não concedida. Tente novamente.",
    "missing_vapid_public_key": "Chave VAPID pública não configurada.",
    "no_sw": "Service Worker não registrado. Recarregue o app e tente novamente.",
    "no_controller": "O app precisa ser recarregado para ativar as notificações.",
    "network": "Falha de rede ao salvar a inscrição.",
    "timeout": "Tempo esgotado ao ativar. Recarregue o app e tente novamente.",
}
GENERIC_FAILURE_MESSAGE = "Não foi possível ativar as notificações."


def describe_failure(reason: str | None) -> str:
    """Human-readable message for a failure reason; never empty."""
    return FAILURE_MESSAGES.get(reason or "", GENERIC_FAILURE_MESSAGE)


def is_secure_origin(origin: str) -> bool:
    """Workers may only register over https or on a loopback host."""
    parsed = urlparse(origin)
    host = (parsed.hostname or "").lower()
    if parsed.scheme == "https":
        return True
    return host in _LOOPBACK_HOSTS or host.endswith(".localhost")


# ─── Results ───


@dataclass(frozen=True)
class SyncResult:
    """Outcome of one call to the subscription store.

    ``transient`` covers network errors, timeouts and 5xx/408/429 answers;
    ``permanent`` covers any other 4xx (the request itself is wrong).
    """

    outcome: Literal["ok", "transient", "permanent"]
    status_code: int | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome == "ok"


@dataclass(frozen=True)
class PushResult:
    """Outcome of subscribe()/unsubscribe()."""

    ok: bool
    reason: FailureReason | None = None
    sync: SyncResult | None = None

    @property
    def message(self) -> str:
        return "" if self.ok else describe_failure(self.reason)


# ─── Store Sync ───


class StoreSyncClient:
    """HTTP client for the server's subscription endpoints.

    Args:
        base_url: Server origin, e.g. "https://clinic.example".
        client: Optional pre-built httpx.AsyncClient (tests pass an
            ASGITransport- or MockTransport-backed client).
        timeout: Request timeout in seconds when building the client.
    """

    def __init__(
        self,
        base_url: str = "",
        client: httpx.AsyncClient | None = None,
        timeout: float = 12.0,
    ) -> None:
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._owns_client = client is None

    async def save(
        self,
        subscription: dict,
        user_id: str | None = None,
        platform: str | None = None,
        user_agent: str | None = None,
    ) -> SyncResult:
        """POST /api/push/subscribe."""
        body = {
            "subscription": subscription,
            "userId": user_id,
            "platform": platform,
            "userAgent": user_agent,
        }
        return await self._post("subscribe", "/api/push/subscribe", body)

    async def remove(self, endpoint: str) -> SyncResult:
        """POST /api/push/unsubscribe."""
        return await self._post("unsubscribe", "/api/push/unsubscribe", {"endpoint": endpoint})

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post(self, operation: str, path: str, body: dict) -> SyncResult:
        try:
            response = await self._client.post(path, json=body)
        except httpx.TimeoutException:
            result = SyncResult("transient", detail="timeout")
        except httpx.RequestError as exc:
            result = SyncResult("transient", detail=f"{type(exc).__name__}: {exc}")
        else:
            result = _classify_response(response)

        PUSH_SUBSCRIPTION_SYNC_TOTAL.labels(operation=operation, outcome=result.outcome).inc()
        if not result.ok:
            logger.warning(
                f"Subscription {operation} sync failed",
                extra={
                    "data": {
                        "outcome": result.outcome,
                        "status": result.status_code,
                        "detail": result.detail,
                    }
                },
            )
        return result


def _classify_response(response: httpx.Response) -> SyncResult:
    if response.is_success:
        return SyncResult("ok", status_code=response.status_code)
    try:
        body = response.json()
    except ValueError:
        body = None
    detail = body.get("error") if isinstance(body, dict) else (response.text or None)
    status = response.status_code
    outcome = "transient" if status >= 500 or status in (408, 429) else "permanent"
    return SyncResult(outcome, status_code=status, detail=detail)


# ─── Manager ───


class ClientSubscriptionManager:
    """Device-side state machine for becoming (or staying) a push endpoint.

    Args:
        platform: Device capability adapter.
        sync: Client for the server-side subscription store.
        application_key: Server VAPID public key (unpadded base64url).
        worker_path: Script URL of the delivery worker.
        scope: Worker scope.
        require_controller: Fail with ``no_controller`` when the worker does
            not control the page after ``controller_timeout``.
        lookup_timeout: Seconds allowed for reading an existing subscription.
        subscribe_timeout: Seconds allowed for the first subscribe attempt.
        retry_timeout: Seconds allowed for the attempt after re-registration.
        ready_timeout: Seconds to wait for a fresh worker to activate.
        controller_timeout: Seconds to wait for the worker to take control.
    """

    def __init__(
        self,
        platform: DevicePlatform,
        sync: StoreSyncClient,
        application_key: str | None,
        *,
        worker_path: str = WORKER_SCRIPT_PATH,
        scope: str = WORKER_SCOPE,
        require_controller: bool = False,
        lookup_timeout: float = 8.0,
        subscribe_timeout: float = 15.0,
        retry_timeout: float = 20.0,
        ready_timeout: float = 12.0,
        controller_timeout: float = 4.0,
    ) -> None:
        self._platform = platform
        self._sync = sync
        self._application_key = application_key
        self._worker_path = worker_path
        self._scope = scope
        self._require_controller = require_controller
        self._lookup_timeout = lookup_timeout
        self._subscribe_timeout = subscribe_timeout
        self._retry_timeout = retry_timeout
        self._ready_timeout = ready_timeout
        self._controller_timeout = controller_timeout

    # ─── Capability Probes ───

    def is_push_supported(self) -> bool:
        """True iff the device offers workers, a push manager and notifications."""
        p = self._platform
        return p.has_worker_support and p.has_push_manager and p.has_notifications

    def get_permission_state(self) -> PermissionState:
        if not self._platform.has_notifications:
            return "unsupported"
        return self._platform.notification_permission

    # ─── Worker Registration ───

    async def ensure_worker_registered(self) -> WorkerRegistration | None:
        """Register the delivery worker at the root scope, or reuse it.

        Registration failures are logged and reported as None; the caller
        can retry on the next interaction.
        """
        if not self.is_push_supported():
            return None
        if not is_secure_origin(self._platform.origin):
            logger.warning(
                "Worker registration skipped on insecure origin",
                extra={"data": {"origin": self._platform.origin}},
            )
            return None

        try:
            registration = await self._platform.get_registration(self._scope)
            if registration is None:
                registration = await self._platform.register_worker(
                    self._worker_path, self._scope
                )
        except PlatformError as exc:
            logger.error("Worker registration failed", extra={"data": {"error": str(exc)}})
            return None

        try:
            return await asyncio.wait_for(
                self._platform.wait_until_active(registration), self._ready_timeout
            )
        except (TimeoutError, PlatformError):
            # An installing worker is still usable for pushManager calls.
            return registration

    # ─── Subscription Lifecycle ───

    async def subscribe(self, user_id: str | None = None) -> PushResult:
        """Become a push endpoint and sync the subscription to the store.

        A ``PlatformError`` from any device call becomes a failed result with
        no reason, which callers show as the generic message.

        Raises:
            InvalidKeyEncodingError: The configured application key is malformed.
        """
        try:
            return await self._subscribe(user_id)
        except PlatformError as exc:
            return self._platform_failure("subscribe", exc)

    async def _subscribe(self, user_id: str | None) -> PushResult:
        if not self.is_push_supported():
            return self._fail("unsupported")

        permission = await self._platform.request_notification_permission()
        if permission != "granted":
            return self._fail(permission)

        if not self._application_key:
            return self._fail("missing_vapid_public_key")
        server_key = decode_application_key(self._application_key)

        registration = await self.ensure_worker_registered()
        if registration is None:
            return self._fail("no_sw")

        if not await self._wait_for_controller() and self._require_controller:
            return self._fail("no_controller")

        try:
            subscription = await self._get_or_create(
                registration, server_key, self._subscribe_timeout
            )
        except (TimeoutError, PlatformError) as exc:
            logger.warning(
                "Subscribe attempt failed, re-registering worker",
                extra={"data": {"error": type(exc).__name__}},
            )
            registration = await self._reregister()
            if registration is None:
                return self._fail("no_sw")
            await self._wait_for_controller()
            try:
                subscription = await self._get_or_create(
                    registration, server_key, self._retry_timeout
                )
            except (TimeoutError, PlatformError):
                return self._fail("timeout")

        sync = await self._sync.save(
            subscription.to_json(),
            user_id=user_id,
            platform=self._platform.platform,
            user_agent=self._platform.user_agent,
        )
        logger.info(
            "Push subscription active",
            extra={
                "data": {
                    "endpoint": short_endpoint(subscription.endpoint),
                    "user_id": user_id,
                    "synced": sync.ok,
                }
            },
        )
        return PushResult(ok=True, sync=sync)

    async def unsubscribe(self) -> PushResult:
        """Drop the store record (best-effort), then the platform subscription.

        Once the store call has been made, a failing platform unsubscribe is
        logged and the result is still a success.
        """
        if not self.is_push_supported():
            return self._fail("unsupported")

        try:
            subscription = await self.get_current_subscription()
        except PlatformError as exc:
            return self._platform_failure("unsubscribe", exc)
        if subscription is None:
            return PushResult(ok=True)

        sync = await self._sync.remove(subscription.endpoint)
        try:
            await subscription.unsubscribe()
        except PlatformError as exc:
            logger.warning(
                "Platform unsubscribe failed",
                extra={
                    "data": {"endpoint": short_endpoint(subscription.endpoint), "error": str(exc)}
                },
            )
        logger.info(
            "Push subscription removed",
            extra={"data": {"endpoint": short_endpoint(subscription.endpoint), "synced": sync.ok}},
        )
        return PushResult(ok=True, sync=sync)

    async def get_current_subscription(self) -> PlatformSubscription | None:
        if not self.is_push_supported():
            return None
        registration = await self._platform.get_registration(self._scope)
        if registration is None:
            return None
        return await registration.push_manager.get_subscription()

    async def reconcile(self, user_id: str | None = None) -> SyncResult | None:
        """Re-send the live subscription to the store.

        Returns None when the device has no subscription to reconcile.
        """
        subscription = await self.get_current_subscription()
        if subscription is None:
            return None
        return await self._sync.save(
            subscription.to_json(),
            user_id=user_id,
            platform=self._platform.platform,
            user_agent=self._platform.user_agent,
        )

    # ─── Internals ───

    async def _get_or_create(
        self,
        registration: WorkerRegistration,
        server_key: bytes,
        timeout: float,
    ) -> PlatformSubscription:
        push_manager = registration.push_manager
        existing = await asyncio.wait_for(push_manager.get_subscription(), self._lookup_timeout)
        if existing is not None:
            return existing
        return await asyncio.wait_for(
            push_manager.subscribe(user_visible_only=True, application_server_key=server_key),
            timeout,
        )

    async def _wait_for_controller(self) -> bool:
        if self._platform.has_controller:
            return True
        try:
            return await asyncio.wait_for(
                self._platform.wait_for_controller(), self._controller_timeout
            )
        except TimeoutError:
            return self._platform.has_controller

    async def _reregister(self) -> WorkerRegistration | None:
        try:
            for registration in await self._platform.get_registrations():
                await registration.unregister()
        except PlatformError as exc:
            logger.error("Worker unregister failed", extra={"data": {"error": str(exc)}})
        return await self.ensure_worker_registered()

    def _fail(self, reason: FailureReason) -> PushResult:
        logger.info("Push subscription not possible", extra={"data": {"reason": reason}})
        return PushResult(ok=False, reason=reason)

    def _platform_failure(self, operation: str, exc: PlatformError) -> PushResult:
        logger.error(
            f"Platform error during {operation}",
            extra={"data": {"error": str(exc)}},
        )
        return PushResult(ok=False)
