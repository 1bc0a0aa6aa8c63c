"""Notification Dispatcher: server-side fan-out of one event to every endpoint.

One dispatch:
    1. refuses to run without a full VAPID identity (MissingVapidKeysError)
    2. renders the payload from the template table
    3. snapshots the subscription store once
    4. attempts every endpoint concurrently; attempts are isolated
    5. deletes endpoints the push service reported gone (404/410) in one batch

There is no retry: the next event naturally re-attempts every endpoint.

Usage:
    dispatcher = NotificationDispatcher(SubscriptionStore(db))
    result = await dispatcher.dispatch(NotificationEvent(kind="create", ...))
    result.sent  # endpoints attempted
"""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass, field
from typing import Literal, Protocol

from pywebpush import WebPushException, webpush

from clinic.common.config import Settings, get_settings
from clinic.common.exceptions import MissingVapidKeysError, PushDeliveryError, StoreError
from clinic.common.logging import get_logger, short_endpoint
from clinic.common.metrics import (
    PUSH_DELIVERIES_TOTAL,
    PUSH_DISPATCH_DURATION_SECONDS,
    PUSH_DISPATCH_TOTAL,
    PUSH_SUBSCRIPTIONS_PRUNED_TOTAL,
)
from clinic.common.schemas import NotificationEvent, SubscriptionRecord
from clinic.push.store import SubscriptionStore
from clinic.push.templates import render_payload
from clinic.push.vapid import normalize_private_key

logger = get_logger("DISPATCH")

AttemptOutcome = Literal["delivered", "gone", "failed"]


class PushSender(Protocol):
    """Delivers one encrypted payload to one endpoint.

    Implementations raise PushDeliveryError (with the transport status when
    known) on failure.
    """

    async def send(self, subscription: SubscriptionRecord, payload: str) -> None: ...


class WebPushSender:
    """PushSender backed by pywebpush.

    pywebpush is blocking, so each call runs in a worker thread.

    Args:
        settings: Settings carrying the VAPID identity and push TTL/timeout.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

    async def send(self, subscription: SubscriptionRecord, payload: str) -> None:
        settings = self._settings
        if not settings.vapid_configured:
            raise MissingVapidKeysError("VAPID keys are not configured")

        try:
            await asyncio.to_thread(
                webpush,
                subscription_info=subscription.to_subscription_info(),
                data=payload,
                vapid_private_key=normalize_private_key(settings.vapid_private_key),
                # pywebpush adds "aud"/"exp" to the claims dict, so each call gets its own.
                vapid_claims={"sub": settings.vapid_subject},
                ttl=settings.push_ttl_seconds,
                timeout=settings.push_timeout_seconds,
            )
        except WebPushException as exc:
            status = exc.response.status_code if exc.response is not None else None
            raise PushDeliveryError(
                "Push service rejected delivery",
                status_code=status,
                context={"endpoint": short_endpoint(subscription.endpoint), "error": str(exc)},
            ) from exc
        except OSError as exc:
            # requests' connection and timeout errors are OSError subclasses.
            raise PushDeliveryError(
                "Push service unreachable",
                context={"endpoint": short_endpoint(subscription.endpoint), "error": str(exc)},
            ) from exc


@dataclass(frozen=True)
class DispatchResult:
    """Summary of one fan-out.

    ``sent`` counts endpoints attempted, not endpoints that accepted the
    message; it is for coarse observability only.
    """

    sent: int
    delivered: int = 0
    failed: int = 0
    pruned: tuple[str, ...] = field(default_factory=tuple)


class NotificationDispatcher:
    """Fans one NotificationEvent out to every stored endpoint.

    Args:
        store: Subscription store for the endpoint snapshot and pruning.
        sender: Transport; defaults to WebPushSender.
        settings: Settings; defaults to get_settings().
    """

    def __init__(
        self,
        store: SubscriptionStore,
        sender: PushSender | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._store = store
        self._settings = settings or get_settings()
        self._sender = sender or WebPushSender(self._settings)

    async def dispatch(self, event: NotificationEvent) -> DispatchResult:
        """Deliver ``event`` to every endpoint and prune the ones that are gone.

        Raises:
            MissingVapidKeysError: Signing identity incomplete; nothing is sent.
            StoreError: The endpoint snapshot or the prune failed.
        """
        if not self._settings.vapid_configured:
            PUSH_DISPATCH_TOTAL.labels(outcome="missing_vapid_keys").inc()
            raise MissingVapidKeysError(
                "VAPID keys are not configured",
                context={
                    "has_public_key": bool(self._settings.vapid_public_key),
                    "has_subject": bool(self._settings.vapid_subject),
                },
            )

        payload = render_payload(event, self._settings)
        body = json.dumps(payload.to_wire(), ensure_ascii=False)

        try:
            records = await self._store.list_all()
        except StoreError:
            PUSH_DISPATCH_TOTAL.labels(outcome="store_error").inc()
            raise

        start = time.perf_counter()
        outcomes: list[AttemptOutcome] = await asyncio.gather(
            *(self._attempt(record, body) for record in records)
        )
        PUSH_DISPATCH_DURATION_SECONDS.observe(time.perf_counter() - start)

        gone = sorted({r.endpoint for r, o in zip(records, outcomes, strict=True) if o == "gone"})
        if gone:
            try:
                await self._store.delete_by_endpoints(gone)
            except StoreError:
                PUSH_DISPATCH_TOTAL.labels(outcome="store_error").inc()
                raise
            PUSH_SUBSCRIPTIONS_PRUNED_TOTAL.inc(len(gone))

        result = DispatchResult(
            sent=len(records),
            delivered=outcomes.count("delivered"),
            failed=outcomes.count("failed"),
            pruned=tuple(gone),
        )
        PUSH_DISPATCH_TOTAL.labels(outcome="completed").inc()
        logger.info(
            "Dispatch finished",
            extra={
                "data": {
                    "kind": event.kind,
                    "appointment_id": event.appointment.id,
                    "sent": result.sent,
                    "delivered": result.delivered,
                    "failed": result.failed,
                    "pruned": len(result.pruned),
                }
            },
        )
        return result

    async def _attempt(self, record: SubscriptionRecord, body: str) -> AttemptOutcome:
        """One isolated delivery attempt; never raises."""
        endpoint = short_endpoint(record.endpoint)
        try:
            await self._sender.send(record, body)
        except PushDeliveryError as exc:
            if exc.is_gone:
                PUSH_DELIVERIES_TOTAL.labels(outcome="gone").inc()
                logger.info(
                    "Endpoint gone, marked for pruning",
                    extra={"data": {"endpoint": endpoint, "status": exc.status_code}},
                )
                return "gone"
            PUSH_DELIVERIES_TOTAL.labels(outcome="failed").inc()
            logger.warning(
                "Push delivery failed",
                extra={"data": {"endpoint": endpoint, "status": exc.status_code}},
            )
            return "failed"
        except Exception as exc:
            PUSH_DELIVERIES_TOTAL.labels(outcome="failed").inc()
            logger.error(
                "Unexpected error delivering push",
                extra={"data": {"endpoint": endpoint, "error": f"{type(exc).__name__}: {exc}"}},
            )
            return "failed"

        PUSH_DELIVERIES_TOTAL.labels(outcome="delivered").inc()
        return "delivered"
