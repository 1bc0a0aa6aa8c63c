"""Delivery Worker: renders pushes as OS notifications inside the worker context.

Handlers:
    on_push(data)                 payload -> OS notification
    on_notification_click(n)      close, then focus/navigate a view or open one
    on_message(message)           {"type": "SKIP_WAITING"} activates a waiting worker

The worker keeps no state and makes no network calls of its own.
"""

from __future__ import annotations

import json
from typing import Any

from clinic.common.config import Settings, get_settings
from clinic.common.logging import get_logger
from clinic.push.platform import RenderedNotification, WindowClient, WorkerScope

logger = get_logger("WORKER")


class DeliveryWorker:
    """Push and notification-click handlers.

    Args:
        scope: Worker context capabilities.
        settings: Source of the default title/body/icon/tag.
    """

    def __init__(self, scope: WorkerScope, settings: Settings | None = None) -> None:
        self._scope = scope
        self._settings = settings or get_settings()

    def parse_payload(self, data: bytes | str | None) -> dict[str, Any]:
        """Decode a push payload; non-JSON text becomes the notification body."""
        if data is None:
            return {}
        text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
        try:
            parsed = json.loads(text)
        except ValueError:
            return {"body": text}
        return parsed if isinstance(parsed, dict) else {"body": text}

    def build_notification(self, payload: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        """Return (title, options) for ``showNotification``."""
        s = self._settings
        extra = payload.get("data") if isinstance(payload.get("data"), dict) else {}
        options = {
            "body": payload.get("body") or s.push_default_body,
            "icon": payload.get("icon") or s.push_icon_url,
            "badge": payload.get("badge") or s.push_badge_url,
            "data": {"url": payload.get("url") or "/", **extra},
            # Same tag replaces the previous notification; renotify still alerts.
            "tag": payload.get("tag") or s.push_tag,
            "renotify": True,
        }
        return payload.get("title") or s.push_default_title, options

    async def on_push(self, data: bytes | str | None) -> None:
        title, options = self.build_notification(self.parse_payload(data))
        await self._scope.show_notification(title, options)
        logger.debug("Notification shown", extra={"data": {"title": title, "tag": options["tag"]}})

    async def on_notification_click(self, notification: RenderedNotification) -> WindowClient | None:
        """Route the user to the notification's target view."""
        notification.close()
        url = (notification.data or {}).get("url") or "/"

        clients = await self._scope.match_clients(type="window", include_uncontrolled=True)
        for client in clients:
            if client.can_navigate:
                await client.navigate(url)
                return await client.focus()
        return await self._scope.open_window(url)

    async def on_message(self, message: Any) -> None:
        if isinstance(message, dict) and message.get("type") == "SKIP_WAITING":
            await self._scope.skip_waiting()
