"""Observable access to the operator's global settings from device code.

Consumers read ``current()`` and register listeners instead of watching
ambient storage events:

    provider = RemoteSettingsProvider(http_client)
    remove = provider.add_listener(lambda s: print(s.push_global_enabled))
    await provider.refresh()
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

import httpx

from clinic.common.logging import get_logger
from clinic.common.schemas import GlobalSettings

logger = get_logger("SETTINGS")

SettingsListener = Callable[[GlobalSettings], None]


class SettingsProvider(Protocol):
    def current(self) -> GlobalSettings: ...

    def add_listener(self, listener: SettingsListener) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it."""
        ...


class _ObservableSettings:
    def __init__(self, initial: GlobalSettings | None = None) -> None:
        self._current = initial or GlobalSettings()
        self._listeners: list[SettingsListener] = []

    def current(self) -> GlobalSettings:
        return self._current

    def add_listener(self, listener: SettingsListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _publish(self, settings: GlobalSettings) -> None:
        if settings == self._current:
            return
        self._current = settings
        for listener in list(self._listeners):
            listener(settings)


class StaticSettingsProvider(_ObservableSettings):
    """Settings held in memory; ``set()`` notifies listeners on change."""

    def set(self, settings: GlobalSettings) -> None:
        self._publish(settings)


class RemoteSettingsProvider(_ObservableSettings):
    """Polls GET /api/settings/global and notifies listeners on change.

    On a failed refresh the last known settings stay in effect.

    Args:
        client: httpx.AsyncClient pointed at the server origin.
        path: Global settings endpoint path.
    """

    def __init__(self, client: httpx.AsyncClient, path: str = "/api/settings/global") -> None:
        super().__init__()
        self._client = client
        self._path = path

    async def refresh(self) -> GlobalSettings:
        try:
            response = await self._client.get(self._path)
            response.raise_for_status()
            raw = response.json().get("settings") or {}
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            logger.warning(
                "Global settings refresh failed",
                extra={"data": {"error": f"{type(exc).__name__}: {exc}"}},
            )
            return self._current

        self._publish(GlobalSettings.model_validate(raw))
        return self._current
