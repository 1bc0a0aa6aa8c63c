"""Nudge Controller: when to ask a signed-in user to turn on notifications.

The prompt is shown only when every condition holds: the device supports
push, the operator's ``push_global_enabled`` flag is on, permission is not
denied, the device has no live subscription, and this user has not dismissed
the banner on this device. Dismissal, "already prompted" and "auto-reload
tried" are separate device-local markers keyed by user id.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from clinic.common.exceptions import PlatformError
from clinic.common.logging import get_logger
from clinic.common.schemas import GlobalSettings, PermissionState
from clinic.push.client import ClientSubscriptionManager, describe_failure
from clinic.push.platform import DeviceStorage
from clinic.settings.provider import SettingsProvider

logger = get_logger("NUDGE")

BANNER_DISMISSED_KEY = "push-banner-dismissed:{user_id}"
ENTRY_PROMPTED_KEY = "push-entry-prompted:{user_id}"
AUTO_RELOAD_KEY = "push-auto-reload:{user_id}"

ENABLED_MESSAGE = "Notificações ativadas com sucesso."
RELOADING_MESSAGE = "Atualizando o app para ativar as notificações..."

_RELOAD_REASONS = frozenset({"timeout", "no_controller"})


@dataclass(frozen=True)
class NudgeState:
    signed_in: bool
    supported: bool
    global_enabled: bool
    permission: PermissionState
    has_subscription: bool
    dismissed: bool
    prompted: bool

    @property
    def eligible(self) -> bool:
        return (
            self.signed_in
            and self.supported
            and self.global_enabled
            and self.permission != "denied"
            and not self.has_subscription
        )

    @property
    def should_prompt(self) -> bool:
        """Show the opt-in banner."""
        return self.eligible and not self.dismissed

    @property
    def open_entry_dialog(self) -> bool:
        """Open the one-time dialog on entry."""
        return self.eligible and not self.prompted


@dataclass(frozen=True)
class NudgeOutcome:
    """What the UI should do after the user pressed "enable"."""

    ok: bool
    message: str
    reload: bool = False
    warning: str | None = None


class NudgeController:
    """Opt-in prompt policy for one signed-in user on one device.

    Args:
        manager: Device subscription manager.
        settings: Provider of the operator's global settings.
        storage: Device-local storage for the per-user markers.
        user_id: The signed-in user; falsy means nobody is signed in.
        reconcile: Re-send a live subscription to the store on evaluate().
    """

    def __init__(
        self,
        manager: ClientSubscriptionManager,
        settings: SettingsProvider,
        storage: DeviceStorage,
        user_id: str | None,
        *,
        reconcile: bool = True,
    ) -> None:
        self._manager = manager
        self._storage = storage
        self._user_id = user_id
        self._reconcile = reconcile
        self._global_enabled = settings.current().push_global_enabled
        self._remove_listener: Callable[[], None] = settings.add_listener(self._on_settings)

    def close(self) -> None:
        self._remove_listener()

    @property
    def global_enabled(self) -> bool:
        return self._global_enabled

    def _on_settings(self, settings: GlobalSettings) -> None:
        self._global_enabled = settings.push_global_enabled
        logger.debug("Global push flag changed", extra={"data": {"enabled": self._global_enabled}})

    def _marker(self, template: str) -> bool:
        if not self._user_id:
            return False
        return self._storage.get_item(template.format(user_id=self._user_id)) == "1"

    def _set_marker(self, template: str) -> None:
        if self._user_id:
            self._storage.set_item(template.format(user_id=self._user_id), "1")

    async def evaluate(self) -> NudgeState:
        """Probe the device and combine it with the flag and markers."""
        supported = self._manager.is_push_supported()
        subscription = None
        if supported:
            try:
                subscription = await self._manager.get_current_subscription()
                if subscription is not None and self._reconcile and self._user_id:
                    await self._manager.reconcile(self._user_id)
            except PlatformError as exc:
                # An unreadable subscription counts as none; enable() re-checks.
                logger.warning("Subscription probe failed", extra={"data": {"error": str(exc)}})

        return NudgeState(
            signed_in=bool(self._user_id),
            supported=supported,
            global_enabled=self._global_enabled,
            permission=self._manager.get_permission_state(),
            has_subscription=subscription is not None,
            dismissed=self._marker(BANNER_DISMISSED_KEY),
            prompted=self._marker(ENTRY_PROMPTED_KEY),
        )

    def dismiss(self) -> None:
        """Record "Not now" on the banner."""
        self._set_marker(BANNER_DISMISSED_KEY)

    def mark_prompted(self) -> None:
        """Record "Not now" on the entry dialog, or a successful opt-in."""
        self._set_marker(ENTRY_PROMPTED_KEY)

    async def enable(self) -> NudgeOutcome:
        """Run the opt-in flow and map the result to UI feedback."""
        if not self._user_id:
            return NudgeOutcome(ok=False, message=describe_failure(None))

        result = await self._manager.subscribe(self._user_id)
        if result.ok:
            self.mark_prompted()
            warning = None
            if result.sync is not None and not result.sync.ok:
                warning = describe_failure("network")
            return NudgeOutcome(ok=True, message=ENABLED_MESSAGE, warning=warning)

        if result.reason in _RELOAD_REASONS and not self._marker(AUTO_RELOAD_KEY):
            # One automatic reload per user; later failures show the message.
            self._set_marker(AUTO_RELOAD_KEY)
            return NudgeOutcome(ok=False, message=RELOADING_MESSAGE, reload=True)

        return NudgeOutcome(ok=False, message=result.message)
