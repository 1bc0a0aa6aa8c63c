"""Pydantic schemas: the data shapes shared between server and device code.

Wire field names follow the browser Push API and the web client
(``expirationTime``, ``userId``, ``userAgent``, ``type``); Python
attributes are snake_case and populated by alias.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ─── Closed Sets ───

FailureReason = Literal[
    "unsupported",
    "denied",
    "default",
    "missing_vapid_public_key",
    "no_sw",
    "no_controller",
    "network",
    "timeout",
]
PermissionState = Literal["granted", "denied", "default", "unsupported"]
NotificationKind = Literal["test", "create", "reschedule", "cancel", "delete", "update"]


def _str_or_none(value: Any) -> Any:
    """Non-string scalars on the wire are treated as absent."""
    return value if isinstance(value, str) or value is None else None


# ─── Subscriptions ───


class PushKeys(BaseModel):
    """Per-endpoint key material issued by the platform push service."""

    p256dh: str | None = None
    auth: str | None = None

    @field_validator("p256dh", "auth", mode="before")
    @classmethod
    def _drop_non_strings(cls, value: Any) -> Any:
        return _str_or_none(value)


class SubscriptionPayload(BaseModel):
    """Browser ``PushSubscription.toJSON()`` shape.

    ``expirationTime`` is a DOMHighResTimeStamp, so it may be fractional.
    """

    model_config = ConfigDict(populate_by_name=True)

    endpoint: str | None = None
    expiration_time: float | None = Field(default=None, alias="expirationTime")
    keys: PushKeys = Field(default_factory=PushKeys)

    @field_validator("endpoint", mode="before")
    @classmethod
    def _drop_non_string_endpoint(cls, value: Any) -> Any:
        return _str_or_none(value)

    @field_validator("expiration_time", mode="before")
    @classmethod
    def _drop_non_numbers(cls, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, int | float):
            return None
        return value

    @field_validator("keys", mode="before")
    @classmethod
    def _drop_non_object_keys(cls, value: Any) -> Any:
        return value if isinstance(value, dict | PushKeys) else {}


class SubscribeRequest(BaseModel):
    """Body of POST /api/push/subscribe."""

    model_config = ConfigDict(populate_by_name=True)

    subscription: SubscriptionPayload | None = None
    user_id: str | None = Field(default=None, alias="userId")
    platform: str | None = None
    user_agent: str | None = Field(default=None, alias="userAgent")

    @field_validator("subscription", mode="before")
    @classmethod
    def _drop_non_objects(cls, value: Any) -> Any:
        # Anything that is not an object is reported as invalid_subscription.
        return value if isinstance(value, dict | SubscriptionPayload) else None

    @field_validator("user_id", mode="before")
    @classmethod
    def _stringify_user_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return _str_or_none(value)

    @field_validator("platform", "user_agent", mode="before")
    @classmethod
    def _drop_non_strings(cls, value: Any) -> Any:
        return _str_or_none(value)


class UnsubscribeRequest(BaseModel):
    """Body of POST /api/push/unsubscribe."""

    endpoint: str | None = None

    @field_validator("endpoint", mode="before")
    @classmethod
    def _drop_non_string_endpoint(cls, value: Any) -> Any:
        return _str_or_none(value)


class SubscriptionRecord(BaseModel):
    """One stored endpoint as read back for dispatch."""

    model_config = ConfigDict(from_attributes=True)

    endpoint: str
    p256dh: str | None = None
    auth: str | None = None

    def to_subscription_info(self) -> dict:
        """Shape expected by pywebpush's ``subscription_info``."""
        return {
            "endpoint": self.endpoint,
            "keys": {"p256dh": self.p256dh, "auth": self.auth},
        }


# ─── Notification Events ───


class AppointmentContext(BaseModel):
    """Appointment fields used only for message templating."""

    id: str | None = None
    date: str | None = None  # "YYYY-MM-DD"
    time: str | None = None  # "HH:MM"

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        if isinstance(value, int | float) and not isinstance(value, bool):
            return str(value)
        return _str_or_none(value)

    @field_validator("date", "time", mode="before")
    @classmethod
    def _drop_non_strings(cls, value: Any) -> Any:
        return _str_or_none(value)


class NotificationEvent(BaseModel):
    """An application event to fan out. Body of POST /api/push/send.

    ``kind`` is free text on the wire; unknown kinds render with the
    default "update" template.
    """

    model_config = ConfigDict(populate_by_name=True)

    kind: str = Field(default="update", alias="type")
    appointment: AppointmentContext = Field(default_factory=AppointmentContext)

    @field_validator("kind", mode="before")
    @classmethod
    def _default_kind(cls, value: Any) -> Any:
        # Truthy non-strings are taken as text.
        return str(value) if value else "update"

    @field_validator("appointment", mode="before")
    @classmethod
    def _default_appointment(cls, value: Any) -> Any:
        return value if isinstance(value, dict | AppointmentContext) else {}


class RenderedPayload(BaseModel):
    """Notification content derived deterministically from a NotificationEvent."""

    title: str
    body: str
    icon_url: str
    badge_url: str
    target_url: str
    data: dict[str, Any]

    def to_wire(self) -> dict:
        """JSON document the delivery worker parses on push."""
        return {
            "title": self.title,
            "body": self.body,
            "icon": self.icon_url,
            "badge": self.badge_url,
            "url": self.target_url,
            "data": self.data,
        }


# ─── Responses ───


class OkResponse(BaseModel):
    ok: bool = True


class SendResponse(BaseModel):
    ok: bool = True
    sent: int


class PublicKeyResponse(BaseModel):
    public_key: str = Field(serialization_alias="publicKey")


# ─── Global Settings ───


class GlobalSettings(BaseModel):
    """Operator-controlled settings document. Unknown keys are preserved."""

    model_config = ConfigDict(extra="allow")

    push_global_enabled: bool = False


class GlobalSettingsUpdate(BaseModel):
    """Body of POST /api/settings/global."""

    settings: Any = None
