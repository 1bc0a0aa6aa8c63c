"""Custom exceptions for the clinic push service.

Modules raise these instead of generic exceptions. The FastAPI handler in
main.py catches ClinicBaseException and answers with
``{"error": exc.code, "message": str(exc)}`` and ``exc.http_status``.
"""

from __future__ import annotations

_SECRET_WORDS = {"key", "secret", "password", "token", "private", "pem", "credential", "auth"}


class ClinicBaseException(Exception):
    """Base exception for all clinic errors.

    Args:
        message: Human-readable error description.
        context: Optional dict of structured data for logging/debugging.
    """

    code: str = "clinic_error"
    http_status: int = 400

    def __init__(self, message: str, context: dict | None = None) -> None:
        super().__init__(message)
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            safe_context = {
                k: "[REDACTED]" if _is_secret_key(k) else v for k, v in self.context.items()
            }
            return f"{super().__str__()} | context={safe_context}"
        return super().__str__()


# ─── Configuration ───


class MissingVapidKeysError(ClinicBaseException):
    """Server-side signing identity (key pair + subject) is not configured."""

    code = "missing_vapid_keys"
    http_status = 500


class MissingVapidPublicKeyError(ClinicBaseException):
    """No application server key to hand to subscribing clients."""

    code = "missing_vapid_public_key"
    http_status = 404


# ─── Request Validation ───


class InvalidKeyEncodingError(ClinicBaseException):
    """An application key is not valid base64url."""

    code = "invalid_key_encoding"


class InvalidSubscriptionError(ClinicBaseException):
    """Subscribe request without a usable subscription endpoint."""

    code = "invalid_subscription"


class MissingEndpointError(ClinicBaseException):
    """Unsubscribe request without an endpoint."""

    code = "missing_endpoint"


class InvalidSettingsError(ClinicBaseException):
    """Global settings payload is not an object."""

    code = "invalid_settings"


# ─── Storage ───


class StoreError(ClinicBaseException):
    """The relational store rejected or failed an operation."""

    code = "store_error"
    http_status = 500


# ─── Delivery ───


class PushDeliveryError(ClinicBaseException):
    """A single endpoint delivery attempt failed.

    Args:
        message: Human-readable error description.
        status_code: Transport status reported by the push service, if any.
        context: Optional structured data.
    """

    code = "push_delivery_failed"
    http_status = 502

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        context: dict | None = None,
    ) -> None:
        super().__init__(message, context)
        self.status_code = status_code

    @property
    def is_gone(self) -> bool:
        """True when the push service reports the endpoint expired or revoked."""
        return self.status_code in (404, 410)


# ─── Device Platform ───


class PlatformError(ClinicBaseException):
    """A device platform call (worker registration, push manager) failed."""

    code = "platform_error"


def _is_secret_key(key: str) -> bool:
    """Check if a dict key name suggests it contains secret data."""
    key_lower = key.lower()
    return any(word in key_lower for word in _SECRET_WORDS)
