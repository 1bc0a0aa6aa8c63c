"""Application server key decoding.

Servers publish the VAPID public key as unpadded base64url; the platform
``pushManager.subscribe()`` call wants the raw bytes.
"""

from __future__ import annotations

import base64
import binascii

from clinic.common.exceptions import InvalidKeyEncodingError


def decode_application_key(value: str) -> bytes:
    """Decode an unpadded (or padded) base64url key to raw bytes.

    Args:
        value: base64url text, with or without trailing ``=`` padding.

    Returns:
        The decoded key bytes (65 bytes for a P-256 uncompressed point).

    Raises:
        InvalidKeyEncodingError: The text is empty or not valid base64url.
    """
    text = value.strip() if isinstance(value, str) else ""
    if not text:
        raise InvalidKeyEncodingError("Application key is empty")

    padded = text + "=" * (-len(text) % 4)
    standard = padded.replace("-", "+").replace("_", "/")
    try:
        return base64.b64decode(standard, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidKeyEncodingError(
            "Application key is not valid base64url",
            context={"length": len(text)},
        ) from exc
