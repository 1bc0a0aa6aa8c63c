"""VAPID key generation and private key normalization.

Run ``python -m clinic.push.vapid`` to print a fresh key pair as .env lines.
"""

from __future__ import annotations

import base64

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def generate_vapid_keys() -> dict[str, str]:
    """Generate an ECDSA P-256 key pair for VAPID.

    Returns:
        Dict with ``public_key`` (65-byte uncompressed point) and
        ``private_key`` (32-byte scalar), both unpadded base64url.
    """
    private_key = ec.generate_private_key(ec.SECP256R1())

    private_raw = private_key.private_numbers().private_value.to_bytes(32, "big")
    public_raw = private_key.public_key().public_bytes(
        serialization.Encoding.X962,
        serialization.PublicFormat.UncompressedPoint,
    )
    return {"public_key": _b64url(public_raw), "private_key": _b64url(private_raw)}


def normalize_private_key(raw_key: str) -> str:
    """Turn a VAPID private key from the environment into what pywebpush accepts.

    .env files may hold the key as raw base64url, or as PEM with real or
    literal ``\\n`` line breaks. PEM armor is stripped down to its base64
    DER body.
    """
    key = raw_key.strip()
    if "\\n" in key:
        key = key.replace("\\n", "\n")
    if "BEGIN" in key:
        lines = [
            line.strip()
            for line in key.splitlines()
            if line.strip() and not line.strip().startswith("-----")
        ]
        key = "".join(lines)
    return key


if __name__ == "__main__":
    keys = generate_vapid_keys()
    print(f"VAPID_PUBLIC_KEY={keys['public_key']}")
    print(f"VAPID_PRIVATE_KEY={keys['private_key']}")
    print("VAPID_SUBJECT=mailto:admin@example.com")
