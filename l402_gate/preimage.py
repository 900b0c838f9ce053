"""
Preimage commitment checks.

Lightning invoices are hash-locked: payment_hash = SHA256(preimage), and the
preimage is only revealed to whoever paid. Checking the hash is therefore
proof of payment, with no database and no network call.
"""

from __future__ import annotations

import binascii
import hashlib
import hmac
import re
from base64 import b64decode

PREIMAGE_BYTES = 32

_HEX_RE = re.compile(r"^[0-9a-fA-F]{64}$")


def commit_preimage(preimage: str) -> str:
    """
    Compute the payment hash for a preimage.

    The hex string is decoded first; the raw bytes are hashed, not the text.

    Args:
        preimage: Hex-encoded preimage.

    Returns:
        Lower-case hex SHA256 of the preimage bytes.

    Raises:
        ValueError: If the preimage is not valid hex.
    """
    return hashlib.sha256(bytes.fromhex(preimage)).hexdigest()


def verify_preimage(preimage: str, payment_hash: str) -> bool:
    """
    Verify that a preimage matches a payment hash.

    Args:
        preimage: Hex-encoded preimage.
        payment_hash: Hex-encoded payment hash (any case).

    Returns:
        True if SHA256(preimage) == payment_hash.
    """
    if not preimage or not payment_hash:
        return False
    if not isinstance(preimage, str) or not isinstance(payment_hash, str):
        return False
    try:
        computed = commit_preimage(preimage)
    except ValueError:
        return False
    return hmac.compare_digest(
        computed.encode("ascii"),
        payment_hash.strip().lower().encode("utf-8"),
    )


def preimage_to_hex(value: str) -> str:
    """
    Normalise a preimage returned by a Lightning node to lower-case hex.

    LND's REST API returns bytes fields base64-encoded; other backends
    already return hex. Preimages and payment hashes are 32 bytes, so a
    64-character hex string is taken as hex and anything else must be
    base64 of exactly 32 bytes.

    Raises:
        ValueError: If the value is neither hex nor base64 of 32 bytes.
    """
    if not value:
        raise ValueError("empty preimage")
    if _HEX_RE.match(value):
        return value.lower()

    padded = value + "=" * (-len(value) % 4)
    try:
        # Accept both the standard and the URL-safe alphabet.
        raw = b64decode(padded.replace("-", "+").replace("_", "/"), validate=True)
    except binascii.Error as exc:
        raise ValueError(f"preimage is neither hex nor base64: {value!r}") from exc

    if len(raw) != PREIMAGE_BYTES:
        raise ValueError(f"preimage must be {PREIMAGE_BYTES} bytes, got {len(raw)}")
    return raw.hex()
