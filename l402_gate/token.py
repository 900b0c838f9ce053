"""
Service token encoding for L402 challenges.

The token (sent on the wire as the "macaroon") embeds the payment hash of
the invoice it was issued with, plus the resource it was issued for.
Structure: { version, paymentHash, service, issuedAt }

The encoding is plain base64 JSON with no signature. Anyone can decode and
re-encode it; a token is only worth something together with the preimage
whose SHA256 is its payment hash. The wire format is the same as l402-js.
"""

from __future__ import annotations

import binascii
import json
import time
from base64 import b64decode, b64encode
from dataclasses import dataclass
from typing import Any, Optional

TOKEN_VERSION = 1


@dataclass(frozen=True)
class ServiceToken:
    """Decoded service token."""
    version: int
    payment_hash: str              # hex, SHA256 of the invoice preimage
    resource: str = ""             # request path the challenge was issued for
    issued_at: int = 0             # ms since epoch, informational only


def create_service_token(payment_hash: str, resource: str) -> ServiceToken:
    """
    Create a token for a freshly issued invoice.

    Args:
        payment_hash: Hex-encoded payment hash of the invoice.
        resource: Path of the request being challenged.

    Returns:
        ServiceToken stamped with the current time.
    """
    if not payment_hash:
        raise ValueError("payment_hash is required for a service token")

    return ServiceToken(
        version=TOKEN_VERSION,
        payment_hash=payment_hash,
        resource=resource,
        issued_at=int(time.time() * 1000),
    )


def encode_token(token: ServiceToken) -> str:
    """
    Encode a token for transport in a header.

    Standard base64 never produces ':', so the credential separator stays
    unambiguous.
    """
    payload = {
        "version": token.version,
        "paymentHash": token.payment_hash,
        "service": token.resource,
        "issuedAt": token.issued_at,
    }
    return b64encode(json.dumps(payload, separators=(",", ":")).encode("utf-8")).decode("ascii")


def decode_token(raw: Any) -> Optional[ServiceToken]:
    """
    Decode a raw token string back to its components.

    Args:
        raw: Base64-encoded token string.

    Returns:
        ServiceToken or None if the input is not a well-formed token.
    """
    if not raw or not isinstance(raw, str):
        return None

    try:
        padded = raw + "=" * (-len(raw) % 4)
        parsed = json.loads(b64decode(padded, validate=True).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError, RecursionError):
        return None

    if not isinstance(parsed, dict):
        return None

    version = parsed.get("version")
    payment_hash = parsed.get("paymentHash")
    if not version or not payment_hash:
        return None
    if not isinstance(version, int) or isinstance(version, bool) or not isinstance(payment_hash, str):
        return None

    resource = parsed.get("service", "")
    issued_at = parsed.get("issuedAt", 0)
    if not isinstance(resource, str) or not isinstance(issued_at, int):
        return None

    return ServiceToken(
        version=version,
        payment_hash=payment_hash,
        resource=resource,
        issued_at=issued_at,
    )
