"""
L402 protocol header parsing and formatting.

Implements the L402 (formerly LSAT) protocol for HTTP 402 Payment Required.

WWW-Authenticate: L402 macaroon="...", invoice="lnbc..."
Authorization: L402 <macaroon>:<preimage>

Wire format is the same as the l402-js package.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

SCHEME = "L402"


@dataclass
class L402Credentials:
    """Parsed L402 authorization credentials."""
    macaroon: str
    preimage: str


def format_challenge(invoice: str, macaroon: str) -> str:
    """
    Format a WWW-Authenticate header value for a 402 response.

    Args:
        invoice: Bolt11 invoice string.
        macaroon: Encoded service token.

    Returns:
        WWW-Authenticate header value.
    """
    return f'{SCHEME} macaroon="{macaroon}", invoice="{invoice}"'


def format_challenge_body(
    invoice: str,
    macaroon: str,
    price: int,
    description: str,
) -> Dict[str, Any]:
    """
    Format a full 402 response body.

    Args:
        invoice: Bolt11 invoice string.
        macaroon: Encoded service token.
        price: Amount in satoshis.
        description: Invoice memo.

    Returns:
        Dict suitable for JSON response.
    """
    return {
        "code": 402,
        "message": "Payment Required",
        "invoice": invoice,
        "macaroon": macaroon,
        "price": price,
        "description": description,
    }


def format_authorization(macaroon: str, preimage: str) -> str:
    """Build the Authorization header value for a paid request."""
    return f"{SCHEME} {macaroon}:{preimage}"


def has_l402_scheme(auth_header: Any) -> bool:
    """True if an Authorization header uses the L402 scheme (any case)."""
    if not auth_header or not isinstance(auth_header, str):
        return False
    return auth_header.strip().lower().startswith(SCHEME.lower() + " ")


def parse_authorization(auth_header: Any) -> Optional[L402Credentials]:
    """
    Parse an Authorization: L402 header.

    Format: L402 <macaroon>:<preimage>

    The split happens at the last colon, so a macaroon encoding that
    contains colons still parses.

    Args:
        auth_header: Full Authorization header value.

    Returns:
        L402Credentials or None if parsing fails.
    """
    if not has_l402_scheme(auth_header):
        return None

    credentials = auth_header.strip()[len(SCHEME) + 1:].strip()
    macaroon, sep, preimage = credentials.rpartition(":")
    if not sep or not macaroon:
        return None

    return L402Credentials(macaroon=macaroon, preimage=preimage)
