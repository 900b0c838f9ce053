"""
l402-gate: L402 Lightning paywalls for FastAPI, and a client that pays them.

Server: paywall any FastAPI route with Lightning payments.
Client: drop-in async fetch that auto-pays L402 invoices.

Usage:
    from fastapi import Depends
    from l402_gate import LndConfig, create_gate

    gate = create_gate(lnd=LndConfig(rest_host="https://127.0.0.1:8082", macaroon="..."))
    gate.install(app)

    @app.get("/api/data")
    async def data(proof=Depends(gate(price=100))):
        return {"data": "...", "paid": proof.paid}

    from l402_gate import L402Client

    client = L402Client(lnd=LndConfig(rest_host="https://127.0.0.1:8081", macaroon="..."))
    result = await client.fetch("https://api.example.com/data")
"""

from .client import L402Client, L402Result, TokenCache, l402_fetch
from .errors import (
    BackendError,
    BackendTimeoutError,
    ChallengeError,
    InvalidPriceError,
    L402Error,
    PaymentFailedError,
    RequestTimeoutError,
    SpendLimitExceededError,
)
from .gate import L402Gate, create_gate, l402
from .headers import (
    L402Credentials,
    format_authorization,
    format_challenge,
    format_challenge_body,
    parse_authorization,
)
from .lnd import InvoiceResult, LndClient, LndConfig, PaymentResult
from .middleware import L402HTTPException, L402Middleware, Proof, validate_price
from .preimage import commit_preimage, preimage_to_hex, verify_preimage
from .token import ServiceToken, create_service_token, decode_token, encode_token

__version__ = "0.1.0"

__all__ = [
    # Server
    "create_gate",
    "l402",
    "L402Gate",
    "L402Middleware",
    "L402HTTPException",
    "Proof",
    "validate_price",
    # Client
    "L402Client",
    "L402Result",
    "TokenCache",
    "l402_fetch",
    # Token
    "ServiceToken",
    "create_service_token",
    "encode_token",
    "decode_token",
    # Preimage
    "commit_preimage",
    "verify_preimage",
    "preimage_to_hex",
    # L402 headers
    "L402Credentials",
    "format_authorization",
    "format_challenge",
    "format_challenge_body",
    "parse_authorization",
    # LND
    "LndConfig",
    "LndClient",
    "InvoiceResult",
    "PaymentResult",
    # Errors
    "L402Error",
    "ChallengeError",
    "SpendLimitExceededError",
    "PaymentFailedError",
    "BackendError",
    "BackendTimeoutError",
    "RequestTimeoutError",
    "InvalidPriceError",
]
