"""
FastAPI dependency logic for L402 paywalls.

Provides the core request handling: check for L402 auth, verify the
preimage against the token's payment hash, or issue a 402 challenge with a
fresh Lightning invoice.

Verification is stateless: the token carries the payment hash and
SHA256(preimage) == payment_hash is the whole trust decision.
"""

import inspect
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from fastapi import HTTPException, Request

from .errors import BackendError, InvalidPriceError
from .headers import (
    format_challenge,
    format_challenge_body,
    has_l402_scheme,
    parse_authorization,
)
from .preimage import verify_preimage
from .token import create_service_token, decode_token, encode_token

logger = logging.getLogger(__name__)

INVALID_TOKEN = {"error": "Invalid L402 token"}
GATEWAY_ERROR = {"error": "Payment gateway error"}


class L402HTTPException(HTTPException):
    """HTTPException whose dict detail is the complete response body."""


@dataclass(frozen=True)
class Proof:
    """Proof of payment, available as request.state.l402 after verification."""
    preimage: str
    payment_hash: str
    resource: str
    paid: bool = True


def validate_price(price: Any) -> int:
    """
    Check that a price is a finite, positive, whole number of sats.

    Raises:
        InvalidPriceError: Never clamped or defaulted.
    """
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        raise InvalidPriceError(f"Price must be a number, got {price!r}")
    if isinstance(price, float):
        if not math.isfinite(price) or not price.is_integer():
            raise InvalidPriceError(f"Price must be a finite whole number of sats, got {price!r}")
        price = int(price)
    if price <= 0:
        raise InvalidPriceError(f"Price must be positive, got {price!r}")
    return price


class L402Middleware:
    """
    Core paywall logic for a specific route configuration.

    This is created by L402Gate.__call__ and used as a FastAPI dependency.
    """

    def __init__(self, config: Dict[str, Any], route_opts: Dict[str, Any]):
        self.config = config
        self.route_opts = route_opts

        if (
            route_opts.get("price") is None
            and route_opts.get("price_fn") is None
            and config.get("default_price") is None
        ):
            raise ValueError("l402-gate: a price or price_fn is required for this route")

        price_fn = route_opts.get("price_fn")
        if price_fn is not None and not callable(price_fn):
            raise ValueError("l402-gate: price_fn must be callable")

    async def _resolve_price(self, request: Request) -> int:
        """Resolve and validate the price for this request."""
        price_fn: Optional[Callable] = self.route_opts.get("price_fn")
        if price_fn is not None:
            price = price_fn(request)
            if inspect.isawaitable(price):
                price = await price
        elif self.route_opts.get("price") is not None:
            price = self.route_opts["price"]
        else:
            price = self.config["default_price"]
        return validate_price(price)

    def _resolve_description(self, request: Request) -> str:
        desc = self.route_opts.get("description")
        if desc:
            return desc
        return f"L402 access: {request.method} {request.url.path}"

    def _verify(self, request: Request, auth_header: str) -> Proof:
        """Verify presented credentials, or raise 401."""
        creds = parse_authorization(auth_header)
        if creds is None:
            raise L402HTTPException(status_code=401, detail=INVALID_TOKEN)

        token = decode_token(creds.macaroon)
        if token is None or not verify_preimage(creds.preimage, token.payment_hash):
            raise L402HTTPException(status_code=401, detail=INVALID_TOKEN)

        # Same 401 body as a bad preimage.
        if self.config["bind_resource"] and token.resource != request.url.path:
            logger.debug(
                "Token for %s presented on %s", token.resource, request.url.path
            )
            raise L402HTTPException(status_code=401, detail=INVALID_TOKEN)

        return Proof(
            preimage=creds.preimage,
            payment_hash=token.payment_hash,
            resource=token.resource,
        )

    async def _challenge(self, request: Request) -> L402HTTPException:
        """Create an invoice and build the 402 response for this request."""
        backend = self.config["backend"]
        endpoint = request.url.path

        amount = await self._resolve_price(request)
        description = self._resolve_description(request)

        invoice = await backend.create_invoice(amount, description)
        if not invoice or not invoice.payment_request or not invoice.payment_hash:
            raise BackendError("Lightning backend returned an incomplete invoice")

        macaroon = encode_token(create_service_token(invoice.payment_hash, endpoint))
        logger.debug("Issuing %d sat challenge for %s %s", amount, request.method, endpoint)

        return L402HTTPException(
            status_code=402,
            detail=format_challenge_body(
                invoice=invoice.payment_request,
                macaroon=macaroon,
                price=amount,
                description=description,
            ),
            headers={"WWW-Authenticate": format_challenge(invoice.payment_request, macaroon)},
        )

    async def __call__(self, request: Request) -> Proof:
        """
        Process a request through the paywall.

        This is the FastAPI dependency function.

        Args:
            request: FastAPI Request object.

        Returns:
            Proof of payment (also attached to request.state.l402).

        Raises:
            HTTPException: 402 if payment is required, 401 if auth is invalid,
                500 if the invoice could not be issued.
        """
        auth_header = request.headers.get("authorization")

        if has_l402_scheme(auth_header):
            proof = self._verify(request, auth_header)
            request.state.l402 = proof
            return proof

        # No L402 credentials: issue a 402 challenge
        try:
            challenge = await self._challenge(request)
        except Exception:
            logger.exception(
                "L402 challenge failed for %s %s", request.method, request.url.path
            )
            raise L402HTTPException(status_code=500, detail=GATEWAY_ERROR)

        raise challenge
