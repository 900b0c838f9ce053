"""
Auto-pay fetch wrapper for L402-paywalled APIs.

When an endpoint returns 402, automatically pays the Lightning invoice
and retries the request with the L402 authorization header.

Paid credentials are cached per URL so subsequent requests reuse them
without triggering a new payment cycle. The cache key is the URL alone:
method, body and headers are not part of it.
"""

from __future__ import annotations

import logging
import math
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from ..errors import (
    BackendError,
    ChallengeError,
    RequestTimeoutError,
    SpendLimitExceededError,
)
from ..headers import format_authorization
from ..lnd import LndClient, LndConfig
from ..preimage import preimage_to_hex
from .cache import TokenCache

logger = logging.getLogger(__name__)

DEFAULT_MAX_AUTO_PAY_SATS = 10000


@dataclass
class L402Result:
    """Response from an L402-aware request."""
    data: Any
    paid: bool = False
    price: Optional[int] = None
    preimage: Optional[str] = None
    status_code: int = 200

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def _read_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _with_authorization(headers: Dict[str, str], authorization: str) -> Dict[str, str]:
    merged = {k: v for k, v in headers.items() if k.lower() != "authorization"}
    merged["Authorization"] = authorization
    return merged


def parse_challenge(response: httpx.Response) -> Dict[str, Any]:
    """
    Extract invoice, macaroon and price from a 402 response.

    Accepts both the flat body and FastAPI's {"detail": {...}} envelope.

    Raises:
        ChallengeError: If the body is not a usable L402 challenge.
    """
    try:
        challenge = response.json()
    except ValueError as e:
        raise ChallengeError("Could not parse 402 response body") from e

    if isinstance(challenge, dict) and isinstance(challenge.get("detail"), dict):
        challenge = challenge["detail"]
    if not isinstance(challenge, dict):
        raise ChallengeError("402 response body is not an object")

    if not challenge.get("invoice"):
        raise ChallengeError("402 response missing invoice")
    if not challenge.get("macaroon"):
        raise ChallengeError("402 response missing macaroon")

    price = challenge.get("price")
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        raise ChallengeError(f"402 response has no usable price: {price!r}")
    if isinstance(price, float):
        if not math.isfinite(price) or not price.is_integer():
            raise ChallengeError(f"402 response price is not a whole number: {price!r}")
        challenge["price"] = int(price)
    if challenge["price"] <= 0:
        raise ChallengeError(f"402 response price is not positive: {price!r}")

    return challenge


async def _send(client: httpx.AsyncClient, kwargs: Dict[str, Any]) -> httpx.Response:
    try:
        return await client.request(**kwargs)
    except httpx.TimeoutException as e:
        raise RequestTimeoutError(f"Request to {kwargs['url']} timed out") from e


async def auto_pay(
    client: httpx.AsyncClient,
    url: str,
    backend: Any,
    cache: TokenCache,
    method: str = "GET",
    headers: Optional[Dict[str, str]] = None,
    body: Any = None,
    max_sats: int = DEFAULT_MAX_AUTO_PAY_SATS,
) -> L402Result:
    """
    Fetch a URL with automatic L402 payment handling.

    Args:
        client: httpx client used for the protected resource.
        url: URL to fetch.
        backend: Object with an async pay_invoice(invoice) method.
        cache: Credential cache, keyed by URL.
        method: HTTP method.
        headers: Request headers.
        body: Request body (dict/list sent as JSON).
        max_sats: Maximum sats to pay for this request.

    Returns:
        L402Result with the parsed body and payment info.
    """
    req_headers = dict(headers or {})

    kwargs: Dict[str, Any] = {"method": method, "url": url, "headers": req_headers}
    if body is not None:
        if isinstance(body, (dict, list)):
            kwargs["json"] = body
        else:
            kwargs["content"] = body

    cached = cache.get(url)
    if cached:
        req_headers = _with_authorization(req_headers, cached)
        kwargs["headers"] = req_headers

    response = await _send(client, kwargs)

    # Not a 402: return normally (a rejected cached token ends up here too)
    if response.status_code != 402:
        return L402Result(data=_read_body(response), status_code=response.status_code)

    challenge = parse_challenge(response)
    price = challenge["price"]

    # Safety check: never auto-pay more than the configured limit
    if price > max_sats:
        raise SpendLimitExceededError(price, max_sats)

    logger.info("Paying %s sats for %s %s", price, method, url)
    payment = await backend.pay_invoice(challenge["invoice"])
    if not payment or not payment.preimage:
        raise BackendError("Payment returned no preimage")

    try:
        preimage = preimage_to_hex(payment.preimage)
    except ValueError as e:
        raise BackendError("Payment returned a malformed preimage") from e

    authorization = format_authorization(challenge["macaroon"], preimage)
    cache.set(url, authorization)

    kwargs["headers"] = _with_authorization(req_headers, authorization)
    retry_response = await _send(client, kwargs)

    return L402Result(
        data=_read_body(retry_response),
        paid=True,
        price=price,
        preimage=preimage,
        status_code=retry_response.status_code,
    )


class L402Client:
    """
    Automated L402 payment client.

    Wraps HTTP requests with automatic Lightning payment handling.
    When an endpoint returns 402, the client pays the invoice and retries.

    Usage:
        client = L402Client(lnd=LndConfig(rest_host="https://127.0.0.1:8081", macaroon="..."))
        result = await client.fetch("https://api.example.com/joke")
        print(result.data, result.paid, result.price)
    """

    def __init__(
        self,
        lnd: Optional[LndConfig] = None,
        backend: Optional[Any] = None,
        max_auto_pay_sats: int = DEFAULT_MAX_AUTO_PAY_SATS,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the L402Client.

        Args:
            lnd: LND node connection, used to pay invoices.
            backend: Pre-created backend instance (must have pay_invoice method).
            max_auto_pay_sats: Spend ceiling per request.
            headers: Default headers for all requests.
            timeout: Timeout in seconds for requests to the protected resource.
            http_client: Optional shared httpx.AsyncClient (not closed by us).
        """
        if backend is not None:
            if not hasattr(backend, "pay_invoice"):
                raise ValueError("L402Client: backend must have a pay_invoice() method")
            self.backend = backend
        elif lnd is not None:
            self.backend = LndClient(lnd)
        else:
            raise ValueError("L402Client: lnd or backend is required")

        self.max_auto_pay_sats = max_auto_pay_sats
        self.default_headers = headers or {}
        self.timeout = timeout
        self._http_client = http_client

        self._cache = TokenCache()

        # Track spending
        self.total_spent = 0
        self.request_count = 0
        self.payment_count = 0

    @asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                yield client

    async def fetch(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        body: Any = None,
        max_sats: Optional[int] = None,
    ) -> L402Result:
        """
        Fetch a URL with automatic L402 payment handling.

        Args:
            url: URL to fetch.
            method: HTTP method.
            headers: Additional headers (merged with defaults).
            body: Request body.
            max_sats: Override the spend ceiling for this request.

        Returns:
            L402Result with the parsed body and payment info.
        """
        self.request_count += 1

        merged_headers = {**self.default_headers, **(headers or {})}
        effective_max = max_sats if max_sats is not None else self.max_auto_pay_sats

        async with self._http() as client:
            result = await auto_pay(
                client,
                url,
                self.backend,
                self._cache,
                method=method,
                headers=merged_headers,
                body=body,
                max_sats=effective_max,
            )

        if result.paid:
            self.payment_count += 1
            self.total_spent += result.price or 0

        return result

    def get_stats(self) -> Dict[str, Any]:
        """Get spending statistics."""
        return {
            "total_spent": self.total_spent,
            "request_count": self.request_count,
            "payment_count": self.payment_count,
            "cached_credentials": self._cache.size(),
        }

    def cache_size(self) -> int:
        """Number of cached L402 credentials."""
        return self._cache.size()

    def clear_cache(self) -> None:
        """Clear all cached credentials."""
        self._cache.clear()


async def l402_fetch(
    url: str,
    lnd: Optional[LndConfig] = None,
    backend: Optional[Any] = None,
    max_sats: int = DEFAULT_MAX_AUTO_PAY_SATS,
    method: str = "GET",
    headers: Optional[Dict[str, str]] = None,
    body: Any = None,
) -> L402Result:
    """
    One-shot fetch with auto-payment.

    Nothing is cached between calls; use L402Client to reuse credentials.
    """
    client = L402Client(lnd=lnd, backend=backend, max_auto_pay_sats=max_sats)
    return await client.fetch(url, method=method, headers=headers, body=body)
