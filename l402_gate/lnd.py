"""
Minimal LND REST client.

Covers the two calls L402 needs:
    POST /v1/invoices                  create an invoice (server side)
    POST /v1/channels/transactions     pay an invoice (client side)

Authentication uses the admin macaroon in the Grpc-Metadata-macaroon header.
LND encodes bytes fields (r_hash, payment_preimage) as base64; they are
converted to hex here so the rest of the package only deals with hex.

Self-signed node certificates: skip_tls_verify only affects the httpx client
opened for each call to this node. Nothing process-wide is changed.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from .errors import BackendError, BackendTimeoutError, PaymentFailedError
from .preimage import preimage_to_hex

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class LndConfig:
    """Connection details for an LND node."""
    rest_host: str                 # e.g. "https://127.0.0.1:8082"
    macaroon: str                  # admin macaroon, hex
    skip_tls_verify: bool = False  # for self-signed certs in development
    timeout: float = 30.0          # seconds, per call

    @classmethod
    def from_env(cls, prefix: str = "LND_") -> "LndConfig":
        """
        Build a config from environment variables.

        Reads <prefix>REST_HOST, <prefix>MACAROON, <prefix>SKIP_TLS_VERIFY
        and <prefix>TIMEOUT.
        """
        rest_host = os.environ.get(f"{prefix}REST_HOST")
        macaroon = os.environ.get(f"{prefix}MACAROON")
        if not rest_host:
            raise ValueError(f"{prefix}REST_HOST is not set")
        if not macaroon:
            raise ValueError(f"{prefix}MACAROON is not set")

        skip = os.environ.get(f"{prefix}SKIP_TLS_VERIFY", "").strip().lower() in _TRUTHY
        timeout = float(os.environ.get(f"{prefix}TIMEOUT", "30"))
        return cls(rest_host=rest_host, macaroon=macaroon, skip_tls_verify=skip, timeout=timeout)


@dataclass
class InvoiceResult:
    """Result from create_invoice."""
    payment_request: str           # bolt11 invoice
    payment_hash: str              # hex


@dataclass
class PaymentResult:
    """Result from pay_invoice."""
    preimage: str                  # hex
    payment_hash: Optional[str] = None  # as reported by the node (base64)


class LndClient:
    """
    LND REST client used both to create invoices and to pay them.

    Usage:
        lnd = LndClient(LndConfig(rest_host="https://127.0.0.1:8082", macaroon="0201..."))
        invoice = await lnd.create_invoice(100, "API access")
    """

    def __init__(self, config: LndConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize the LND client.

        Args:
            config: Node connection details.
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        if not config.rest_host:
            raise ValueError("LndClient: rest_host is required")
        if not config.macaroon:
            raise ValueError("LndClient: macaroon is required")

        self.config = config
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.rest_host.rstrip("/"),
            headers={"Grpc-Metadata-macaroon": self.config.macaroon},
            verify=not self.config.skip_tls_verify,
            timeout=self.config.timeout,
            transport=self._transport,
        )

    async def _post(self, path: str, body: Dict[str, Any], action: str) -> Dict[str, Any]:
        """POST a JSON body to the node and return the parsed JSON reply."""
        try:
            async with self._client() as client:
                response = await client.post(path, json=body)
        except httpx.TimeoutException as e:
            raise BackendTimeoutError(
                f"LND {action} timed out after {self.config.timeout}s"
            ) from e
        except httpx.HTTPError as e:
            raise BackendError(f"LND {action} failed: {e}") from e

        if not response.is_success:
            raise BackendError(
                f"LND {action} failed: {response.status_code} {response.reason_phrase}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise BackendError(f"LND {action} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise BackendError(f"LND {action} returned an unexpected payload")
        return data

    async def create_invoice(self, amount_sats: int, memo: str = "") -> InvoiceResult:
        """
        Create a Lightning invoice.

        Args:
            amount_sats: Amount in satoshis.
            memo: Invoice description.

        Returns:
            InvoiceResult with the bolt11 string and the hex payment hash.
        """
        data = await self._post(
            "/v1/invoices",
            {"value": str(amount_sats), "memo": memo},
            "invoice creation",
        )

        payment_request = data.get("payment_request")
        r_hash = data.get("r_hash")
        if not payment_request or not r_hash:
            raise BackendError("LND invoice creation returned no payment_request/r_hash")

        try:
            payment_hash = preimage_to_hex(r_hash)
        except ValueError as e:
            raise BackendError("LND invoice creation returned a malformed r_hash") from e

        logger.debug("Created invoice for %d sats (hash %s)", amount_sats, payment_hash)
        return InvoiceResult(payment_request=payment_request, payment_hash=payment_hash)

    async def pay_invoice(self, payment_request: str) -> PaymentResult:
        """
        Pay a Lightning invoice.

        Args:
            payment_request: Bolt11 invoice string.

        Returns:
            PaymentResult with the hex preimage.

        Raises:
            PaymentFailedError: The node reported a payment_error.
            BackendError: The node was unreachable or replied with garbage.
        """
        data = await self._post(
            "/v1/channels/transactions",
            {"payment_request": payment_request},
            "payment",
        )

        if data.get("payment_error"):
            raise PaymentFailedError(str(data["payment_error"]))

        raw_preimage = data.get("payment_preimage")
        if not raw_preimage:
            raise BackendError("LND payment returned no preimage")

        try:
            preimage = preimage_to_hex(raw_preimage)
        except ValueError as e:
            raise BackendError("LND payment returned a malformed preimage") from e

        return PaymentResult(preimage=preimage, payment_hash=data.get("payment_hash"))
