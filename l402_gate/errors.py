"""
Exception types raised by l402-gate.

Server-side outcomes (402/401/500) are reported as HTTP responses by the
middleware; these exceptions are what the client and the LND backend raise.
"""

from __future__ import annotations


class L402Error(RuntimeError):
    """Base class for all l402-gate errors."""


class ChallengeError(L402Error):
    """A 402 response could not be understood as an L402 challenge."""


class SpendLimitExceededError(L402Error):
    """The challenge price is above the client's auto-pay ceiling."""

    def __init__(self, price: int, max_sats: int):
        self.price = price
        self.max_sats = max_sats
        super().__init__(
            f"L402 price ({price} sats) exceeds max_auto_pay_sats ({max_sats}). "
            f"Increase the limit or pay manually."
        )


class PaymentFailedError(L402Error):
    """The Lightning node reported that the payment did not go through."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Lightning payment failed: {reason}")


class BackendError(L402Error):
    """The Lightning node could not be reached or answered with garbage."""


class BackendTimeoutError(BackendError):
    """The Lightning node did not answer in time."""


class RequestTimeoutError(L402Error):
    """The protected resource did not answer in time."""


class InvalidPriceError(L402Error, ValueError):
    """A static or computed price is not a finite positive integer."""
