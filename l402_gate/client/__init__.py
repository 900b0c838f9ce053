"""
Client SDK for consuming L402-paywalled APIs.

Provides L402Client and l402_fetch for automatic Lightning payment handling.
"""

from .cache import TokenCache
from .fetch import L402Client, L402Result, l402_fetch

__all__ = ["L402Client", "L402Result", "TokenCache", "l402_fetch"]
