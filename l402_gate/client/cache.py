"""
Per-client store of paid L402 credentials.

Keys are request URLs, values are ready-to-send Authorization header values.
Entries never expire; they are reused until clear() or delete().
"""

from __future__ import annotations

import threading
from typing import Dict, Optional


class TokenCache:
    """Thread-safe URL -> Authorization value mapping."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tokens: Dict[str, str] = {}

    def get(self, url: str) -> Optional[str]:
        with self._lock:
            return self._tokens.get(url)

    def set(self, url: str, authorization: str) -> None:
        with self._lock:
            self._tokens[url] = authorization

    def delete(self, url: str) -> None:
        with self._lock:
            self._tokens.pop(url, None)

    def clear(self) -> None:
        with self._lock:
            self._tokens.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._tokens)

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, url: object) -> bool:
        with self._lock:
            return url in self._tokens
