"""
Process-local token cache used by ``VaultClient.login(use_cache=True)``.

Entries are keyed by server address, auth method and mount, and only ever
hold tokens returned by a successful login.
"""

import logging
import threading
from typing import Dict, NamedTuple, Optional

from .models import Token

logger = logging.getLogger(__name__)


class CacheKey(NamedTuple):
    addr: str
    method: str
    mount: str


class TokenCache:
    """A flat map from ``CacheKey`` to token."""

    def __init__(self):
        self._tokens: Dict[CacheKey, Token] = {}
        self._lock = threading.Lock()

    def get(self, key: CacheKey) -> Optional[Token]:
        with self._lock:
            return self._tokens.get(key)

    def set(self, key: CacheKey, token: Token) -> None:
        with self._lock:
            self._tokens[key] = token
        logger.debug(f"Cached token for {key.method} at {key.addr} (mount '{key.mount}')")

    def delete(self, key: CacheKey) -> None:
        """Invalidate one entry; missing keys are ignored."""
        with self._lock:
            self._tokens.pop(key, None)

    def delete_addr(self, addr: str) -> None:
        """Invalidate every entry for one server address."""
        with self._lock:
            for key in [k for k in self._tokens if k.addr == addr]:
                del self._tokens[key]

    def clear(self) -> None:
        with self._lock:
            self._tokens.clear()

    def __contains__(self, key: CacheKey) -> bool:
        with self._lock:
            return key in self._tokens

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)


# Shared by every client in the process unless one is given its own
session_cache = TokenCache()
