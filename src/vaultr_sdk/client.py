"""
Vault Client

Main client class for interacting with a vault server.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from .cache import CacheKey, TokenCache, session_cache
from .config import ClientConfig
from .models import Token, validate_name
from .policy import VaultPolicy
from .registry import VaultAuth
from .token import TokenManager
from .transport import VaultTransport, list_keys

logger = logging.getLogger(__name__)


class VaultClient:
    """
    Main client for interacting with a vault server.

    A client starts without a token; ``login`` installs one, after which
    every request is made with it.
    """

    def __init__(
        self,
        addr: Optional[str] = None,
        config: Optional[ClientConfig] = None,
        cache: Optional[TokenCache] = None,
        http_transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the vault client.

        Args:
            addr: Server address; overrides ``config.addr`` (``VAULT_ADDR``)
            config: Optional client configuration
            cache: Token cache for ``login(use_cache=True)``; defaults to the
                process-wide session cache
            http_transport: Optional httpx transport, mainly for testing
        """
        config = config or ClientConfig()
        if addr is not None:
            config = config.model_copy(update={"addr": addr.rstrip("/")})
        self.config = config
        self.cache = cache if cache is not None else session_cache

        self._transport = VaultTransport(config, http_transport=http_transport)
        self.auth = VaultAuth(self._transport)
        self.policy = VaultPolicy(self._transport)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        """Close the HTTP client."""
        self._transport.close()

    @property
    def addr(self) -> str:
        return self.config.addr

    @property
    def token(self) -> TokenManager:
        """Token operations; the same object as ``auth.token``."""
        return self.auth.token

    @property
    def current_token(self) -> Optional[str]:
        """The token requests are currently made with, if logged in."""
        return self._transport.token

    # Login

    def login(
        self,
        method: str = "token",
        mount: Optional[str] = None,
        renew: bool = False,
        quiet: bool = False,
        token_only: bool = False,
        use_cache: bool = False,
        **credentials,
    ) -> Optional[str]:
        """
        Log in to the server.

        Args:
            method: Auth method, one of ``auth.methods()``; default ``token``
            mount: Mount path of the backend, if not mounted at ``method``
            renew: Log in even if the client already holds a token
            quiet: Suppress informational log messages
            token_only: Only generate and return a token; the client's own
                token and the cache are left alone, and ``renew`` is ignored
            use_cache: Look in the token cache first, and store the new token
                there after a successful login
            **credentials: Passed to the method's ``login``, e.g. ``token`` or
                ``username`` and ``password``

        Returns:
            The token now in use (or, with ``token_only``, the new token).
        """
        if token_only:
            return self.auth.get(method, mount).login(quiet=quiet, **credentials)

        if self.current_token is not None and not renew:
            return self.current_token

        auth_method = self.auth.get(method, mount)
        key = CacheKey(self.addr, method, auth_method.mount)

        if use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                if not quiet:
                    logger.info(f"Using cached {method} token for {self.addr}")
                self._transport.set_token(cached)
                return cached

        token = auth_method.login(quiet=quiet, **credentials)
        if use_cache:
            self.cache.set(key, token)
        self._transport.set_token(token)
        if not quiet:
            logger.info(f"Logged in to {self.addr} with {method}")
        return token

    # Generic operations

    def read(self, path: str, field: Optional[str] = None, metadata: bool = False) -> Any:
        """
        Read a secret.

        Returns the ``data`` of the secret, or one ``field`` of it; with
        ``metadata=True`` the full reply including lease information.
        """
        res = self._transport.get(validate_name(path, "path"))
        if res is None:
            return None
        if field is not None:
            return res.get("data", {}).get(field)
        return res if metadata else res.get("data")

    def write(self, path: str, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Write ``data`` to ``path``, replacing anything there."""
        return self._transport.post(validate_name(path, "path"), body=data)

    def list(self, path: str, full_names: bool = False) -> List[str]:
        """List keys under ``path``; directories end with a forward slash."""
        path = validate_name(path, "path")
        keys = list_keys(self._transport.list(path))
        if full_names:
            prefix = path.rstrip("/")
            keys = [f"{prefix}/{k}" for k in keys]
        return keys

    def delete(self, path: str) -> None:
        self._transport.delete(validate_name(path, "path"))

    def status(self) -> Dict[str, Any]:
        """Seal status and version of the server."""
        return self._transport.get("/sys/seal-status")

    def unwrap(self, token: str) -> Dict[str, Any]:
        """
        Return the original response inside a wrapping token.

        For a wrapped ``token.create`` the result holds the new token under
        ``auth``; see ``unwrap_token``.
        """
        return self._transport.post("/sys/wrapping/unwrap", token=validate_name(token, "token"))

    def unwrap_token(self, token: str) -> Token:
        """Unwrap a wrapping token produced by ``token.create(wrap_ttl=...)``."""
        res = self.unwrap(token)
        return Token.from_auth(res["auth"])

    def wrap_lookup(self, token: str) -> Dict[str, Any]:
        """Look up the properties of a wrapping token without unwrapping it."""
        body = {"token": validate_name(token, "token")}
        return self._transport.post("/sys/wrapping/lookup", body=body)["data"]
